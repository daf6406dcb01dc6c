"""
ssmctl CLI - Command line interface.
"""

from ssmctl.cli.main import cli, main

__all__ = ["cli", "main"]
