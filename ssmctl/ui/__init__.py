"""
ssmctl UI - Console output and prompts.
"""

from ssmctl.ui.console import ConsoleUI, parse_selection

__all__ = ["ConsoleUI", "parse_selection"]
