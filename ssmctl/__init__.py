"""
ssmctl - Find and connect to EC2 and SSM managed instances.

Discovers instances across AWS profiles and regions, caches them locally,
and opens Session Manager sessions by name.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("ssmctl")
except PackageNotFoundError:
    # Package not installed, fallback to pyproject.toml
    __version__ = "0.1.0"

__author__ = "ssmctl Contributors"
