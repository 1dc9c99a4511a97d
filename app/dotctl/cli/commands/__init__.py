"""CLI commands for dotctl.

This package contains all subcommand implementations.
"""

from dotctl.cli.commands import install, listing, new, status, uninstall

__all__ = ["install", "listing", "new", "status", "uninstall"]
