"""Path management for dotctl.

This module provides standardized paths for the dotfiles repository and
the state, backup, and configuration data dotctl keeps alongside it.

Layout (rooted at $DOTCTL_DIR, default ~/.dotfiles):
- config.toml, profiles/, modules/, lib/helpers.sh
- .state/   one JSON document per installed module
- .backups/ timestamped copies of files replaced during deployment
"""

import os
from pathlib import Path

# Application identifier for directory naming
APP_NAME = "dotctl"

# Environment variable overriding the dotfiles directory
DOTFILES_DIR_ENV = "DOTCTL_DIR"


def get_dotfiles_dir() -> Path:
    """Get the dotfiles repository directory.

    Returns:
        Path from $DOTCTL_DIR, or ~/.dotfiles when unset.
    """
    override = os.environ.get(DOTFILES_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".dotfiles"


def get_user_config_dir() -> Path:
    """Get the per-user dotctl configuration directory.

    Used for presentation settings (theme) that are not part of the
    dotfiles repository itself.

    Returns:
        Path to ~/.config/dotctl/ (or XDG_CONFIG_HOME/dotctl/).
    """
    base = os.environ.get("XDG_CONFIG_HOME")
    if base:
        return Path(base) / APP_NAME
    return Path.home() / ".config" / APP_NAME


def get_config_path(dotfiles_dir: Path | None = None) -> Path:
    """Get the repository configuration file path.

    Args:
        dotfiles_dir: Optional dotfiles directory override.

    Returns:
        Path to <dotfiles>/config.toml.
    """
    return (dotfiles_dir or get_dotfiles_dir()) / "config.toml"


def get_modules_dir(dotfiles_dir: Path | None = None) -> Path:
    """Get the modules directory path.

    Args:
        dotfiles_dir: Optional dotfiles directory override.

    Returns:
        Path to <dotfiles>/modules.
    """
    return (dotfiles_dir or get_dotfiles_dir()) / "modules"


def get_profiles_dir(dotfiles_dir: Path | None = None) -> Path:
    """Get the profiles directory path.

    Args:
        dotfiles_dir: Optional dotfiles directory override.

    Returns:
        Path to <dotfiles>/profiles.
    """
    return (dotfiles_dir or get_dotfiles_dir()) / "profiles"


def get_helpers_path(dotfiles_dir: Path | None = None) -> Path:
    """Get the shared shell helpers library path.

    Args:
        dotfiles_dir: Optional dotfiles directory override.

    Returns:
        Path to <dotfiles>/lib/helpers.sh.
    """
    return (dotfiles_dir or get_dotfiles_dir()) / "lib" / "helpers.sh"


def get_state_dir(dotfiles_dir: Path | None = None) -> Path:
    """Get the state directory path.

    State data includes one document per module describing its last
    installation outcome, checksums, deployed files and operations.

    Args:
        dotfiles_dir: Optional dotfiles directory override.

    Returns:
        Path to <dotfiles>/.state.
    """
    return (dotfiles_dir or get_dotfiles_dir()) / ".state"


def get_backup_dir(dotfiles_dir: Path | None = None) -> Path:
    """Get the backup directory path.

    Each run that replaces files creates a timestamped subdirectory
    within this location.

    Args:
        dotfiles_dir: Optional dotfiles directory override.

    Returns:
        Path to <dotfiles>/.backups.
    """
    return (dotfiles_dir or get_dotfiles_dir()) / ".backups"


def expand_home(path: str, home_dir: Path) -> Path:
    """Expand a leading ``~`` against an explicit home directory.

    Args:
        path: Path string, possibly starting with ``~`` or ``~/``.
        home_dir: Home directory to substitute.

    Returns:
        Expanded path. Paths without a leading ``~`` are returned unchanged.
    """
    if path == "~":
        return home_dir
    if path.startswith("~/"):
        return home_dir / path[2:]
    return Path(path)
