"""Host system detection.

Detected facts are exposed to module scripts as DOTCTL_* variables and
to templates, and the OS identifier drives module OS filtering.
"""

import getpass
import logging
import platform
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

from dotctl.core.paths import get_dotfiles_dir
from dotctl.utils.shell import run_command

logger = logging.getLogger(__name__)

OS_RELEASE_PATH = Path("/etc/os-release")

_PKG_MANAGERS = {
    "macos": "brew",
    "ubuntu": "apt",
    "debian": "apt",
    "pop": "apt",
    "arch": "pacman",
    "manjaro": "pacman",
    "fedora": "dnf",
}


@dataclass(frozen=True, slots=True)
class SystemInfo:
    """Facts about the machine dotctl runs on.

    Attributes:
        os: OS identifier ("macos", "ubuntu", "arch", ...).
        arch: Machine architecture ("x86_64", "arm64", ...).
        pkg_mgr: Expected package manager, or empty if unknown.
        has_sudo: Whether sudo works without a password.
        user: Current user name.
        home_dir: Home directory.
        dotfiles_dir: Dotfiles repository root.
        is_interactive: Whether stdin is a terminal.
    """

    os: str
    arch: str
    pkg_mgr: str
    has_sudo: bool
    user: str
    home_dir: Path
    dotfiles_dir: Path
    is_interactive: bool


def parse_os_release_id(path: Path = OS_RELEASE_PATH) -> str:
    """Read the ID field of an os-release file.

    Returns:
        Lower-cased, unquoted ID, or empty string if unavailable.
    """
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return ""
    for line in lines:
        line = line.strip()
        if line.startswith("ID="):
            return line[3:].strip("\"'").lower()
    return ""


def detect_os() -> str:
    """Detect the OS identifier.

    Returns "macos" on macOS, the os-release ID on Linux, and the
    lower-cased platform name otherwise.
    """
    system = platform.system().lower()
    if system == "darwin":
        return "macos"
    if system == "linux":
        distro = parse_os_release_id()
        if distro:
            return distro
    return system


def detect_pkg_mgr(os_id: str) -> str:
    """Expected package manager for an OS identifier, or empty if unknown."""
    return _PKG_MANAGERS.get(os_id, "")


def detect_sudo() -> bool:
    """Check whether ``sudo -n true`` succeeds without prompting."""
    try:
        return run_command(["sudo", "-n", "true"], timeout=2.0).success
    except (OSError, subprocess.TimeoutExpired):
        return False


def detect(dotfiles_dir: Path | None = None) -> SystemInfo:
    """Gather system information once at startup.

    Args:
        dotfiles_dir: Dotfiles directory override.
    """
    os_id = detect_os()
    info = SystemInfo(
        os=os_id,
        arch=platform.machine().lower(),
        pkg_mgr=detect_pkg_mgr(os_id),
        has_sudo=detect_sudo(),
        user=getpass.getuser(),
        home_dir=Path.home(),
        dotfiles_dir=dotfiles_dir or get_dotfiles_dir(),
        is_interactive=sys.stdin.isatty(),
    )
    logger.debug("Detected system: %s", info)
    return info
