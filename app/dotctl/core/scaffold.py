"""Module skeleton generation for ``dotctl new``."""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli_w

from dotctl.models.module import DEFAULT_PRIORITY

logger = logging.getLogger(__name__)

MODULE_NAME_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")
SCAFFOLD_OS = ("macos", "ubuntu", "arch")


class ScaffoldError(Exception):
    """Raised when a module skeleton cannot be created."""


@dataclass(slots=True)
class ScaffoldResult:
    """Files and directories created for a new module."""

    module_dir: Path
    created: list[Path] = field(default_factory=lambda: [])


def is_valid_module_name(name: str) -> bool:
    """Check that a name is lowercase alphanumeric with single hyphens."""
    return bool(MODULE_NAME_PATTERN.match(name))


def _manifest(name: str, priority: int, depends: list[str], os_list: list[str]) -> str:
    data: dict[str, Any] = {
        "name": name,
        "description": f"Install and configure {name}",
        "version": "1.0.0",
        "priority": priority,
        "dependencies": depends,
        "os": os_list,
        "requires": [],
        "tags": [],
    }
    example = (
        "\n"
        "# Script timeout (default: 5m)\n"
        '# timeout = "10m"\n'
        "\n"
        "# Files deployed by this module\n"
        "# [[files]]\n"
        '# source = "files/example.conf"\n'
        f'# dest = "~/.config/{name}/example.conf"\n'
        '# kind = "symlink"  # or "copy" or "template"\n'
    )
    return tomli_w.dumps(data) + example


def _install_script(name: str) -> str:
    return f"""#!/usr/bin/env bash
# {name}/install.sh - install and configure {name}
#
# Sourced by dotctl after lib/helpers.sh, in strict mode.
# Environment: DOTCTL_OS, DOTCTL_ARCH, DOTCTL_PKG_MGR, DOTCTL_HOME, DOTCTL_MODULE_DIR, ...
# Append installed package names to "$DOTCTL_PACKAGE_LOG" to have them recorded.

echo "Installing {name}..."
"""


def _verify_script(name: str) -> str:
    return f"""#!/usr/bin/env bash
# {name}/verify.sh - exit non-zero if {name} is not correctly installed

command -v {name} >/dev/null 2>&1 || {{ echo "{name} not found on PATH"; exit 1; }}
"""


def _os_script(name: str, os_name: str) -> str:
    return f"""#!/usr/bin/env bash
# {name}/os/{os_name}.sh - {os_name}-specific steps, run before install.sh

echo "Running {os_name} steps for {name}..."
"""


def _readme(name: str, priority: int, depends: list[str]) -> str:
    deps = ", ".join(depends) if depends else "none"
    return f"""# {name}

Install and configure {name}.

- Priority: {priority}
- Dependencies: {deps}

## Files

| File | Purpose |
|---|---|
| module.toml | Module definition |
| install.sh | Main installation script |
| verify.sh | Post-install verification |
| os/*.sh | OS-specific steps |

## Usage

    dotctl install {name} --dry-run
    dotctl install {name}
"""


def create_module(
    name: str,
    modules_dir: Path,
    *,
    priority: int = DEFAULT_PRIORITY,
    depends: list[str] | None = None,
    os_list: list[str] | None = None,
) -> ScaffoldResult:
    """Create a module skeleton.

    Args:
        name: Module name.
        modules_dir: Directory that holds all modules.
        priority: Module priority.
        depends: Dependency names.
        os_list: Supported OS identifiers (empty means all).

    Returns:
        ScaffoldResult listing every created path.

    Raises:
        ScaffoldError: If the name is invalid, the module exists, or a
            file cannot be written.
    """
    if not is_valid_module_name(name):
        raise ScaffoldError(
            f"invalid module name {name!r}: must be lowercase alphanumeric with hyphens only"
        )

    module_dir = modules_dir / name
    if module_dir.exists():
        raise ScaffoldError(f"module {name!r} already exists at {module_dir}")

    depends = depends or []
    os_list = os_list or []
    result = ScaffoldResult(module_dir=module_dir)

    files: list[tuple[Path, str, int]] = [
        (module_dir / "module.toml", _manifest(name, priority, depends, os_list), 0o644),
        (module_dir / "install.sh", _install_script(name), 0o755),
        (module_dir / "verify.sh", _verify_script(name), 0o755),
        *((module_dir / "os" / f"{os_name}.sh", _os_script(name, os_name), 0o755) for os_name in SCAFFOLD_OS),
        (module_dir / "README.md", _readme(name, priority, depends), 0o644),
        (module_dir / "files" / "example.conf", f"# Example configuration for {name}\n", 0o644),
    ]

    try:
        for path, content, mode in files:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
            path.chmod(mode)
            result.created.append(path)
    except OSError as e:
        raise ScaffoldError(f"Failed to create module {name}: {e}") from e

    logger.debug("Scaffolded module %s at %s", name, module_dir)
    return result
