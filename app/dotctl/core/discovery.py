"""Module discovery.

Every immediate subdirectory of the modules directory that contains a
module.toml is a module. Directories without a manifest are ignored.
"""

import logging
import tomllib
from pathlib import Path

from pydantic import ValidationError

from dotctl.core.paths import get_modules_dir
from dotctl.models.module import Module, parse_duration

logger = logging.getLogger(__name__)

MANIFEST_NAME = "module.toml"


class ModuleDiscoveryError(Exception):
    """Base exception for module discovery errors."""


class ModuleParseError(ModuleDiscoveryError):
    """Raised when a module.toml cannot be parsed."""


class ModuleValidationError(ModuleDiscoveryError):
    """Raised when a module.toml content is invalid."""


def load_module(path: Path) -> Module:
    """Load and validate a single module manifest.

    The module name defaults to the name of the directory holding the
    manifest.

    Args:
        path: Path to module.toml.

    Returns:
        Validated Module with ``directory`` set.

    Raises:
        ModuleParseError: If the TOML syntax is invalid.
        ModuleValidationError: If the content doesn't match the schema.
        ModuleDiscoveryError: If the file cannot be read.
    """
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ModuleParseError(f"Invalid TOML syntax in {path}: {e}") from e
    except OSError as e:
        raise ModuleDiscoveryError(f"Failed to read {path}: {e}") from e

    directory = path.parent.resolve()
    data.setdefault("name", directory.name)
    data["directory"] = directory

    try:
        module = Module.model_validate(data)
    except ValidationError as e:
        raise ModuleValidationError(f"Invalid module {path}: {e}") from e

    if module.timeout is not None:
        try:
            parse_duration(module.timeout)
        except ValueError as e:
            raise ModuleValidationError(f"Invalid timeout in {path}: {e}") from e

    return module


def discover_modules(modules_dir: Path | None = None) -> list[Module]:
    """Discover all modules.

    Args:
        modules_dir: Directory to scan. If None, uses the default.

    Returns:
        Modules sorted by (priority, name).

    Raises:
        ModuleDiscoveryError: If the directory cannot be read or a
            manifest is invalid.
    """
    root = modules_dir or get_modules_dir()
    if not root.is_dir():
        raise ModuleDiscoveryError(f"Modules directory not found: {root}")

    modules: list[Module] = []
    try:
        entries = sorted(root.iterdir())
    except OSError as e:
        raise ModuleDiscoveryError(f"Failed to read modules directory {root}: {e}") from e

    for entry in entries:
        manifest = entry / MANIFEST_NAME
        if not entry.is_dir() or not manifest.is_file():
            continue
        modules.append(load_module(manifest))

    modules.sort(key=lambda m: (m.priority, m.name))
    logger.debug("Discovered %d module(s) in %s", len(modules), root)
    return modules


def require_modules(modules_dir: Path | None = None) -> list[Module]:
    """Discover modules or exit with a helpful error message.

    Raises:
        typer.Exit: If discovery fails.
    """
    import typer

    from dotctl.utils.formatting import print_error, print_info

    try:
        return discover_modules(modules_dir)
    except ModuleDiscoveryError as e:
        print_error(f"Module discovery failed: {e}")
        print_info("Run 'dotctl new <name>' to create a module.")
        raise typer.Exit(code=1) from e
