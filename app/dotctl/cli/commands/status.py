"""Status command implementation.

Shows installed modules, whether they need an update, and the errors
of modules whose last run failed.
"""

import json
import logging
from enum import Enum
from typing import Annotated, Any

import typer

from dotctl.core import sysinfo
from dotctl.core.config import ConfigError, DotctlConfig, default_config, load_config
from dotctl.core.discovery import ModuleDiscoveryError, discover_modules
from dotctl.core.hashing import HashError, compute_config_hash, compute_module_checksum
from dotctl.core.paths import get_modules_dir, get_state_dir
from dotctl.core.state import StateError, StateStore
from dotctl.models.module import Module
from dotctl.models.state import ModuleState, ModuleStatus
from dotctl.utils.formatting import (
    console,
    create_table,
    format_relative_time,
    print_error,
    print_info,
    print_warning,
)

logger = logging.getLogger(__name__)


class UpdateStatus(str, Enum):
    """Whether an installed module is current."""

    UP_TO_DATE = "up-to-date"
    VERSION = "version"
    CHANGED = "changed"
    CONFIG = "config"
    USER_MODIFIED = "modified"
    FAILED = "failed"
    MISSING = "missing"

    @property
    def needs_update(self) -> bool:
        return self in (UpdateStatus.VERSION, UpdateStatus.CHANGED, UpdateStatus.CONFIG)


_STATUS_DISPLAY: dict[UpdateStatus, tuple[str, str]] = {
    UpdateStatus.UP_TO_DATE: ("✓", "success"),
    UpdateStatus.VERSION: ("• version", "warning"),
    UpdateStatus.CHANGED: ("• changed", "warning"),
    UpdateStatus.CONFIG: ("• config", "warning"),
    UpdateStatus.USER_MODIFIED: ("⚠ modified", "warning"),
    UpdateStatus.FAILED: ("! failed", "error"),
    UpdateStatus.MISSING: ("? missing", "muted"),
}


def update_status(state: ModuleState, module: Module | None, config: DotctlConfig) -> UpdateStatus:
    """Compare a recorded state with the module on disk.

    Checks run in order: version, module checksum, config hash, then
    user-modified files. Stored hashes that are empty are not compared, and
    a module that cannot be checksummed counts as changed.

    Args:
        state: Recorded module state.
        module: Discovered module of the same name, or None if it is gone.
        config: Current configuration.
    """
    if state.status == ModuleStatus.FAILED:
        return UpdateStatus.FAILED
    if module is None:
        return UpdateStatus.MISSING
    if module.version != state.version:
        return UpdateStatus.VERSION
    if state.checksum:
        try:
            checksum = compute_module_checksum(module)
        except HashError as e:
            logger.debug("Cannot checksum %s: %s", module.name, e)
            return UpdateStatus.CHANGED
        if checksum != state.checksum:
            return UpdateStatus.CHANGED
    if state.config_hash and compute_config_hash(module, config) != state.config_hash:
        return UpdateStatus.CONFIG
    if state.has_user_modified_files:
        return UpdateStatus.USER_MODIFIED
    return UpdateStatus.UP_TO_DATE


def _load_config_or_default(system: sysinfo.SystemInfo) -> DotctlConfig:
    try:
        return load_config(system.dotfiles_dir)
    except ConfigError as e:
        logger.debug("Using default config: %s", e)
        return default_config()


def _discover_by_name(system: sysinfo.SystemInfo) -> dict[str, Module]:
    try:
        modules = discover_modules(get_modules_dir(system.dotfiles_dir))
    except ModuleDiscoveryError as e:
        logger.debug("Module discovery failed: %s", e)
        return {}
    return {module.name: module for module in modules}


def show_status(
    json_output: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output as JSON."),
    ] = False,
) -> None:
    """Show installed modules and whether they need an update.

    Examples:
        dotctl status           # Table of installed modules
        dotctl status --json    # Machine-readable output
    """
    system = sysinfo.detect()
    config = _load_config_or_default(system)
    modules = _discover_by_name(system)
    store = StateStore(get_state_dir(system.dotfiles_dir))

    try:
        states = store.get_all()
    except StateError as e:
        print_error(f"Failed to read state: {e}")
        raise typer.Exit(code=1) from e

    statuses = [(state, update_status(state, modules.get(state.name), config)) for state in states]

    if json_output:
        payload: list[dict[str, Any]] = [
            {
                "name": state.name,
                "version": state.version,
                "status": state.status.value,
                "update": status.value,
                "installed_at": state.installed_at,
                "updated_at": state.updated_at,
                "os": state.os,
                "error": state.error,
            }
            for state, status in statuses
        ]
        console.print_json(json.dumps(payload))
        return

    if not states:
        print_info("No modules installed yet.")
        print_info("Run 'dotctl install' to get started.")
        return

    console.print(f"[muted]System: {system.os}/{system.arch}    Dotfiles: {system.dotfiles_dir}[/muted]")

    table = create_table("Installed Modules")
    table.add_column("Module", style="module.name", no_wrap=True)
    table.add_column("Version")
    table.add_column("Status")
    table.add_column("Update")
    table.add_column("Installed", style="muted")
    table.add_column("OS", style="muted")
    for state, status in statuses:
        label, style = _STATUS_DISPLAY[status]
        state_style = "installed" if state.status == ModuleStatus.INSTALLED else "failed"
        table.add_row(
            state.name,
            state.version or "-",
            f"[{state_style}]{state.status.value}[/{state_style}]",
            f"[{style}]{label}[/{style}]",
            format_relative_time(state.installed_at),
            state.os or "-",
        )
    console.print(table)

    installed = sum(1 for state in states if state.status == ModuleStatus.INSTALLED)
    failed = [state for state in states if state.status == ModuleStatus.FAILED]
    need_update = sum(1 for _, status in statuses if status.needs_update)
    modified = sum(1 for _, status in statuses if status == UpdateStatus.USER_MODIFIED)

    parts = [f"{installed} installed"]
    if failed:
        parts.append(f"{len(failed)} failed")
    if need_update:
        parts.append(f"{need_update} need update")
    if modified:
        parts.append(f"{modified} user modified")
    print_info(f"Total: {len(states)} modules ({', '.join(parts)})")
    console.print("[muted]Update status: ✓ up-to-date  • needs update  ⚠ user modified  ! failed[/muted]")

    if failed:
        print_warning("Failed modules:")
        for state in failed:
            if state.error:
                console.print(f"  • {state.name}: {state.error}", markup=False)
    if need_update or failed:
        print_info("Run 'dotctl install' to update or retry modules.")
