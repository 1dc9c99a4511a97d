"""Idempotence decisions for modules and files.

A module is re-run only when something it depends on changed since its
last successful run: its scripts or manifest, its configuration, or its
version. A file is redeployed only when its source changed or the
destination no longer matches what was deployed. Files the user edited
after deployment are left alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from dotctl.core.hashing import (
    HashError,
    compute_config_hash,
    compute_file_hash,
    compute_module_checksum,
)
from dotctl.models.module import FileEntry, FileKind, Module
from dotctl.models.state import FileState, ModuleState, ModuleStatus

if TYPE_CHECKING:
    from dotctl.core.config import DotctlConfig
    from dotctl.core.runner import RunOptions

logger = logging.getLogger(__name__)

REASON_NOT_DEPLOYED = "not previously deployed"
REASON_FORCE = "force flag set"
REASON_SOURCE_CHANGED = "source file changed"
REASON_DEST_MISSING = "destination file missing"
REASON_SYMLINK_UNREADABLE = "symlink read error"
REASON_SYMLINK_WRONG = "symlink points to wrong location"
REASON_SYMLINK_OK = "symlink already correct"
REASON_DEST_HASH_ERROR = "destination hash error"
REASON_UNCHANGED = "destination unchanged since deployment"
REASON_USER_MODIFIED = "user modified (source unchanged)"


class ExecutionDecision(str, Enum):
    """What to do with a module in this run."""

    SKIP = "skip"
    INSTALL_FRESH = "install_fresh"
    INSTALL_RETRY = "install_retry"
    UPDATE_MODULE = "update_module"
    UPDATE_CONFIG = "update_config"
    FORCE = "force"


@dataclass(frozen=True, slots=True)
class ModuleDecision:
    """Decision for a module and the reason shown to the user."""

    decision: ExecutionDecision
    reason: str

    @property
    def should_run(self) -> bool:
        """True unless the module is skipped."""
        return self.decision != ExecutionDecision.SKIP


@dataclass(frozen=True, slots=True)
class FileDecision:
    """Decision for a single file.

    Attributes:
        deploy: Whether the file is (re)deployed.
        reason: Human-readable reason.
        user_modified: True when the destination was edited by the user
            and is therefore left untouched.
    """

    deploy: bool
    reason: str
    user_modified: bool = False


def decide_module(
    module: Module,
    existing: ModuleState | None,
    config: DotctlConfig,
    options: RunOptions,
) -> ModuleDecision:
    """Decide whether a module needs to run.

    Checks are applied in order and the first match wins: missing state,
    force, previous failure, checksum change, config change, version
    change. A module with nothing changed is skipped.

    Args:
        module: Module to decide for.
        existing: State from the previous run, if any.
        config: Current configuration.
        options: Run options (force, skip_failed).

    Returns:
        The decision and its reason.
    """
    if existing is None or existing.status == ModuleStatus.REMOVED:
        return ModuleDecision(ExecutionDecision.INSTALL_FRESH, "no previous installation")

    if options.force:
        return ModuleDecision(ExecutionDecision.FORCE, "--force flag set")

    if existing.status == ModuleStatus.FAILED:
        if options.skip_failed:
            return ModuleDecision(ExecutionDecision.SKIP, "failed previously, --skip-failed set")
        return ModuleDecision(ExecutionDecision.INSTALL_RETRY, "retrying failed installation")

    try:
        checksum = compute_module_checksum(module)
    except HashError as e:
        logger.debug("Checksum failed for %s: %s", module.name, e)
        return ModuleDecision(ExecutionDecision.UPDATE_MODULE, f"checksum error: {e}")
    if existing.checksum and checksum != existing.checksum:
        return ModuleDecision(ExecutionDecision.UPDATE_MODULE, "module definition/scripts changed")

    config_hash = compute_config_hash(module, config)
    if existing.config_hash and config_hash != existing.config_hash:
        return ModuleDecision(ExecutionDecision.UPDATE_CONFIG, "user config values changed")

    if module.version != existing.version:
        return ModuleDecision(ExecutionDecision.UPDATE_MODULE, "module version changed")

    return ModuleDecision(ExecutionDecision.SKIP, "already installed and up-to-date")


def decide_file(
    entry: FileEntry,
    source: Path,
    dest: Path,
    source_hash: str,
    existing: FileState | None,
    force: bool = False,
) -> FileDecision:
    """Decide whether a file needs to be deployed.

    Only inspects the filesystem; nothing is modified.

    Args:
        entry: File entry from the manifest.
        source: Absolute source path.
        dest: Expanded destination path.
        source_hash: Current hash of the source file.
        existing: Record of the previous deployment, if any.
        force: Redeploy unconditionally.

    Returns:
        FileDecision describing whether to deploy and why.
    """
    if force:
        return FileDecision(True, REASON_FORCE)
    if existing is None:
        return FileDecision(True, REASON_NOT_DEPLOYED)
    if source_hash != existing.source_hash:
        return FileDecision(True, REASON_SOURCE_CHANGED)
    if not dest.is_symlink() and not dest.exists():
        return FileDecision(True, REASON_DEST_MISSING)

    if entry.kind == FileKind.SYMLINK:
        try:
            target = dest.readlink()
        except OSError:
            return FileDecision(True, REASON_SYMLINK_UNREADABLE)
        if target != source.absolute():
            return FileDecision(True, REASON_SYMLINK_WRONG)
        return FileDecision(False, REASON_SYMLINK_OK)

    try:
        current_hash = compute_file_hash(dest)
    except HashError:
        return FileDecision(True, REASON_DEST_HASH_ERROR)

    if current_hash == existing.deployed_hash:
        return FileDecision(False, REASON_UNCHANGED)
    return FileDecision(False, REASON_USER_MODIFIED, user_modified=True)
