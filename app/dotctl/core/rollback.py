"""Rollback of recorded module operations.

Operations are replayed newest first. File deployments are removed or
restored from their backups, created directories are removed when empty,
and scripts and packages are reported only: their side effects are not
reversible automatically.
"""

import logging
import shutil
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from dotctl.core.backup import metadata_path
from dotctl.models.state import Operation, OperationAction, OperationType

logger = logging.getLogger(__name__)

BACKUP_PATH_KEY = "backup_path"


class RollbackError(Exception):
    """Raised when a single operation cannot be reversed."""


@dataclass(slots=True)
class RollbackReport:
    """Outcome of a rollback.

    Attributes:
        reverted: Number of operations reversed (or already absent).
        informational: Number of script/package operations left in place.
        errors: One message per operation that could not be reversed.
    """

    reverted: int = 0
    informational: int = 0
    errors: list[str] = field(default_factory=lambda: [])

    @property
    def total(self) -> int:
        """Number of operations processed."""
        return self.reverted + self.informational + len(self.errors)

    @property
    def success(self) -> bool:
        """True if every operation was handled without error."""
        return not self.errors


def _remove_path(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.exists():
        raise RollbackError(f"Refusing to remove non-file {path}")


def _restore_backup(path: Path, backup: Path) -> None:
    """Put a backup back in place, then discard it and its sidecar."""
    if not backup.exists() and not backup.is_symlink():
        raise RollbackError(f"Backup {backup} for {path} is missing")
    _remove_path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(backup, path, follow_symlinks=False)
    backup.unlink()
    metadata_path(backup).unlink(missing_ok=True)


def _rollback_file(op: Operation) -> None:
    path = Path(op.path)
    backup = op.metadata.get(BACKUP_PATH_KEY)

    if op.action in (OperationAction.CREATED, OperationAction.SYMLINKED):
        _remove_path(path)
        if backup:
            _restore_backup(path, Path(backup))
    elif op.action == OperationAction.MODIFIED:
        if backup:
            _restore_backup(path, Path(backup))
        else:
            logger.warning("No backup recorded for %s; leaving it in place", path)
    else:
        raise RollbackError(f"Unknown file action: {op.action.value}")


def _rollback_dir(op: Operation) -> None:
    path = Path(op.path)
    if not path.is_dir():
        return
    if any(path.iterdir()):
        logger.debug("Keeping non-empty directory %s", path)
        return
    path.rmdir()


def rollback_operation(op: Operation) -> bool:
    """Reverse one operation.

    Returns:
        True if the filesystem was touched, False for informational
        operations (scripts, packages).

    Raises:
        RollbackError: If the operation cannot be reversed.
    """
    logger.debug("Rolling back %s %s %s", op.type.value, op.action.value, op.path)
    try:
        if op.type == OperationType.FILE_DEPLOY:
            _rollback_file(op)
            return True
        if op.type == OperationType.DIR_CREATE:
            _rollback_dir(op)
            return True
    except OSError as e:
        raise RollbackError(f"{op.type.value} {op.path}: {e}") from e

    logger.debug("Not reversible: %s %s", op.type.value, op.path)
    return False


def rollback_operations(operations: Sequence[Operation]) -> RollbackReport:
    """Replay operations in reverse order.

    Errors are collected in the report; the remaining operations are
    still processed.

    Args:
        operations: Operations in the order they were recorded.

    Returns:
        RollbackReport summarizing what was reversed.
    """
    report = RollbackReport()
    for op in reversed(operations):
        try:
            if rollback_operation(op):
                report.reverted += 1
            else:
                report.informational += 1
        except RollbackError as e:
            logger.warning("Rollback failed: %s", e)
            report.errors.append(str(e))
    return report


def rollback_instructions(operations: Sequence[Operation]) -> list[str]:
    """Describe what a rollback would do, newest operation first."""
    instructions: list[str] = []
    for op in reversed(operations):
        backup = op.metadata.get(BACKUP_PATH_KEY)
        if op.type == OperationType.FILE_DEPLOY:
            if op.action in (OperationAction.CREATED, OperationAction.SYMLINKED):
                instructions.append(f"Remove: {op.path}")
                if backup:
                    instructions.append(f"Restore: {op.path} from {backup}")
            elif op.action == OperationAction.MODIFIED:
                if backup:
                    instructions.append(f"Restore: {op.path} from {backup}")
                else:
                    instructions.append(f"File was modified: {op.path} (no backup available)")
        elif op.type == OperationType.DIR_CREATE:
            instructions.append(f"Remove directory (if empty): {op.path}")
        elif op.type == OperationType.PACKAGE_INSTALL:
            instructions.append(f"Consider removing package: {op.path}")
        elif op.type == OperationType.SCRIPT_RUN:
            instructions.append(f"Script was executed: {op.path} (manual cleanup may be needed)")
    return instructions
