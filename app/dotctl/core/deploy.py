"""File deployment for modules.

Each file entry of a module is symlinked, copied or rendered to its
destination when the decision engine says it has to be. Every change is
recorded as an operation on the module state so it can be rolled back,
and a FileState is kept for every file, deployed or not.
"""

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from dotctl.core.backup import (
    REASON_PRE_EXISTING,
    REASON_REPLACED,
    REASON_USER_MODIFIED,
    BackupError,
    BackupManager,
    FileOpError,
)
from dotctl.core.decision import FileDecision, decide_file
from dotctl.core.hashing import HashError, compute_bytes_hash, compute_file_hash
from dotctl.core.paths import expand_home
from dotctl.core.rollback import BACKUP_PATH_KEY
from dotctl.core.templates import TemplateContext, TemplateError, render_template
from dotctl.models.module import FileEntry, FileKind, Module
from dotctl.models.state import (
    FileState,
    ModuleState,
    OperationAction,
    OperationType,
    create_operation,
    utc_now,
)

logger = logging.getLogger(__name__)

__all__ = ["DeployReport", "FileDeployer", "FileOpError"]


@dataclass(slots=True)
class DeployReport:
    """Summary of one module's file deployment.

    Attributes:
        deployed: Files written in this run.
        unchanged: Files left as they were.
        user_modified: Destinations kept because the user edited them.
        pending: Dry-run descriptions of files that would be deployed.
        warnings: Non-fatal problems (failed backups).
    """

    deployed: int = 0
    unchanged: int = 0
    user_modified: list[str] = field(default_factory=lambda: [])
    pending: list[str] = field(default_factory=lambda: [])
    warnings: list[str] = field(default_factory=lambda: [])

    @property
    def message(self) -> str:
        """One-line summary for progress output."""
        if self.pending:
            return f"Would deploy {len(self.pending)} file(s), {self.unchanged} unchanged"
        if self.deployed and self.unchanged:
            return f"Deployed {self.deployed} file(s), {self.unchanged} unchanged"
        if self.deployed:
            return f"Deployed {self.deployed} file(s)"
        if self.unchanged:
            return f"All {self.unchanged} file(s) unchanged"
        return "No files to deploy"


def _exists(path: Path) -> bool:
    return path.exists() or path.is_symlink()


class FileDeployer:
    """Deploys the files of modules.

    Attributes:
        home_dir: Home directory used to expand ``~`` destinations.
        backups: Backup manager for replaced destinations.
        dry_run: If True, decide but do not touch the filesystem.
        force: If True, redeploy every file.
    """

    def __init__(
        self,
        home_dir: Path,
        backups: BackupManager,
        *,
        dry_run: bool = False,
        force: bool = False,
    ) -> None:
        self.home_dir = home_dir
        self.backups = backups
        self.dry_run = dry_run
        self.force = force

    def deploy_module(
        self,
        module: Module,
        existing: ModuleState | None,
        state: ModuleState,
        context: TemplateContext,
    ) -> DeployReport:
        """Deploy every file of a module.

        Operations and FileStates are appended to ``state`` as files are
        processed, so a failure part-way leaves a rollback-ready record.

        Args:
            module: Module whose files are deployed.
            existing: State from the previous run, if any.
            state: State being built for this run.
            context: Template context.

        Returns:
            DeployReport for the module.

        Raises:
            FileOpError: If a file cannot be hashed, rendered or written.
        """
        report = DeployReport()
        for entry in module.files:
            self._deploy_entry(module, entry, existing, state, context, report)
        return report

    def _deploy_entry(
        self,
        module: Module,
        entry: FileEntry,
        existing: ModuleState | None,
        state: ModuleState,
        context: TemplateContext,
        report: DeployReport,
    ) -> None:
        source = (module.directory / entry.source).absolute()
        dest = expand_home(entry.dest, self.home_dir)

        try:
            source_hash = compute_file_hash(source)
        except HashError as e:
            raise FileOpError(f"Cannot hash source {source}: {e}") from e

        existing_file = existing.file_state_for(str(dest)) if existing is not None else None
        decision = decide_file(entry, source, dest, source_hash, existing_file, force=self.force)

        if not decision.deploy:
            self._keep(entry, dest, source_hash, existing_file, decision, state, report)
            return

        if self.dry_run:
            report.pending.append(f"{entry.source} -> {dest} ({entry.kind.value}): {decision.reason}")
            logger.info("Dry-run: would deploy %s -> %s (%s)", entry.source, dest, decision.reason)
            return

        logger.debug("Deploying %s -> %s (%s)", entry.source, dest, decision.reason)

        content: bytes | None = None
        if entry.kind == FileKind.TEMPLATE:
            try:
                content = render_template(source, context).encode()
            except TemplateError as e:
                raise FileOpError(f"template {entry.source} -> {dest}: {e}") from e

        backup_path = self._backup(module, entry, dest, existing_file, report)
        self._create_parents(dest, state)

        file_existed = _exists(dest)
        try:
            deployed_hash = self._write(entry.kind, source, dest, source_hash, content)
        except OSError as e:
            raise FileOpError(f"{entry.kind.value} {source} -> {dest}: {e}") from e

        if entry.kind == FileKind.SYMLINK:
            action = OperationAction.SYMLINKED
        elif file_existed:
            action = OperationAction.MODIFIED
        else:
            action = OperationAction.CREATED

        metadata = {
            "source": str(source),
            "kind": entry.kind.value,
            "source_hash": source_hash,
            "file_existed": "true" if file_existed else "false",
        }
        if backup_path is not None:
            metadata[BACKUP_PATH_KEY] = str(backup_path)
        state.record_operation(
            create_operation(OperationType.FILE_DEPLOY, action, str(dest), metadata)
        )

        now = utc_now()
        state.file_states.append(
            FileState(
                source=entry.source,
                dest=str(dest),
                kind=entry.kind,
                deployed_at=now,
                source_hash=source_hash,
                deployed_hash=deployed_hash,
                user_modified=False,
                last_checked=now,
            )
        )
        report.deployed += 1

    def _keep(
        self,
        entry: FileEntry,
        dest: Path,
        source_hash: str,
        existing_file: FileState | None,
        decision: FileDecision,
        state: ModuleState,
        report: DeployReport,
    ) -> None:
        """Carry a file record forward without touching the file."""
        logger.debug("Skipping %s: %s", dest, decision.reason)
        report.unchanged += 1
        if decision.user_modified:
            report.user_modified.append(str(dest))
        if existing_file is None:
            return
        state.file_states.append(
            FileState(
                source=entry.source,
                dest=str(dest),
                kind=entry.kind,
                deployed_at=existing_file.deployed_at,
                source_hash=source_hash,
                deployed_hash=existing_file.deployed_hash,
                user_modified=decision.user_modified,
                last_checked=utc_now(),
            )
        )

    def _backup_reason(
        self,
        entry: FileEntry,
        dest: Path,
        existing_file: FileState | None,
    ) -> str | None:
        """Label for the backup of an existing destination, or None if there is none."""
        if not _exists(dest):
            return None
        if existing_file is None:
            return REASON_PRE_EXISTING
        if existing_file.user_modified:
            return REASON_USER_MODIFIED
        if entry.kind == FileKind.SYMLINK:
            return REASON_REPLACED if dest.is_symlink() else REASON_USER_MODIFIED
        try:
            current = compute_file_hash(dest)
        except HashError:
            return REASON_USER_MODIFIED
        return REASON_REPLACED if current == existing_file.deployed_hash else REASON_USER_MODIFIED

    def _backup(
        self,
        module: Module,
        entry: FileEntry,
        dest: Path,
        existing_file: FileState | None,
        report: DeployReport,
    ) -> Path | None:
        reason = self._backup_reason(entry, dest, existing_file)
        if reason is None:
            return None
        try:
            return self.backups.backup(dest, module.name, reason)
        except BackupError as e:
            logger.warning("Backup failed for %s: %s", dest, e)
            report.warnings.append(f"Backup failed for {dest}: {e}")
            return None

    def _create_parents(self, dest: Path, state: ModuleState) -> None:
        """Create missing parent directories, recording each one outermost first."""
        missing: list[Path] = []
        parent = dest.parent
        while not parent.exists():
            missing.append(parent)
            if parent.parent == parent:
                break
            parent = parent.parent

        for directory in reversed(missing):
            try:
                directory.mkdir()
            except FileExistsError:
                continue
            except OSError as e:
                raise FileOpError(f"Cannot create directory {directory}: {e}") from e
            state.record_operation(
                create_operation(OperationType.DIR_CREATE, OperationAction.CREATED, str(directory))
            )

    def _write(
        self,
        kind: FileKind,
        source: Path,
        dest: Path,
        source_hash: str,
        content: bytes | None,
    ) -> str:
        """Place one file and return the hash of what was deployed."""
        if dest.is_dir() and not dest.is_symlink():
            raise FileOpError(f"Destination {dest} is a directory")

        if kind == FileKind.SYMLINK:
            if _exists(dest):
                dest.unlink()
            os.symlink(source, dest)
            return source_hash

        # Never write through a symlink left at the destination.
        if dest.is_symlink():
            dest.unlink()

        if kind == FileKind.COPY:
            shutil.copy(source, dest)
            try:
                return compute_file_hash(dest)
            except HashError as e:
                raise FileOpError(str(e)) from e

        data = content or b""
        dest.write_bytes(data)
        shutil.copymode(source, dest)
        return compute_bytes_hash(data)
