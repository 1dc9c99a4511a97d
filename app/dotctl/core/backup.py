"""Backups of files replaced during deployment.

Before an existing destination is overwritten, its content is copied
into a timestamped backup directory. The relative directory structure
from the home directory is preserved and a ``.meta.json`` sidecar
describes the backup.

Backups are only ever restored by rollback.
"""

import json
import logging
import os
import shutil
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from dotctl.core.hashing import HashError, compute_bytes_hash, compute_file_hash
from dotctl.models.state import utc_now

logger = logging.getLogger(__name__)

META_SUFFIX = ".meta.json"

REASON_USER_MODIFIED = "user-modified file overwritten by module update"
REASON_PRE_EXISTING = "pre-existing file replaced by module deployment"
REASON_REPLACED = "deployed file replaced by module update"


class FileOpError(Exception):
    """Raised when a file operation on a destination fails."""


class BackupError(FileOpError):
    """Raised when a backup cannot be created."""


@dataclass(frozen=True, slots=True)
class BackupMetadata:
    """Sidecar describing a backup.

    Attributes:
        original_path: Path the backup was taken from.
        backup_time: When the backup was created (ISO 8601).
        content_hash: SHA-256 of the backed-up content.
        reason: Why the backup was created.
        module: Module whose deployment triggered the backup.
    """

    original_path: str
    backup_time: str
    content_hash: str
    reason: str
    module: str

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        return asdict(self)


def metadata_path(backup_path: Path) -> Path:
    """Sidecar path for a backup file."""
    return backup_path.with_name(backup_path.name + META_SUFFIX)


class BackupManager:
    """Creates backups for one run.

    All backups taken by a manager share a single timestamped directory
    under the backup root, created lazily on the first backup.

    Attributes:
        backup_root: Root backup directory (<dotfiles>/.backups).
        home_dir: Home directory used to compute relative paths.
        dry_run: If True, nothing is written.
    """

    def __init__(self, backup_root: Path, home_dir: Path, *, dry_run: bool = False) -> None:
        """Initialize the BackupManager.

        Args:
            backup_root: Root backup directory.
            home_dir: Home directory for relative path computation.
            dry_run: If True, report what would be backed up without doing it.
        """
        self.backup_root = backup_root
        self.home_dir = home_dir
        self.dry_run = dry_run
        self._timestamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")

    @property
    def run_dir(self) -> Path:
        """Timestamped directory for this run's backups."""
        return self.backup_root / self._timestamp

    def backup_path_for(self, path: Path) -> Path:
        """Location a file would be backed up to.

        Paths outside the home directory keep their full structure below
        the run directory.
        """
        try:
            relative = path.relative_to(self.home_dir)
        except ValueError:
            relative = Path(str(path).lstrip("/"))
        return self.run_dir / relative

    def backup(self, path: Path, module: str, reason: str) -> Path | None:
        """Back up a file before it is overwritten.

        Copies content and permission bits, and writes the metadata
        sidecar. Symlinks are backed up as links.

        Args:
            path: File to back up.
            module: Module triggering the backup.
            reason: Why the backup is taken.

        Returns:
            Path of the backup, or None in dry-run mode or if the file
            doesn't exist.

        Raises:
            BackupError: If the file cannot be copied or the sidecar written.
        """
        if not path.exists() and not path.is_symlink():
            return None

        if path.is_dir() and not path.is_symlink():
            raise BackupError(f"Cannot back up directory {path}")

        if self.dry_run:
            logger.info("Dry-run: would back up %s", path)
            return None

        try:
            if path.is_symlink():
                content_hash = compute_bytes_hash(os.readlink(path).encode())
            else:
                content_hash = compute_file_hash(path)
        except (HashError, OSError) as e:
            raise BackupError(f"Cannot hash {path}: {e}") from e

        dest = self.backup_path_for(path)
        meta = BackupMetadata(
            original_path=str(path),
            backup_time=utc_now(),
            content_hash=content_hash,
            reason=reason,
            module=module,
        )

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(path, dest, follow_symlinks=False)
            metadata_path(dest).write_text(json.dumps(meta.to_dict(), indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            raise BackupError(f"Failed to back up {path}: {e}") from e

        logger.info("Backed up %s -> %s", path, dest)
        return dest
