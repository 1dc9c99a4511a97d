"""Unit tests for the rollback engine."""

from pathlib import Path

import pytest
from dotctl.core.backup import REASON_PRE_EXISTING, BackupManager, metadata_path
from dotctl.core.rollback import (
    BACKUP_PATH_KEY,
    rollback_instructions,
    rollback_operation,
    rollback_operations,
)
from dotctl.models.state import Operation, OperationAction, OperationType, create_operation


def file_op(action: OperationAction, path: Path, backup: Path | None = None) -> Operation:
    metadata = {BACKUP_PATH_KEY: str(backup)} if backup is not None else {}
    return create_operation(OperationType.FILE_DEPLOY, action, str(path), metadata)


class TestRollbackOperation:
    """Tests for reversing single operations."""

    def test_created_file_removed(self, tmp_path: Path) -> None:
        """A created file is deleted."""
        path = tmp_path / "f"
        path.write_text("x")
        assert rollback_operation(file_op(OperationAction.CREATED, path))
        assert not path.exists()

    def test_missing_file_is_not_an_error(self, tmp_path: Path) -> None:
        """Reversing a creation whose file is gone succeeds."""
        assert rollback_operation(file_op(OperationAction.CREATED, tmp_path / "gone"))

    def test_symlink_removed_and_backup_restored(self, tmp_path: Path, home_dir: Path) -> None:
        """A symlink that replaced a file is removed and the file restored."""
        dest = home_dir / ".vimrc"
        dest.write_text("original\n")
        backup = BackupManager(tmp_path / ".backups", home_dir).backup(dest, "vim", REASON_PRE_EXISTING)
        assert backup is not None
        dest.unlink()
        dest.symlink_to(tmp_path / "source")

        rollback_operation(file_op(OperationAction.SYMLINKED, dest, backup))

        assert not dest.is_symlink()
        assert dest.read_text() == "original\n"
        assert not backup.exists()
        assert not metadata_path(backup).exists()

    def test_modified_without_backup_left_in_place(self, tmp_path: Path) -> None:
        """A modified file without backup is not touched."""
        path = tmp_path / "f"
        path.write_text("new")
        assert rollback_operation(file_op(OperationAction.MODIFIED, path))
        assert path.read_text() == "new"

    def test_created_dir_removed_when_empty(self, tmp_path: Path) -> None:
        """Empty created directories are removed, non-empty ones kept."""
        empty = tmp_path / "empty"
        full = tmp_path / "full"
        empty.mkdir()
        full.mkdir()
        (full / "keep").write_text("x")

        for path in (empty, full):
            rollback_operation(create_operation(OperationType.DIR_CREATE, OperationAction.CREATED, str(path)))

        assert not empty.exists()
        assert full.exists()

    def test_script_and_package_are_informational(self) -> None:
        """Script runs and packages cannot be reversed."""
        script = create_operation(OperationType.SCRIPT_RUN, OperationAction.EXECUTED, "/m/install.sh")
        package = create_operation(OperationType.PACKAGE_INSTALL, OperationAction.INSTALLED, "ripgrep")
        assert not rollback_operation(script)
        assert not rollback_operation(package)


class TestRollbackOperations:
    """Tests for reverse replay of an operation log."""

    def test_reverse_replay_restores_filesystem(self, tmp_path: Path) -> None:
        """Replaying dir and file creations in reverse leaves nothing behind."""
        config = tmp_path / ".config"
        app = config / "app"
        conf = app / "app.conf"
        app.mkdir(parents=True)
        conf.write_text("x")
        ops = [
            create_operation(OperationType.DIR_CREATE, OperationAction.CREATED, str(config)),
            create_operation(OperationType.DIR_CREATE, OperationAction.CREATED, str(app)),
            file_op(OperationAction.CREATED, conf),
            create_operation(OperationType.SCRIPT_RUN, OperationAction.EXECUTED, "/m/verify.sh"),
        ]

        report = rollback_operations(ops)

        assert report.success
        assert report.reverted == 3
        assert report.informational == 1
        assert report.total == 4
        assert not config.exists()

    def test_errors_collected_and_processing_continues(self, tmp_path: Path) -> None:
        """A failing operation is reported and the others still run."""
        directory = tmp_path / "not-a-file"
        directory.mkdir()
        created = tmp_path / "created"
        created.write_text("x")
        ops = [file_op(OperationAction.CREATED, created), file_op(OperationAction.CREATED, directory)]

        report = rollback_operations(ops)

        assert not report.success
        assert len(report.errors) == 1
        assert not created.exists()


class TestRollbackInstructions:
    """Tests for rollback_instructions."""

    def test_newest_first(self, tmp_path: Path) -> None:
        """Instructions describe operations newest first."""
        ops = [
            create_operation(OperationType.DIR_CREATE, OperationAction.CREATED, "/h/.config"),
            file_op(OperationAction.SYMLINKED, Path("/h/.config/x"), Path("/b/x")),
            create_operation(OperationType.PACKAGE_INSTALL, OperationAction.INSTALLED, "fd"),
        ]
        assert rollback_instructions(ops) == [
            "Consider removing package: fd",
            "Remove: /h/.config/x",
            "Restore: /h/.config/x from /b/x",
            "Remove directory (if empty): /h/.config",
        ]

    @pytest.mark.parametrize(
        ("op", "expected"),
        [
            (
                create_operation(OperationType.FILE_DEPLOY, OperationAction.MODIFIED, "/h/f"),
                "File was modified: /h/f (no backup available)",
            ),
            (
                create_operation(OperationType.SCRIPT_RUN, OperationAction.EXECUTED, "/m/install.sh"),
                "Script was executed: /m/install.sh (manual cleanup may be needed)",
            ),
        ],
    )
    def test_single_instruction(self, op: Operation, expected: str) -> None:
        """Each operation kind has a readable instruction."""
        assert rollback_instructions([op]) == [expected]
