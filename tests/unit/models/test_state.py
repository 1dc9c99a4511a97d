"""Unit tests for module state models."""

import pytest
from dotctl.models.module import FileKind
from dotctl.models.state import (
    FileState,
    ModuleState,
    ModuleStatus,
    Operation,
    OperationAction,
    OperationType,
    create_operation,
)


@pytest.fixture
def sample_state() -> ModuleState:
    """Create a module state with one file and two operations."""
    state = ModuleState(
        name="git",
        status=ModuleStatus.INSTALLED,
        version="1.0.0",
        os="ubuntu",
        checksum="abc",
        config_hash="def",
        installed_at="2026-01-26T14:30:00+00:00",
    )
    state.file_states.append(
        FileState(
            source="files/gitconfig",
            dest="/home/u/.gitconfig",
            kind=FileKind.SYMLINK,
            deployed_at="2026-01-26T14:30:00+00:00",
            source_hash="s1",
            deployed_hash="s1",
        )
    )
    state.record_operation(
        create_operation(OperationType.SCRIPT_RUN, OperationAction.EXECUTED, "/m/git/install.sh")
    )
    state.record_operation(
        create_operation(
            OperationType.FILE_DEPLOY,
            OperationAction.SYMLINKED,
            "/home/u/.gitconfig",
            {"backup_path": "/b/.gitconfig"},
        )
    )
    return state


class TestOperation:
    """Tests for Operation model."""

    def test_create_operation_stamps_time(self) -> None:
        """create_operation sets a timestamp and empty metadata."""
        op = create_operation(OperationType.DIR_CREATE, OperationAction.CREATED, "/tmp/x")
        assert op.timestamp
        assert op.metadata == {}

    def test_rejects_empty_path(self) -> None:
        """Operation requires a path."""
        with pytest.raises(ValueError, match="path cannot be empty"):
            Operation(OperationType.SCRIPT_RUN, OperationAction.EXECUTED, "", "now")

    def test_to_dict_omits_empty_metadata(self) -> None:
        """to_dict leaves out metadata when there is none."""
        op = Operation(OperationType.PACKAGE_INSTALL, OperationAction.INSTALLED, "ripgrep", "t")
        assert op.to_dict() == {
            "type": "package_install",
            "action": "installed",
            "path": "ripgrep",
            "timestamp": "t",
        }

    def test_from_dict_rejects_unknown_type(self) -> None:
        """from_dict raises on unknown operation types."""
        with pytest.raises(ValueError):
            Operation.from_dict({"type": "reboot", "action": "executed", "path": "x"})


class TestModuleState:
    """Tests for ModuleState model."""

    def test_rejects_empty_name(self) -> None:
        """ModuleState requires a name."""
        with pytest.raises(ValueError):
            ModuleState(name="", status=ModuleStatus.FAILED)

    def test_round_trip_preserves_log(self, sample_state: ModuleState) -> None:
        """Serialization keeps operations in order with their metadata."""
        restored = ModuleState.from_dict(sample_state.to_dict())
        assert restored == sample_state
        assert [op.type for op in restored.operations] == [
            OperationType.SCRIPT_RUN,
            OperationType.FILE_DEPLOY,
        ]
        assert restored.operations[1].metadata["backup_path"] == "/b/.gitconfig"

    def test_to_dict_omits_empty_optional_fields(self) -> None:
        """Empty error, hashes and lists are not serialized."""
        data = ModuleState(name="zsh", status=ModuleStatus.FAILED).to_dict()
        assert "error" not in data
        assert "checksum" not in data
        assert "operations" not in data

    def test_file_state_for(self, sample_state: ModuleState) -> None:
        """file_state_for finds a record by destination."""
        assert sample_state.file_state_for("/home/u/.gitconfig") is not None
        assert sample_state.file_state_for("/home/u/.other") is None

    def test_can_rollback(self, sample_state: ModuleState) -> None:
        """can_rollback reflects whether operations were recorded."""
        assert sample_state.can_rollback
        assert not ModuleState(name="x", status=ModuleStatus.INSTALLED).can_rollback

    def test_has_user_modified_files(self, sample_state: ModuleState) -> None:
        """has_user_modified_files is set by any modified file record."""
        assert not sample_state.has_user_modified_files
        modified = FileState.from_dict({**sample_state.file_states[0].to_dict(), "user_modified": True})
        sample_state.file_states.append(modified)
        assert sample_state.has_user_modified_files
