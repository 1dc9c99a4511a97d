"""Persisted module state models.

This module defines the per-module state document written after every
run: the outcome, the checksums used for idempotence, the state of each
deployed file, and the operation log that drives rollback.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from dotctl.models.module import FileKind


def utc_now() -> str:
    """Current time as an ISO 8601 UTC timestamp."""
    return datetime.now(UTC).isoformat()


class ModuleStatus(str, Enum):
    """Outcome recorded for a module.

    Attributes:
        INSTALLED: Last run completed every step.
        FAILED: Last run stopped at a failing step.
        REMOVED: Module was uninstalled. dotctl deletes the record on
            uninstall instead of writing this status; it is only read from
            state files kept by other tools, and such a module is treated as
            not installed.
    """

    INSTALLED = "installed"
    FAILED = "failed"
    REMOVED = "removed"


class OperationType(str, Enum):
    """Kind of side effect recorded in the operation log."""

    FILE_DEPLOY = "file_deploy"
    DIR_CREATE = "dir_create"
    SCRIPT_RUN = "script_run"
    PACKAGE_INSTALL = "package_install"


class OperationAction(str, Enum):
    """Verb describing what an operation did to its path."""

    CREATED = "created"
    MODIFIED = "modified"
    SYMLINKED = "symlinked"
    EXECUTED = "executed"
    INSTALLED = "installed"


@dataclass(frozen=True, slots=True)
class Operation:
    """A single recorded action taken while running a module.

    Attributes:
        type: Kind of side effect.
        action: What was done to the path.
        path: File path, directory, script path or package name.
        timestamp: When the operation was performed (ISO 8601).
        metadata: Additional context such as ``backup_path`` or ``source``.
    """

    type: OperationType
    action: OperationAction
    path: str
    timestamp: str
    metadata: dict[str, str] = field(default_factory=lambda: {})

    def __post_init__(self) -> None:
        """Validate operation data after initialization."""
        if not self.path:
            msg = "Operation path cannot be empty"
            raise ValueError(msg)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        result: dict[str, Any] = {
            "type": self.type.value,
            "action": self.action.value,
            "path": self.path,
            "timestamp": self.timestamp,
        }
        if self.metadata:
            result["metadata"] = dict(self.metadata)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Operation:
        """Deserialize from dictionary.

        Raises:
            KeyError: If required fields are missing.
            ValueError: If type or action is invalid.
        """
        return cls(
            type=OperationType(data["type"]),
            action=OperationAction(data["action"]),
            path=data["path"],
            timestamp=data.get("timestamp", ""),
            metadata={str(k): str(v) for k, v in data.get("metadata", {}).items()},
        )


def create_operation(
    type: OperationType,
    action: OperationAction,
    path: str,
    metadata: dict[str, str] | None = None,
) -> Operation:
    """Factory function to create an Operation stamped with the current time."""
    return Operation(
        type=type,
        action=action,
        path=path,
        timestamp=utc_now(),
        metadata=metadata or {},
    )


@dataclass(frozen=True, slots=True)
class FileState:
    """Deployment record for one file of a module.

    Attributes:
        source: Source path relative to the module directory.
        dest: Absolute destination path.
        kind: Deployment kind.
        deployed_at: When the file was last written.
        source_hash: SHA-256 of the source at deploy time.
        deployed_hash: SHA-256 of what was written to the destination.
        user_modified: True if the destination diverged from what was deployed.
        last_checked: When this record was last refreshed.
    """

    source: str
    dest: str
    kind: FileKind
    deployed_at: str
    source_hash: str
    deployed_hash: str
    user_modified: bool = False
    last_checked: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        return {
            "source": self.source,
            "dest": self.dest,
            "kind": self.kind.value,
            "deployed_at": self.deployed_at,
            "source_hash": self.source_hash,
            "deployed_hash": self.deployed_hash,
            "user_modified": self.user_modified,
            "last_checked": self.last_checked,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileState:
        """Deserialize from dictionary.

        Raises:
            KeyError: If required fields are missing.
            ValueError: If kind is invalid.
        """
        return cls(
            source=data["source"],
            dest=data["dest"],
            kind=FileKind(data["kind"]),
            deployed_at=data.get("deployed_at", ""),
            source_hash=data.get("source_hash", ""),
            deployed_hash=data.get("deployed_hash", ""),
            user_modified=data.get("user_modified", False),
            last_checked=data.get("last_checked", ""),
        )


@dataclass(slots=True)
class ModuleState:
    """Persisted record of a module's last run.

    Unlike the other state records this one is mutable: the runner
    appends operations and file states while the module executes and
    commits the whole document once at the end.

    Attributes:
        name: Module name (storage key).
        status: Outcome of the last run.
        version: Module version that was run.
        os: OS identifier the module ran on.
        checksum: Module checksum at the last successful run.
        config_hash: Config hash at the last successful run.
        installed_at: First successful or attempted installation time.
        updated_at: Time of the last write.
        error: Last error text if the run failed.
        file_states: Per-file deployment records, in manifest order.
        operations: Operation log of the last run, in execution order.
    """

    name: str
    status: ModuleStatus
    version: str = ""
    os: str = ""
    checksum: str = ""
    config_hash: str = ""
    installed_at: str = ""
    updated_at: str = ""
    error: str = ""
    file_states: list[FileState] = field(default_factory=lambda: [])
    operations: list[Operation] = field(default_factory=lambda: [])

    def __post_init__(self) -> None:
        """Validate state data after initialization."""
        if not self.name:
            msg = "Module state name cannot be empty"
            raise ValueError(msg)

    def record_operation(self, operation: Operation) -> None:
        """Append an operation to the log."""
        self.operations.append(operation)

    def file_state_for(self, dest: str) -> FileState | None:
        """Find the file record for a destination path."""
        for file_state in self.file_states:
            if file_state.dest == dest:
                return file_state
        return None

    @property
    def can_rollback(self) -> bool:
        """True if there are recorded operations to reverse."""
        return bool(self.operations)

    @property
    def has_user_modified_files(self) -> bool:
        """True if any deployed file was edited by the user."""
        return any(fs.user_modified for fs in self.file_states)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        result: dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "version": self.version,
            "os": self.os,
            "installed_at": self.installed_at,
            "updated_at": self.updated_at,
        }
        if self.error:
            result["error"] = self.error
        if self.checksum:
            result["checksum"] = self.checksum
        if self.config_hash:
            result["config_hash"] = self.config_hash
        if self.file_states:
            result["file_states"] = [fs.to_dict() for fs in self.file_states]
        if self.operations:
            result["operations"] = [op.to_dict() for op in self.operations]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ModuleState:
        """Deserialize from dictionary.

        Raises:
            KeyError: If required fields are missing.
            ValueError: If status or nested data is invalid.
        """
        return cls(
            name=data["name"],
            status=ModuleStatus(data["status"]),
            version=data.get("version", ""),
            os=data.get("os", ""),
            checksum=data.get("checksum", ""),
            config_hash=data.get("config_hash", ""),
            installed_at=data.get("installed_at", ""),
            updated_at=data.get("updated_at", ""),
            error=data.get("error", ""),
            file_states=[FileState.from_dict(fs) for fs in data.get("file_states", [])],
            operations=[Operation.from_dict(op) for op in data.get("operations", [])],
        )
