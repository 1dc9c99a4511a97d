"""Data models for dotctl.

This module exports the core data structures used throughout the application.
"""

from dotctl.models.module import (
    DEFAULT_PRIORITY,
    FileEntry,
    FileKind,
    Module,
    Prompt,
    PromptType,
    ShowWhen,
    parse_duration,
)
from dotctl.models.plan import ExecutionPlan
from dotctl.models.state import (
    FileState,
    ModuleState,
    ModuleStatus,
    Operation,
    OperationAction,
    OperationType,
    create_operation,
)

__all__ = [
    "DEFAULT_PRIORITY",
    "ExecutionPlan",
    "FileEntry",
    "FileKind",
    "FileState",
    "Module",
    "ModuleState",
    "ModuleStatus",
    "Operation",
    "OperationAction",
    "OperationType",
    "Prompt",
    "PromptType",
    "ShowWhen",
    "create_operation",
    "parse_duration",
]
