"""User interaction interface used by the runner.

The runner only talks to the terminal through RunnerUI so it can be
driven by the rich console in the CLI and by a recording fake in tests.
"""

from collections.abc import Sequence
from enum import Enum
from typing import Protocol


class ProgressKind(str, Enum):
    """What a progress handle is tracking."""

    FILE_DEPLOY = "file_deploy"


class Progress(Protocol):
    """Handle for an in-flight progress indicator.

    Exactly one of the finishing methods is called per handle.
    """

    kind: ProgressKind

    def succeed(self, message: str) -> None: ...

    def fail(self, message: str) -> None: ...

    def skip(self, message: str) -> None: ...


class RunnerUI(Protocol):
    """Terminal operations the runner needs."""

    def info(self, message: str) -> None: ...

    def warn(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def success(self, message: str) -> None: ...

    def debug(self, message: str) -> None: ...

    def prompt_input(self, message: str, default: str) -> str: ...

    def prompt_confirm(self, message: str, default: bool) -> bool: ...

    def prompt_choice(self, message: str, options: Sequence[str]) -> str: ...

    def start_progress(self, message: str, kind: ProgressKind) -> Progress: ...


class PromptCancelledError(Exception):
    """Raised by a RunnerUI when the user aborts a prompt."""
