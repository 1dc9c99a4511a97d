"""Terminal implementation of the runner UI.

Messages go through the shared rich consoles; prompts use typer and
rich prompts. File deployment shows a spinner, scripts never do since
they may ask for a password on the same terminal.
"""

from collections.abc import Sequence

import typer
from rich.prompt import Prompt
from rich.status import Status

from dotctl.core.ui import ProgressKind, PromptCancelledError
from dotctl.utils.formatting import (
    console,
    print_debug,
    print_error,
    print_info,
    print_success,
    print_warning,
)


class StatusProgress:
    """Spinner shown while a progress handle is open."""

    def __init__(self, message: str, kind: ProgressKind, *, enabled: bool = True) -> None:
        self.kind = kind
        self._status: Status | None = None
        if enabled:
            self._status = console.status(message, spinner="dots")
            self._status.start()

    def _stop(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None

    def succeed(self, message: str) -> None:
        self._stop()
        print_success(f"  ✓ {message}")

    def fail(self, message: str) -> None:
        self._stop()
        print_error(message)

    def skip(self, message: str) -> None:
        self._stop()
        print_debug(f"  - {message}")


class ConsoleUI:
    """RunnerUI backed by the rich console.

    Attributes:
        verbose: Show debug messages.
        quiet: Hide informational messages.
    """

    def __init__(self, *, verbose: bool = False, quiet: bool = False) -> None:
        self.verbose = verbose
        self.quiet = quiet

    def info(self, message: str) -> None:
        if not self.quiet:
            print_info(message)

    def warn(self, message: str) -> None:
        print_warning(message)

    def error(self, message: str) -> None:
        print_error(message)

    def success(self, message: str) -> None:
        print_success(message)

    def debug(self, message: str) -> None:
        if self.verbose:
            print_debug(message)

    def prompt_input(self, message: str, default: str) -> str:
        try:
            return str(typer.prompt(message, default=default, show_default=bool(default)))
        except typer.Abort as e:
            raise PromptCancelledError(message) from e

    def prompt_confirm(self, message: str, default: bool) -> bool:
        try:
            return typer.confirm(message, default=default)
        except typer.Abort as e:
            raise PromptCancelledError(message) from e

    def prompt_choice(self, message: str, options: Sequence[str]) -> str:
        try:
            return Prompt.ask(message, choices=list(options), default=options[0], console=console)
        except (KeyboardInterrupt, EOFError) as e:
            raise PromptCancelledError(message) from e

    def start_progress(self, message: str, kind: ProgressKind) -> StatusProgress:
        return StatusProgress(message, kind, enabled=not self.quiet and console.is_terminal)
