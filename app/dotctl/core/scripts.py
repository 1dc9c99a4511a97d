"""Module script execution.

Scripts are sourced by bash in strict mode after the shared helpers
library, with the DOTCTL_* environment layered over the current one.
Interactive runs inherit the terminal so scripts can prompt (sudo,
chsh); unattended runs capture combined output.
"""

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path

from dotctl.utils.shell import run_command, run_interactive

logger = logging.getLogger(__name__)

DEFAULT_SCRIPT_TIMEOUT = 300.0


class ScriptError(Exception):
    """Raised when a script exits non-zero, times out or cannot start.

    Attributes:
        script: Script that failed.
        output: Captured output (empty for interactive runs).
    """

    def __init__(self, message: str, script: Path, output: str = "") -> None:
        super().__init__(message)
        self.script = script
        self.output = output


@dataclass(frozen=True, slots=True)
class ScriptResult:
    """Outcome of a successful script run.

    Attributes:
        script: Script that ran.
        output: Captured output (empty for interactive runs).
    """

    script: Path
    output: str = ""


def build_wrapper(script: Path, helpers: Path | None) -> str:
    """Build the bash program that sources helpers and the script."""
    lines = ["set -euo pipefail"]
    if helpers is not None:
        quoted = shlex.quote(str(helpers))
        lines.append(f"if [ -f {quoted} ]; then source {quoted}; fi")
    lines.append(f"source {shlex.quote(str(script))}")
    return "\n".join(lines) + "\n"


def run_script(
    script: Path,
    env: dict[str, str],
    *,
    helpers: Path | None = None,
    timeout: float = DEFAULT_SCRIPT_TIMEOUT,
    interactive: bool = False,
    cwd: Path | None = None,
) -> ScriptResult:
    """Run a module script.

    Args:
        script: Script to source.
        env: Variables layered over the current environment.
        helpers: Shared helpers library sourced first when it exists.
        timeout: Seconds before the script is killed.
        interactive: Inherit the terminal instead of capturing output.
        cwd: Working directory for the script.

    Returns:
        ScriptResult with any captured output.

    Raises:
        ScriptError: If the script fails, times out or bash cannot start.
    """
    args = ["bash", "-c", build_wrapper(script, helpers)]
    workdir = str(cwd) if cwd is not None else None
    logger.debug("Running script %s (timeout %.0fs)", script, timeout)

    try:
        if interactive:
            code = run_interactive(args, cwd=workdir, env=env, timeout=timeout)
            output = ""
        else:
            result = run_command(args, timeout=timeout, cwd=workdir, env=env, merge_stderr=True)
            code = result.returncode
            output = result.stdout
    except subprocess.TimeoutExpired as e:
        partial = e.output.decode(errors="replace") if isinstance(e.output, bytes) else e.output or ""
        raise ScriptError(f"script {script.name} timed out after {timeout:g}s", script, partial) from e
    except OSError as e:
        raise ScriptError(f"script {script.name} could not be started: {e}", script) from e

    if code != 0:
        raise ScriptError(f"script {script.name} failed with exit code {code}", script, output)
    return ScriptResult(script=script, output=output)
