"""Module models for declarative installation units.

This module defines the Pydantic models representing a module.toml
manifest: the module itself, the files it deploys, and the prompts it
asks before running its scripts.
"""

import re
from enum import Enum
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_PRIORITY = 50

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


class FileKind(str, Enum):
    """How a module file is placed at its destination.

    Attributes:
        SYMLINK: Destination is a symlink to the absolute source path.
        COPY: Source bytes are copied to the destination.
        TEMPLATE: Source is rendered with the template context.
    """

    SYMLINK = "symlink"
    COPY = "copy"
    TEMPLATE = "template"


class PromptType(str, Enum):
    """Kind of interactive prompt."""

    INPUT = "input"
    CONFIRM = "confirm"
    CHOICE = "choice"


class ShowWhen(str, Enum):
    """When a prompt is shown instead of silently taking its default.

    Attributes:
        ALWAYS: Shown whenever the run is interactive.
        EXPLICIT_INSTALL: Shown only when the module was selected explicitly.
        INTERACTIVE: Shown whenever the run is interactive.
    """

    ALWAYS = "always"
    EXPLICIT_INSTALL = "explicit_install"
    INTERACTIVE = "interactive"


class FileEntry(BaseModel):
    """A single file deployed by a module.

    Attributes:
        source: Path relative to the module directory.
        dest: Destination path; a leading ``~`` expands to the home directory.
        kind: Deployment kind (symlink, copy, or template).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    source: Annotated[str, Field(min_length=1, description="Source path in module dir")]
    dest: Annotated[str, Field(min_length=1, description="Destination path")]
    kind: Annotated[FileKind, Field(description="Deployment kind")] = FileKind.SYMLINK


class Prompt(BaseModel):
    """A question asked before the module's scripts run.

    The answer is exposed to scripts as ``DOTCTL_PROMPT_<KEY>``.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    key: Annotated[str, Field(min_length=1, description="Answer key")]
    message: Annotated[str, Field(description="Question shown to the user")] = ""
    default: Annotated[str, Field(description="Answer used when not prompted")] = ""
    type: Annotated[PromptType, Field(description="Prompt kind")] = PromptType.INPUT
    options: Annotated[tuple[str, ...], Field(description="Choices for choice prompts")] = ()
    show_when: Annotated[
        ShowWhen,
        Field(description="When the prompt is shown"),
    ] = ShowWhen.EXPLICIT_INSTALL


class Module(BaseModel):
    """An independently installable unit discovered from a module.toml.

    Modules are immutable once discovered. ``directory`` is filled in by
    discovery and points at the directory holding the manifest and scripts.

    Attributes:
        name: Unique module name.
        description: One-line description.
        version: Module version string.
        priority: Ordering hint; lower runs earlier among independent modules.
        dependencies: Names of modules that must run first.
        os: Supported OS identifiers (empty means all).
        requires: Commands the module expects on PATH.
        files: Files deployed by the module.
        prompts: Questions asked before the scripts run.
        tags: Free-form labels.
        timeout: Script timeout as a duration string (e.g. "90s", "10m").
        notes: Messages shown after a successful run.
        directory: Module directory on disk.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: Annotated[
        str,
        Field(pattern=r"^[A-Za-z0-9][A-Za-z0-9._-]*$", description="Unique module name"),
    ]
    description: str = ""
    version: str = ""
    priority: int = DEFAULT_PRIORITY
    dependencies: tuple[str, ...] = ()
    os: tuple[str, ...] = ()
    requires: tuple[str, ...] = ()
    files: tuple[FileEntry, ...] = ()
    prompts: tuple[Prompt, ...] = ()
    tags: tuple[str, ...] = ()
    timeout: str | None = None
    notes: tuple[str, ...] = ()
    directory: Path = Path(".")

    @field_validator("os")
    @classmethod
    def normalize_os(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Lower-case OS identifiers so matching is case-insensitive."""
        return tuple(item.lower() for item in v)

    def supports_os(self, os_name: str) -> bool:
        """Check whether the module supports the given operating system.

        Args:
            os_name: OS identifier (e.g. "ubuntu", "macos").

        Returns:
            True if the OS list is empty or contains os_name.
        """
        if not self.os:
            return True
        return os_name.lower() in self.os

    @property
    def manifest_path(self) -> Path:
        """Path to this module's module.toml."""
        return self.directory / "module.toml"

    @property
    def install_script(self) -> Path:
        """Path to the primary install script."""
        return self.directory / "install.sh"

    @property
    def verify_script(self) -> Path:
        """Path to the verification script."""
        return self.directory / "verify.sh"

    def os_script(self, os_name: str) -> Path:
        """Path to the OS-specific script for os_name."""
        return self.directory / "os" / f"{os_name}.sh"


def parse_duration(value: str) -> float:
    """Parse a duration string into seconds.

    Accepts one or more ``<number><unit>`` parts with units ms, s, m, h,
    e.g. ``"90s"``, ``"10m"``, ``"1h30m"``, ``"1.5m"``.

    Args:
        value: Duration string.

    Returns:
        Duration in seconds.

    Raises:
        ValueError: If the string is empty, malformed, or not positive.
    """
    text = value.strip()
    if not text:
        msg = "Duration cannot be empty"
        raise ValueError(msg)

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos != len(text):
        msg = f"Invalid duration: {value!r}"
        raise ValueError(msg)
    if total <= 0:
        msg = f"Duration must be positive: {value!r}"
        raise ValueError(msg)
    return total
