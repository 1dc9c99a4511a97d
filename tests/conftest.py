"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules.
"""

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest
import tomli_w
from dotctl.core.discovery import load_module
from dotctl.core.sysinfo import SystemInfo
from dotctl.core.ui import ProgressKind
from dotctl.models.module import Module


class FakeProgress:
    """Progress handle that records its final message on the owning UI."""

    def __init__(self, ui: "FakeUI", kind: ProgressKind) -> None:
        self.ui = ui
        self.kind = kind

    def succeed(self, message: str) -> None:
        self.ui.messages.append(("success", message))

    def fail(self, message: str) -> None:
        self.ui.messages.append(("error", message))

    def skip(self, message: str) -> None:
        self.ui.messages.append(("debug", message))


class FakeUI:
    """RunnerUI that records output and answers prompts from dictionaries.

    Unanswered prompts take their default (first option for choices).
    """

    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []
        self.inputs: dict[str, str] = {}
        self.confirms: dict[str, bool] = {}
        self.choices: dict[str, str] = {}
        self.prompted: list[str] = []

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def warn(self, message: str) -> None:
        self.messages.append(("warn", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    def success(self, message: str) -> None:
        self.messages.append(("success", message))

    def debug(self, message: str) -> None:
        self.messages.append(("debug", message))

    def prompt_input(self, message: str, default: str) -> str:
        self.prompted.append(message)
        return self.inputs.get(message, default)

    def prompt_confirm(self, message: str, default: bool) -> bool:
        self.prompted.append(message)
        return self.confirms.get(message, default)

    def prompt_choice(self, message: str, options: Sequence[str]) -> str:
        self.prompted.append(message)
        return self.choices.get(message, options[0])

    def start_progress(self, message: str, kind: ProgressKind) -> FakeProgress:
        return FakeProgress(self, kind)

    def text(self, level: str | None = None) -> str:
        """All recorded messages, optionally of one level, joined by newlines."""
        return "\n".join(msg for lvl, msg in self.messages if level is None or lvl == level)


@pytest.fixture
def fake_ui() -> FakeUI:
    """Create a recording UI."""
    return FakeUI()


@pytest.fixture
def dotfiles_dir(tmp_path: Path) -> Path:
    """Create an empty dotfiles directory with a modules/ subdirectory."""
    root = tmp_path / "dotfiles"
    (root / "modules").mkdir(parents=True)
    return root


@pytest.fixture
def home_dir(tmp_path: Path) -> Path:
    """Create a fake home directory."""
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture
def system(dotfiles_dir: Path, home_dir: Path) -> SystemInfo:
    """System facts pointing at the temporary dotfiles and home directories."""
    return SystemInfo(
        os="ubuntu",
        arch="x86_64",
        pkg_mgr="apt",
        has_sudo=False,
        user="tester",
        home_dir=home_dir,
        dotfiles_dir=dotfiles_dir,
        is_interactive=False,
    )


@pytest.fixture
def make_module(dotfiles_dir: Path) -> Callable[..., Module]:
    """Factory writing a module directory and loading it back.

    Usage:
        make_module("git", scripts={"install.sh": "echo hi"},
                    contents={"files/gitconfig": "[user]"}, priority=10)

    Extra keyword arguments become module.toml fields; ``contents`` maps
    paths inside the module directory to file contents.
    """

    def _make(
        name: str,
        *,
        scripts: dict[str, str] | None = None,
        contents: dict[str, str] | None = None,
        **manifest: Any,
    ) -> Module:
        module_dir = dotfiles_dir / "modules" / name
        module_dir.mkdir(parents=True, exist_ok=True)
        data: dict[str, Any] = {"name": name, "version": "1.0.0", **manifest}
        (module_dir / "module.toml").write_text(tomli_w.dumps(data), encoding="utf-8")
        for relative, content in {**(scripts or {}), **(contents or {})}.items():
            path = module_dir / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return load_module(module_dir / "module.toml")

    return _make
