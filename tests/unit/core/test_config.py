"""Unit tests for configuration and profile loading."""

from pathlib import Path

import pytest
import typer
from dotctl.core.config import (
    ConfigNotFoundError,
    ConfigParseError,
    DotctlConfig,
    default_config,
    load_config,
    load_profile,
    require_config,
)

SAMPLE_CONFIG = """\
profile = "minimal"
script_timeout = "10m"

[user]
name = "Ada Lovelace"
email = "ada@example.com"

[secrets]
provider = "1password"
account = "my"

[modules.git]
signing = true
"""


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DOTCTL_PROFILE", raising=False)
    monkeypatch.delenv("DOTCTL_SECRETS_PROVIDER", raising=False)


class TestDotctlConfig:
    """Tests for the DotctlConfig model."""

    def test_defaults(self) -> None:
        config = DotctlConfig()
        assert config.profile == "developer"
        assert config.user.name == ""
        assert config.secrets.provider == ""
        assert config.modules == {}
        assert config.script_timeout_seconds is None

    def test_empty_profile_uses_default(self) -> None:
        assert DotctlConfig(profile="").profile == "developer"

    def test_invalid_timeout_rejected(self) -> None:
        with pytest.raises(ValueError):
            DotctlConfig(script_timeout="soon")

    def test_timeout_seconds(self) -> None:
        assert DotctlConfig(script_timeout="1h30m").script_timeout_seconds == 5400.0


class TestLoadConfig:
    """Tests for load_config."""

    def test_loads_file(self, dotfiles_dir: Path) -> None:
        (dotfiles_dir / "config.toml").write_text(SAMPLE_CONFIG)

        config = load_config(dotfiles_dir)

        assert config.profile == "minimal"
        assert config.user.email == "ada@example.com"
        assert config.secrets.provider == "1password"
        assert config.secrets.account == "my"
        assert config.modules["git"] == {"signing": True}
        assert config.script_timeout_seconds == 600.0

    def test_missing_file(self, dotfiles_dir: Path) -> None:
        with pytest.raises(ConfigNotFoundError, match="Config not found"):
            load_config(dotfiles_dir)

    def test_invalid_toml(self, dotfiles_dir: Path) -> None:
        (dotfiles_dir / "config.toml").write_text("profile = ")
        with pytest.raises(ConfigParseError, match="Invalid TOML syntax"):
            load_config(dotfiles_dir)

    def test_unknown_key(self, dotfiles_dir: Path) -> None:
        """Unknown top-level keys are rejected."""
        (dotfiles_dir / "config.toml").write_text('profle = "typo"\n')
        with pytest.raises(ConfigParseError, match="Invalid config content"):
            load_config(dotfiles_dir)

    def test_env_overrides(self, dotfiles_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """DOTCTL_PROFILE and DOTCTL_SECRETS_PROVIDER win over the file."""
        (dotfiles_dir / "config.toml").write_text(SAMPLE_CONFIG)
        monkeypatch.setenv("DOTCTL_PROFILE", "work")
        monkeypatch.setenv("DOTCTL_SECRETS_PROVIDER", "none")

        config = load_config(dotfiles_dir)

        assert config.profile == "work"
        assert config.secrets.provider == "none"
        assert config.secrets.account == "my"

    def test_default_config_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DOTCTL_PROFILE", "server")
        assert default_config().profile == "server"


class TestLoadProfile:
    """Tests for load_profile."""

    def test_loads_modules(self, dotfiles_dir: Path) -> None:
        profiles = dotfiles_dir / "profiles"
        profiles.mkdir()
        (profiles / "developer.toml").write_text('modules = ["git", "zsh"]\n')

        assert load_profile("developer", dotfiles_dir) == ["git", "zsh"]

    def test_empty_profile(self, dotfiles_dir: Path) -> None:
        profiles = dotfiles_dir / "profiles"
        profiles.mkdir()
        (profiles / "empty.toml").write_text('description = "nothing"\n')

        assert load_profile("empty", dotfiles_dir) == []

    def test_missing_profile(self, dotfiles_dir: Path) -> None:
        with pytest.raises(ConfigNotFoundError, match="Profile not found"):
            load_profile("nope", dotfiles_dir)

    def test_modules_must_be_names(self, dotfiles_dir: Path) -> None:
        profiles = dotfiles_dir / "profiles"
        profiles.mkdir()
        (profiles / "bad.toml").write_text("modules = [1, 2]\n")

        with pytest.raises(ConfigParseError, match="must be a list of names"):
            load_profile("bad", dotfiles_dir)


class TestRequireConfig:
    """Tests for require_config."""

    def test_returns_config(self, dotfiles_dir: Path) -> None:
        (dotfiles_dir / "config.toml").write_text(SAMPLE_CONFIG)
        assert require_config(dotfiles_dir).profile == "minimal"

    def test_exits_when_missing(self, dotfiles_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(typer.Exit) as exc_info:
            require_config(dotfiles_dir)

        assert exc_info.value.exit_code == 1
        captured = capsys.readouterr()
        assert "Config not found" in captured.err
        assert "DOTCTL_DIR" in captured.out
