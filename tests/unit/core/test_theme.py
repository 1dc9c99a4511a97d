"""Unit tests for terminal colors."""

from pathlib import Path

import pytest
from dotctl.core.theme import ThemeColors, build_theme, get_theme, load_colors
from pydantic import ValidationError
from rich.theme import Theme


class TestThemeColors:
    """Tests for color validation."""

    def test_accepts_short_hex(self) -> None:
        assert ThemeColors(muted="#abc").muted == "#abc"

    @pytest.mark.parametrize("color", ["c1ff62", "#zzzzzz", "#12345", "green"])
    def test_rejects_non_hex(self, color: str) -> None:
        with pytest.raises(ValidationError, match="not a #RGB or #RRGGBB color"):
            ThemeColors(installed=color)

    def test_unknown_color_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ThemeColors(package_manual="#ffffff")  # type: ignore[call-arg]


class TestLoadColors:
    """Tests for merging user overrides onto the bundled theme."""

    def test_missing_user_theme_uses_bundled(self, tmp_path: Path) -> None:
        """The bundled theme matches the built-in defaults."""
        assert load_colors(tmp_path / "theme.toml") == ThemeColors()

    def test_user_theme_overrides_subset(self, tmp_path: Path) -> None:
        """Only the colors set by the user change."""
        user_theme = tmp_path / "theme.toml"
        user_theme.write_text('[colors]\ninstalled = "#123456"\n')

        colors = load_colors(user_theme)

        assert colors.installed == "#123456"
        assert colors.failed == ThemeColors().failed

    def test_invalid_color_falls_back_to_defaults(self, tmp_path: Path) -> None:
        user_theme = tmp_path / "theme.toml"
        user_theme.write_text('[colors]\nsuccess = "green"\n')

        assert load_colors(user_theme) == ThemeColors()

    def test_malformed_user_theme_ignored(self, tmp_path: Path) -> None:
        """A user theme that is not valid TOML is skipped."""
        user_theme = tmp_path / "theme.toml"
        user_theme.write_text("not valid [ toml syntax")

        assert load_colors(user_theme) == ThemeColors()

    def test_default_location_under_xdg_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Without an explicit path the override is read from $XDG_CONFIG_HOME/dotctl."""
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        (tmp_path / "dotctl").mkdir()
        (tmp_path / "dotctl" / "theme.toml").write_text('[colors]\nskipped = "#000"\n')

        assert load_colors().skipped == "#000"


class TestBuildTheme:
    """Tests for the rich theme."""

    def test_outcome_styles(self) -> None:
        theme = build_theme(ThemeColors())
        for name in ("installed", "updated", "skipped", "failed", "module.name", "bold_header", "muted"):
            assert name in theme.styles

    def test_get_theme_is_cached(self) -> None:
        assert isinstance(get_theme(), Theme)
        assert get_theme() is get_theme()
