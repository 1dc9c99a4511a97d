"""Terminal colors for dotctl output.

The bundled ``dotctl/data/theme.toml`` defines every color. A
``theme.toml`` in the user config directory may override any subset of
its ``[colors]`` table.
"""

import logging
import re
import tomllib
from functools import cache
from importlib import resources
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from rich.theme import Theme

from dotctl.core.paths import get_user_config_dir

logger = logging.getLogger(__name__)

THEME_FILE = "theme.toml"

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


class ThemeColors(BaseModel):
    """Colors used by module tables, progress lines and messages."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    text: str = "#ffffff"
    muted: str = "#b2bec3"
    header: str = "#69B9A1"
    border: str = "#29526d"

    success: str = "#03b971"
    warning: str = "#f5b332"
    error: str = "#f53263"
    info: str = "#0ec1c8"

    installed: str = "#c1ff62"
    updated: str = "#0e8ac8"
    skipped: str = "#b2bec3"
    failed: str = "#f53263"

    @field_validator("*", mode="before")
    @classmethod
    def check_hex_color(cls, value: object) -> str:
        if not isinstance(value, str) or not _HEX_COLOR.match(value.strip()):
            raise ValueError(f"{value!r} is not a #RGB or #RRGGBB color")
        return value.strip()


def _colors_table(text: str, origin: str) -> dict[str, object]:
    """Parse the [colors] table of a theme file; a bad file yields no colors."""
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        logger.warning("Ignoring theme %s: %s", origin, e)
        return {}
    table = data.get("colors", {})
    if not isinstance(table, dict):
        logger.warning("Ignoring theme %s: [colors] is not a table", origin)
        return {}
    return table


def load_colors(user_theme: Path | None = None) -> ThemeColors:
    """Merge the user's color overrides onto the bundled theme.

    Args:
        user_theme: Override file. Defaults to theme.toml in the user
            config directory; a missing file means no overrides.

    Returns:
        The merged colors, or the built-in defaults if any merged color
        is invalid.
    """
    bundled = resources.files("dotctl.data").joinpath(THEME_FILE).read_text(encoding="utf-8")
    colors = _colors_table(bundled, "bundled theme")

    path = user_theme or get_user_config_dir() / THEME_FILE
    try:
        colors = {**colors, **_colors_table(path.read_text(encoding="utf-8"), str(path))}
        logger.debug("Applied theme overrides from %s", path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Cannot read theme %s: %s", path, e)

    try:
        return ThemeColors.model_validate(colors)
    except ValidationError as e:
        logger.warning("Invalid theme colors, using defaults: %s", e)
        return ThemeColors()


def build_theme(colors: ThemeColors) -> Theme:
    """Map theme colors onto the style names used in dotctl output."""
    return Theme(
        {
            "muted": colors.muted,
            "dim": colors.muted,
            "border": colors.border,
            "bold_header": f"bold {colors.header}",
            "module.name": f"bold {colors.text}",
            "success": colors.success,
            "warning": colors.warning,
            "error": f"bold {colors.error}",
            "info": colors.info,
            "installed": colors.installed,
            "updated": colors.updated,
            "skipped": colors.skipped,
            "failed": f"bold {colors.failed}",
        }
    )


@cache
def get_theme() -> Theme:
    """Rich theme for the shared consoles, loaded once per process."""
    return build_theme(load_colors())
