"""Template rendering for module files.

Template files are rendered with Jinja2. Undefined variables are errors so
a typo in a template never produces a silently broken config file.

Context available to templates:
    user          name, email, github_user
    os, arch      target platform
    home          home directory
    dotfiles_dir  dotfiles repository root
    module        the module's settings from config.toml
    env           the DOTCTL_* environment passed to scripts
    secret(ref)   resolves a reference with the configured secrets provider
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jinja2

from dotctl.core.secrets import SecretsError

logger = logging.getLogger(__name__)


class TemplateError(Exception):
    """Raised when a template cannot be read or rendered."""


@dataclass(frozen=True, slots=True)
class TemplateContext:
    """Values exposed to templates."""

    user: dict[str, str] = field(default_factory=lambda: {})
    os: str = ""
    arch: str = ""
    home: str = ""
    dotfiles_dir: str = ""
    module: dict[str, Any] = field(default_factory=lambda: {})
    env: dict[str, str] = field(default_factory=lambda: {})
    secret: Callable[[str], str] | None = None

    def as_dict(self) -> dict[str, Any]:
        """Variables passed to Jinja2."""
        return {
            "user": self.user,
            "os": self.os,
            "arch": self.arch,
            "home": self.home,
            "dotfiles_dir": self.dotfiles_dir,
            "module": self.module,
            "env": self.env,
        }


def _missing_secret(ref: str) -> str:
    raise TemplateError(f"No secrets provider configured (requested {ref!r})")


def _environment() -> jinja2.Environment:
    return jinja2.Environment(
        undefined=jinja2.StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,  # nosec: B701 - renders config files, not HTML
    )


def render_string(text: str, context: TemplateContext, name: str = "<string>") -> str:
    """Render template text.

    Args:
        text: Template source.
        context: Values exposed to the template.
        name: Name used in error messages.

    Returns:
        Rendered text.

    Raises:
        TemplateError: On syntax errors, undefined variables or secret
            lookup failures.
    """
    env = _environment()
    env.globals["secret"] = context.secret or _missing_secret
    try:
        template = env.from_string(text)
        return template.render(context.as_dict())
    except jinja2.TemplateSyntaxError as e:
        raise TemplateError(f"Syntax error in {name} line {e.lineno}: {e.message}") from e
    except jinja2.UndefinedError as e:
        raise TemplateError(f"Undefined variable in {name}: {e.message}") from e
    except (jinja2.TemplateError, SecretsError) as e:
        raise TemplateError(f"Failed to render {name}: {e}") from e


def render_template(path: Path, context: TemplateContext) -> str:
    """Render a template file.

    Raises:
        TemplateError: If the file cannot be read or rendered.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise TemplateError(f"Failed to read template {path}: {e}") from e
    logger.debug("Rendering template %s", path)
    return render_string(text, context, name=path.name)
