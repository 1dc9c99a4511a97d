"""Repository configuration and profiles.

Configuration lives in ``config.toml`` at the root of the dotfiles
directory. Profiles live in ``profiles/<name>.toml`` and list the modules
installed when no module is named on the command line.

Example config.toml:

    profile = "developer"
    script_timeout = "10m"

    [user]
    name = "Ada Lovelace"
    email = "ada@example.com"
    github_user = "ada"

    [secrets]
    provider = "1password"

    [modules.git]
    signing = true
"""

import logging
import os
import tomllib
from pathlib import Path
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from dotctl.core.paths import get_config_path, get_profiles_dir
from dotctl.models.module import parse_duration

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "developer"
PROFILE_ENV = "DOTCTL_PROFILE"
SECRETS_PROVIDER_ENV = "DOTCTL_SECRETS_PROVIDER"


class UserConfig(BaseModel):
    """User identity exposed to scripts and templates."""

    model_config = ConfigDict(extra="forbid")

    name: str = ""
    email: str = ""
    github_user: str = ""


class SecretsConfig(BaseModel):
    """Secrets provider selection.

    Attributes:
        provider: Provider name ("1password", "none" or empty).
        account: Provider account identifier, if the provider needs one.
    """

    model_config = ConfigDict(extra="forbid")

    provider: str = ""
    account: str = ""


class DotctlConfig(BaseModel):
    """Top-level repository configuration.

    Attributes:
        profile: Profile used when no modules are requested explicitly.
        user: User identity.
        secrets: Secrets provider settings.
        modules: Per-module settings keyed by module name.
        script_timeout: Default script timeout as a duration string.
    """

    model_config = ConfigDict(extra="forbid")

    profile: Annotated[str, Field(description="Default profile name")] = DEFAULT_PROFILE
    user: UserConfig = Field(default_factory=UserConfig)
    secrets: SecretsConfig = Field(default_factory=SecretsConfig)
    modules: Annotated[
        dict[str, dict[str, Any]],
        Field(description="Per-module settings"),
    ] = Field(default_factory=dict)
    script_timeout: Annotated[
        str | None,
        Field(description="Default script timeout (e.g. '5m')"),
    ] = None

    @field_validator("profile")
    @classmethod
    def default_empty_profile(cls, v: str) -> str:
        """Treat an empty profile as the default profile."""
        return v or DEFAULT_PROFILE

    @field_validator("script_timeout")
    @classmethod
    def validate_timeout(cls, v: str | None) -> str | None:
        """Reject timeouts that are not valid durations."""
        if v is not None:
            parse_duration(v)
        return v

    @property
    def script_timeout_seconds(self) -> float | None:
        """Configured default script timeout in seconds, if any."""
        if self.script_timeout is None:
            return None
        return parse_duration(self.script_timeout)


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigNotFoundError(ConfigError):
    """Raised when config.toml or a profile file is not found."""


class ConfigParseError(ConfigError):
    """Raised when a configuration file cannot be parsed or validated."""


def _read_toml(path: Path, what: str) -> dict[str, Any]:
    if not path.exists():
        raise ConfigNotFoundError(f"{what} not found: {path}")
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigParseError(f"Invalid TOML syntax in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read {what.lower()}: {e}") from e


def _apply_env_overrides(config: DotctlConfig) -> DotctlConfig:
    updates: dict[str, Any] = {}
    profile = os.environ.get(PROFILE_ENV)
    if profile:
        updates["profile"] = profile
    provider = os.environ.get(SECRETS_PROVIDER_ENV)
    if provider:
        updates["secrets"] = config.secrets.model_copy(update={"provider": provider})
    if updates:
        logger.debug("Applying environment overrides: %s", sorted(updates))
        return config.model_copy(update=updates)
    return config


def load_config(dotfiles_dir: Path | None = None) -> DotctlConfig:
    """Load configuration from config.toml and apply environment overrides.

    ``DOTCTL_PROFILE`` overrides the profile and ``DOTCTL_SECRETS_PROVIDER``
    overrides the secrets provider.

    Args:
        dotfiles_dir: Dotfiles directory. If None, uses the default.

    Returns:
        Validated DotctlConfig.

    Raises:
        ConfigNotFoundError: If config.toml doesn't exist.
        ConfigParseError: If the TOML syntax or content is invalid.
        ConfigError: If the file cannot be read.
    """
    path = get_config_path(dotfiles_dir)
    data = _read_toml(path, "Config")
    try:
        config = DotctlConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigParseError(f"Invalid config content: {e}") from e
    return _apply_env_overrides(config)


def default_config() -> DotctlConfig:
    """Configuration used when config.toml is absent, with env overrides applied."""
    return _apply_env_overrides(DotctlConfig())


def load_profile(name: str, dotfiles_dir: Path | None = None) -> list[str]:
    """Load the module list of a profile.

    Args:
        name: Profile name (file stem under profiles/).
        dotfiles_dir: Dotfiles directory. If None, uses the default.

    Returns:
        Module names listed under ``modules``.

    Raises:
        ConfigNotFoundError: If the profile file doesn't exist.
        ConfigParseError: If the profile cannot be parsed.
    """
    path = get_profiles_dir(dotfiles_dir) / f"{name}.toml"
    data = _read_toml(path, "Profile")
    modules = data.get("modules", [])
    if not isinstance(modules, list) or not all(isinstance(m, str) for m in modules):
        raise ConfigParseError(f"Profile {name!r}: 'modules' must be a list of names")
    return list(modules)


def require_config(dotfiles_dir: Path | None = None) -> DotctlConfig:
    """Load configuration or exit with a helpful error message.

    Args:
        dotfiles_dir: Dotfiles directory. If None, uses the default.

    Returns:
        Loaded and validated DotctlConfig.

    Raises:
        typer.Exit: If the configuration cannot be loaded.
    """
    import typer

    from dotctl.utils.formatting import print_error, print_info

    try:
        return load_config(dotfiles_dir)
    except ConfigNotFoundError as e:
        print_error(str(e))
        print_info("Create config.toml in your dotfiles directory or set DOTCTL_DIR.")
        raise typer.Exit(code=1) from e
    except ConfigError as e:
        print_error(f"Failed to load config: {e}")
        raise typer.Exit(code=1) from e
