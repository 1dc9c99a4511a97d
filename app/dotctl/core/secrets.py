"""Secrets providers.

Templates resolve secret references through a provider selected in
config.toml. Only the 1Password CLI is supported; every other setting
falls back to a provider that has no secrets.
"""

import logging
import subprocess
from typing import Protocol

from dotctl.utils.shell import command_exists, run_command, run_interactive

logger = logging.getLogger(__name__)


class SecretsError(Exception):
    """Raised when a secret cannot be resolved."""


class SecretsProvider(Protocol):
    """Interface implemented by secret backends."""

    @property
    def name(self) -> str:
        """Human-readable provider name."""
        ...

    def available(self) -> bool:
        """Check whether the provider's tooling is installed."""
        ...

    def is_authenticated(self) -> bool:
        """Check for a valid session without prompting."""
        ...

    def authenticate(self) -> None:
        """Run the provider's interactive sign-in flow."""
        ...

    def get_secret(self, ref: str) -> str:
        """Resolve a provider-specific reference to its secret value."""
        ...


class NoopProvider:
    """Provider used when no secrets backend is configured."""

    @property
    def name(self) -> str:
        return "none"

    def available(self) -> bool:
        return True

    def is_authenticated(self) -> bool:
        return True

    def authenticate(self) -> None:
        return None

    def get_secret(self, ref: str) -> str:
        raise SecretsError(f"No secrets provider configured; cannot resolve {ref!r}")


class OnePasswordProvider:
    """Provider backed by the 1Password CLI (``op``).

    References use the ``op://vault/item/field`` form.
    """

    SIGNIN_TIMEOUT = 60.0
    CHECK_TIMEOUT = 5.0
    READ_TIMEOUT = 30.0

    def __init__(self, account: str = "") -> None:
        self.account = account

    @property
    def name(self) -> str:
        return "1password"

    def _account_args(self) -> list[str]:
        return ["--account", self.account] if self.account else []

    def available(self) -> bool:
        return command_exists("op")

    def is_authenticated(self) -> bool:
        """Check for an active session.

        Uses ``op account list`` and ``op whoami``, neither of which
        prompts for credentials.
        """
        try:
            accounts = run_command(["op", "account", "list"], timeout=self.CHECK_TIMEOUT)
            if not accounts.success or not accounts.stdout.strip():
                return False
            whoami = run_command(["op", "whoami", *self._account_args()], timeout=self.CHECK_TIMEOUT)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug("1Password session check failed: %s", e)
            return False
        return whoami.success

    def authenticate(self) -> None:
        """Sign in interactively.

        Raises:
            SecretsError: If sign-in fails or times out.
        """
        try:
            code = run_interactive(["op", "signin", *self._account_args()], timeout=self.SIGNIN_TIMEOUT)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise SecretsError(f"1Password sign-in failed: {e}") from e
        if code != 0:
            raise SecretsError(f"1Password sign-in failed (exit code {code})")

    def get_secret(self, ref: str) -> str:
        """Read a secret with ``op read``.

        Raises:
            SecretsError: If the reference cannot be read.
        """
        try:
            result = run_command(["op", *self._account_args(), "read", ref], timeout=self.READ_TIMEOUT)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise SecretsError(f"1Password read failed: {e}") from e
        if not result.success:
            raise SecretsError(f"1Password read failed: {result.stderr.strip()}")
        return result.stdout.strip()


def get_provider(name: str, account: str = "") -> SecretsProvider:
    """Create the provider matching a configured name.

    Args:
        name: "1password" or "onepassword" (case-insensitive); anything
            else selects the no-op provider.
        account: Provider account identifier.
    """
    if name.lower() in ("1password", "onepassword"):
        return OnePasswordProvider(account)
    if name and name.lower() != "none":
        logger.warning("Unknown secrets provider %r; secrets are disabled", name)
    return NoopProvider()
