"""Persistent per-module state storage.

This module provides the StateStore class, which keeps one JSON document
per module in the state directory. Documents are written atomically and
overwritten on every run.
"""

import json
import logging
import os
from pathlib import Path
from tempfile import NamedTemporaryFile

from dotctl.core.paths import get_state_dir
from dotctl.models.state import ModuleState, utc_now

logger = logging.getLogger(__name__)


class StateError(Exception):
    """Raised when module state cannot be read or written."""


class StateStore:
    """Manages module state documents on disk.

    Storage location: <dotfiles>/.state/<module>.json

    Concurrent runs are not coordinated; the last writer wins.

    Attributes:
        state_dir: Directory containing the state documents.
    """

    SUFFIX = ".json"

    def __init__(self, state_dir: Path | None = None) -> None:
        """Initialize StateStore.

        Args:
            state_dir: Optional override for the state directory.
                      Default: <dotfiles>/.state
        """
        self.state_dir = state_dir if state_dir is not None else get_state_dir()

    def path_for(self, name: str) -> Path:
        """Path of the state document for a module.

        Raises:
            StateError: If the name would leave the state directory.
        """
        if not name or name in (".", "..") or "/" in name or os.sep in name:
            raise StateError(f"Invalid module name for state: {name!r}")
        return self.state_dir / f"{name}{self.SUFFIX}"

    def _load(self, path: Path) -> ModuleState:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return ModuleState.from_dict(data)
        except OSError as e:
            raise StateError(f"Failed to read state {path}: {e}") from e
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise StateError(f"Corrupt state file {path}: {e}") from e

    def get(self, name: str) -> ModuleState | None:
        """Read the state of a module.

        Args:
            name: Module name.

        Returns:
            The stored ModuleState, or None if the module has no state.

        Raises:
            StateError: If the document exists but cannot be read or parsed.
        """
        path = self.path_for(name)
        if not path.exists():
            return None
        return self._load(path)

    def set(self, state: ModuleState) -> None:
        """Write the state of a module, stamping ``updated_at``.

        The document is written to a temporary file in the state
        directory and moved into place with os.replace().

        Raises:
            StateError: If the document cannot be written.
        """
        state.updated_at = utc_now()
        path = self.path_for(state.name)

        tmp_path: Path | None = None
        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
            with NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=self.state_dir,
                delete=False,
                suffix=".tmp",
            ) as f:
                tmp_path = Path(f.name)
                json.dump(state.to_dict(), f, indent=2)
                f.write("\n")
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
            raise StateError(f"Failed to write state {path}: {e}") from e

        logger.debug("Saved state for %s (%s)", state.name, state.status.value)

    def get_all(self) -> list[ModuleState]:
        """Read every stored module state, sorted by name.

        Corrupt documents are logged and skipped.

        Raises:
            StateError: If the state directory cannot be listed.
        """
        if not self.state_dir.is_dir():
            return []

        try:
            paths = sorted(self.state_dir.glob(f"*{self.SUFFIX}"))
        except OSError as e:
            raise StateError(f"Failed to list state directory: {e}") from e

        states: list[ModuleState] = []
        for path in paths:
            if not path.is_file():
                continue
            try:
                states.append(self._load(path))
            except StateError as e:
                logger.warning("Skipping unreadable state: %s", e)
        return sorted(states, key=lambda s: s.name)

    def remove(self, name: str) -> None:
        """Delete the state of a module. Missing state is not an error.

        Raises:
            StateError: If the document exists but cannot be deleted.
        """
        try:
            self.path_for(name).unlink(missing_ok=True)
        except OSError as e:
            raise StateError(f"Failed to remove state for {name}: {e}") from e
