"""Content hashing for change detection.

Module checksums, config hashes and file hashes are all hex-encoded
SHA-256 digests. They are compared against the values stored in module
state to decide whether a module or file needs to run again.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dotctl.core.config import DotctlConfig
    from dotctl.models.module import Module

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


class HashError(Exception):
    """Raised when a file cannot be read for hashing."""


def _module_files(module: Module) -> list[Path]:
    """Collect the files that make up a module's checksum, sorted by path."""
    candidates = [module.manifest_path, module.install_script, module.verify_script]
    files = [path for path in candidates if path.is_file()]

    os_dir = module.directory / "os"
    if os_dir.is_dir():
        files.extend(path for path in os_dir.glob("*.sh") if path.is_file())

    return sorted(files, key=str)


def compute_module_checksum(module: Module) -> str:
    """Compute the checksum of a module's manifest and scripts.

    Covers module.toml, install.sh, verify.sh and every os/*.sh. Each
    file contributes its basename, a NUL byte, then its contents. Files
    that do not exist are left out.

    Args:
        module: Module to checksum.

    Returns:
        Hex-encoded SHA-256 digest.

    Raises:
        HashError: If a module file exists but cannot be read.
    """
    digest = hashlib.sha256()
    for path in _module_files(module):
        try:
            content = path.read_bytes()
        except OSError as e:
            raise HashError(f"Cannot read {path}: {e}") from e
        digest.update(path.name.encode())
        digest.update(b"\0")
        digest.update(content)
    return digest.hexdigest()


def compute_config_hash(module: Module, config: DotctlConfig) -> str:
    """Compute the hash of the configuration a module is run with.

    Covers the user identity fields followed by the module's own
    settings from ``[modules.<name>]`` in sorted key order.

    Args:
        module: Module whose settings are hashed.
        config: Loaded configuration.

    Returns:
        Hex-encoded SHA-256 digest.
    """
    digest = hashlib.sha256()
    user = config.user.model_dump()
    digest.update(json.dumps(user, sort_keys=True).encode())

    settings = config.modules.get(module.name, {})
    for key in sorted(settings):
        digest.update(key.encode())
        digest.update(json.dumps(settings[key], sort_keys=True, default=str).encode())

    return digest.hexdigest()


def compute_file_hash(path: Path) -> str:
    """Compute the SHA-256 of a file's contents.

    Raises:
        HashError: If the file cannot be read.
    """
    digest = hashlib.sha256()
    try:
        with path.open("rb") as f:
            for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
                digest.update(chunk)
    except OSError as e:
        raise HashError(f"Cannot read {path}: {e}") from e
    return digest.hexdigest()


def compute_bytes_hash(data: bytes) -> str:
    """Compute the SHA-256 of in-memory content."""
    return hashlib.sha256(data).hexdigest()
