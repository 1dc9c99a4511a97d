"""Unit tests for checksum and hash computation."""

from collections.abc import Callable
from pathlib import Path

import pytest
from dotctl.core.config import DotctlConfig, UserConfig
from dotctl.core.hashing import (
    HashError,
    compute_bytes_hash,
    compute_config_hash,
    compute_file_hash,
    compute_module_checksum,
)
from dotctl.models.module import Module


class TestModuleChecksum:
    """Tests for compute_module_checksum."""

    def test_deterministic(self, make_module: Callable[..., Module]) -> None:
        """The same module hashes to the same value."""
        module = make_module("git", scripts={"install.sh": "echo git\n"})
        assert compute_module_checksum(module) == compute_module_checksum(module)

    def test_script_change_changes_checksum(self, make_module: Callable[..., Module]) -> None:
        """A one-byte change to install.sh changes the checksum."""
        module = make_module("git", scripts={"install.sh": "echo git\n"})
        before = compute_module_checksum(module)
        module.install_script.write_text("echo git!\n")
        assert compute_module_checksum(module) != before

    def test_os_script_included(self, make_module: Callable[..., Module]) -> None:
        """OS-specific scripts are part of the checksum."""
        module = make_module("git", scripts={"os/ubuntu.sh": "apt install git\n"})
        before = compute_module_checksum(module)
        module.os_script("ubuntu").write_text("apt-get install git\n")
        assert compute_module_checksum(module) != before

    def test_deployed_files_not_included(self, make_module: Callable[..., Module]) -> None:
        """Files under files/ do not affect the module checksum."""
        module = make_module("git", contents={"files/gitconfig": "a"})
        before = compute_module_checksum(module)
        (module.directory / "files" / "gitconfig").write_text("b")
        assert compute_module_checksum(module) == before

    def test_same_content_different_name(self, tmp_path: Path) -> None:
        """File names are part of the checksum."""
        one = tmp_path / "one"
        two = tmp_path / "two"
        (one / "os").mkdir(parents=True)
        (two / "os").mkdir(parents=True)
        (one / "os" / "arch.sh").write_text("x")
        (two / "os" / "fedora.sh").write_text("x")
        assert compute_module_checksum(Module(name="m", directory=one)) != compute_module_checksum(
            Module(name="m", directory=two)
        )


class TestConfigHash:
    """Tests for compute_config_hash."""

    def test_changes_with_user(self) -> None:
        """User identity is part of the hash."""
        module = Module(name="git")
        a = compute_config_hash(module, DotctlConfig(user=UserConfig(email="a@example.com")))
        b = compute_config_hash(module, DotctlConfig(user=UserConfig(email="b@example.com")))
        assert a != b

    def test_only_own_settings(self) -> None:
        """Settings of other modules do not affect the hash."""
        module = Module(name="git")
        base = compute_config_hash(module, DotctlConfig())
        other = compute_config_hash(module, DotctlConfig(modules={"zsh": {"theme": "x"}}))
        own = compute_config_hash(module, DotctlConfig(modules={"git": {"signing": True}}))
        assert base == other
        assert base != own

    def test_key_order_irrelevant(self) -> None:
        """Setting order does not change the hash."""
        module = Module(name="git")
        a = compute_config_hash(module, DotctlConfig(modules={"git": {"a": 1, "b": 2}}))
        b = compute_config_hash(module, DotctlConfig(modules={"git": {"b": 2, "a": 1}}))
        assert a == b


class TestFileHash:
    """Tests for file and byte hashing."""

    def test_file_matches_bytes(self, tmp_path: Path) -> None:
        """compute_file_hash agrees with compute_bytes_hash."""
        path = tmp_path / "f"
        path.write_bytes(b"hello\n")
        assert compute_file_hash(path) == compute_bytes_hash(b"hello\n")

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        """Hashing a missing file raises HashError."""
        with pytest.raises(HashError):
            compute_file_hash(tmp_path / "missing")
