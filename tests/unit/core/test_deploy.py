"""Unit tests for file deployment."""

import os
from collections.abc import Callable
from pathlib import Path

import pytest
from dotctl.core.backup import BackupManager
from dotctl.core.deploy import FileDeployer, FileOpError
from dotctl.core.hashing import compute_file_hash
from dotctl.core.rollback import BACKUP_PATH_KEY
from dotctl.core.templates import TemplateContext
from dotctl.models.module import Module
from dotctl.models.state import ModuleState, ModuleStatus, OperationAction, OperationType


def new_state(name: str) -> ModuleState:
    return ModuleState(name=name, status=ModuleStatus.FAILED)


@pytest.fixture
def deployer(tmp_path: Path, home_dir: Path) -> FileDeployer:
    """Create a FileDeployer with backups in a temporary directory."""
    return FileDeployer(home_dir, BackupManager(tmp_path / ".backups", home_dir))


@pytest.fixture
def vim(make_module: Callable[..., Module]) -> Module:
    """A module symlinking ~/.vimrc."""
    return make_module(
        "vim",
        contents={"files/vimrc": "set number\n"},
        files=[{"source": "files/vimrc", "dest": "~/.vimrc"}],
    )


class TestSymlinkDeploy:
    """Tests for symlink deployment."""

    def test_creates_symlink(self, deployer: FileDeployer, vim: Module, home_dir: Path) -> None:
        """The destination becomes a symlink to the absolute source."""
        state = new_state("vim")
        report = deployer.deploy_module(vim, None, state, TemplateContext())

        dest = home_dir / ".vimrc"
        assert dest.is_symlink()
        assert dest.readlink() == vim.directory / "files" / "vimrc"
        assert report.deployed == 1
        assert state.operations[-1].action == OperationAction.SYMLINKED
        assert state.file_states[0].dest == str(dest)

    def test_second_deploy_is_noop(self, deployer: FileDeployer, vim: Module) -> None:
        """A correct symlink is not redeployed."""
        first = new_state("vim")
        deployer.deploy_module(vim, None, first, TemplateContext())

        second = new_state("vim")
        report = deployer.deploy_module(vim, first, second, TemplateContext())

        assert report.deployed == 0
        assert report.unchanged == 1
        assert second.operations == []
        assert second.file_states[0].deployed_at == first.file_states[0].deployed_at

    def test_pre_existing_file_backed_up(self, deployer: FileDeployer, vim: Module, home_dir: Path) -> None:
        """An unmanaged file at the destination is backed up first."""
        dest = home_dir / ".vimrc"
        dest.write_text("mine\n")
        state = new_state("vim")

        deployer.deploy_module(vim, None, state, TemplateContext())

        backup = Path(state.operations[-1].metadata[BACKUP_PATH_KEY])
        assert backup.read_text() == "mine\n"
        assert state.operations[-1].metadata["file_existed"] == "true"

    def test_repointed_symlink_backed_up(self, deployer: FileDeployer, vim: Module, home_dir: Path) -> None:
        """A managed symlink pointing elsewhere is backed up before it is replaced."""
        first = new_state("vim")
        deployer.deploy_module(vim, None, first, TemplateContext())
        dest = home_dir / ".vimrc"
        elsewhere = home_dir / "vimrc.old"
        elsewhere.write_text("set nonumber\n")
        dest.unlink()
        dest.symlink_to(elsewhere)

        second = new_state("vim")
        deployer.deploy_module(vim, first, second, TemplateContext())

        backup = Path(second.operations[-1].metadata[BACKUP_PATH_KEY])
        assert backup.is_symlink()
        assert backup.readlink() == elsewhere
        assert dest.readlink() == vim.directory / "files" / "vimrc"

    def test_dry_run_touches_nothing(self, tmp_path: Path, home_dir: Path, vim: Module) -> None:
        """Dry-run reports pending files without writing."""
        deployer = FileDeployer(home_dir, BackupManager(tmp_path / ".backups", home_dir), dry_run=True)
        state = new_state("vim")

        report = deployer.deploy_module(vim, None, state, TemplateContext())

        assert not (home_dir / ".vimrc").exists()
        assert len(report.pending) == 1
        assert state.operations == []

    def test_missing_source_fails(self, deployer: FileDeployer, make_module: Callable[..., Module]) -> None:
        """A missing source file is a file operation error."""
        module = make_module("broken", **{"files": [{"source": "files/nope", "dest": "~/.nope"}]})
        with pytest.raises(FileOpError):
            deployer.deploy_module(module, None, new_state("broken"), TemplateContext())


class TestCopyDeploy:
    """Tests for copy deployment."""

    @pytest.fixture
    def git(self, make_module: Callable[..., Module]) -> Module:
        return make_module(
            "git",
            contents={"files/gitconfig": "[core]\n"},
            files=[{"source": "files/gitconfig", "dest": "~/.config/git/config", "kind": "copy"}],
        )

    def test_creates_parents_and_records_them(
        self, deployer: FileDeployer, git: Module, home_dir: Path
    ) -> None:
        """Missing parent directories are created and recorded outermost first."""
        state = new_state("git")
        deployer.deploy_module(git, None, state, TemplateContext())

        dest = home_dir / ".config" / "git" / "config"
        assert dest.read_text() == "[core]\n"
        dirs = [op.path for op in state.operations if op.type == OperationType.DIR_CREATE]
        assert dirs == [str(home_dir / ".config"), str(home_dir / ".config" / "git")]
        assert state.operations[-1].action == OperationAction.CREATED
        assert state.file_states[0].deployed_hash == compute_file_hash(dest)

    def test_user_modified_copy_kept(self, deployer: FileDeployer, git: Module, home_dir: Path) -> None:
        """A copy edited by the user is left alone and flagged."""
        first = new_state("git")
        deployer.deploy_module(git, None, first, TemplateContext())
        dest = home_dir / ".config" / "git" / "config"
        dest.write_text("[core]\n  editor = vim\n")

        second = new_state("git")
        report = deployer.deploy_module(git, first, second, TemplateContext())

        assert dest.read_text() == "[core]\n  editor = vim\n"
        assert report.user_modified == [str(dest)]
        assert second.file_states[0].user_modified

    def test_source_change_backs_up_user_edit(
        self, deployer: FileDeployer, git: Module, home_dir: Path
    ) -> None:
        """When the source changes, a user-edited copy is backed up and replaced."""
        first = new_state("git")
        deployer.deploy_module(git, None, first, TemplateContext())
        dest = home_dir / ".config" / "git" / "config"
        dest.write_text("edited\n")
        (git.directory / "files" / "gitconfig").write_text("[core]\n  pager = less\n")

        second = new_state("git")
        deployer.deploy_module(git, first, second, TemplateContext())

        op = second.operations[-1]
        assert op.action == OperationAction.MODIFIED
        assert Path(op.metadata[BACKUP_PATH_KEY]).read_text() == "edited\n"
        assert dest.read_text() == "[core]\n  pager = less\n"

    def test_source_change_backs_up_deployed_copy(
        self, deployer: FileDeployer, git: Module, home_dir: Path
    ) -> None:
        """An unedited copy replaced by a new source version is backed up too."""
        first = new_state("git")
        deployer.deploy_module(git, None, first, TemplateContext())
        (git.directory / "files" / "gitconfig").write_text("[core]\n  pager = less\n")

        second = new_state("git")
        deployer.deploy_module(git, first, second, TemplateContext())

        op = second.operations[-1]
        assert op.action == OperationAction.MODIFIED
        assert Path(op.metadata[BACKUP_PATH_KEY]).read_text() == "[core]\n"


class TestTemplateDeploy:
    """Tests for template deployment."""

    def test_renders_context(self, deployer: FileDeployer, make_module: Callable[..., Module], home_dir: Path) -> None:
        """Templates are rendered with the context and keep the source mode."""
        module = make_module(
            "git",
            contents={"files/gitconfig.j2": "[user]\n  name = {{ user.name }}\n"},
            files=[{"source": "files/gitconfig.j2", "dest": "~/.gitconfig", "kind": "template"}],
        )
        source = module.directory / "files" / "gitconfig.j2"
        os.chmod(source, 0o600)
        state = new_state("git")

        deployer.deploy_module(module, None, state, TemplateContext(user={"name": "Ada"}))

        dest = home_dir / ".gitconfig"
        assert dest.read_text() == "[user]\n  name = Ada\n"
        assert dest.stat().st_mode & 0o777 == 0o600
        assert state.file_states[0].deployed_hash == compute_file_hash(dest)

    def test_undefined_variable_fails(
        self, deployer: FileDeployer, make_module: Callable[..., Module], home_dir: Path
    ) -> None:
        """Rendering errors become file operation errors and nothing is written."""
        module = make_module(
            "bad",
            contents={"files/t": "{{ nope }}"},
            files=[{"source": "files/t", "dest": "~/.t", "kind": "template"}],
        )
        with pytest.raises(FileOpError, match="template"):
            deployer.deploy_module(module, None, new_state("bad"), TemplateContext())
        assert not (home_dir / ".t").exists()
