"""Module execution.

The Runner walks an ExecutionPlan in order. For each module it asks the
decision engine whether anything changed since the last run; modules that
need to run go through prompts, scripts, file deployment and
verification, with every side effect recorded on the module state. The
state is committed once at the end, as installed or failed.

Execution is strictly sequential and scripts block until they exit or
time out.
"""

import logging
import os
import tempfile
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from dotctl.core.backup import BackupManager, FileOpError
from dotctl.core.config import DotctlConfig
from dotctl.core.decision import ExecutionDecision, ModuleDecision, decide_module
from dotctl.core.deploy import DeployReport, FileDeployer
from dotctl.core.hashing import HashError, compute_config_hash, compute_module_checksum
from dotctl.core.paths import get_backup_dir, get_helpers_path
from dotctl.core.rollback import rollback_operations
from dotctl.core.scripts import DEFAULT_SCRIPT_TIMEOUT, ScriptError, run_script
from dotctl.core.secrets import SecretsProvider
from dotctl.core.state import StateError, StateStore
from dotctl.core.sysinfo import SystemInfo
from dotctl.core.templates import TemplateContext
from dotctl.core.ui import ProgressKind, PromptCancelledError, RunnerUI
from dotctl.models.module import Module, Prompt, PromptType, ShowWhen, parse_duration
from dotctl.models.plan import ExecutionPlan
from dotctl.models.state import (
    ModuleState,
    ModuleStatus,
    OperationAction,
    OperationType,
    create_operation,
    utc_now,
)

logger = logging.getLogger(__name__)

PACKAGE_LOG_ENV = "DOTCTL_PACKAGE_LOG"

_TRUE_ANSWERS = ("true", "yes", "y")


@dataclass(frozen=True, slots=True)
class RunOptions:
    """Flags for one invocation, passed unchanged through the run.

    Attributes:
        dry_run: Decide everything but change nothing.
        unattended: Never prompt; use prompt defaults and record failures.
        fail_fast: Stop after the first failed module.
        force: Re-run modules and redeploy files regardless of state.
        skip_failed: Skip modules whose last run failed.
        update_only: Only run modules that are already installed.
        verbose: Show script output and debug messages.
        script_timeout: Default script timeout in seconds.
        explicit_modules: Modules the user named on the command line.
        prompt_dependencies: Also prompt for automatically included modules.
    """

    dry_run: bool = False
    unattended: bool = False
    fail_fast: bool = False
    force: bool = False
    skip_failed: bool = False
    update_only: bool = False
    verbose: bool = False
    script_timeout: float | None = None
    explicit_modules: frozenset[str] = frozenset()
    prompt_dependencies: bool = False


class ModulePhase(str, Enum):
    """Lifecycle of a module within a run."""

    PENDING = "pending"
    SKIPPED = "skipped"
    RUNNING = "running"
    INSTALLED = "installed"
    FAILED = "failed"


class ModuleOutcome(str, Enum):
    """Result reported for a module."""

    SKIPPED = "skipped"
    INSTALLED = "installed"
    UPDATED = "updated"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class RunResult:
    """Outcome of running one module.

    Attributes:
        module: Module that was processed.
        outcome: What happened.
        decision: Decision engine verdict.
        reason: Reason for the decision.
        error: Error message if the module failed.
        duration: Wall-clock seconds spent on the module.
        notes: Post-install notes of the module (successful runs only).
        rolled_back: True if the failed run was undone.
    """

    module: Module
    outcome: ModuleOutcome
    decision: ExecutionDecision
    reason: str
    error: str = ""
    duration: float = 0.0
    notes: tuple[str, ...] = ()
    rolled_back: bool = False

    @property
    def success(self) -> bool:
        """True unless the module failed."""
        return self.outcome != ModuleOutcome.FAILED

    @property
    def skipped(self) -> bool:
        """True if the module did not need to run."""
        return self.outcome == ModuleOutcome.SKIPPED


def should_show_prompt(prompt: Prompt, options: RunOptions, explicit: bool) -> bool:
    """Decide whether a prompt is asked or silently takes its default.

    Args:
        prompt: Prompt definition.
        options: Run options.
        explicit: Whether the module was named by the user.
    """
    if options.prompt_dependencies:
        return True
    if prompt.show_when in (ShowWhen.ALWAYS, ShowWhen.INTERACTIVE):
        return True
    return explicit


def filter_update_only(plan: ExecutionPlan, store: StateStore) -> ExecutionPlan:
    """Move modules that were never installed to the skipped list.

    Modules whose state cannot be read are treated as not installed.
    """
    keep: list[Module] = []
    moved: list[Module] = []
    for module in plan.modules:
        try:
            state = store.get(module.name)
        except StateError as e:
            logger.warning("Ignoring unreadable state for %s: %s", module.name, e)
            state = None
        if state is not None and state.status == ModuleStatus.INSTALLED:
            keep.append(module)
        else:
            moved.append(module)

    skipped = sorted([*plan.skipped, *moved], key=lambda m: m.name)
    return ExecutionPlan(modules=tuple(keep), skipped=tuple(skipped), warnings=plan.warnings)


@dataclass(slots=True)
class _ModuleRun:
    """Mutable bookkeeping for the module currently running."""

    module: Module
    decision: ModuleDecision
    state: ModuleState
    started: float
    updating: bool
    previous: ModuleState | None = None
    package_log: Path | None = None
    files: DeployReport | None = None


class Runner:
    """Executes modules of a plan in order.

    Attributes:
        system: Detected host facts.
        config: Loaded configuration.
        ui: Terminal interface.
        store: State store.
        options: Run options.
        secrets: Secrets provider for templates, if any.
        phases: Lifecycle phase of each module seen in this run.
    """

    def __init__(
        self,
        system: SystemInfo,
        config: DotctlConfig,
        ui: RunnerUI,
        store: StateStore,
        options: RunOptions,
        *,
        secrets: SecretsProvider | None = None,
        backups: BackupManager | None = None,
    ) -> None:
        self.system = system
        self.config = config
        self.ui = ui
        self.store = store
        self.options = options
        self.secrets = secrets
        self.backups = backups or BackupManager(
            get_backup_dir(system.dotfiles_dir),
            system.home_dir,
            dry_run=options.dry_run,
        )
        self.deployer = FileDeployer(
            system.home_dir,
            self.backups,
            dry_run=options.dry_run,
            force=options.force,
        )
        self.phases: dict[str, ModulePhase] = {}

    def run(self, plan: ExecutionPlan) -> list[RunResult]:
        """Run every module of the plan in order.

        Returns:
            One RunResult per processed module. With fail_fast, processing
            stops after the first failure.
        """
        for module in plan.modules:
            self.phases[module.name] = ModulePhase.PENDING

        results: list[RunResult] = []
        for module in plan.modules:
            result = self.run_module(module)
            results.append(result)
            if self.options.fail_fast and result.outcome == ModuleOutcome.FAILED:
                logger.info("Stopping after failure of %s (fail-fast)", module.name)
                break
        return results

    def run_module(self, module: Module) -> RunResult:
        """Decide on and, if needed, run a single module."""
        started = time.monotonic()
        self.phases[module.name] = ModulePhase.PENDING

        existing = self._load_state(module.name)
        decision = decide_module(module, existing, self.config, self.options)

        if not decision.should_run:
            self.phases[module.name] = ModulePhase.SKIPPED
            self.ui.info(f"✓ {module.name} (skipped: {decision.reason})")
            return RunResult(
                module=module,
                outcome=ModuleOutcome.SKIPPED,
                decision=decision.decision,
                reason=decision.reason,
                duration=time.monotonic() - started,
            )

        updating = existing is not None and (
            existing.status == ModuleStatus.INSTALLED
            or (existing.status == ModuleStatus.FAILED and bool(existing.checksum))
        )
        self.phases[module.name] = ModulePhase.RUNNING
        verb = "Updating" if updating else "Installing"
        prefix = "[dry-run] " if self.options.dry_run else ""
        self.ui.info(f"{prefix}{verb} {module.name} ({decision.reason})...")

        installed_at = existing.installed_at if existing is not None and existing.installed_at else utc_now()
        run = _ModuleRun(
            module=module,
            decision=decision,
            state=ModuleState(
                name=module.name,
                status=ModuleStatus.FAILED,
                version=module.version,
                os=self.system.os,
                installed_at=installed_at,
            ),
            started=started,
            updating=updating,
            previous=existing,
        )

        try:
            run.package_log = self._create_package_log()
            self._execute(run, existing)
        except (PromptCancelledError, ScriptError, FileOpError) as e:
            return self._handle_failure(run, e)
        finally:
            if run.package_log is not None:
                run.package_log.unlink(missing_ok=True)

        return self._commit_success(run)

    def _execute(self, run: _ModuleRun, existing: ModuleState | None) -> None:
        module = run.module
        answers = self.resolve_prompts(module)
        env = self.build_env(module, answers)
        if run.package_log is not None:
            env[PACKAGE_LOG_ENV] = str(run.package_log)
        context = self.build_template_context(module, env)

        self._run_step(run, module.os_script(self.system.os), env)
        self._run_step(run, module.install_script, env)

        progress = self.ui.start_progress(f"Deploying {module.name} files...", ProgressKind.FILE_DEPLOY)
        try:
            run.files = self.deployer.deploy_module(module, existing, run.state, context)
        except FileOpError as e:
            progress.fail(f"Failed {module.name}: file deployment error: {e}")
            raise
        progress.succeed(run.files.message)

        for warning in run.files.warnings:
            self.ui.warn(warning)
        for dest in run.files.user_modified:
            self.ui.warn(f"Keeping user-modified file: {dest}")
        for line in run.files.pending:
            self.ui.info(f"[dry-run] Would deploy {line}")

        self._run_step(run, module.verify_script, env)

    def _run_step(self, run: _ModuleRun, script: Path, env: dict[str, str]) -> None:
        """Run one script of the module if it exists."""
        if not script.is_file():
            return

        run.state.record_operation(
            create_operation(OperationType.SCRIPT_RUN, OperationAction.EXECUTED, str(script))
        )
        if self.options.dry_run:
            self.ui.info(f"[dry-run] Would run script: {script}")
            return

        self.ui.debug(f"Running script: {script}")
        try:
            result = run_script(
                script,
                env,
                helpers=get_helpers_path(self.system.dotfiles_dir),
                timeout=self.script_timeout(run.module),
                interactive=not self.options.unattended,
                cwd=run.module.directory,
            )
        except ScriptError as e:
            if e.output:
                if self.options.verbose:
                    self.ui.debug(f"Script output:\n{e.output}")
                else:
                    self.ui.info(e.output)
            raise
        finally:
            self._drain_package_log(run)

        if result.output and self.options.verbose:
            self.ui.debug(f"Script output:\n{result.output}")

    def script_timeout(self, module: Module) -> float:
        """Timeout for a module's scripts in seconds.

        The module's own timeout wins, then the run default, then 300s.
        """
        if module.timeout:
            try:
                return parse_duration(module.timeout)
            except ValueError:
                self.ui.warn(f"Invalid timeout {module.timeout!r} in module {module.name}, using default")
        if self.options.script_timeout is not None:
            return self.options.script_timeout
        return DEFAULT_SCRIPT_TIMEOUT

    def resolve_prompts(self, module: Module) -> dict[str, str]:
        """Collect prompt answers for a module.

        Unattended and dry runs use defaults. Prompts of modules that
        were only pulled in as dependencies use defaults unless
        prompt_dependencies is set or the prompt asks to always be shown.

        Raises:
            PromptCancelledError: If the user aborts a prompt.
        """
        explicit = module.name in self.options.explicit_modules
        answers: dict[str, str] = {}
        for prompt in module.prompts:
            if self.options.unattended or self.options.dry_run:
                answers[prompt.key] = prompt.default
                continue

            if not should_show_prompt(prompt, self.options, explicit):
                answers[prompt.key] = prompt.default
                if self.options.verbose:
                    self.ui.debug(
                        f"Using default for {module.name}.{prompt.key}: {prompt.default} "
                        "(auto-included dependency)"
                    )
                continue

            message = prompt.message or prompt.key
            if prompt.type == PromptType.CONFIRM:
                confirmed = self.ui.prompt_confirm(message, prompt.default.lower() in _TRUE_ANSWERS)
                answers[prompt.key] = "true" if confirmed else "false"
            elif prompt.type == PromptType.CHOICE and prompt.options:
                answers[prompt.key] = self.ui.prompt_choice(message, prompt.options)
            else:
                answers[prompt.key] = self.ui.prompt_input(message, prompt.default)
        return answers

    def build_env(self, module: Module, answers: dict[str, str]) -> dict[str, str]:
        """Build the DOTCTL_* environment passed to scripts."""
        env = {
            "DOTCTL_OS": self.system.os,
            "DOTCTL_ARCH": self.system.arch,
            "DOTCTL_PKG_MGR": self.system.pkg_mgr,
            "DOTCTL_HAS_SUDO": _bool_str(self.system.has_sudo),
            "DOTCTL_HOME": str(self.system.home_dir),
            "DOTCTL_DIR": str(self.system.dotfiles_dir),
            "DOTCTL_MODULE_DIR": str(module.directory),
            "DOTCTL_MODULE_NAME": module.name,
            "DOTCTL_INTERACTIVE": _bool_str(not self.options.unattended),
            "DOTCTL_DRY_RUN": _bool_str(self.options.dry_run),
            "DOTCTL_VERBOSE": _bool_str(self.options.verbose),
        }
        for key, value in answers.items():
            env[f"DOTCTL_PROMPT_{key.upper()}"] = value

        user = self.config.user
        if user.name:
            env["DOTCTL_USER_NAME"] = user.name
        if user.email:
            env["DOTCTL_USER_EMAIL"] = user.email
        if user.github_user:
            env["DOTCTL_USER_GITHUB_USER"] = user.github_user
        return env

    def build_template_context(self, module: Module, env: dict[str, str]) -> TemplateContext:
        """Build the values exposed to the module's templates."""
        user = self.config.user
        return TemplateContext(
            user={"name": user.name, "email": user.email, "github_user": user.github_user},
            os=self.system.os,
            arch=self.system.arch,
            home=str(self.system.home_dir),
            dotfiles_dir=str(self.system.dotfiles_dir),
            module=dict(self.config.modules.get(module.name, {})),
            env=dict(env),
            secret=self.secrets.get_secret if self.secrets is not None else None,
        )

    def _load_state(self, name: str) -> ModuleState | None:
        try:
            return self.store.get(name)
        except StateError as e:
            logger.warning("Treating %s as not installed: %s", name, e)
            self.ui.warn(f"Could not read state for {name}: {e}")
            return None

    def _save_state(self, state: ModuleState) -> None:
        if self.options.dry_run:
            return
        try:
            self.store.set(state)
        except StateError as e:
            logger.warning("Failed to save state for %s: %s", state.name, e)
            self.ui.warn(f"Failed to save state for {state.name}: {e}")

    def _create_package_log(self) -> Path | None:
        if self.options.dry_run:
            return None
        fd, name = tempfile.mkstemp(prefix="dotctl-packages-", suffix=".log")
        os.close(fd)
        return Path(name)

    def _drain_package_log(self, run: _ModuleRun) -> None:
        """Record packages reported by the last script and reset the log."""
        if run.package_log is None:
            return
        try:
            names = run.package_log.read_text(encoding="utf-8").split()
            run.package_log.write_text("", encoding="utf-8")
        except OSError as e:
            logger.warning("Cannot read package log %s: %s", run.package_log, e)
            return
        for name in names:
            run.state.record_operation(
                create_operation(OperationType.PACKAGE_INSTALL, OperationAction.INSTALLED, name)
            )

    def _commit_success(self, run: _ModuleRun) -> RunResult:
        module = run.module
        state = run.state
        state.status = ModuleStatus.INSTALLED
        state.error = ""
        try:
            state.checksum = compute_module_checksum(module)
        except HashError as e:
            logger.debug("Failed to compute checksum for %s: %s", module.name, e)
        state.config_hash = compute_config_hash(module, self.config)
        self._save_state(state)

        self.phases[module.name] = ModulePhase.INSTALLED
        if self.options.dry_run:
            self.ui.success(f"[dry-run] Would {'update' if run.updating else 'install'} {module.name}")
        else:
            self.ui.success(f"{'Updated' if run.updating else 'Installed'} {module.name}")

        return RunResult(
            module=module,
            outcome=ModuleOutcome.UPDATED if run.updating else ModuleOutcome.INSTALLED,
            decision=run.decision.decision,
            reason=run.decision.reason,
            duration=time.monotonic() - run.started,
            notes=module.notes,
        )

    def _handle_failure(self, run: _ModuleRun, error: Exception) -> RunResult:
        """Commit the failed state and offer to undo the partial run."""
        module = run.module
        state = run.state
        self.phases[module.name] = ModulePhase.FAILED
        self.ui.error(f"Failed {module.name}: {error}")

        state.status = ModuleStatus.FAILED
        state.error = str(error)
        if run.previous is not None:
            _carry_forward(state, run.previous)
        self._save_state(state)

        rolled_back = False
        if not self.options.unattended and not self.options.dry_run:
            rolled_back = self._offer_rollback(state, run.previous)

        return RunResult(
            module=module,
            outcome=ModuleOutcome.FAILED,
            decision=run.decision.decision,
            reason=run.decision.reason,
            error=str(error),
            duration=time.monotonic() - run.started,
            rolled_back=rolled_back,
        )

    def _offer_rollback(self, state: ModuleState, previous: ModuleState | None) -> bool:
        if not state.can_rollback:
            self.ui.warn("No operations to roll back")
            return False

        self.ui.warn(
            f"Installation of {state.name} failed with {len(state.operations)} recorded operations"
        )
        self.ui.info("  skip - leave the partial installation as-is")
        self.ui.info("  undo - roll back changes and clean up")
        try:
            choice = self.ui.prompt_choice("What would you like to do?", ["skip", "undo"])
        except PromptCancelledError:
            self.ui.warn("No choice made, skipping rollback")
            return False

        if choice != "undo":
            self.ui.info("Skipping rollback, partial installation preserved")
            return False

        self.ui.info("Rolling back changes...")
        report = rollback_operations(state.operations)
        try:
            if previous is None:
                self.store.remove(state.name)
            else:
                self.store.set(previous)
        except StateError as e:
            self.ui.warn(f"Failed to restore state: {e}")

        if report.errors:
            for message in report.errors:
                self.ui.warn(message)
            self.ui.warn(
                f"Rolled back {report.reverted}/{len(state.operations)} operations "
                f"({len(report.errors)} errors)"
            )
        else:
            self.ui.success(f"Rolled back {report.reverted + report.informational} operations")
        return True


def _bool_str(value: bool) -> str:
    return "true" if value else "false"


def _carry_forward(state: ModuleState, previous: ModuleState) -> None:
    """Keep what a failed run did not replace from the previous state.

    File records the run never reached stay as they were, user edits
    included, and the checksums of the last successful run are kept.
    """
    processed = {file_state.dest for file_state in state.file_states}
    state.file_states.extend(fs for fs in previous.file_states if fs.dest not in processed)
    state.checksum = previous.checksum
    state.config_hash = previous.config_hash
