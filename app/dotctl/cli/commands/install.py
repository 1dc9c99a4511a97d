"""Install command implementation.

Resolves the requested modules into an execution plan and runs it,
skipping modules whose recorded state is current.
"""

import logging
from pathlib import Path
from typing import Annotated

import typer

from dotctl.cli.display import create_results_table, print_notes, print_plan, print_plan_notes, print_run_summary
from dotctl.cli.ui import ConsoleUI
from dotctl.core import sysinfo
from dotctl.core.config import ConfigError, DotctlConfig, load_profile, require_config
from dotctl.core.discovery import require_modules
from dotctl.core.paths import get_modules_dir, get_state_dir
from dotctl.core.resolver import ResolutionError, resolve
from dotctl.core.runner import ModuleOutcome, Runner, RunOptions, filter_update_only
from dotctl.core.secrets import SecretsError, SecretsProvider, get_provider
from dotctl.core.state import StateStore
from dotctl.models.module import Module, parse_duration
from dotctl.utils.formatting import console, print_error, print_info, print_warning

logger = logging.getLogger(__name__)


def _requested_modules(
    args: list[str], config: DotctlConfig, modules: list[Module], dotfiles_dir: Path
) -> list[str]:
    """Pick the modules to install: CLI args, else the profile, else all."""
    if args:
        return args
    if config.profile:
        try:
            names = load_profile(config.profile, dotfiles_dir)
        except ConfigError as e:
            print_warning(f"Profile {config.profile!r} unavailable ({e}); installing all modules.")
        else:
            print_info(f"Using profile: {config.profile}")
            return names
    return [module.name for module in modules]


def _prepare_secrets(config: DotctlConfig, interactive: bool) -> SecretsProvider:
    """Create the configured secrets provider and sign in if possible."""
    provider = get_provider(config.secrets.provider, config.secrets.account)
    if provider.name == "none":
        return provider
    if not provider.available():
        print_warning(f"Secrets provider '{provider.name}' is not available; templates using secrets will fail.")
        return provider
    if provider.is_authenticated():
        return provider
    if not interactive:
        print_warning(f"Not signed in to '{provider.name}'; templates using secrets will fail.")
        return provider
    try:
        provider.authenticate()
    except SecretsError as e:
        print_warning(f"Secrets sign-in failed: {e}")
    return provider


def _parse_timeout(value: str | None, config: DotctlConfig) -> float | None:
    if value is None:
        return config.script_timeout_seconds
    try:
        return parse_duration(value)
    except ValueError as e:
        print_error(f"Invalid --timeout: {e}")
        raise typer.Exit(code=1) from e


def install_modules(
    ctx: typer.Context,
    modules: Annotated[
        list[str] | None,
        typer.Argument(help="Modules to install (default: profile modules, else all)."),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "-n", help="Show what would be done without making changes."),
    ] = False,
    unattended: Annotated[
        bool,
        typer.Option("--unattended", "-u", help="Use prompt defaults and never ask questions."),
    ] = False,
    fail_fast: Annotated[
        bool,
        typer.Option("--fail-fast", help="Stop at the first failed module."),
    ] = False,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Re-run modules even if they are up to date."),
    ] = False,
    skip_failed: Annotated[
        bool,
        typer.Option("--skip-failed", help="Do not retry modules that failed previously."),
    ] = False,
    update_only: Annotated[
        bool,
        typer.Option("--update-only", help="Only run modules that are already installed."),
    ] = False,
    prompt_dependencies: Annotated[
        bool,
        typer.Option(
            "--prompt-dependencies",
            help="Also ask prompts of modules pulled in as dependencies.",
        ),
    ] = False,
    timeout: Annotated[
        str | None,
        typer.Option("--timeout", "-t", help="Script timeout, e.g. 90s, 5m, 1h."),
    ] = None,
) -> None:
    """Install modules and their dependencies.

    Examples:
        dotctl install                    # Install the profile's modules
        dotctl install git zsh            # Install specific modules
        dotctl install --dry-run          # Preview the plan
        dotctl install --force neovim     # Re-run an up-to-date module
        dotctl install --unattended       # Use prompt defaults
    """
    obj = ctx.obj or {}
    verbose = bool(obj.get("verbose"))
    quiet = bool(obj.get("quiet"))

    system = sysinfo.detect()
    config = require_config(system.dotfiles_dir)
    script_timeout = _parse_timeout(timeout, config)

    interactive = system.is_interactive and not unattended
    secrets = _prepare_secrets(config, interactive and not dry_run)

    available = require_modules(get_modules_dir(system.dotfiles_dir))
    requested = _requested_modules(modules or [], config, available, system.dotfiles_dir)
    logger.debug("Requested modules: %s", ", ".join(requested))

    try:
        plan = resolve(available, requested, system.os)
    except ResolutionError as e:
        print_error(f"Dependency resolution failed: {e}")
        raise typer.Exit(code=1) from e

    store = StateStore(get_state_dir(system.dotfiles_dir))
    if update_only:
        plan = filter_update_only(plan, store)

    if plan.is_empty:
        if not quiet:
            print_plan_notes(plan)
        print_info("No modules to install.")
        return

    if not quiet:
        print_plan(plan, dry_run)

    options = RunOptions(
        dry_run=dry_run,
        unattended=not interactive,
        fail_fast=fail_fast,
        force=force,
        skip_failed=skip_failed,
        update_only=update_only,
        verbose=verbose,
        script_timeout=script_timeout,
        explicit_modules=frozenset(requested),
        prompt_dependencies=prompt_dependencies,
    )
    runner = Runner(system, config, ConsoleUI(verbose=verbose, quiet=quiet), store, options, secrets=secrets)
    results = runner.run(plan)

    console.print()
    console.print(create_results_table(results))
    print_run_summary(results, dry_run)
    print_notes(results)

    if any(result.outcome == ModuleOutcome.FAILED for result in results):
        raise typer.Exit(code=1)
