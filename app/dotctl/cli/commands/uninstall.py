"""Uninstall command implementation.

Replays the recorded operations of installed modules in reverse and
removes their state.
"""

from typing import Annotated

import typer

from dotctl.core.paths import get_dotfiles_dir, get_state_dir
from dotctl.core.rollback import rollback_instructions, rollback_operations
from dotctl.core.state import StateError, StateStore
from dotctl.models.state import ModuleState
from dotctl.utils.formatting import console, print_error, print_info, print_success, print_warning


def _confirm(message: str, skip: bool) -> bool:
    return skip or typer.confirm(message, default=False)


def _uninstall_one(store: StateStore, state: ModuleState, *, dry_run: bool, yes: bool, force: bool) -> bool:
    """Uninstall a single module.

    Returns:
        False if any operation could not be reversed.
    """
    name = state.name
    if not state.operations:
        print_warning(f"Module {name} has no recorded operations to undo.")
        if dry_run:
            print_info("[dry-run] Would remove module state")
            return True
        if not _confirm("Remove module state anyway?", yes or force):
            print_info("Skipped.")
            return True
        store.remove(name)
        print_success(f"Removed state of {name}")
        return True

    console.print(f"\n[bold_header]Rollback plan for {name}[/bold_header] ({len(state.operations)} operations):")
    for index, line in enumerate(rollback_instructions(state.operations), start=1):
        console.print(f"  {index}. {line}", markup=False)

    if dry_run:
        print_info("[dry-run] Would uninstall module and execute rollback operations")
        return True

    if not _confirm(f"Proceed with uninstall of {name}?", yes):
        print_info("Skipped.")
        return True

    report = rollback_operations(state.operations)
    for error in report.errors:
        print_error(error)
    if not report.success and not force:
        print_error(f"Rollback of {name} incomplete; state kept. Use --force to remove it anyway.")
        return False

    store.remove(name)
    print_success(f"Uninstalled {name} ({report.reverted} reverted, {report.informational} informational)")
    return report.success


def uninstall_modules(
    modules: Annotated[
        list[str],
        typer.Argument(help="Modules to uninstall."),
    ],
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "-n", help="Show the rollback plan without executing."),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompts."),
    ] = False,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Continue on rollback errors and remove state anyway."),
    ] = False,
) -> None:
    """Uninstall modules by reversing their recorded operations.

    Files deployed by the module are removed or restored from backup.
    Scripts and packages are listed for manual cleanup.

    Examples:
        dotctl uninstall zsh              # Uninstall with confirmation
        dotctl uninstall zsh --dry-run    # Preview the rollback plan
        dotctl uninstall zsh git -y       # Skip confirmation
    """
    store = StateStore(get_state_dir(get_dotfiles_dir()))
    failed = False

    for name in modules:
        try:
            state = store.get(name)
        except StateError as e:
            print_error(str(e))
            failed = True
            continue
        if state is None:
            print_warning(f"Module {name} is not installed")
            continue

        try:
            if not _uninstall_one(store, state, dry_run=dry_run, yes=yes, force=force):
                failed = True
        except StateError as e:
            print_error(f"Failed to remove state of {name}: {e}")
            failed = True

    if failed:
        raise typer.Exit(code=1)
