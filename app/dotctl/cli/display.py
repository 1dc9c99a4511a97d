"""Shared Rich display functions for plans and run results.

Provides reusable table builders and summary printers used by the
install, uninstall, status and list commands.
"""

from rich.markup import escape
from rich.table import Table

from dotctl.core.runner import ModuleOutcome, RunResult
from dotctl.models.plan import ExecutionPlan
from dotctl.utils.formatting import console, create_table, print_success, print_warning

_OUTCOME_STYLES: dict[ModuleOutcome, str] = {
    ModuleOutcome.INSTALLED: "installed",
    ModuleOutcome.UPDATED: "updated",
    ModuleOutcome.SKIPPED: "skipped",
    ModuleOutcome.FAILED: "failed",
}


def create_plan_table(plan: ExecutionPlan, dry_run: bool = False) -> Table:
    """Create a table of the modules in execution order.

    Args:
        plan: Resolved execution plan.
        dry_run: Whether this is a dry-run (changes table title).

    Returns:
        Rich Table with one row per module.
    """
    table = create_table("Execution Plan (Dry Run)" if dry_run else "Execution Plan")
    table.add_column("#", justify="right", width=3)
    table.add_column("Module", style="module.name", no_wrap=True)
    table.add_column("Priority", justify="right")
    table.add_column("Depends On")
    table.add_column("Description", style="muted")

    for index, module in enumerate(plan.modules, start=1):
        table.add_row(
            str(index),
            module.name,
            str(module.priority),
            escape(", ".join(module.dependencies)) or "-",
            escape(module.description),
        )
    return table


def print_plan(plan: ExecutionPlan, dry_run: bool = False) -> None:
    """Print the plan table, skipped modules and dropped dependencies."""
    console.print(create_plan_table(plan, dry_run))
    print_plan_notes(plan)


def print_plan_notes(plan: ExecutionPlan) -> None:
    """Print the modules left out of a plan and the resolver warnings."""
    if plan.skipped:
        names = ", ".join(module.name for module in plan.skipped)
        console.print(f"[muted]Skipped (not applicable): {escape(names)}[/muted]")
    for warning in plan.warnings:
        print_warning(warning)


def create_results_table(results: list[RunResult]) -> Table:
    """Create a table of per-module outcomes.

    Args:
        results: Results returned by the runner.

    Returns:
        Rich Table with outcome, module, duration and details.
    """
    table = create_table("Results")
    table.add_column("Status", width=10)
    table.add_column("Module", style="module.name", no_wrap=True)
    table.add_column("Time", justify="right")
    table.add_column("Details")

    for result in results:
        style = _OUTCOME_STYLES[result.outcome]
        details = result.error if result.outcome == ModuleOutcome.FAILED else result.reason
        if result.rolled_back:
            details = f"{details} (rolled back)"
        table.add_row(
            f"[{style}]{result.outcome.value}[/{style}]",
            result.module.name,
            f"{result.duration:.1f}s",
            f"[muted]{escape(details)}[/muted]",
        )
    return table


def print_run_summary(results: list[RunResult], dry_run: bool = False) -> None:
    """Print the aggregate counts of a run.

    Shows a success message when nothing failed, or the counts of each
    outcome otherwise.
    """
    counts = {outcome: 0 for outcome in ModuleOutcome}
    for result in results:
        counts[result.outcome] += 1

    parts = [
        f"[{_OUTCOME_STYLES[outcome]}]{counts[outcome]} {outcome.value}[/{_OUTCOME_STYLES[outcome]}]"
        for outcome in ModuleOutcome
        if counts[outcome]
    ]
    prefix = "[dry-run] " if dry_run else ""
    if not results:
        console.print(f"\n{escape(prefix)}Nothing to do.")
    elif counts[ModuleOutcome.FAILED] == 0:
        print_success(f"{prefix}All {len(results)} module(s) completed successfully.")
        console.print(f"Summary: {', '.join(parts)}")
    else:
        console.print(f"\n{escape(prefix)}Summary: {', '.join(parts)}")


def print_notes(results: list[RunResult]) -> None:
    """Print post-install notes of modules that ran successfully."""
    noted = [result for result in results if result.notes and result.success and not result.skipped]
    if not noted:
        return
    console.print("\n[bold_header]Post-install notes[/bold_header]")
    for result in noted:
        console.print(f"[module.name]{result.module.name}[/module.name]")
        for note in result.notes:
            console.print(f"  • {escape(note)}")
