"""List command implementation.

Shows every discovered module with its supported systems and whether
it is installed.
"""

from rich.markup import escape

from dotctl.core import sysinfo
from dotctl.core.discovery import require_modules
from dotctl.core.paths import get_modules_dir, get_state_dir
from dotctl.core.state import StateError, StateStore
from dotctl.models.state import ModuleStatus
from dotctl.utils.formatting import console, create_table, print_warning

_DESCRIPTION_WIDTH = 40


def _installed_status(store: StateStore, name: str) -> str:
    try:
        state = store.get(name)
    except StateError:
        return "[error]unreadable[/error]"
    if state is None:
        return "[muted]not installed[/muted]"
    style = "installed" if state.status == ModuleStatus.INSTALLED else "failed"
    return f"[{style}]{state.status.value}[/{style}]"


def list_modules() -> None:
    """List available modules and their status.

    Modules that do not support the current system are dimmed.
    """
    system = sysinfo.detect()
    modules_dir = get_modules_dir(system.dotfiles_dir)
    modules = require_modules(modules_dir)

    if not modules:
        print_warning(f"No modules found in {modules_dir}")
        return

    store = StateStore(get_state_dir(system.dotfiles_dir))

    table = create_table(f"Modules ({len(modules)})")
    table.add_column("Module", style="module.name", no_wrap=True)
    table.add_column("Description", max_width=_DESCRIPTION_WIDTH, overflow="ellipsis", no_wrap=True)
    table.add_column("Priority", justify="right")
    table.add_column("OS")
    table.add_column("Status")

    for module in modules:
        supported = module.supports_os(system.os)
        os_text = escape(",".join(module.os)) if module.os else "all"
        table.add_row(
            module.name,
            escape(module.description) or "-",
            str(module.priority),
            os_text if supported else f"[dim]{os_text}[/dim]",
            _installed_status(store, module.name),
        )
    console.print(table)
