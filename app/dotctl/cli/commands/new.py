"""New command implementation.

Scaffolds a module directory with a manifest and script stubs.
"""

from typing import Annotated

import typer

from dotctl.core.paths import get_dotfiles_dir, get_modules_dir
from dotctl.core.scaffold import ScaffoldError, create_module
from dotctl.models.module import DEFAULT_PRIORITY
from dotctl.utils.formatting import console, print_error, print_success


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def new_module(
    name: Annotated[
        str,
        typer.Argument(help="Module name (lowercase letters, digits and hyphens)."),
    ],
    priority: Annotated[
        int,
        typer.Option("--priority", "-p", help="Execution priority (lower runs first)."),
    ] = DEFAULT_PRIORITY,
    depends: Annotated[
        str | None,
        typer.Option("--depends", "-d", help="Comma-separated dependencies."),
    ] = None,
    os_list: Annotated[
        str | None,
        typer.Option("--os", help="Comma-separated supported systems (default: all)."),
    ] = None,
) -> None:
    """Create a new module skeleton.

    Examples:
        dotctl new ripgrep
        dotctl new neovim --priority 30 --depends git,fonts
        dotctl new yabai --os macos
    """
    modules_dir = get_modules_dir(get_dotfiles_dir())
    try:
        result = create_module(
            name,
            modules_dir,
            priority=priority,
            depends=_split_csv(depends),
            os_list=_split_csv(os_list),
        )
    except ScaffoldError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    print_success(f"Created module {name} at {result.module_dir}")
    for path in result.created:
        console.print(f"  [muted]{path.relative_to(result.module_dir)}[/muted]")

    console.print("\n[bold_header]Next steps[/bold_header]")
    console.print(f"  1. Edit {result.module_dir / 'module.toml'}", markup=False)
    console.print(f"  2. Implement {result.module_dir / 'install.sh'}", markup=False)
    console.print(f"  3. Preview with: dotctl install {name} --dry-run", markup=False)
