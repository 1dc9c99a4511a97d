"""Dependency resolution for module execution order.

Resolution turns the discovered modules and the user's selection into an
ExecutionPlan: requested modules are expanded through their dependencies,
modules that do not support the target OS are set aside, and the rest is
ordered topologically with (priority, name) as the tie-break inside each
level.
"""

import logging
from collections import deque
from collections.abc import Iterable, Sequence

from dotctl.models.module import Module
from dotctl.models.plan import ExecutionPlan

logger = logging.getLogger(__name__)


class ResolutionError(Exception):
    """Raised when modules cannot be ordered for execution."""


def _sort_key(module: Module) -> tuple[int, str]:
    return (module.priority, module.name)


def _index(modules: Iterable[Module]) -> dict[str, Module]:
    lookup: dict[str, Module] = {}
    for module in modules:
        if module.name in lookup:
            raise ResolutionError(f"duplicate module name {module.name!r}")
        lookup[module.name] = module
    return lookup


def _expand(lookup: dict[str, Module], requested: Sequence[str]) -> set[str]:
    """Collect requested names plus all transitive dependencies."""
    for name in requested:
        if name not in lookup:
            raise ResolutionError(f'requested module "{name}" not found in available modules')

    needed: set[str] = set()
    queue = deque(requested)
    while queue:
        name = queue.popleft()
        if name in needed:
            continue
        needed.add(name)
        for dep in lookup[name].dependencies:
            if dep not in lookup:
                raise ResolutionError(f'module "{name}" depends on "{dep}", which does not exist')
            if dep not in needed:
                queue.append(dep)
    return needed


def _find_cycle(blocked: dict[str, Module]) -> list[str]:
    """Walk sorted dependency edges inside the blocked set until a name repeats."""
    current = min(blocked)
    path: list[str] = []
    seen: dict[str, int] = {}
    while current not in seen:
        seen[current] = len(path)
        path.append(current)
        deps = sorted(dep for dep in blocked[current].dependencies if dep in blocked)
        current = deps[0]
    return [*path[seen[current] :], current]


def resolve(
    modules: Iterable[Module],
    requested: Sequence[str],
    os_name: str,
) -> ExecutionPlan:
    """Build an execution plan for the requested modules.

    Args:
        modules: All discovered modules.
        requested: Module names selected by the user; empty selects all.
        os_name: Target OS identifier.

    Returns:
        ExecutionPlan with every dependency ordered before its dependents.

    Raises:
        ResolutionError: On duplicate names, unknown modules or
            dependencies, or a dependency cycle.
    """
    lookup = _index(modules)
    if not requested:
        requested = sorted(lookup)

    needed = _expand(lookup, requested)

    compatible: dict[str, Module] = {}
    skipped: list[Module] = []
    for name in sorted(needed):
        module = lookup[name]
        if module.supports_os(os_name):
            compatible[name] = module
        else:
            skipped.append(module)

    warnings: list[str] = []
    in_degree: dict[str, int] = {name: 0 for name in compatible}
    dependents: dict[str, list[str]] = {name: [] for name in compatible}
    for name, module in compatible.items():
        for dep in module.dependencies:
            if dep not in compatible:
                warnings.append(
                    f'module "{name}" depends on "{dep}", which does not support {os_name}; '
                    "dependency ignored"
                )
                logger.warning("Dropping dependency %s -> %s (unsupported on %s)", name, dep, os_name)
                continue
            in_degree[name] += 1
            dependents[dep].append(name)

    ordered: list[Module] = []
    frontier = [compatible[name] for name, degree in in_degree.items() if degree == 0]
    while frontier:
        frontier.sort(key=_sort_key)
        ordered.extend(frontier)
        next_frontier: list[Module] = []
        for module in frontier:
            for dependent in dependents[module.name]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    next_frontier.append(compatible[dependent])
        frontier = next_frontier

    if len(ordered) != len(compatible):
        done = {module.name for module in ordered}
        blocked = {name: module for name, module in compatible.items() if name not in done}
        cycle = _find_cycle(blocked)
        raise ResolutionError(f"dependency cycle detected: {' -> '.join(cycle)}")

    logger.debug("Resolved plan: %s", ", ".join(m.name for m in ordered))
    return ExecutionPlan(modules=tuple(ordered), skipped=tuple(skipped), warnings=tuple(warnings))
