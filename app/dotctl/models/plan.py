"""Execution plan model produced by dependency resolution."""

from dataclasses import dataclass

from dotctl.models.module import Module


@dataclass(frozen=True, slots=True)
class ExecutionPlan:
    """Dependency-ordered modules to run for one invocation.

    Attributes:
        modules: Modules in execution order; every dependency precedes
            its dependents.
        skipped: Modules excluded because they do not support the target OS
            (or, in update-only mode, because they were never installed).
        warnings: Human-readable notes about dependency edges that were
            dropped because the dependency does not support the target OS.
    """

    modules: tuple[Module, ...]
    skipped: tuple[Module, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def names(self) -> list[str]:
        """Names of the modules to run, in order."""
        return [module.name for module in self.modules]

    @property
    def is_empty(self) -> bool:
        """Check whether there is nothing to run."""
        return not self.modules
