"""Unit tests for the execution plan model."""

from dotctl.models.module import Module
from dotctl.models.plan import ExecutionPlan


class TestExecutionPlan:
    """Tests for ExecutionPlan."""

    def test_names_in_order(self) -> None:
        """names lists module names in execution order."""
        plan = ExecutionPlan(modules=(Module(name="b"), Module(name="a")))
        assert plan.names == ["b", "a"]

    def test_is_empty(self) -> None:
        """is_empty is true only without modules to run."""
        assert ExecutionPlan(modules=()).is_empty
        assert not ExecutionPlan(modules=(Module(name="a"),)).is_empty
