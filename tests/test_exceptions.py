"""Tests for the exception hierarchy."""

from __future__ import annotations

import pytest


@pytest.mark.unit
class TestAutomationError:
    """Tests for the base exception."""

    @pytest.mark.parametrize(
        "name",
        [
            "InvalidTransitionError",
            "ParallelGroupFailure",
            "PersistenceError",
            "RetryExhaustedError",
            "RunAlreadyFinalizedError",
            "RunCancelledError",
            "RunNotFoundError",
            "StepExecutionError",
            "TemplateNotFoundError",
            "TemplateValidationError",
        ],
    )
    def test_every_error_inherits_from_base(self, name: str) -> None:
        """Test that every error derives from AutomationError."""
        from process_pilot import exceptions

        assert issubclass(getattr(exceptions, name), exceptions.AutomationError)

    def test_can_be_raised(self) -> None:
        """Test raising the base error."""
        from process_pilot.exceptions import AutomationError

        with pytest.raises(AutomationError, match="boom"):
            raise AutomationError("boom")


@pytest.mark.unit
class TestMessages:
    """Tests for exception attributes and messages."""

    def test_template_not_found(self) -> None:
        """Test the template-not-found message and attributes."""
        from process_pilot.exceptions import TemplateNotFoundError

        assert str(TemplateNotFoundError("sync")) == "Workflow template 'sync' not found"
        error = TemplateNotFoundError("sync", 3)
        assert str(error) == "Workflow template 'sync' version '3' not found"
        assert (error.name, error.version) == ("sync", 3)

    def test_template_validation_joins_errors(self) -> None:
        """Test that validation errors are joined into one message."""
        from process_pilot.exceptions import TemplateValidationError

        error = TemplateValidationError(["a", "b"])

        assert error.errors == ["a", "b"]
        assert str(error) == "Invalid workflow template: a; b"

    def test_step_execution(self) -> None:
        """Test the required-step failure message."""
        from process_pilot.exceptions import StepExecutionError

        error = StepExecutionError("score", "rate limited")

        assert str(error) == 'Required step "score" failed: rate limited'
        assert error.step_name == "score"
        assert error.cause == "rate limited"

    def test_parallel_group_failure(self) -> None:
        """Test the parallel group failure message."""
        from process_pilot.exceptions import ParallelGroupFailure

        error = ParallelGroupFailure([("a", "x"), ("c", None)])

        assert str(error) == "Parallel step(s) failed: a, c"
        assert error.step_names == ["a", "c"]

    def test_retry_exhausted(self) -> None:
        """Test the retries-exhausted message."""
        from process_pilot.exceptions import RetryExhaustedError

        assert str(RetryExhaustedError(3, "boom")) == "Max retries (3) exceeded: boom"

    def test_persistence_error_with_cause(self) -> None:
        """Test persistence error messages with and without a cause."""
        from process_pilot.exceptions import PersistenceError

        cause = OSError("disk full")
        error = PersistenceError("save run", cause)

        assert str(error) == "Persistence operation 'save run' failed: disk full"
        assert error.cause is cause
        assert str(PersistenceError("load")) == "Persistence operation 'load' failed"

    def test_run_cancelled(self) -> None:
        """Test the run-cancelled message."""
        from uuid import uuid4

        from process_pilot.exceptions import RunCancelledError

        run_id = uuid4()
        error = RunCancelledError(run_id, "operator")

        assert str(error) == f"Workflow run '{run_id}' cancelled: operator"
        assert error.reason == "operator"

    def test_invalid_transition(self) -> None:
        """Test the invalid-transition message."""
        from process_pilot.exceptions import InvalidTransitionError

        error = InvalidTransitionError("completed", "running")

        assert str(error) == "Invalid run transition from 'completed' to 'running'"
