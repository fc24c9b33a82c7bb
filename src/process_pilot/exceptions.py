"""Exception hierarchy for process-pilot."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

__all__ = (
    "AutomationError",
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
)


class AutomationError(Exception):
    """Base exception for all process-pilot errors.

    Every exception raised by the engine, the stores and the step handlers
    inherits from this class so callers can catch them with a single clause.
    """


class TemplateNotFoundError(AutomationError):
    """Raised when a workflow template (or one of its versions) does not exist.

    The runner treats this as an immediate run failure: no step executes.

    Attributes:
        name: The template name that was requested.
        version: The version that was requested, if any.
    """

    def __init__(self, name: str, version: int | str | None = None) -> None:
        """Initialize the exception with template details.

        Args:
            name: The template name that was requested.
            version: The version that was requested, if any.
        """
        self.name = name
        self.version = version
        msg = f"Workflow template '{name}'"
        if version is not None:
            msg += f" version '{version}'"
        msg += " not found"
        super().__init__(msg)


class TemplateValidationError(AutomationError):
    """Raised when a template document is malformed or structurally invalid.

    Attributes:
        errors: List of validation problems found.
    """

    def __init__(self, errors: Sequence[str]) -> None:
        """Initialize the exception with the validation problems.

        Args:
            errors: List of validation problems found.
        """
        self.errors = list(errors)
        super().__init__(f"Invalid workflow template: {'; '.join(self.errors)}")


class RunNotFoundError(AutomationError):
    """Raised when a run id is unknown to the run repository.

    Attributes:
        run_id: The id that was looked up.
    """

    def __init__(self, run_id: str | UUID) -> None:
        self.run_id = run_id
        super().__init__(f"Workflow run '{run_id}' not found")


class StepExecutionError(AutomationError):
    """Raised when a required step fails and the walk has to stop.

    Attributes:
        step_name: Name of the step that failed.
        cause: Error message reported by the step.
    """

    def __init__(self, step_name: str, cause: str | None) -> None:
        """Initialize the exception with step details.

        Args:
            step_name: Name of the step that failed.
            cause: Error message reported by the step.
        """
        self.step_name = step_name
        self.cause = cause
        super().__init__(f'Required step "{step_name}" failed: {cause}')


class ParallelGroupFailure(AutomationError):
    """Raised after a parallel group joins when one or more required members failed.

    Attributes:
        failures: ``(step_name, error)`` pairs for every failed required member,
            in declared order.
    """

    def __init__(self, failures: Sequence[tuple[str, str | None]]) -> None:
        """Initialize the exception with the failed members.

        Args:
            failures: ``(step_name, error)`` pairs in declared order.
        """
        self.failures = list(failures)
        super().__init__(f"Parallel step(s) failed: {', '.join(name for name, _ in self.failures)}")

    @property
    def step_names(self) -> list[str]:
        """Names of the failed members."""
        return [name for name, _ in self.failures]


class RetryExhaustedError(AutomationError):
    """Raised when a run keeps failing after all allowed retries.

    Attributes:
        max_retries: Retry budget declared by the template.
        last_error: Error message of the final attempt.
    """

    def __init__(self, max_retries: int, last_error: str | None) -> None:
        self.max_retries = max_retries
        self.last_error = last_error
        super().__init__(f"Max retries ({max_retries}) exceeded: {last_error}")


class PersistenceError(AutomationError):
    """Raised when a store cannot write or read a record.

    The runner logs these and never lets them change a run's outcome.

    Attributes:
        operation: The store operation that failed.
        cause: The underlying exception, if any.
    """

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        self.operation = operation
        self.cause = cause
        msg = f"Persistence operation '{operation}' failed"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)


class RunCancelledError(AutomationError):
    """Raised at a step boundary when a run's cancellation token has fired.

    Attributes:
        run_id: The cancelled run.
        reason: Why the run was cancelled.
    """

    def __init__(self, run_id: str | UUID, reason: str) -> None:
        self.run_id = run_id
        self.reason = reason
        super().__init__(f"Workflow run '{run_id}' cancelled: {reason}")


class InvalidTransitionError(AutomationError):
    """Raised when a run status change is not allowed by the lifecycle.

    Attributes:
        from_status: Current status.
        to_status: Requested status.
    """

    def __init__(self, from_status: str, to_status: str) -> None:
        """Initialize the exception with transition details.

        Args:
            from_status: Current status.
            to_status: Requested status.
        """
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Invalid run transition from '{from_status}' to '{to_status}'")


class RunAlreadyFinalizedError(AutomationError):
    """Raised when something tries to mutate a run that has been finalized.

    Attributes:
        run_id: The finalized run.
    """

    def __init__(self, run_id: str | UUID) -> None:
        self.run_id = run_id
        super().__init__(f"Workflow run '{run_id}' is finalized and can no longer change")
