"""Process Pilot - Declarative workflow automation.

This package runs JSON-described workflow templates against pluggable
collaborators: a record store, text generation, notifications and webhooks.

Key Features:
    - Versioned templates with validation
    - Sequential, parallel and conditional execution
    - Automatic retries with exponential backoff
    - Failure alerts, stuck-run detection and run history
    - In-memory and SQLAlchemy persistence
    - Litestar plugin with a REST API

Example:
    >>> from process_pilot import InMemoryTemplateStore, Runner
    >>>
    >>> store = InMemoryTemplateStore(
    ...     {"nightly-digest": {"steps": [{"name": "wait", "kind": "delay", "delayMs": 10}]}}
    ... )
    >>> run = await Runner(store).execute_workflow("nightly-digest", "cron")
    >>> run.status
    <RunStatus.COMPLETED: 'completed'>
"""

from __future__ import annotations

from process_pilot.__metadata__ import __project__, __version__
from process_pilot.config import RunnerConfig
from process_pilot.core.definition import WorkflowTemplate
from process_pilot.core.models import StepResult, WorkflowRun
from process_pilot.core.types import RunStatus, StepKind, StepStatus
from process_pilot.engine.runner import Runner
from process_pilot.exceptions import (
    AutomationError,
    InvalidTransitionError,
    ParallelGroupFailure,
    PersistenceError,
    RetryExhaustedError,
    RunAlreadyFinalizedError,
    RunCancelledError,
    RunNotFoundError,
    StepExecutionError,
    TemplateNotFoundError,
    TemplateValidationError,
)
from process_pilot.plugin import AutomationPlugin, AutomationPluginConfig
from process_pilot.stores.memory import InMemoryRunRepository, InMemoryTemplateStore

__all__ = (
    "AutomationError",
    "AutomationPlugin",
    "AutomationPluginConfig",
    "InMemoryRunRepository",
    "InMemoryTemplateStore",
    "InvalidTransitionError",
    "ParallelGroupFailure",
    "PersistenceError",
    "RetryExhaustedError",
    "RunAlreadyFinalizedError",
    "RunCancelledError",
    "RunNotFoundError",
    "RunStatus",
    "Runner",
    "RunnerConfig",
    "StepExecutionError",
    "StepKind",
    "StepResult",
    "StepStatus",
    "TemplateNotFoundError",
    "TemplateValidationError",
    "WorkflowRun",
    "WorkflowTemplate",
    "__project__",
    "__version__",
)
