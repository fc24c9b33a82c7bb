"""Collaborator protocols for process-pilot.

The engine performs I/O only through these narrow interfaces. Concrete
implementations live in :mod:`process_pilot.integrations`,
:mod:`process_pilot.stores` and :mod:`process_pilot.db`; tests supply fakes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import datetime
    from uuid import UUID

    from process_pilot.core.context import RunContext
    from process_pilot.core.definition import StepSpec, WorkflowTemplate
    from process_pilot.core.models import (
        ErrorRecord,
        StepResult,
        TemplateVersionInfo,
        WebhookResponse,
        WorkflowRun,
    )
    from process_pilot.core.types import StepKind

__all__ = [
    "Clock",
    "Notifier",
    "RecordStore",
    "RunRepository",
    "StepHandler",
    "TemplateStore",
    "TextGenerator",
    "WebhookClient",
]


@runtime_checkable
class RecordStore(Protocol):
    """Table-oriented record storage (a CRM, a spreadsheet backend, a database)."""

    async def fetch(self, table: str, filter: str) -> list[dict[str, Any]]:
        """Return the records of ``table`` matching ``filter``."""
        ...

    async def create(self, table: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Create a record and return it."""
        ...

    async def update(self, table: str, record_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Update the record ``record_id`` and return it."""
        ...


@runtime_checkable
class TextGenerator(Protocol):
    """An AI text generation back-end."""

    async def generate_text(self, prompt: str, *, model: str, max_tokens: int) -> str:
        """Generate free text for ``prompt``."""
        ...

    async def generate_json(self, prompt: str, *, model: str, max_tokens: int) -> Any:
        """Generate a structured (JSON-decoded) answer for ``prompt``."""
        ...


@runtime_checkable
class Notifier(Protocol):
    """Outbound notification channel.

    Used by ``notify`` steps as well as for failure and stuck-run alerts.
    """

    async def send(self, subject: str, html: str) -> None:
        """Deliver a notification."""
        ...


@runtime_checkable
class WebhookClient(Protocol):
    """Outbound HTTP caller used by ``webhook`` steps."""

    async def call(
        self,
        url: str,
        method: str,
        payload: Mapping[str, Any],
        headers: Mapping[str, str],
    ) -> WebhookResponse:
        """Send ``payload`` as JSON and return the status code and decoded body."""
        ...


@runtime_checkable
class Clock(Protocol):
    """Source of time for delays, backoff waits and timestamps."""

    async def sleep(self, duration_ms: int) -> None:
        """Suspend the caller for ``duration_ms`` milliseconds."""
        ...

    def now(self) -> datetime:
        """Return the current aware UTC time."""
        ...


@runtime_checkable
class TemplateStore(Protocol):
    """Versioned storage of workflow templates keyed by ``(name, version)``.

    ``"latest"`` is a separately mutable document; numbered versions are
    append-only snapshots of it.
    """

    async def load(self, name: str, version: int | str | None = None) -> WorkflowTemplate:
        """Load a template. ``None`` and ``"latest"`` are equivalent.

        Raises:
            TemplateNotFoundError: If the name or version does not exist.
        """
        ...

    async def save_latest(self, name: str, document: Mapping[str, Any]) -> WorkflowTemplate:
        """Validate ``document`` and store it as the latest version of ``name``."""
        ...

    async def create_version(self, name: str) -> int:
        """Snapshot the latest document into the next numbered version.

        Raises:
            TemplateNotFoundError: If ``name`` has no latest document.
        """
        ...

    async def list_versions(self, name: str) -> list[TemplateVersionInfo]:
        """List versions: ``"latest"`` first, then numbered versions newest first."""
        ...

    async def list_names(self) -> list[str]:
        """List all template names."""
        ...


@runtime_checkable
class RunRepository(Protocol):
    """Persistent history of workflow runs and error records."""

    async def save(self, run: WorkflowRun) -> None:
        """Insert or update the stored snapshot of ``run``.

        Raises:
            PersistenceError: If the write fails.
        """
        ...

    async def get(self, run_id: UUID) -> WorkflowRun:
        """Return the stored snapshot of a run.

        Raises:
            RunNotFoundError: If the id is unknown.
        """
        ...

    async def history(
        self,
        workflow_name: str | None = None,
        limit: int = 50,
        since: datetime | None = None,
    ) -> Sequence[WorkflowRun]:
        """Return stored runs newest first."""
        ...

    async def record_error(self, record: ErrorRecord) -> None:
        """Persist an error record."""
        ...

    async def errors(self, workflow_name: str | None = None, limit: int = 50) -> Sequence[ErrorRecord]:
        """Return error records newest first."""
        ...


@runtime_checkable
class StepHandler(Protocol):
    """Executes one kind of step.

    Handlers never raise: any failure is reported as a failed
    :class:`~process_pilot.core.models.StepResult`.
    """

    kind: StepKind

    async def execute(self, step: StepSpec, context: RunContext) -> StepResult:
        """Run ``step`` against the run context and report the outcome."""
        ...
