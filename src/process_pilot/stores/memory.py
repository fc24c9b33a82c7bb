"""In-memory template store and run repository.

Suitable for tests, development and single-process deployments that do not
need history across restarts. Both classes hand out copies, so callers can
never mutate what is stored.
"""

from __future__ import annotations

import asyncio
import copy
from typing import TYPE_CHECKING, Any

import structlog

from process_pilot.core.definition import WorkflowTemplate, version_number
from process_pilot.core.models import TemplateVersionInfo, utcnow
from process_pilot.core.types import LATEST
from process_pilot.exceptions import RunNotFoundError, TemplateNotFoundError

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime
    from uuid import UUID

    from process_pilot.core.models import ErrorRecord, WorkflowRun

__all__ = ["InMemoryRunRepository", "InMemoryTemplateStore"]

logger = structlog.get_logger(__name__)


class InMemoryTemplateStore:
    """Versioned template store held in dictionaries.

    Attributes:
        _latest: Latest document per template name.
        _versions: Nested dict mapping name -> version number -> template.
    """

    def __init__(self, documents: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        """Initialize the store.

        Args:
            documents: Initial latest documents keyed by template name.

        Raises:
            TemplateValidationError: If a document is invalid.
        """
        self._latest: dict[str, WorkflowTemplate] = {}
        self._versions: dict[str, dict[int, WorkflowTemplate]] = {}
        self._lock = asyncio.Lock()
        for name, document in (documents or {}).items():
            self._latest[name] = WorkflowTemplate.from_document(name, document, version=LATEST, created_at=utcnow())

    async def load(self, name: str, version: int | str | None = None) -> WorkflowTemplate:
        try:
            number = version_number(version)
        except ValueError:
            raise TemplateNotFoundError(name, version) from None
        template = self._latest.get(name) if number is None else self._versions.get(name, {}).get(number)
        if template is None:
            raise TemplateNotFoundError(name, version)
        return template

    async def save_latest(self, name: str, document: Mapping[str, Any]) -> WorkflowTemplate:
        template = WorkflowTemplate.from_document(name, document, version=LATEST, created_at=utcnow())
        async with self._lock:
            self._latest[name] = template
        logger.info("template_saved", template=name, steps=len(template.steps))
        return template

    async def create_version(self, name: str) -> int:
        async with self._lock:
            latest = self._latest.get(name)
            if latest is None:
                raise TemplateNotFoundError(name)
            versions = self._versions.setdefault(name, {})
            number = max(versions, default=0) + 1
            versions[number] = latest.with_version(number, utcnow())
        logger.info("template_version_created", template=name, version=number)
        return number

    async def list_versions(self, name: str) -> list[TemplateVersionInfo]:
        latest = self._latest.get(name)
        versions = self._versions.get(name, {})
        if latest is None and not versions:
            raise TemplateNotFoundError(name)
        entries: list[TemplateVersionInfo] = []
        if latest is not None:
            entries.append(TemplateVersionInfo(LATEST, len(latest.steps), latest.created_at))
        entries.extend(
            TemplateVersionInfo(number, len(versions[number].steps), versions[number].created_at)
            for number in sorted(versions, reverse=True)
        )
        return entries

    async def list_names(self) -> list[str]:
        return sorted(set(self._latest) | set(self._versions))


class InMemoryRunRepository:
    """Run history held in a dictionary keyed by run id.

    ``save`` stores a deep copy, so a run that keeps changing after being saved
    (or a replay of it) never alters the stored record.
    """

    def __init__(self) -> None:
        self._runs: dict[UUID, WorkflowRun] = {}
        self._errors: list[ErrorRecord] = []

    async def save(self, run: WorkflowRun) -> None:
        self._runs[run.id] = copy.deepcopy(run)

    async def get(self, run_id: UUID) -> WorkflowRun:
        run = self._runs.get(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return copy.deepcopy(run)

    async def history(
        self,
        workflow_name: str | None = None,
        limit: int = 50,
        since: datetime | None = None,
    ) -> list[WorkflowRun]:
        # insertion order breaks ties between runs started at the same instant
        matching = [
            (run.started_at, position, run)
            for position, run in enumerate(self._runs.values())
            if (workflow_name is None or run.workflow_name == workflow_name)
            and (since is None or run.started_at >= since)
        ]
        matching.sort(key=lambda entry: entry[:2], reverse=True)
        return [copy.deepcopy(run) for _, _, run in matching[:limit]]

    async def record_error(self, record: ErrorRecord) -> None:
        self._errors.append(copy.deepcopy(record))

    async def errors(self, workflow_name: str | None = None, limit: int = 50) -> list[ErrorRecord]:
        matching = [
            (record.occurred_at, position, record)
            for position, record in enumerate(self._errors)
            if workflow_name is None or record.workflow_name == workflow_name
        ]
        matching.sort(key=lambda entry: entry[:2], reverse=True)
        return [copy.deepcopy(record) for _, _, record in matching[:limit]]
