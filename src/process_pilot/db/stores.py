"""Database-backed template store and run repository.

Both classes open a short-lived session per operation from an
``async_sessionmaker`` and translate between the domain objects in
:mod:`process_pilot.core` and the SQLAlchemy models. Database errors surface
as :class:`~process_pilot.exceptions.PersistenceError`.
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import structlog
from advanced_alchemy.exceptions import RepositoryError
from sqlalchemy.exc import SQLAlchemyError

from process_pilot.core.context import RunContext
from process_pilot.core.definition import WorkflowTemplate, version_number
from process_pilot.core.models import ErrorRecord, StepResult, TemplateVersionInfo, WorkflowRun, utcnow
from process_pilot.core.types import LATEST
from process_pilot.db.models import (
    LATEST_VERSION_NUMBER,
    StepResultModel,
    WorkflowErrorModel,
    WorkflowRunModel,
    WorkflowTemplateModel,
)
from process_pilot.db.repositories import (
    StepResultRepository,
    WorkflowErrorRepository,
    WorkflowRunRepository,
    WorkflowTemplateRepository,
)
from process_pilot.exceptions import PersistenceError, RunNotFoundError, TemplateNotFoundError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

__all__ = ["SQLAlchemyRunRepository", "SQLAlchemyTemplateStore"]

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def _transaction(
    session_maker: async_sessionmaker[AsyncSession],
    operation: str,
) -> AsyncIterator[AsyncSession]:
    try:
        async with session_maker() as session, session.begin():
            yield session
    except (SQLAlchemyError, RepositoryError) as exc:
        raise PersistenceError(operation, exc) from exc


def _jsonable(value: Any) -> Any:
    """Coerce step data into plain JSON values; unknown types become strings."""
    return json.loads(json.dumps(value, default=str))


class SQLAlchemyTemplateStore:
    """Template store persisting documents in the ``workflow_templates`` table.

    Example:
        >>> store = SQLAlchemyTemplateStore(session_maker)
        >>> await store.save_latest("lead-intake", {"steps": [...]})
        >>> await store.create_version("lead-intake")
        1
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        """Initialize the store.

        Args:
            session_maker: Factory for database sessions.
        """
        self._session_maker = session_maker

    async def load(self, name: str, version: int | str | None = None) -> WorkflowTemplate:
        try:
            number = version_number(version)
        except ValueError:
            raise TemplateNotFoundError(name, version) from None

        async with _transaction(self._session_maker, "load template") as session:
            model = await WorkflowTemplateRepository(session=session).get_version(
                name, LATEST_VERSION_NUMBER if number is None else number
            )
            if model is None:
                raise TemplateNotFoundError(name, version)
            return _to_template(model)

    async def save_latest(self, name: str, document: Mapping[str, Any]) -> WorkflowTemplate:
        template = WorkflowTemplate.from_document(name, document, version=LATEST)
        stored = _jsonable(template.to_document())

        async with _transaction(self._session_maker, "save template") as session:
            repo = WorkflowTemplateRepository(session=session)
            model = await repo.get_version(name)
            if model is None:
                model = await repo.add(
                    WorkflowTemplateModel(
                        name=name,
                        version=LATEST_VERSION_NUMBER,
                        description=template.description,
                        document=stored,
                        step_count=len(template.steps),
                    )
                )
            else:
                model.description = template.description
                model.document = stored
                model.step_count = len(template.steps)
                await session.flush()
            saved = _to_template(model)

        logger.info("template_saved", template=name, steps=len(template.steps))
        return saved

    async def create_version(self, name: str) -> int:
        """Snapshot the latest document as the next numbered version.

        The unique ``(name, version)`` index rejects a concurrent writer that
        computed the same number; that writer gets a :class:`PersistenceError`.
        """
        async with _transaction(self._session_maker, "create template version") as session:
            repo = WorkflowTemplateRepository(session=session)
            latest = await repo.get_version(name)
            if latest is None:
                raise TemplateNotFoundError(name)
            number = await repo.max_version(name) + 1
            await repo.add(
                WorkflowTemplateModel(
                    name=name,
                    version=number,
                    description=latest.description,
                    document={**latest.document, "version": number},
                    step_count=latest.step_count,
                )
            )

        logger.info("template_version_created", template=name, version=number)
        return number

    async def list_versions(self, name: str) -> list[TemplateVersionInfo]:
        async with _transaction(self._session_maker, "list template versions") as session:
            models = await WorkflowTemplateRepository(session=session).list_for(name)
            if not models:
                raise TemplateNotFoundError(name)
            return [
                TemplateVersionInfo(
                    LATEST if model.version == LATEST_VERSION_NUMBER else model.version,
                    model.step_count,
                    model.created_at,
                )
                for model in models
            ]

    async def list_names(self) -> list[str]:
        async with _transaction(self._session_maker, "list templates") as session:
            names = await WorkflowTemplateRepository(session=session).list_names()
        return list(names)


class SQLAlchemyRunRepository:
    """Run repository persisting runs, step logs and error records.

    Saving is an upsert keyed by run id. The step log is append-only, so only
    entries beyond those already stored are inserted.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        """Initialize the repository.

        Args:
            session_maker: Factory for database sessions.
        """
        self._session_maker = session_maker

    async def save(self, run: WorkflowRun) -> None:
        async with _transaction(self._session_maker, f"save run {run.id}") as session:
            runs = WorkflowRunRepository(session=session)
            model = await runs.get_one_or_none(id=run.id)
            if model is None:
                await runs.add(
                    WorkflowRunModel(
                        id=run.id,
                        workflow_name=run.workflow_name,
                        trigger=run.trigger,
                        started_at=run.started_at,
                        input_data=_jsonable(run.input),
                        **_run_state(run),
                    )
                )
            else:
                for key, value in _run_state(run).items():
                    setattr(model, key, value)

            steps = StepResultRepository(session=session)
            stored = await steps.count_for_run(run.id)
            new_entries = [
                _to_step_model(run.id, position, result)
                for position, result in enumerate(run.steps)
                if position >= stored
            ]
            if new_entries:
                await steps.add_many(new_entries)

    async def get(self, run_id: UUID) -> WorkflowRun:
        async with _transaction(self._session_maker, f"load run {run_id}") as session:
            model = await WorkflowRunRepository(session=session).get_one_or_none(id=run_id)
            if model is None:
                raise RunNotFoundError(run_id)
            return _to_run(model)

    async def history(
        self,
        workflow_name: str | None = None,
        limit: int = 50,
        since: datetime | None = None,
    ) -> list[WorkflowRun]:
        async with _transaction(self._session_maker, "load run history") as session:
            models = await WorkflowRunRepository(session=session).find_history(workflow_name, limit, since)
            return [_to_run(model) for model in models]

    async def record_error(self, record: ErrorRecord) -> None:
        async with _transaction(self._session_maker, f"record error for run {record.run_id}") as session:
            await WorkflowErrorRepository(session=session).add(
                WorkflowErrorModel(
                    run_id=record.run_id,
                    workflow_name=record.workflow_name,
                    trigger=record.trigger,
                    error=record.error,
                    kind=record.kind,
                    retries=record.retries,
                    failed_steps=_jsonable(record.failed_steps),
                    occurred_at=record.occurred_at,
                )
            )

    async def errors(self, workflow_name: str | None = None, limit: int = 50) -> list[ErrorRecord]:
        async with _transaction(self._session_maker, "load error records") as session:
            models = await WorkflowErrorRepository(session=session).find_recent(workflow_name, limit)
            return [
                ErrorRecord(
                    run_id=model.run_id,
                    workflow_name=model.workflow_name,
                    trigger=model.trigger,
                    error=model.error,
                    kind=model.kind,
                    retries=model.retries,
                    failed_steps=list(model.failed_steps or []),
                    occurred_at=model.occurred_at,
                )
                for model in models
            ]


def _to_template(model: WorkflowTemplateModel) -> WorkflowTemplate:
    version: int | str = LATEST if model.version == LATEST_VERSION_NUMBER else model.version
    # stored documents were validated on the way in
    return WorkflowTemplate.from_document(
        model.name,
        model.document,
        version=version,
        created_at=model.created_at or utcnow(),
        validate=False,
    )


def _run_state(run: WorkflowRun) -> dict[str, Any]:
    """Columns that change over the lifetime of a run."""
    return {
        "version": None if run.version is None else str(run.version),
        "status": run.status,
        "context_data": _jsonable(run.context.to_dict()),
        "retries": run.retries,
        "completed_at": run.completed_at,
        "duration_ms": run.duration_ms,
        "error": run.error,
        "finalized": run.finalized,
    }


def _to_step_model(run_id: UUID, position: int, result: StepResult) -> StepResultModel:
    return StepResultModel(
        run_id=run_id,
        position=position,
        name=result.name,
        kind=result.kind,
        status=result.status,
        data=_jsonable(result.data),
        error=result.error,
        duration_ms=result.duration_ms,
        branch=result.branch,
        required=result.required,
        started_at=result.started_at,
    )


def _to_run(model: WorkflowRunModel) -> WorkflowRun:
    version: int | str | None = model.version
    if version is not None and version.isdigit():
        version = int(version)
    return WorkflowRun(
        workflow_name=model.workflow_name,
        trigger=model.trigger,
        id=model.id,
        version=version,
        status=model.status,
        context=RunContext(model.context_data or {}),
        input=dict(model.input_data or {}),
        steps=[
            StepResult(
                name=step.name,
                kind=step.kind,
                status=step.status,
                data=step.data,
                error=step.error,
                duration_ms=step.duration_ms,
                branch=step.branch,
                required=step.required,
                started_at=step.started_at,
            )
            for step in sorted(model.step_results, key=lambda step: step.position)
        ],
        retries=model.retries,
        started_at=model.started_at,
        completed_at=model.completed_at,
        duration_ms=model.duration_ms,
        error=model.error,
        finalized=model.finalized,
    )
