"""Repository implementations for template and run persistence.

This module provides async repositories for the automation models using
advanced-alchemy's repository pattern.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from advanced_alchemy.filters import LimitOffset, OrderBy
from advanced_alchemy.repository import SQLAlchemyAsyncRepository
from sqlalchemy import and_, func, select

from process_pilot.db.models import (
    LATEST_VERSION_NUMBER,
    StepResultModel,
    WorkflowErrorModel,
    WorkflowRunModel,
    WorkflowTemplateModel,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime
    from uuid import UUID

__all__ = [
    "StepResultRepository",
    "WorkflowErrorRepository",
    "WorkflowRunRepository",
    "WorkflowTemplateRepository",
]


class WorkflowTemplateRepository(SQLAlchemyAsyncRepository[WorkflowTemplateModel]):
    """Repository for template documents and their numbered versions."""

    model_type = WorkflowTemplateModel

    async def get_version(self, name: str, version: int = LATEST_VERSION_NUMBER) -> WorkflowTemplateModel | None:
        """Get one stored document.

        Args:
            name: The template name.
            version: The version number, ``0`` for the latest document.

        Returns:
            The stored document or None if not found.
        """
        stmt = select(WorkflowTemplateModel).where(
            and_(WorkflowTemplateModel.name == name, WorkflowTemplateModel.version == version)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def max_version(self, name: str) -> int:
        """Return the highest numbered version of a template, or 0 if none exist."""
        stmt = select(func.max(WorkflowTemplateModel.version)).where(WorkflowTemplateModel.name == name)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() or 0

    async def list_for(self, name: str) -> Sequence[WorkflowTemplateModel]:
        """List every stored document of a template, latest first, then newest version first."""
        stmt = (
            select(WorkflowTemplateModel)
            .where(WorkflowTemplateModel.name == name)
            .order_by((WorkflowTemplateModel.version == LATEST_VERSION_NUMBER).desc(), WorkflowTemplateModel.version.desc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_names(self) -> Sequence[str]:
        """List the distinct template names, sorted."""
        stmt = select(WorkflowTemplateModel.name).distinct().order_by(WorkflowTemplateModel.name)
        result = await self.session.execute(stmt)
        return result.scalars().all()


class WorkflowRunRepository(SQLAlchemyAsyncRepository[WorkflowRunModel]):
    """Repository for stored run snapshots."""

    model_type = WorkflowRunModel

    async def find_history(
        self,
        workflow_name: str | None = None,
        limit: int = 50,
        since: datetime | None = None,
    ) -> Sequence[WorkflowRunModel]:
        """Find stored runs, newest first.

        Args:
            workflow_name: Only runs of this template.
            limit: Maximum number of runs to return.
            since: Only runs started at or after this instant.

        Returns:
            The matching runs with their step logs loaded.
        """
        conditions = []
        if workflow_name is not None:
            conditions.append(WorkflowRunModel.workflow_name == workflow_name)
        if since is not None:
            conditions.append(WorkflowRunModel.started_at >= since)

        stmt = select(WorkflowRunModel)
        if conditions:
            stmt = stmt.where(and_(*conditions))
        stmt = stmt.order_by(WorkflowRunModel.started_at.desc(), WorkflowRunModel.created_at.desc()).limit(limit)

        result = await self.session.execute(stmt)
        return result.scalars().all()


class StepResultRepository(SQLAlchemyAsyncRepository[StepResultModel]):
    """Repository for step log entries."""

    model_type = StepResultModel

    async def count_for_run(self, run_id: UUID) -> int:
        """Return how many step log entries are stored for a run."""
        stmt = select(func.count()).select_from(StepResultModel).where(StepResultModel.run_id == run_id)
        result = await self.session.execute(stmt)
        return result.scalar_one()


class WorkflowErrorRepository(SQLAlchemyAsyncRepository[WorkflowErrorModel]):
    """Repository for error records."""

    model_type = WorkflowErrorModel

    async def find_recent(self, workflow_name: str | None = None, limit: int = 50) -> Sequence[WorkflowErrorModel]:
        """Find error records, newest first.

        Args:
            workflow_name: Only records of this template.
            limit: Maximum number of records to return.

        Returns:
            The matching error records.
        """
        filters = [LimitOffset(limit=limit, offset=0), OrderBy(field_name="occurred_at", sort_order="desc")]
        if workflow_name is not None:
            return await self.list(*filters, workflow_name=workflow_name)
        return await self.list(*filters)
