"""Database persistence layer.

This module provides SQLAlchemy models, advanced-alchemy repositories and the
database-backed template store and run repository.

Example:
    >>> from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
    >>> from process_pilot.db import SQLAlchemyRunRepository, SQLAlchemyTemplateStore
    >>> engine = create_async_engine("sqlite+aiosqlite:///automation.db")
    >>> session_maker = async_sessionmaker(engine, expire_on_commit=False)
    >>> templates = SQLAlchemyTemplateStore(session_maker)
    >>> runs = SQLAlchemyRunRepository(session_maker)
"""

from __future__ import annotations

from process_pilot.db.models import (
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
from process_pilot.db.stores import SQLAlchemyRunRepository, SQLAlchemyTemplateStore

__all__ = [
    "SQLAlchemyRunRepository",
    "SQLAlchemyTemplateStore",
    "StepResultModel",
    "StepResultRepository",
    "WorkflowErrorModel",
    "WorkflowErrorRepository",
    "WorkflowRunModel",
    "WorkflowRunRepository",
    "WorkflowTemplateModel",
    "WorkflowTemplateRepository",
]
