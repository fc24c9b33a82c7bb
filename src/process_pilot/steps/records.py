"""Record store steps."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from process_pilot.core.context import resolve_fields, resolve_template
from process_pilot.core.definition import CreateRecordStep, FetchRecordsStep, UpdateRecordStep
from process_pilot.core.types import StepKind
from process_pilot.steps.base import BaseStepHandler

if TYPE_CHECKING:
    from process_pilot.core.context import RunContext

__all__ = ["CreateRecordHandler", "FetchRecordsHandler", "UpdateRecordHandler"]


class FetchRecordsHandler(BaseStepHandler[FetchRecordsStep]):
    """Query a table. The filter expression may contain placeholders."""

    kind: ClassVar[StepKind] = StepKind.FETCH_RECORDS

    async def run(self, step: FetchRecordsStep, context: RunContext) -> Any:
        store = self.services.require("record_store")
        return await store.fetch(step.table, resolve_template(step.filter or "", context))


class CreateRecordHandler(BaseStepHandler[CreateRecordStep]):
    """Create a record from interpolated fields."""

    kind: ClassVar[StepKind] = StepKind.CREATE_RECORD

    async def run(self, step: CreateRecordStep, context: RunContext) -> Any:
        store = self.services.require("record_store")
        return await store.create(step.table, resolve_fields(step.fields, context))


class UpdateRecordHandler(BaseStepHandler[UpdateRecordStep]):
    """Update a record by id.

    The id comes from the step's ``recordId`` (placeholders allowed) or, when the
    step declares none, from the context's ``recordId`` key.
    """

    kind: ClassVar[StepKind] = StepKind.UPDATE_RECORD

    async def run(self, step: UpdateRecordStep, context: RunContext) -> Any:
        store = self.services.require("record_store")
        record_id = resolve_template(step.record_id, context) if step.record_id else context.get("recordId")
        if not record_id:
            msg = f"No record id for update of table '{step.table}'"
            raise ValueError(msg)
        return await store.update(step.table, str(record_id), resolve_fields(step.fields, context))
