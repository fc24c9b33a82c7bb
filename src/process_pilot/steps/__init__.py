"""Built-in step handlers for process-pilot."""

from __future__ import annotations

from process_pilot.steps.ai import AiClassifyHandler, AiGenerateHandler
from process_pilot.steps.base import BaseStepHandler, StepServices
from process_pilot.steps.gateway import ConditionHandler
from process_pilot.steps.notify import NotifyHandler
from process_pilot.steps.records import CreateRecordHandler, FetchRecordsHandler, UpdateRecordHandler
from process_pilot.steps.timer import DelayHandler
from process_pilot.steps.webhook import WebhookHandler

__all__ = [
    "DEFAULT_HANDLERS",
    "AiClassifyHandler",
    "AiGenerateHandler",
    "BaseStepHandler",
    "ConditionHandler",
    "CreateRecordHandler",
    "DelayHandler",
    "FetchRecordsHandler",
    "NotifyHandler",
    "StepServices",
    "UpdateRecordHandler",
    "WebhookHandler",
]

DEFAULT_HANDLERS: tuple[type[BaseStepHandler], ...] = (
    FetchRecordsHandler,
    CreateRecordHandler,
    UpdateRecordHandler,
    AiClassifyHandler,
    AiGenerateHandler,
    ConditionHandler,
    WebhookHandler,
    NotifyHandler,
    DelayHandler,
)
"""One handler class per step kind."""
