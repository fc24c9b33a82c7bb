"""Core domain module for process-pilot.

This module exports the building blocks shared by every other layer: types,
templates and step specs, the run model, the run context and the collaborator
protocols.
"""

from __future__ import annotations

from process_pilot.core.conditions import OPERATORS, evaluate_condition, select_branch
from process_pilot.core.context import RunContext, resolve_fields, resolve_template
from process_pilot.core.definition import (
    STEP_TYPES,
    AiClassifyStep,
    AiGenerateStep,
    Condition,
    ConditionStep,
    CreateRecordStep,
    DelayStep,
    FetchRecordsStep,
    NotifyStep,
    StepSpec,
    UpdateRecordStep,
    WebhookStep,
    WorkflowTemplate,
    parse_delay,
    parse_step,
)
from process_pilot.core.models import (
    ErrorRecord,
    StepResult,
    TemplateVersionInfo,
    WebhookResponse,
    WorkflowRun,
)
from process_pilot.core.protocols import (
    Clock,
    Notifier,
    RecordStore,
    RunRepository,
    StepHandler,
    TemplateStore,
    TextGenerator,
    WebhookClient,
)
from process_pilot.core.signals import CancellationToken
from process_pilot.core.types import LATEST, ContextData, ErrorKind, RunStatus, StepKind, StepStatus, VersionRef

__all__ = [
    "LATEST",
    "OPERATORS",
    "STEP_TYPES",
    "AiClassifyStep",
    "AiGenerateStep",
    "CancellationToken",
    "Clock",
    "Condition",
    "ConditionStep",
    "ContextData",
    "CreateRecordStep",
    "DelayStep",
    "ErrorKind",
    "ErrorRecord",
    "FetchRecordsStep",
    "Notifier",
    "NotifyStep",
    "RecordStore",
    "RunContext",
    "RunRepository",
    "RunStatus",
    "StepHandler",
    "StepKind",
    "StepResult",
    "StepSpec",
    "StepStatus",
    "TemplateStore",
    "TemplateVersionInfo",
    "TextGenerator",
    "UpdateRecordStep",
    "VersionRef",
    "WebhookClient",
    "WebhookResponse",
    "WebhookStep",
    "WorkflowRun",
    "WorkflowTemplate",
    "evaluate_condition",
    "parse_delay",
    "parse_step",
    "resolve_fields",
    "resolve_template",
    "select_branch",
]
