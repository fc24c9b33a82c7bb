"""REST API for templates and runs.

The controllers are mounted automatically by
:class:`~process_pilot.plugin.AutomationPlugin` with ``enable_api=True`` (the
default) under ``/automation``.

Example:
    Basic usage::

        from litestar import Litestar
        from process_pilot import AutomationPlugin, AutomationPluginConfig

        app = Litestar(plugins=[AutomationPlugin(config=AutomationPluginConfig())])

    With authentication guards::

        config = AutomationPluginConfig(
            api_path_prefix="/api/v1/automation",
            api_guards=[require_auth_guard],
        )
"""

from __future__ import annotations

from process_pilot.web.controllers import RunController, TemplateController
from process_pilot.web.dto import (
    CancelRunDTO,
    StartRunDTO,
    StepResultDTO,
    TemplateDTO,
    TemplateVersionDTO,
    WorkflowMetricsDTO,
    WorkflowPerformanceDTO,
    WorkflowRunDetailDTO,
    WorkflowRunDTO,
)

__all__ = [
    "CancelRunDTO",
    "RunController",
    "StartRunDTO",
    "StepResultDTO",
    "TemplateController",
    "TemplateDTO",
    "TemplateVersionDTO",
    "WorkflowMetricsDTO",
    "WorkflowPerformanceDTO",
    "WorkflowRunDTO",
    "WorkflowRunDetailDTO",
]
