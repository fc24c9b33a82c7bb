"""REST API controllers for workflow automation.

This module provides two controller classes:
- TemplateController: Read, save and version template documents
- RunController: Start, inspect, replay and cancel workflow runs
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, ClassVar
from uuid import UUID

from litestar import Controller, get, post, put
from litestar.exceptions import NotFoundException, ValidationException
from litestar.params import Dependency, Parameter

from process_pilot.core.protocols import TemplateStore  # noqa: TC001 - needed for DI
from process_pilot.engine.runner import Runner  # noqa: TC001 - needed for DI
from process_pilot.exceptions import RunNotFoundError, TemplateNotFoundError, TemplateValidationError
from process_pilot.web.dto import (
    CancelRunDTO,
    StartRunDTO,
    TemplateDTO,
    TemplateVersionDTO,
    WorkflowMetricsDTO,
    WorkflowPerformanceDTO,
    WorkflowRunDetailDTO,
    WorkflowRunDTO,
)

__all__ = ["RunController", "TemplateController"]


class TemplateController(Controller):
    """API controller for template documents.

    Tags: Templates
    """

    path = "/templates"
    tags: ClassVar[list[str]] = ["Templates"]

    @get("/")
    async def list_templates(
        self,
        template_store: TemplateStore = Dependency(skip_validation=True),
    ) -> list[str]:
        """List the names of all stored templates."""
        return await template_store.list_names()

    @get("/{name:str}")
    async def get_template(
        self,
        name: str,
        template_store: TemplateStore = Dependency(skip_validation=True),
        version: str | None = Parameter(
            default=None,
            description="Version number to retrieve. If omitted, returns latest.",
        ),
    ) -> TemplateDTO:
        """Get a template document.

        Args:
            name: The template name.
            template_store: Injected template store.
            version: Optional version number.

        Returns:
            Template DTO.

        Raises:
            NotFoundException: If the template or version does not exist.
        """
        try:
            template = await template_store.load(name, version)
        except TemplateNotFoundError as e:
            raise NotFoundException(detail=str(e)) from e
        return TemplateDTO.from_template(template)

    @put("/{name:str}")
    async def save_template(
        self,
        name: str,
        data: dict[str, Any],
        template_store: TemplateStore = Dependency(skip_validation=True),
    ) -> TemplateDTO:
        """Replace the latest document of a template.

        Args:
            name: The template name.
            data: The template document.
            template_store: Injected template store.

        Returns:
            Template DTO of the saved document.

        Raises:
            ValidationException: If the document is invalid.
        """
        try:
            template = await template_store.save_latest(name, data)
        except TemplateValidationError as e:
            raise ValidationException(detail="Invalid template document", extra=e.errors) from e
        return TemplateDTO.from_template(template)

    @get("/{name:str}/versions")
    async def list_versions(
        self,
        name: str,
        template_store: TemplateStore = Dependency(skip_validation=True),
    ) -> list[TemplateVersionDTO]:
        """List the versions of a template, latest first.

        Raises:
            NotFoundException: If the template does not exist.
        """
        try:
            versions = await template_store.list_versions(name)
        except TemplateNotFoundError as e:
            raise NotFoundException(detail=str(e)) from e
        return [TemplateVersionDTO.from_info(info) for info in versions]

    @post("/{name:str}/versions")
    async def create_version(
        self,
        name: str,
        template_store: TemplateStore = Dependency(skip_validation=True),
    ) -> dict[str, int]:
        """Snapshot the latest document as the next numbered version.

        Raises:
            NotFoundException: If the template has no latest document.
        """
        try:
            number = await template_store.create_version(name)
        except TemplateNotFoundError as e:
            raise NotFoundException(detail=str(e)) from e
        return {"version": number}


class RunController(Controller):
    """API controller for workflow runs.

    Tags: Runs
    """

    path = "/runs"
    tags: ClassVar[list[str]] = ["Runs"]

    @post("/", dto=None, return_dto=None)
    async def start_run(
        self,
        data: StartRunDTO,
        automation_runner: Runner,
    ) -> WorkflowRunDetailDTO:
        """Execute a workflow and return the finalized run.

        Step failures and unknown templates are reported in the returned run,
        not as HTTP errors.

        Args:
            data: Run start parameters.
            automation_runner: Injected runner.

        Returns:
            Detailed run DTO.
        """
        run = await automation_runner.execute_workflow(
            data.workflow_name,
            data.trigger,
            data.context or {},
            data.version,
        )
        return WorkflowRunDetailDTO.from_run(run)

    @get("/")
    async def list_runs(
        self,
        automation_runner: Runner,
        workflow_name: str | None = Parameter(
            default=None,
            description="Filter by workflow name",
        ),
        limit: int = Parameter(
            default=50,
            ge=1,
            le=500,
            description="Maximum number of results",
        ),
    ) -> list[WorkflowRunDTO]:
        """List stored runs, newest first."""
        runs = await automation_runner.history(workflow_name, limit)
        return [WorkflowRunDTO.from_run(run) for run in runs]

    @get("/active")
    async def list_active_runs(self, automation_runner: Runner) -> list[WorkflowRunDTO]:
        """List the runs currently in flight."""
        return [WorkflowRunDTO.from_run(run) for run in automation_runner.active_runs()]

    @get("/metrics")
    async def get_metrics(
        self,
        automation_runner: Runner,
        workflow_name: str | None = Parameter(
            default=None,
            description="Restrict to one workflow",
        ),
    ) -> list[WorkflowMetricsDTO]:
        """Per-workflow outcome counters of this process."""
        return [
            WorkflowMetricsDTO.from_metrics(name, metrics)
            for name, metrics in sorted(automation_runner.metrics(workflow_name).items())
        ]

    @get("/performance")
    async def get_performance(
        self,
        automation_runner: Runner,
        days: int = Parameter(
            default=7,
            ge=1,
            le=90,
            description="History window in days",
        ),
    ) -> list[WorkflowPerformanceDTO]:
        """Review stored runs of the last ``days`` days, most problematic workflows first."""
        analysis = await automation_runner.analyze_performance(timedelta(days=days))
        return [WorkflowPerformanceDTO.from_performance(entry) for entry in analysis]

    @get("/{run_id:uuid}")
    async def get_run(self, run_id: UUID, automation_runner: Runner) -> WorkflowRunDetailDTO:
        """Get a run with its context and step log.

        Raises:
            NotFoundException: If the run is unknown.
        """
        try:
            run = await automation_runner.get_run(run_id)
        except RunNotFoundError as e:
            raise NotFoundException(detail=str(e)) from e
        return WorkflowRunDetailDTO.from_run(run)

    @post("/{run_id:uuid}/replay")
    async def replay_run(self, run_id: UUID, automation_runner: Runner) -> WorkflowRunDetailDTO:
        """Execute a stored run again as a new run.

        Raises:
            NotFoundException: If the run is unknown.
        """
        try:
            run = await automation_runner.replay(run_id)
        except RunNotFoundError as e:
            raise NotFoundException(detail=str(e)) from e
        return WorkflowRunDetailDTO.from_run(run)

    @post("/{run_id:uuid}/cancel", status_code=202)
    async def cancel_run(
        self,
        run_id: UUID,
        automation_runner: Runner,
        data: CancelRunDTO | None = None,
    ) -> dict[str, bool]:
        """Ask an in-flight run to stop at its next step boundary.

        Raises:
            NotFoundException: If the run is not in flight.
        """
        reason = data.reason if data is not None else CancelRunDTO().reason
        if not automation_runner.cancel(run_id, reason):
            raise NotFoundException(detail=f"Run {run_id} is not in flight")
        return {"cancelled": True}
