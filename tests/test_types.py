"""Tests for run status types and the run lifecycle."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

START = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


@pytest.mark.unit
class TestEnums:
    """Tests for the string enums."""

    def test_values_are_strings(self) -> None:
        """Test that enum values are plain strings."""
        from process_pilot.core.types import RunStatus, StepKind

        assert RunStatus.COMPLETED == "completed"
        assert str(StepKind.AI_CLASSIFY) == "ai_classify"
        assert StepKind("fetch_records") is StepKind.FETCH_RECORDS

    def test_in_flight(self) -> None:
        """Test which statuses count as in flight."""
        from process_pilot.core.types import RunStatus

        assert {status for status in RunStatus if status.in_flight} == {RunStatus.RUNNING, RunStatus.RETRYING}


@pytest.mark.unit
class TestWorkflowRunLifecycle:
    """Tests for WorkflowRun status transitions."""

    @pytest.mark.parametrize(
        ("path", "allowed"),
        [
            (["running", "completed"], True),
            (["running", "failed", "retrying", "running", "completed"], True),
            (["failed"], True),
            (["running", "failed", "retrying", "failed"], True),
            (["completed"], False),
            (["running", "retrying"], False),
            (["running", "completed", "running"], False),
            (["running", "failed", "running"], False),
        ],
    )
    def test_transitions(self, path: list[str], allowed: bool) -> None:
        """Test allowed and rejected status transitions."""
        from process_pilot.core.models import WorkflowRun
        from process_pilot.core.types import RunStatus
        from process_pilot.exceptions import InvalidTransitionError

        run = WorkflowRun(workflow_name="sync", trigger="cron")

        def walk() -> None:
            for status in path:
                run.transition(RunStatus(status))

        if allowed:
            walk()
            assert run.status == RunStatus(path[-1])
        else:
            with pytest.raises(InvalidTransitionError):
                walk()

    def test_mark_completed_stamps_duration(self) -> None:
        """Test that completion stamps end time and duration."""
        from process_pilot.core.models import WorkflowRun
        from process_pilot.core.types import RunStatus

        run = WorkflowRun(workflow_name="sync", trigger="cron", started_at=START)
        run.transition(RunStatus.RUNNING)
        run.error = "stale"
        run.mark_completed(START + timedelta(milliseconds=1500))

        assert run.completed_at == START + timedelta(milliseconds=1500)
        assert run.duration_ms == 1500
        assert run.error is None

    def test_finalize_requires_terminal_status(self) -> None:
        """Test that only terminal runs can be finalized."""
        from process_pilot.core.models import WorkflowRun
        from process_pilot.core.types import RunStatus
        from process_pilot.exceptions import InvalidTransitionError

        run = WorkflowRun(workflow_name="sync", trigger="cron")
        run.transition(RunStatus.RUNNING)

        with pytest.raises(InvalidTransitionError):
            run.finalize()

    def test_finalized_run_rejects_changes(self) -> None:
        """Test that a finalized run rejects changes."""
        from process_pilot.core.models import WorkflowRun
        from process_pilot.core.types import RunStatus
        from process_pilot.exceptions import RunAlreadyFinalizedError

        run = WorkflowRun(workflow_name="sync", trigger="cron", started_at=START)
        run.transition(RunStatus.RUNNING)
        run.mark_failed("boom", START)
        run.finalize()

        with pytest.raises(RunAlreadyFinalizedError):
            run.transition(RunStatus.RETRYING)
        assert run.status == RunStatus.FAILED

    def test_step_log_helpers(self) -> None:
        """Test the step log helper methods."""
        from process_pilot.core.models import StepResult, WorkflowRun
        from process_pilot.core.types import StepKind, StepStatus

        run = WorkflowRun(workflow_name="sync", trigger="cron")
        run.append_step(StepResult(name="a", kind=StepKind.NOTIFY, status=StepStatus.FAILED, error="x"))
        run.append_step(StepResult(name="a", kind=StepKind.NOTIFY, status=StepStatus.COMPLETED))
        run.append_step(StepResult(name="c", kind=StepKind.CONDITION, status=StepStatus.COMPLETED, branch="hot"))

        assert run.completed_step_names() == {"a", "c"}
        assert run.recorded_branches() == {"c": "hot"}
        assert [result.name for result in run.failed_steps()] == ["a"]

    def test_error_record_from_run(self) -> None:
        """Test building an error record from a run."""
        from process_pilot.core.models import ErrorRecord, StepResult, WorkflowRun
        from process_pilot.core.types import ErrorKind, StepKind, StepStatus

        run = WorkflowRun(workflow_name="sync", trigger="cron", error="boom", retries=2)
        run.append_step(StepResult(name="a", kind=StepKind.NOTIFY, status=StepStatus.FAILED, error="x"))

        record = ErrorRecord.from_run(run)
        stuck = ErrorRecord.from_run(run, kind=ErrorKind.STUCK, error="Workflow stuck for 700s")

        assert record.run_id == run.id
        assert record.error == "boom"
        assert record.retries == 2
        assert record.failed_steps == [{"name": "a", "error": "x"}]
        assert stuck.kind == ErrorKind.STUCK
        assert stuck.error == "Workflow stuck for 700s"

    def test_webhook_response_to_dict(self) -> None:
        """Test converting a webhook response to a dict."""
        from process_pilot.core.models import WebhookResponse

        assert WebhookResponse(201, {"id": 1}).to_dict() == {"statusCode": 201, "body": {"id": 1}}
