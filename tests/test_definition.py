"""Tests for template parsing, validation and serialization."""

from __future__ import annotations

from typing import Any

import pytest


@pytest.mark.unit
class TestParseDelay:
    """Tests for duration parsing."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (1500, 1500),
            (2.5, 2),
            ("500", 500),
            ("250ms", 250),
            ("30s", 30_000),
            ("5m", 300_000),
            ("1h", 3_600_000),
            ("1d", 86_400_000),
            ("1.5s", 1500),
        ],
    )
    def test_valid_values(self, value: Any, expected: int) -> None:
        """Test parsing valid delay values."""
        from process_pilot.core.definition import parse_delay

        assert parse_delay(value) == expected

    @pytest.mark.parametrize("value", ["soon", "-5s", -1, True, None, "5 weeks"])
    def test_invalid_values(self, value: Any) -> None:
        """Test rejecting invalid delay values."""
        from process_pilot.core.definition import parse_delay

        with pytest.raises(ValueError):
            parse_delay(value)


@pytest.mark.unit
class TestVersionNumber:
    """Tests for version reference normalization."""

    @pytest.mark.parametrize(("version", "expected"), [(None, None), ("latest", None), (3, 3), ("3", 3), ("v12", 12)])
    def test_valid(self, version: Any, expected: int | None) -> None:
        """Test a valid condition document."""
        from process_pilot.core.definition import version_number

        assert version_number(version) == expected

    @pytest.mark.parametrize("version", [0, -1, "0", "newest", "1.0.0", True])
    def test_invalid(self, version: Any) -> None:
        """Test rejecting an invalid condition document."""
        from process_pilot.core.definition import version_number

        with pytest.raises(ValueError):
            version_number(version)


@pytest.mark.unit
class TestParseStep:
    """Tests for single step parsing."""

    def test_fetch_records(self) -> None:
        """Test parsing a fetch_records step."""
        from process_pilot.core.definition import FetchRecordsStep, parse_step

        step = parse_step(
            {"name": "leads", "kind": "fetch_records", "table": "Leads", "filter": "status='new'", "contextKey": "leads"}
        )

        assert isinstance(step, FetchRecordsStep)
        assert step.table == "Leads"
        assert step.filter == "status='new'"
        assert step.context_key == "leads"
        assert step.required is True
        assert step.parallel is False

    def test_type_alias_for_kind(self) -> None:
        """Test that "type" is accepted as an alias of "kind"."""
        from process_pilot.core.definition import NotifyStep, parse_step

        step = parse_step({"name": "ping", "type": "notify", "subject": "Hello"})

        assert isinstance(step, NotifyStep)

    def test_only_explicit_false_makes_step_optional(self) -> None:
        """Test that only required: false makes a step optional."""
        from process_pilot.core.definition import parse_step

        base = {"name": "n", "kind": "notify", "subject": "s"}

        assert parse_step({**base, "required": False}).required is False
        assert parse_step({**base, "required": None}).required is True
        assert parse_step({**base, "required": 0}).required is True

    def test_camel_case_fields(self) -> None:
        """Test parsing camelCase document fields."""
        from process_pilot.core.definition import AiClassifyStep, UpdateRecordStep, parse_step

        update = parse_step({"name": "u", "kind": "update_record", "table": "Leads", "recordId": "{{id}}"})
        classify = parse_step({"name": "c", "kind": "ai_classify", "prompt": "p", "maxTokens": 200})

        assert isinstance(update, UpdateRecordStep)
        assert update.record_id == "{{id}}"
        assert isinstance(classify, AiClassifyStep)
        assert classify.max_tokens == 200
        assert classify.model is None

    def test_delay_accepts_duration_string(self) -> None:
        """Test a delay step given as a duration string."""
        from process_pilot.core.definition import parse_step

        assert parse_step({"name": "d", "kind": "delay", "delay": "2s"}).delay_ms == 2000
        assert parse_step({"name": "d", "kind": "delay", "delayMs": 10}).delay_ms == 10
        assert parse_step({"name": "d", "kind": "delay"}).delay_ms is None

    def test_delay_invalid_duration(self) -> None:
        """Test rejecting a delay step with an invalid duration."""
        from process_pilot.core.definition import parse_step
        from process_pilot.exceptions import TemplateValidationError

        with pytest.raises(TemplateValidationError, match="Invalid delay"):
            parse_step({"name": "d", "kind": "delay", "delay": "later"})

    def test_condition_with_branches(self) -> None:
        """Test parsing a condition step with named branches."""
        from process_pilot.core.definition import Condition, ConditionStep, NotifyStep, parse_step

        step = parse_step(
            {
                "name": "hot",
                "kind": "condition",
                "condition": {"field": "score", "operator": "greater_than", "value": 7},
                "trueBranch": "hot",
                "branches": {"hot": [{"name": "alert", "kind": "notify", "subject": "Hot lead"}]},
            }
        )

        assert isinstance(step, ConditionStep)
        assert step.condition == Condition(field="score", operator="greater_than", value=7)
        assert step.true_branch == "hot"
        assert step.false_branch is None
        assert isinstance(step.branches["hot"][0], NotifyStep)

    def test_unknown_kind(self) -> None:
        """Test rejecting an unknown step kind."""
        from process_pilot.core.definition import parse_step
        from process_pilot.exceptions import TemplateValidationError

        with pytest.raises(TemplateValidationError, match="unknown step kind 'teleport'"):
            parse_step({"name": "x", "kind": "teleport"})

    def test_missing_name(self) -> None:
        """Test rejecting a step without a name."""
        from process_pilot.core.definition import parse_step
        from process_pilot.exceptions import TemplateValidationError

        with pytest.raises(TemplateValidationError, match="step name is required"):
            parse_step({"kind": "notify", "subject": "s"})

    def test_missing_required_field(self) -> None:
        """Test rejecting a step missing a required field."""
        from process_pilot.core.definition import parse_step
        from process_pilot.exceptions import TemplateValidationError

        with pytest.raises(TemplateValidationError, match="missing table"):
            parse_step({"name": "x", "kind": "fetch_records"})

    def test_step_document_must_be_mapping(self) -> None:
        """Test rejecting a step document that is not a mapping."""
        from process_pilot.core.definition import parse_step
        from process_pilot.exceptions import TemplateValidationError

        with pytest.raises(TemplateValidationError):
            parse_step(["not", "a", "step"])  # type: ignore[arg-type]


@pytest.mark.unit
class TestWorkflowTemplate:
    """Tests for WorkflowTemplate."""

    def test_from_document_defaults(self) -> None:
        """Test template defaults when the document omits them."""
        from process_pilot.core.definition import WorkflowTemplate

        template = WorkflowTemplate.from_document("digest", {"steps": [{"name": "w", "kind": "delay"}]})

        assert template.name == "digest"
        assert template.version == "latest"
        assert template.retry is False
        assert template.max_retries == 3
        assert len(template.steps) == 1

    def test_from_document_retry_policy(self, lead_intake: dict[str, Any]) -> None:
        """Test reading the retry policy from a document."""
        from process_pilot.core.definition import WorkflowTemplate

        template = WorkflowTemplate.from_document("lead-intake", lead_intake, version=2)

        assert template.retry is True
        assert template.max_retries == 2
        assert template.version == 2
        assert [step.name for step in template.steps] == ["fetch_leads", "score_lead", "notify_sales"]

    def test_steps_must_be_list(self) -> None:
        """Test rejecting a document whose steps are not a list."""
        from process_pilot.core.definition import WorkflowTemplate
        from process_pilot.exceptions import TemplateValidationError

        with pytest.raises(TemplateValidationError, match="expected a list of steps"):
            WorkflowTemplate.from_document("bad", {"steps": {"name": "x"}})

    def test_max_retries_must_be_integer(self) -> None:
        """Test rejecting a non-integer maxRetries."""
        from process_pilot.core.definition import WorkflowTemplate
        from process_pilot.exceptions import TemplateValidationError

        with pytest.raises(TemplateValidationError, match="maxRetries"):
            WorkflowTemplate.from_document("bad", {"maxRetries": "three", "steps": []})

    def test_duplicate_names_across_branches_rejected(self) -> None:
        """Test rejecting duplicate step names across branches."""
        from process_pilot.core.definition import WorkflowTemplate
        from process_pilot.exceptions import TemplateValidationError

        document = {
            "steps": [
                {"name": "alert", "kind": "notify", "subject": "a"},
                {
                    "name": "check",
                    "kind": "condition",
                    "branches": {"true": [{"name": "alert", "kind": "notify", "subject": "b"}]},
                },
            ]
        }

        with pytest.raises(TemplateValidationError) as exc_info:
            WorkflowTemplate.from_document("dup", document)

        assert exc_info.value.errors == ["Duplicate step name 'alert'"]

    def test_parallel_condition_rejected(self) -> None:
        """Test rejecting a condition step inside a parallel group."""
        from process_pilot.core.definition import WorkflowTemplate

        template = WorkflowTemplate.from_document(
            "p", {"steps": [{"name": "c", "kind": "condition", "parallel": True}]}, validate=False
        )

        assert template.validate() == ["Condition step 'c' cannot be parallel"]

    def test_unsupported_webhook_method_rejected(self) -> None:
        """Test rejecting an unsupported webhook method."""
        from process_pilot.core.definition import WorkflowTemplate

        template = WorkflowTemplate.from_document(
            "w", {"steps": [{"name": "hook", "kind": "webhook", "url": "https://x", "method": "TRACE"}]}, validate=False
        )

        assert template.validate() == ["Webhook step 'hook' uses unsupported method 'TRACE'"]

    def test_negative_max_retries_rejected(self) -> None:
        """Test rejecting a negative maxRetries."""
        from process_pilot.core.definition import WorkflowTemplate

        template = WorkflowTemplate.from_document("r", {"maxRetries": -1, "steps": []}, validate=False)

        assert template.validate() == ["maxRetries must not be negative"]

    def test_iter_steps_visits_branches(self) -> None:
        """Test that iter_steps visits steps inside branches."""
        from process_pilot.core.definition import WorkflowTemplate

        template = WorkflowTemplate.from_document(
            "tree",
            {
                "steps": [
                    {
                        "name": "check",
                        "kind": "condition",
                        "branches": {
                            "true": [{"name": "yes", "kind": "notify", "subject": "y"}],
                            "false": [{"name": "no", "kind": "notify", "subject": "n"}],
                        },
                    },
                    {"name": "after", "kind": "delay"},
                ]
            },
        )

        assert {step.name for step in template.iter_steps()} == {"check", "yes", "no", "after"}
        assert template.step_count == 4
        assert len(template.steps) == 2

    def test_document_round_trip_keeps_shape(self) -> None:
        """Test that to_document reproduces the parsed document."""
        from process_pilot.core.definition import WorkflowTemplate

        document = {
            "retry": True,
            "maxRetries": 1,
            "description": "Nightly",
            "steps": [
                {"name": "a", "kind": "notify", "subject": "s", "required": False, "parallel": True},
                {"name": "b", "kind": "notify", "subject": "t", "parallel": True},
                {
                    "name": "c",
                    "kind": "condition",
                    "condition": {"field": "x", "operator": "exists", "value": None},
                    "falseBranch": "none",
                    "branches": {"none": [{"name": "d", "kind": "delay", "delayMs": 5}]},
                },
            ],
        }

        template = WorkflowTemplate.from_document("nightly", document)
        again = WorkflowTemplate.from_document("nightly", template.to_document())

        assert again.steps == template.steps
        assert again.description == "Nightly"
        assert template.to_document()["steps"][0] == {
            "name": "a",
            "kind": "notify",
            "required": False,
            "parallel": True,
            "subject": "s",
            "html": "",
        }

    def test_with_version(self) -> None:
        """Test copying a template under a version number."""
        from process_pilot.core.definition import WorkflowTemplate

        template = WorkflowTemplate.from_document("t", {"steps": []})
        versioned = template.with_version(4)

        assert versioned.version == 4
        assert template.version == "latest"

    def test_step_specs_are_immutable(self) -> None:
        """Test that step specs cannot be modified."""
        import dataclasses

        from process_pilot.core.definition import NotifyStep

        step = NotifyStep(name="n", subject="s")

        with pytest.raises(dataclasses.FrozenInstanceError):
            step.subject = "other"  # type: ignore[misc]
