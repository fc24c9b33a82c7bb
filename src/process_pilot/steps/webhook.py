"""Outbound webhook step."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from process_pilot.core.context import resolve_fields, resolve_template
from process_pilot.core.definition import WebhookStep
from process_pilot.core.types import StepKind
from process_pilot.steps.base import BaseStepHandler

if TYPE_CHECKING:
    from process_pilot.core.context import RunContext

__all__ = ["WebhookHandler"]


class WebhookHandler(BaseStepHandler[WebhookStep]):
    """Call an HTTP endpoint and return ``{"statusCode": ..., "body": ...}``.

    The URL and every string in the payload may contain placeholders. A non-2xx
    response is still a completed step; templates branch on ``statusCode`` when
    they care.
    """

    kind: ClassVar[StepKind] = StepKind.WEBHOOK

    async def run(self, step: WebhookStep, context: RunContext) -> Any:
        client = self.services.require("webhook_client")
        response = await client.call(
            resolve_template(step.url, context),
            step.method.upper(),
            resolve_fields(step.payload, context),
            dict(step.headers),
        )
        return response.to_dict()
