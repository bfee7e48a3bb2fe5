"""Payment-provider webhook ingestion.

The response code is the provider's retry signal: 2xx stops redelivery,
5xx asks for it, 4xx marks the event as permanently rejected.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Any

from storefront.core.db import StorefrontRepository
from storefront.core.dedupe import build_payload_event_id
from storefront.errors import CheckoutGatewayError, MalformedEventPayload, WebhookSignatureError
from storefront.parsers import parse_checkout_session, parse_webhook_event
from storefront.sources import CheckoutGateway

from .fulfillment import FulfillmentResult, FulfillmentService, FulfillmentStatus

FULFILLABLE_EVENT_TYPES = frozenset(
    {
        "checkout.session.completed",
        "checkout.session.async_payment_succeeded",
    }
)
UNKNOWN_EVENT_TYPE = "unknown"


@dataclass(slots=True, frozen=True)
class WebhookResponse:
    status_code: int
    body: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def received(cls) -> WebhookResponse:
        return cls(status_code=200, body={"received": True})

    @classmethod
    def error(cls, status_code: int, message: str) -> WebhookResponse:
        return cls(status_code=status_code, body={"error": message})


class WebhookHandler:
    def __init__(
        self,
        repository: StorefrontRepository,
        gateway: CheckoutGateway,
        fulfillment: FulfillmentService,
        logger: logging.Logger | logging.LoggerAdapter,
    ):
        self.repository = repository
        self.gateway = gateway
        self.fulfillment = fulfillment
        self.logger = logger

    def handle(self, payload: bytes, signature: str | None) -> WebhookResponse:
        try:
            return self._dispatch(payload, signature)
        except sqlite3.Error as exc:
            self.logger.error("Webhook not processed, datastore error: %s", exc)
            return WebhookResponse.error(500, f"Datastore error: {exc}")

    def _dispatch(self, payload: bytes, signature: str | None) -> WebhookResponse:
        try:
            self.gateway.verify_signature(payload, signature)
        except WebhookSignatureError as exc:
            self.logger.warning("Webhook rejected, signature verification failed: %s", exc)
            return WebhookResponse.error(400, f"Webhook Error: {exc}")

        try:
            envelope = parse_webhook_event(payload)
        except MalformedEventPayload as exc:
            self.logger.error("Webhook payload is malformed: %s", exc)
            self.repository.record_webhook_event(
                event_id=build_payload_event_id(payload),
                event_type=UNKNOWN_EVENT_TYPE,
                external_ref=None,
                outcome="malformed",
                detail=str(exc),
            )
            return WebhookResponse.error(400, f"Webhook Error: {exc}")

        if envelope.event_type not in FULFILLABLE_EVENT_TYPES:
            self.logger.info("Webhook %s of type %s ignored", envelope.event_id, envelope.event_type)
            self.repository.record_webhook_event(
                event_id=envelope.event_id,
                event_type=envelope.event_type,
                external_ref=None,
                outcome="ignored",
            )
            return WebhookResponse.received()

        try:
            event = parse_checkout_session(envelope.data_object)
        except MalformedEventPayload as exc:
            self.logger.error("Webhook %s carries a malformed session: %s", envelope.event_id, exc)
            self.repository.record_webhook_event(
                event_id=envelope.event_id,
                event_type=envelope.event_type,
                external_ref=None,
                outcome="malformed",
                detail=str(exc),
            )
            return WebhookResponse.error(400, f"Webhook Error: {exc}")

        if event.paid and self.repository.find_order_by_ref(event.external_ref) is None:
            try:
                event = event.with_line_items(self.gateway.list_line_items(event.external_ref))
            except CheckoutGatewayError as exc:
                self.logger.warning("Line items for %s unavailable: %s", event.external_ref, exc)
                self.repository.record_webhook_event(
                    event_id=envelope.event_id,
                    event_type=envelope.event_type,
                    external_ref=event.external_ref,
                    outcome=FulfillmentStatus.FAILED.value,
                    detail=str(exc),
                )
                return WebhookResponse.error(500, str(exc))

        result = self.fulfillment.fulfill(event)
        self.repository.record_webhook_event(
            event_id=envelope.event_id,
            event_type=envelope.event_type,
            external_ref=event.external_ref,
            outcome=result.status.value,
            detail=result.reason,
        )
        return self._response_for(result)

    @staticmethod
    def _response_for(result: FulfillmentResult) -> WebhookResponse:
        if result.ok:
            return WebhookResponse.received()
        status_code = 500 if result.retryable else 400
        return WebhookResponse.error(status_code, result.reason or "Fulfillment failed")
