from __future__ import annotations

import json
from typing import Any

from storefront.core.models import PaymentCompletedEvent, ShippingAddress
from storefront.errors import MalformedEventPayload
from storefront.sources.models import WebhookEnvelope

from .utils import clean_str

DEFAULT_CURRENCY = "usd"


def _expect_dict(value: Any, where: str, *, optional: bool = True) -> dict[str, Any]:
    if value is None and optional:
        return {}
    if not isinstance(value, dict):
        raise MalformedEventPayload(f"{where} must be an object")
    return value


def _optional_str(container: dict[str, Any], key: str, where: str) -> str | None:
    value = container.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedEventPayload(f"{where}.{key} must be a string")
    return clean_str(value)


def parse_webhook_event(payload: bytes | str) -> WebhookEnvelope:
    try:
        data = json.loads(payload)
    except (ValueError, UnicodeDecodeError) as exc:
        raise MalformedEventPayload(f"Webhook payload is not valid JSON: {exc}") from exc

    data = _expect_dict(data, "event", optional=False)
    event_id = data.get("id")
    event_type = data.get("type")
    if not isinstance(event_id, str) or not event_id.strip():
        raise MalformedEventPayload("event.id is required")
    if not isinstance(event_type, str) or not event_type.strip():
        raise MalformedEventPayload("event.type is required")

    body = _expect_dict(data.get("data"), "event.data", optional=False)
    data_object = _expect_dict(body.get("object"), "event.data.object", optional=False)
    return WebhookEnvelope(event_id=event_id.strip(), event_type=event_type.strip(), data_object=data_object)


def _payment_intent_ref(session: dict[str, Any]) -> str | None:
    value = session.get("payment_intent")
    if value is None:
        return None
    if isinstance(value, str):
        return clean_str(value)
    if isinstance(value, dict):
        return _optional_str(value, "id", "session.payment_intent")
    raise MalformedEventPayload("session.payment_intent must be a string or object")


def _shipping_address(session: dict[str, Any]) -> ShippingAddress | None:
    # Newer API versions nest shipping under collected_information.
    collected = _expect_dict(session.get("collected_information"), "session.collected_information")
    shipping = session.get("shipping_details") or collected.get("shipping_details")
    if shipping is None:
        return None
    shipping = _expect_dict(shipping, "session.shipping_details")
    address = _expect_dict(shipping.get("address"), "session.shipping_details.address")
    where = "session.shipping_details.address"
    return ShippingAddress(
        name=_optional_str(shipping, "name", "session.shipping_details"),
        line1=_optional_str(address, "line1", where),
        line2=_optional_str(address, "line2", where),
        city=_optional_str(address, "city", where),
        state=_optional_str(address, "state", where),
        postal=_optional_str(address, "postal_code", where),
        country=_optional_str(address, "country", where),
    )


def _metadata_value(metadata: dict[str, Any], key: str) -> str | None:
    value = metadata.get(key)
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if not isinstance(value, str):
        raise MalformedEventPayload(f"session.metadata.{key} must be a string")
    return value


def parse_checkout_session(session: dict[str, Any]) -> PaymentCompletedEvent:
    """Strictly decode a checkout session object into a PaymentCompletedEvent.

    Provider line items are not part of the webhook body; they are attached
    later with ``PaymentCompletedEvent.with_line_items``.
    """
    external_ref = session.get("id")
    if not isinstance(external_ref, str) or not external_ref.strip():
        raise MalformedEventPayload("session.id is required")

    payment_status = session.get("payment_status")
    if payment_status is not None and not isinstance(payment_status, str):
        raise MalformedEventPayload("session.payment_status must be a string")

    amount_total = session.get("amount_total")
    if amount_total is None:
        amount_total = 0
    if isinstance(amount_total, bool) or not isinstance(amount_total, int) or amount_total < 0:
        raise MalformedEventPayload("session.amount_total must be a non-negative integer")

    currency = _optional_str(session, "currency", "session") or DEFAULT_CURRENCY
    customer = _expect_dict(session.get("customer_details"), "session.customer_details")
    metadata = _expect_dict(session.get("metadata"), "session.metadata")

    return PaymentCompletedEvent(
        external_ref=external_ref.strip(),
        paid=payment_status == "paid",
        amount_total_cents=amount_total,
        currency=currency.lower(),
        payment_intent_ref=_payment_intent_ref(session),
        customer_email=_optional_str(customer, "email", "session.customer_details"),
        customer_phone=_optional_str(customer, "phone", "session.customer_details"),
        shipping_address=_shipping_address(session),
        cart_metadata=_metadata_value(metadata, "items"),
        legacy_product_id=_metadata_value(metadata, "productId"),
        legacy_sku=_metadata_value(metadata, "sku"),
        legacy_quantity=_metadata_value(metadata, "quantity"),
    )
