from __future__ import annotations

import json

import pytest

from storefront.core.models import CartItem, PaymentCompletedEvent
from storefront.errors import MalformedEventPayload, MissingOrderMetadata
from storefront.parsers import (
    parse_cart_metadata,
    parse_checkout_session,
    parse_webhook_event,
    reconcile_quantities,
    resolve_cart_items,
)


def test_parse_webhook_event_envelope(make_session, make_webhook_body) -> None:  # noqa: ANN001
    envelope = parse_webhook_event(make_webhook_body(make_session(), event_id="evt_42"))

    assert envelope.event_id == "evt_42"
    assert envelope.event_type == "checkout.session.completed"
    assert envelope.data_object["id"] == "cs_test_1"


@pytest.mark.parametrize(
    "payload",
    [
        b"not json",
        b"[]",
        json.dumps({"type": "checkout.session.completed", "data": {"object": {}}}).encode(),
        json.dumps({"id": "evt_1", "data": {"object": {}}}).encode(),
        json.dumps({"id": "evt_1", "type": "x", "data": {"object": "cs_1"}}).encode(),
    ],
)
def test_parse_webhook_event_rejects_malformed(payload: bytes) -> None:
    with pytest.raises(MalformedEventPayload):
        parse_webhook_event(payload)


def test_parse_checkout_session_fields(make_session) -> None:  # noqa: ANN001
    session = make_session()
    session["currency"] = "USD"
    session["payment_intent"] = {"id": "pi_obj"}
    event = parse_checkout_session(session)

    assert event.external_ref == "cs_test_1"
    assert event.paid is True
    assert event.amount_total_cents == 3600
    assert event.currency == "usd"
    assert event.payment_intent_ref == "pi_obj"
    assert event.customer_email == "buyer@example.com"
    assert event.shipping_address.postal == "73301"
    assert event.shipping_address.line2 is None
    assert event.total_quantity_purchased == 0


def test_parse_checkout_session_reads_collected_shipping(make_session) -> None:  # noqa: ANN001
    session = make_session()
    shipping = session.pop("shipping_details")
    session["collected_information"] = {"shipping_details": shipping}

    assert parse_checkout_session(session).shipping_address.city == "Austin"


@pytest.mark.parametrize(
    ("key", "value"),
    [("id", None), ("amount_total", -1), ("amount_total", "12"), ("payment_status", 1), ("metadata", "items")],
)
def test_parse_checkout_session_rejects_bad_fields(make_session, key, value) -> None:  # noqa: ANN001
    session = make_session()
    session[key] = value
    with pytest.raises(MalformedEventPayload):
        parse_checkout_session(session)


def test_cart_metadata_drops_invalid_entries() -> None:
    raw = json.dumps(
        [
            {"productId": "p1", "quantity": 2},
            {"productId": "p1", "quantity": "1"},
            {"productId": "", "quantity": 1},
            {"productId": "p2", "quantity": 0},
            {"productId": "p3", "quantity": 1.5},
            "junk",
        ]
    )
    assert parse_cart_metadata(raw) == [CartItem("p1", 3)]
    assert parse_cart_metadata("{broken") is None
    assert parse_cart_metadata(json.dumps([{"productId": "p2", "quantity": -1}])) is None


def _event(**fields) -> PaymentCompletedEvent:  # noqa: ANN003
    return PaymentCompletedEvent(external_ref="cs_1", paid=True, amount_total_cents=0, currency="usd", **fields)


def test_resolve_prefers_cart_metadata_over_legacy() -> None:
    event = _event(
        cart_metadata=json.dumps([{"productId": "p2", "quantity": 1}]),
        legacy_product_id="p1",
        legacy_sku="SKU1",
        legacy_quantity="2",
    )
    assert resolve_cart_items(event) == [CartItem("p2", 1)]


def test_resolve_falls_back_to_legacy_fields() -> None:
    event = _event(cart_metadata="not-json", legacy_product_id="p1", legacy_sku="SKU1", legacy_quantity="2")
    assert resolve_cart_items(event) == [CartItem("p1", 2)]


def test_resolve_requires_complete_legacy_fields() -> None:
    with pytest.raises(MissingOrderMetadata):
        resolve_cart_items(_event(legacy_product_id="p1", legacy_quantity="2"))


def test_reconcile_only_touches_single_line_carts() -> None:
    assert reconcile_quantities([CartItem("p1", 1)], 4) == [CartItem("p1", 4)]
    assert reconcile_quantities([CartItem("p1", 1)], 0) == [CartItem("p1", 1)]
    two_lines = [CartItem("p1", 1), CartItem("p2", 1)]
    assert reconcile_quantities(two_lines, 5) == two_lines
