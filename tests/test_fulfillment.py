from __future__ import annotations

import json
import logging

import pytest

from storefront.core.logging import bind_external_ref, get_logger
from storefront.core.models import CartItem, OrderDraft
from storefront.errors import DuplicateEvent, InsufficientStock
from storefront.parsers import parse_checkout_session
from storefront.services import FulfillmentService, FulfillmentStatus
from storefront.sources import ProviderLineItem


def _order_count(repository) -> int:  # noqa: ANN001
    return repository.connection.execute("SELECT COUNT(*) AS cnt FROM orders").fetchone()["cnt"]


def test_paid_session_creates_order_and_decrements(repository, catalog, fulfillment, make_session) -> None:  # noqa: ANN001
    session = make_session(items=[{"productId": "p1", "quantity": 2}, {"productId": "p2", "quantity": 1}], amount_total=6000)
    result = fulfillment.fulfill(parse_checkout_session(session))

    assert result.status is FulfillmentStatus.FULFILLED
    assert result.order is not None
    assert result.order.product_id == "p1"
    assert result.order.sku == "SKU1"
    assert result.order.quantity == 2
    assert result.order.status == "PAID"
    assert result.order.shipping.city == "Austin"
    assert repository.get_product("p1").stock == 8
    assert repository.get_product("p2").stock == 4

    lines = json.loads(result.order.items_json)
    assert [line["productId"] for line in lines] == ["p1", "p2"]
    assert lines[0]["description"] == "Red Ember Spice"
    assert lines[0]["amountSubtotal"] == 3600


def test_repeated_delivery_is_a_no_op(repository, catalog, fulfillment, make_session) -> None:  # noqa: ANN001
    event = parse_checkout_session(make_session())

    results = [fulfillment.fulfill(event) for _ in range(3)]

    assert [result.status for result in results] == [
        FulfillmentStatus.FULFILLED,
        FulfillmentStatus.ALREADY_FULFILLED,
        FulfillmentStatus.ALREADY_FULFILLED,
    ]
    assert _order_count(repository) == 1
    assert repository.get_product("p1").stock == 8


def test_unpaid_session_is_skipped(repository, catalog, fulfillment, make_session) -> None:  # noqa: ANN001
    result = fulfillment.fulfill(parse_checkout_session(make_session(paid=False)))

    assert result.status is FulfillmentStatus.SKIPPED
    assert result.reason == "not_paid"
    assert result.ok
    assert _order_count(repository) == 0
    assert repository.get_product("p1").stock == 10


def test_legacy_metadata_creates_single_line_order(repository, catalog, fulfillment, make_session) -> None:  # noqa: ANN001
    session = make_session("cs_legacy", metadata={"productId": "p1", "sku": "SKU1", "quantity": "2"})
    result = fulfillment.fulfill(parse_checkout_session(session))

    assert result.status is FulfillmentStatus.FULFILLED
    assert result.order.quantity == 2
    assert result.order.sku == "SKU1"
    assert repository.get_product("p1").stock == 8


def test_provider_quantity_overrides_single_line_metadata(repository, catalog, fulfillment, make_session) -> None:  # noqa: ANN001
    event = parse_checkout_session(make_session(items=[{"productId": "p1", "quantity": 1}])).with_line_items(
        [ProviderLineItem(description="Red Ember Spice 100ml", quantity=3, amount_subtotal=5400, amount_total=5400, currency="usd")]
    )
    result = fulfillment.fulfill(event)

    assert result.order.quantity == 3
    assert repository.get_product("p1").stock == 7
    line = result.order.line_items()[0]
    assert line.description == "Red Ember Spice 100ml"
    assert line.amount_total == 5400


def test_missing_metadata_fails_permanently(repository, catalog, fulfillment, make_session) -> None:  # noqa: ANN001
    result = fulfillment.fulfill(parse_checkout_session(make_session(metadata={"productId": "p1"})))

    assert result.status is FulfillmentStatus.FAILED
    assert result.retryable is False
    assert _order_count(repository) == 0


def test_insufficient_stock_rolls_back_every_line(repository, catalog, fulfillment, make_session) -> None:  # noqa: ANN001
    session = make_session(items=[{"productId": "p1", "quantity": 2}, {"productId": "p2", "quantity": 6}])
    result = fulfillment.fulfill(parse_checkout_session(session))

    assert result.status is FulfillmentStatus.FAILED
    assert result.retryable is True
    assert result.reason == "Insufficient stock for p2"
    assert repository.get_product("p1").stock == 10
    assert repository.get_product("p2").stock == 5
    assert _order_count(repository) == 0


def test_unknown_product_is_not_retryable(repository, catalog, fulfillment, make_session) -> None:  # noqa: ANN001
    result = fulfillment.fulfill(parse_checkout_session(make_session(items=[{"productId": "nope", "quantity": 1}])))

    assert result.status is FulfillmentStatus.FAILED
    assert result.retryable is False


def test_commit_order_rejects_known_reference(repository, catalog, fulfillment) -> None:  # noqa: ANN001
    draft = OrderDraft(
        external_payment_ref="manual_fixed",
        status="pending",
        items=[CartItem("p1", 1)],
        amount_total=1800,
        currency="usd",
    )
    fulfillment.commit_order(draft)

    with pytest.raises(DuplicateEvent):
        fulfillment.commit_order(draft)
    assert repository.get_product("p1").stock == 9


def test_commit_order_raises_on_short_stock(repository, catalog, fulfillment) -> None:  # noqa: ANN001
    draft = OrderDraft(
        external_payment_ref="manual_short",
        status="pending",
        items=[CartItem("p2", 9)],
        amount_total=0,
        currency="usd",
    )
    with pytest.raises(InsufficientStock):
        fulfillment.commit_order(draft)
    assert _order_count(repository) == 0


def test_unique_index_backstops_a_missed_reference_check(repository, catalog, fulfillment, monkeypatch) -> None:  # noqa: ANN001
    draft = OrderDraft(
        external_payment_ref="manual_fixed",
        status="pending",
        items=[CartItem("p1", 1)],
        amount_total=1800,
        currency="usd",
    )
    fulfillment.commit_order(draft)
    monkeypatch.setattr(repository, "find_order_by_ref", lambda ref: None)

    with pytest.raises(DuplicateEvent):
        fulfillment.commit_order(draft)
    assert repository.get_product("p1").stock == 9
    assert _order_count(repository) == 1


def test_fulfill_logs_carry_the_payment_reference(repository, catalog, test_logger, make_session, caplog) -> None:  # noqa: ANN001
    service = FulfillmentService(repository=repository, logger=get_logger(test_logger.name, "corr-1"))
    caplog.set_level(logging.INFO, logger=test_logger.name)

    service.fulfill(parse_checkout_session(make_session()))

    records = [record for record in caplog.records if record.name == test_logger.name]
    assert records
    assert all(record.external_ref == "cs_test_1" for record in records)
    assert all(record.correlation_id == "corr-1" for record in records)


def test_bind_external_ref_wraps_plain_loggers(test_logger) -> None:  # noqa: ANN001
    adapter = bind_external_ref(test_logger, "cs_plain")

    assert adapter.logger is test_logger
    assert adapter.extra == {"external_ref": "cs_plain"}
