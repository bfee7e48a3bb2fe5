from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from storefront.config import Settings
from storefront.core.db import StorefrontRepository
from storefront.core.models import Product
from storefront.services import FulfillmentService
from storefront.services.seeding import DEFAULT_ZONE


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "storefront.sqlite3"


@pytest.fixture()
def repository(db_path: Path):
    repo = StorefrontRepository(db_path)
    repo.migrate()
    try:
        yield repo
    finally:
        repo.close()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    root = tmp_path / "project"
    root.mkdir(parents=True, exist_ok=True)
    s = Settings.load(base_dir=root)
    s.ensure_directories()
    return s


@pytest.fixture()
def test_logger() -> logging.Logger:
    logger = logging.getLogger("storefront-test")
    logger.handlers.clear()
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.INFO)
    return logger


@pytest.fixture()
def catalog(repository) -> dict[str, Product]:  # noqa: ANN001
    products = [
        Product(id="p1", sku="SKU1", name="Red Ember Spice", price_cents=1800, currency="usd", stock=10, weight_g=150),
        Product(id="p2", sku="SKU2", name="Smoked Ghost Pepper", price_cents=2400, currency="usd", stock=5, weight_oz=6),
        Product(id="p3", sku="SKU3", name="Retired Blend", price_cents=1500, currency="usd", stock=8, active=False),
        Product(id="p4", sku="SKU4", name="Euro Reserve", price_cents=2000, currency="EUR", stock=8, weight_g=200),
        Product(
            id="gift",
            sku="GIFT-25",
            name="Gift Card",
            price_cents=2500,
            currency="usd",
            stock=100,
            requires_shipping=False,
        ),
    ]
    for product in products:
        repository.upsert_product(product)
    return {product.id: product for product in products}


@pytest.fixture()
def us_zone(repository):  # noqa: ANN001
    repository.upsert_shipping_zone(DEFAULT_ZONE)
    return DEFAULT_ZONE


@pytest.fixture()
def fulfillment(repository, test_logger) -> FulfillmentService:  # noqa: ANN001
    return FulfillmentService(repository=repository, logger=test_logger)


def checkout_session(
    session_id: str = "cs_test_1",
    *,
    paid: bool = True,
    items: list[dict] | None = None,
    metadata: dict | None = None,
    amount_total: int = 3600,
) -> dict:
    if metadata is None:
        metadata = {"items": json.dumps(items if items is not None else [{"productId": "p1", "quantity": 2}])}
    return {
        "id": session_id,
        "object": "checkout.session",
        "payment_status": "paid" if paid else "unpaid",
        "payment_intent": "pi_test_1",
        "amount_total": amount_total,
        "currency": "usd",
        "customer_details": {"email": "buyer@example.com", "phone": "+15550100"},
        "shipping_details": {
            "name": "Jane Buyer",
            "address": {
                "line1": "1 Main St",
                "line2": None,
                "city": "Austin",
                "state": "TX",
                "postal_code": "73301",
                "country": "US",
            },
        },
        "metadata": metadata,
    }


def webhook_body(session: dict, event_type: str = "checkout.session.completed", event_id: str = "evt_1") -> bytes:
    return json.dumps({"id": event_id, "type": event_type, "data": {"object": session}}).encode("utf-8")


@pytest.fixture()
def make_session():
    return checkout_session


@pytest.fixture()
def make_webhook_body():
    return webhook_body
