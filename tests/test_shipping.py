from __future__ import annotations

import pytest

from storefront.core.models import CartItem, Product, ShippingZone, WeightTier
from storefront.core.shipping import calculate_shipping, cart_weight_g, product_weight_g
from storefront.errors import ValidationFailure
from storefront.services import ShippingService
from storefront.services.seeding import DEFAULT_ZONE


def _product(product_id: str = "x", **weights) -> Product:  # noqa: ANN003
    return Product(id=product_id, sku=product_id.upper(), name=product_id, price_cents=1000, currency="usd", stock=1, **weights)


def test_weight_unit_priority_prefers_grams_over_ounces() -> None:
    product = _product(weight_g=70.8, weight_oz=2.5, weight_grams=99, volume_ml=500)
    assert product_weight_g(product) == pytest.approx(70.8)


def test_weight_falls_back_through_units() -> None:
    assert product_weight_g(_product(weight_oz=2.5)) == pytest.approx(70.87375)
    assert product_weight_g(_product(weight_grams=120)) == 120
    assert product_weight_g(_product(volume_ml=175)) == 175
    assert product_weight_g(_product(weight_g=0, weight_grams=80)) == 80


def test_weightless_cart_uses_default_weight() -> None:
    product = _product()
    assert cart_weight_g([CartItem("x", 3)], {"x": product}) == 250


def test_us_zone_scenario() -> None:
    product = _product(weight_g=300)
    items = [CartItem("x", 1)]

    quote = calculate_shipping(items, {"x": product}, [DEFAULT_ZONE], country="US", subtotal_cents=6000)
    assert quote.shipping_cents == 875
    assert quote.total_weight_g == 300
    assert quote.free_shipping_min == 7500
    assert quote.zone_name == "United States"

    free = calculate_shipping(items, {"x": product}, [DEFAULT_ZONE], country="US", subtotal_cents=7600)
    assert free.shipping_cents == 0


def test_free_shipping_at_exact_threshold() -> None:
    product = _product(weight_g=100)
    quote = calculate_shipping([CartItem("x", 1)], {"x": product}, [DEFAULT_ZONE], country="us", subtotal_cents=7500)
    assert quote.shipping_cents == 0


def test_weight_above_every_tier_uses_top_rate() -> None:
    product = _product(weight_g=6000)
    quote = calculate_shipping([CartItem("x", 2)], {"x": product}, [DEFAULT_ZONE], country="US")
    assert quote.total_weight_g == 12000
    assert quote.shipping_cents == 1800


def test_weight_in_tier_gap_uses_next_tier() -> None:
    product = _product(weight_g=250.4)
    quote = calculate_shipping([CartItem("x", 1)], {"x": product}, [DEFAULT_ZONE], country="US")
    assert quote.shipping_cents == 875
    assert quote.total_weight_g == 250


def test_unmatched_country_uses_fallback_ladder() -> None:
    items = [CartItem("x", 1)]
    assert calculate_shipping(items, {"x": _product(weight_g=200)}, [DEFAULT_ZONE], country="DE").shipping_cents == 450
    assert calculate_shipping(items, {"x": _product(weight_g=700)}, [DEFAULT_ZONE], country="DE").shipping_cents == 875
    fallback = calculate_shipping(items, {"x": _product(weight_g=900)}, [], country="DE")
    assert fallback.shipping_cents == 1200
    assert fallback.zone_name == "Default"
    assert fallback.free_shipping_min == 7500


def test_disabled_and_tierless_zones_are_skipped() -> None:
    disabled = ShippingZone(
        name="A Disabled",
        countries=["US"],
        enabled=False,
        tiers=[WeightTier(0, 10000, 99)],
    )
    empty = ShippingZone(name="B Empty", countries=["US"], tiers=[])
    quote = calculate_shipping([CartItem("x", 1)], {"x": _product(weight_g=100)}, [disabled, empty], country="US")
    assert quote.zone_name == "Default"
    assert quote.shipping_cents == 450


def test_zone_without_free_shipping_minimum_always_charges() -> None:
    zone = ShippingZone(name="Canada", countries=["CA"], tiers=[WeightTier(0, 1000, 1500)])
    quote = calculate_shipping(
        [CartItem("x", 1)], {"x": _product(weight_g=100)}, [zone], country="CA", subtotal_cents=1_000_000
    )
    assert quote.shipping_cents == 1500
    assert quote.free_shipping_min is None


def test_overlapping_tiers_are_rejected(repository) -> None:  # noqa: ANN001
    zone = ShippingZone(
        name="Broken",
        countries=["US"],
        tiers=[WeightTier(0, 500, 400), WeightTier(400, 900, 800)],
    )
    with pytest.raises(ValidationFailure):
        repository.upsert_shipping_zone(zone)


def test_shipping_service_uses_catalog_subtotal(repository, catalog, us_zone) -> None:  # noqa: ANN001
    service = ShippingService(repository)

    quote = service.quote([CartItem("p1", 2)])
    assert quote.total_weight_g == 300
    assert quote.shipping_cents == 875

    free = service.quote([CartItem("p2", 4)], country="US")
    assert free.shipping_cents == 0
    assert free.to_dict() == {
        "shippingCents": 0,
        "totalWeightG": 680,
        "freeShippingMin": 7500,
        "zone": "United States",
    }
