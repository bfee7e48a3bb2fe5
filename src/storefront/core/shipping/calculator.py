from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import ROUND_HALF_UP, Decimal

from storefront.core.models import CartItem, Product, ShippingQuote, ShippingZone, WeightTier

OUNCE_TO_GRAMS = 28.3495
DEFAULT_CART_WEIGHT_G = 250
DEFAULT_COUNTRY = "US"

FALLBACK_ZONE_NAME = "Default"
FALLBACK_LADDER = ((250, 450), (750, 875))
FALLBACK_TOP_RATE_CENTS = 1200
FALLBACK_FREE_SHIPPING_MIN = 7500


def product_weight_g(product: Product) -> float:
    # Priority: precise grams, ounces, legacy integer grams, volume (1 ml ~ 1 g).
    if product.weight_g:
        return float(product.weight_g)
    if product.weight_oz:
        return float(product.weight_oz) * OUNCE_TO_GRAMS
    if product.weight_grams:
        return float(product.weight_grams)
    if product.volume_ml:
        return float(product.volume_ml)
    return 0.0


def cart_weight_g(items: Sequence[CartItem], products: Mapping[str, Product]) -> float:
    total = 0.0
    for item in items:
        product = products.get(item.product_id)
        if product is None:
            continue
        total += product_weight_g(product) * item.quantity
    if total == 0:
        return float(DEFAULT_CART_WEIGHT_G)
    return total


def find_zone(zones: Sequence[ShippingZone], country: str) -> ShippingZone | None:
    for zone in zones:
        if zone.enabled and zone.tiers and zone.covers(country):
            return zone
    return None


def pick_tier(tiers: Sequence[WeightTier], weight_g: float) -> WeightTier:
    ordered = sorted(tiers, key=lambda tier: tier.min_weight_g)
    for tier in ordered:
        if weight_g <= tier.max_weight_g:
            return tier
    return ordered[-1]


def fallback_rate(weight_g: float) -> int:
    for max_weight_g, rate_cents in FALLBACK_LADDER:
        if weight_g <= max_weight_g:
            return rate_cents
    return FALLBACK_TOP_RATE_CENTS


def _round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_shipping(
    items: Sequence[CartItem],
    products: Mapping[str, Product],
    zones: Sequence[ShippingZone],
    country: str | None = None,
    subtotal_cents: int | None = None,
) -> ShippingQuote:
    """Price a cart against a zone/tier snapshot.

    Without a matching zone the fixed fallback ladder applies. When the
    subtotal reaches the free-shipping minimum the charge is zero.
    """
    total_weight_g = cart_weight_g(items, products)
    target_country = (country or DEFAULT_COUNTRY).strip().upper() or DEFAULT_COUNTRY

    zone = find_zone(zones, target_country)
    if zone is not None:
        shipping_cents = pick_tier(zone.tiers, total_weight_g).rate_cents
        free_shipping_min = zone.free_shipping_min
        zone_name = zone.name
    else:
        shipping_cents = fallback_rate(total_weight_g)
        free_shipping_min = FALLBACK_FREE_SHIPPING_MIN
        zone_name = FALLBACK_ZONE_NAME

    if subtotal_cents is not None and free_shipping_min and subtotal_cents >= free_shipping_min:
        shipping_cents = 0

    return ShippingQuote(
        shipping_cents=shipping_cents,
        total_weight_g=_round_half_up(total_weight_g),
        free_shipping_min=free_shipping_min,
        zone_name=zone_name,
    )
