from __future__ import annotations

from storefront.core.db import StorefrontRepository
from storefront.core.models import CartItem, ShippingQuote, merge_cart_items
from storefront.core.shipping import calculate_shipping


class ShippingService:
    """Loads the catalog and zone snapshot and prices a cart."""

    def __init__(self, repository: StorefrontRepository, default_country: str = "US"):
        self.repository = repository
        self.default_country = default_country

    def quote(
        self,
        items: list[CartItem],
        country: str | None = None,
        subtotal_cents: int | None = None,
    ) -> ShippingQuote:
        items = merge_cart_items(items)
        products = self.repository.get_products([item.product_id for item in items])
        if subtotal_cents is None:
            subtotal_cents = sum(
                products[item.product_id].price_cents * item.quantity
                for item in items
                if item.product_id in products
            )
        return calculate_shipping(
            items,
            products,
            self.repository.list_shipping_zones(enabled_only=True),
            country=country or self.default_country,
            subtotal_cents=subtotal_cents,
        )
