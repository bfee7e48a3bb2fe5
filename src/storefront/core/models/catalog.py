from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class Product:
    id: str
    sku: str
    name: str
    price_cents: int
    currency: str
    stock: int
    active: bool = True
    requires_shipping: bool = True
    weight_g: float | None = None
    weight_oz: float | None = None
    weight_grams: int | None = None
    volume_ml: float | None = None


@dataclass(slots=True, frozen=True)
class CartItem:
    product_id: str
    quantity: int


def merge_cart_items(items: list[CartItem]) -> list[CartItem]:
    """Sum quantities of repeated product ids, keeping first-seen order."""
    totals: dict[str, int] = {}
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    return [CartItem(product_id=product_id, quantity=quantity) for product_id, quantity in totals.items()]
