from __future__ import annotations

import json

from storefront.core.models import CartItem, PaymentCompletedEvent, merge_cart_items
from storefront.errors import MissingOrderMetadata

from .utils import clean_str, parse_positive_int


def parse_cart_metadata(raw: str | None) -> list[CartItem] | None:
    """Decode the JSON cart carried in session metadata.

    Entries without a string productId or a positive integer quantity are
    dropped. Returns None when nothing usable is left.
    """
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(parsed, list):
        return None

    items: list[CartItem] = []
    for entry in parsed:
        if not isinstance(entry, dict):
            continue
        product_id = entry.get("productId")
        if not isinstance(product_id, str) or not product_id.strip():
            continue
        quantity = parse_positive_int(entry.get("quantity"))
        if quantity is None:
            continue
        items.append(CartItem(product_id=product_id.strip(), quantity=quantity))

    return merge_cart_items(items) or None


def resolve_cart_items(event: PaymentCompletedEvent) -> list[CartItem]:
    items = parse_cart_metadata(event.cart_metadata)
    if items:
        return items

    product_id = clean_str(event.legacy_product_id)
    sku = clean_str(event.legacy_sku)
    quantity = parse_positive_int(event.legacy_quantity)
    if product_id and sku and quantity:
        return [CartItem(product_id=product_id, quantity=quantity)]

    raise MissingOrderMetadata(f"Missing required metadata for {event.external_ref}")


def reconcile_quantities(items: list[CartItem], total_quantity_purchased: int) -> list[CartItem]:
    # Single-line carts trust the provider's purchased quantity over metadata.
    if len(items) == 1 and total_quantity_purchased > 0:
        return [CartItem(product_id=items[0].product_id, quantity=total_quantity_purchased)]
    return items
