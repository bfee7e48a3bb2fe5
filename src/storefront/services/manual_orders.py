"""Admin-created orders.

A manual order has no payment behind it, so it skips the idempotency
pre-check and the provider line-item lookup. It validates its input up
front and then goes through the same atomic commit as a paid checkout.
"""

from __future__ import annotations

import logging
from typing import Any

from storefront.core.db import StorefrontRepository
from storefront.core.dedupe import build_manual_payment_ref
from storefront.core.models import (
    DEFAULT_MANUAL_STATUS,
    CartItem,
    OrderDraft,
    Product,
    ShippingAddress,
    merge_cart_items,
)
from storefront.core.shipping import DEFAULT_COUNTRY, calculate_shipping
from storefront.errors import CurrencyMismatch, InactiveProduct, UnknownProduct, ValidationFailure
from storefront.parsers.utils import clean_str, parse_cents, parse_positive_int

from .fulfillment import FulfillmentService

REQUIRED_ADDRESS_FIELDS = ("line1", "city", "state", "postal", "country")


def _parse_items(raw: Any) -> list[CartItem]:
    if not isinstance(raw, list):
        raise ValidationFailure("items must include productId and quantity > 0")
    items: list[CartItem] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        product_id = clean_str(entry.get("productId"))
        quantity = parse_positive_int(entry.get("quantity"))
        if product_id is None or quantity is None:
            continue
        items.append(CartItem(product_id=product_id, quantity=quantity))
    if not items:
        raise ValidationFailure("items must include productId and quantity > 0")
    return merge_cart_items(items)


def _load_products(repository: StorefrontRepository, items: list[CartItem]) -> dict[str, Product]:
    products = repository.get_products([item.product_id for item in items])
    for item in items:
        product = products.get(item.product_id)
        if product is None:
            raise UnknownProduct(item.product_id)
        if not product.active:
            raise InactiveProduct(item.product_id)
    return products


def _order_currency(items: list[CartItem], products: dict[str, Product]) -> str:
    currencies = {(products[item.product_id].currency or "usd").lower() for item in items}
    if len(currencies) != 1:
        raise CurrencyMismatch()
    return currencies.pop()


def _shipping_address(raw: Any, customer_name: str | None) -> ShippingAddress:
    address = raw if isinstance(raw, dict) else {}
    shipping = ShippingAddress(
        name=customer_name,
        line1=clean_str(address.get("line1")),
        line2=clean_str(address.get("line2")),
        city=clean_str(address.get("city")),
        state=clean_str(address.get("state")),
        postal=clean_str(address.get("postal")),
        country=(clean_str(address.get("country")) or DEFAULT_COUNTRY).upper(),
    )
    missing = [name for name in REQUIRED_ADDRESS_FIELDS if getattr(shipping, name) is None]
    if missing:
        raise ValidationFailure(
            "shippingAddress is required for shippable items (line1, city, state, postal, country)"
        )
    return shipping


def _shipping_override(raw: Any) -> int | None:
    if raw is None or raw == "":
        return None
    cents = parse_cents(raw)
    if cents is None:
        raise ValidationFailure("shippingCents must be a number >= 0")
    return cents


class ManualOrderService:
    def __init__(
        self,
        repository: StorefrontRepository,
        fulfillment: FulfillmentService,
        logger: logging.Logger | logging.LoggerAdapter,
    ):
        self.repository = repository
        self.fulfillment = fulfillment
        self.logger = logger

    def create(self, request: dict[str, Any]) -> dict[str, Any]:
        """Validate an admin order request, commit it and return the order DTO.

        Request keys: ``items`` (list of ``{productId, quantity}``),
        ``customer`` (``email``, ``name``, ``phone``), ``shippingAddress``,
        ``shippingCents`` (override) and ``status``.
        """
        items = _parse_items(request.get("items"))

        customer = request.get("customer") if isinstance(request.get("customer"), dict) else {}
        email = clean_str(customer.get("email"))
        if email is None:
            raise ValidationFailure("customer.email is required")
        name = clean_str(customer.get("name"))
        phone = clean_str(customer.get("phone"))

        products = _load_products(self.repository, items)
        currency = _order_currency(items, products)

        requires_shipping = any(products[item.product_id].requires_shipping for item in items)
        if requires_shipping:
            shipping = _shipping_address(request.get("shippingAddress"), name)
        else:
            shipping = ShippingAddress(name=name)
        override = _shipping_override(request.get("shippingCents"))

        subtotal_cents = sum(products[item.product_id].price_cents * item.quantity for item in items)
        if not requires_shipping:
            shipping_cents = 0
        elif override is not None:
            shipping_cents = override
        else:
            quote = calculate_shipping(
                items,
                products,
                self.repository.list_shipping_zones(enabled_only=True),
                country=shipping.country,
                subtotal_cents=subtotal_cents,
            )
            shipping_cents = quote.shipping_cents

        draft = OrderDraft(
            external_payment_ref=build_manual_payment_ref(),
            status=clean_str(request.get("status")) or DEFAULT_MANUAL_STATUS,
            items=items,
            amount_total=subtotal_cents + shipping_cents,
            currency=currency,
            email=email,
            phone=phone,
            shipping=shipping,
        )
        order = self.fulfillment.commit_order(draft)
        self.logger.info(
            "Manual order %s created (%s, %s line(s), %s %s)",
            order.id,
            order.external_payment_ref,
            len(items),
            order.amount_total,
            order.currency,
        )
        return order.to_dto()
