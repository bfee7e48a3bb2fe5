from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import Any

from storefront.core.dedupe import is_manual_payment_ref
from storefront.sources.models import ProviderLineItem

from .catalog import CartItem

PAID_STATUS = "PAID"
DEFAULT_MANUAL_STATUS = "pending"


@dataclass(slots=True, frozen=True)
class ShippingAddress:
    name: str | None = None
    line1: str | None = None
    line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal: str | None = None
    country: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {
            "name": self.name,
            "line1": self.line1,
            "line2": self.line2,
            "city": self.city,
            "state": self.state,
            "postal": self.postal,
            "country": self.country,
        }


@dataclass(slots=True, frozen=True)
class OrderLine:
    product_id: str | None
    sku: str | None
    description: str | None
    quantity: int
    amount_subtotal: int
    amount_total: int
    currency: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "productId": self.product_id,
            "sku": self.sku,
            "description": self.description,
            "quantity": self.quantity,
            "amountSubtotal": self.amount_subtotal,
            "amountTotal": self.amount_total,
            "currency": self.currency,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any], currency: str) -> OrderLine | None:
        try:
            quantity = max(1, int(payload.get("quantity") or 1))
            subtotal = int(payload.get("amountSubtotal") or payload.get("amountTotal") or 0)
            total = int(payload.get("amountTotal") or subtotal)
        except (TypeError, ValueError):
            return None
        return cls(
            product_id=payload.get("productId"),
            sku=payload.get("sku"),
            description=payload.get("description"),
            quantity=quantity,
            amount_subtotal=subtotal,
            amount_total=total,
            currency=str(payload.get("currency") or currency),
        )


def dump_order_lines(lines: list[OrderLine]) -> str:
    return json.dumps([line.to_dict() for line in lines], ensure_ascii=False)


@dataclass(slots=True)
class Order:
    id: int
    external_payment_ref: str
    payment_intent_ref: str | None
    status: str
    product_id: str
    sku: str
    quantity: int
    email: str | None
    phone: str | None
    shipping: ShippingAddress
    amount_total: int
    currency: str
    items_json: str
    created_at: str

    @property
    def source(self) -> str:
        return "manual" if is_manual_payment_ref(self.external_payment_ref) else "checkout"

    def line_items(self) -> list[OrderLine]:
        """Rebuild line items from ``items_json``, falling back to the primary line."""
        try:
            raw = json.loads(self.items_json or "[]")
        except ValueError:
            raw = []
        lines: list[OrderLine] = []
        if isinstance(raw, list):
            for entry in raw:
                if not isinstance(entry, dict):
                    continue
                line = OrderLine.from_dict(entry, self.currency)
                if line is not None:
                    lines.append(line)
        if lines:
            return lines
        return [
            OrderLine(
                product_id=self.product_id,
                sku=self.sku,
                description=None,
                quantity=self.quantity,
                amount_subtotal=self.amount_total,
                amount_total=self.amount_total,
                currency=self.currency,
            )
        ]

    def to_dto(self) -> dict[str, Any]:
        items = []
        for index, line in enumerate(self.line_items()):
            items.append(
                {
                    "id": f"{self.id}_{index}",
                    "orderId": self.id,
                    "productId": line.product_id or line.sku or line.description,
                    "sku": line.sku,
                    "productName": line.description or "Item",
                    "quantity": line.quantity,
                    "priceCents": round(line.amount_subtotal / line.quantity),
                }
            )
        return {
            "id": self.id,
            "externalPaymentRef": self.external_payment_ref,
            "paymentIntentRef": self.payment_intent_ref,
            "status": self.status,
            "source": self.source,
            "createdAt": self.created_at,
            "email": self.email,
            "customerName": self.shipping.name,
            "phone": self.phone,
            "shipping": self.shipping.to_dict(),
            "totalCents": self.amount_total,
            "currency": self.currency,
            "items": items,
        }


@dataclass(slots=True, frozen=True)
class OrderDraft:
    """Everything the fulfillment transaction needs to create one order."""

    external_payment_ref: str
    status: str
    items: list[CartItem]
    amount_total: int
    currency: str
    payment_intent_ref: str | None = None
    email: str | None = None
    phone: str | None = None
    shipping: ShippingAddress = field(default_factory=ShippingAddress)
    provider_line_items: list[ProviderLineItem] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class PaymentCompletedEvent:
    external_ref: str
    paid: bool
    amount_total_cents: int
    currency: str
    payment_intent_ref: str | None = None
    total_quantity_purchased: int = 0
    customer_email: str | None = None
    customer_phone: str | None = None
    shipping_address: ShippingAddress | None = None
    cart_metadata: str | None = None
    legacy_product_id: str | None = None
    legacy_sku: str | None = None
    legacy_quantity: str | None = None
    provider_line_items: list[ProviderLineItem] = field(default_factory=list)

    def with_line_items(self, line_items: list[ProviderLineItem]) -> PaymentCompletedEvent:
        return replace(
            self,
            provider_line_items=list(line_items),
            total_quantity_purchased=sum(item.quantity for item in line_items),
        )
