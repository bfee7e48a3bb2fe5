from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from dateutil import parser as date_parser

from storefront.core.db import StorefrontRepository
from storefront.core.shipping import product_weight_g

ACTIVE_CUSTOMER_WINDOW = timedelta(days=180)


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = date_parser.isoparse(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class OrderQueryService:
    """Read-only admin views over orders, customers and stock."""

    def __init__(self, repository: StorefrontRepository):
        self.repository = repository

    def list_orders(self, since: datetime | None = None) -> list[dict[str, Any]]:
        since_iso = None
        if since is not None:
            if since.tzinfo is None:
                since = since.replace(tzinfo=timezone.utc)
            since_iso = since.astimezone(timezone.utc).isoformat()
        return [order.to_dto() for order in self.repository.list_orders(since=since_iso)]

    def customers(self, now: datetime | None = None) -> list[dict[str, Any]]:
        now = now or datetime.now(timezone.utc)
        cutoff = now - ACTIVE_CUSTOMER_WINDOW
        customers: list[dict[str, Any]] = []
        for row in self.repository.customer_rows():
            last_order_at = _parse_timestamp(row["last_order_at"])
            active = last_order_at is not None and last_order_at >= cutoff
            customers.append(
                {
                    "id": row["email"],
                    "email": row["email"],
                    "totalOrders": int(row["total_orders"]),
                    "totalCents": int(row["total_cents"]),
                    "createdAt": row["first_order_at"],
                    "lastOrderDate": row["last_order_at"],
                    "status": "active" if active else "inactive",
                }
            )
        return customers

    def inventory(self) -> list[dict[str, Any]]:
        return [
            {
                "productId": product.id,
                "sku": product.sku,
                "name": product.name,
                "priceCents": product.price_cents,
                "currency": product.currency,
                "stock": product.stock,
                "active": product.active,
                "shipping": {
                    "requiresShipping": product.requires_shipping,
                    "weightG": product_weight_g(product) or None,
                },
            }
            for product in self.repository.list_products()
        ]
