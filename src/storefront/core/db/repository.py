from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from storefront.core.models import (
    Order,
    OrderLine,
    Product,
    ShippingAddress,
    ShippingZone,
    WeightTier,
    dump_order_lines,
)
from storefront.errors import ValidationFailure

from .migrations import apply_migrations, connect_db

ORDER_REF_UNIQUE_MARKER = "orders.external_payment_ref"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class StorefrontRepository:
    def __init__(self, db_path: Path, timeout_sec: float = 10.0):
        self.db_path = db_path
        self.connection = connect_db(db_path, timeout_sec=timeout_sec)

    def close(self) -> None:
        self.connection.close()

    def __enter__(self) -> StorefrontRepository:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()

    def migrate(self) -> list[str]:
        return apply_migrations(self.connection)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Write transaction that takes the database write lock up front.

        Everything executed inside commits together or rolls back together.
        """
        with self.connection:
            self.connection.execute("BEGIN IMMEDIATE")
            yield self.connection

    @staticmethod
    def _to_json(payload: dict[str, Any] | list[Any] | None) -> str | None:
        if payload is None:
            return None
        return json.dumps(payload, ensure_ascii=False)

    @staticmethod
    def is_duplicate_order_error(exc: sqlite3.IntegrityError) -> bool:
        return ORDER_REF_UNIQUE_MARKER in str(exc)

    # Catalog

    @staticmethod
    def _product_from_row(row: sqlite3.Row) -> Product:
        return Product(
            id=row["id"],
            sku=row["sku"],
            name=row["name"],
            price_cents=int(row["price_cents"]),
            currency=row["currency"],
            stock=int(row["stock"]),
            active=bool(row["active"]),
            requires_shipping=bool(row["requires_shipping"]),
            weight_g=row["weight_g"],
            weight_oz=row["weight_oz"],
            weight_grams=row["weight_grams"],
            volume_ml=row["volume_ml"],
        )

    def upsert_product(self, product: Product) -> None:
        with self.connection:
            self.connection.execute(
                """
                INSERT INTO products (
                    id, sku, name, price_cents, currency, stock, active, requires_shipping,
                    weight_g, weight_oz, weight_grams, volume_ml
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    sku = excluded.sku,
                    name = excluded.name,
                    price_cents = excluded.price_cents,
                    currency = excluded.currency,
                    stock = excluded.stock,
                    active = excluded.active,
                    requires_shipping = excluded.requires_shipping,
                    weight_g = excluded.weight_g,
                    weight_oz = excluded.weight_oz,
                    weight_grams = excluded.weight_grams,
                    volume_ml = excluded.volume_ml,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (
                    product.id,
                    product.sku,
                    product.name,
                    product.price_cents,
                    product.currency.lower(),
                    product.stock,
                    int(product.active),
                    int(product.requires_shipping),
                    product.weight_g,
                    product.weight_oz,
                    product.weight_grams,
                    product.volume_ml,
                ),
            )

    def get_product(self, product_id: str) -> Product | None:
        row = self.connection.execute("SELECT * FROM products WHERE id = ?", (product_id,)).fetchone()
        return self._product_from_row(row) if row else None

    def get_products(self, product_ids: list[str]) -> dict[str, Product]:
        unique_ids = list(dict.fromkeys(product_ids))
        if not unique_ids:
            return {}
        placeholders = ", ".join("?" for _ in unique_ids)
        rows = self.connection.execute(
            f"SELECT * FROM products WHERE id IN ({placeholders})",  # noqa: S608
            tuple(unique_ids),
        ).fetchall()
        return {row["id"]: self._product_from_row(row) for row in rows}

    def list_products(self) -> list[Product]:
        rows = self.connection.execute("SELECT * FROM products ORDER BY created_at, id").fetchall()
        return [self._product_from_row(row) for row in rows]

    # Shipping zones

    @staticmethod
    def _validate_tiers(tiers: list[WeightTier]) -> list[WeightTier]:
        ordered = sorted(tiers, key=lambda tier: tier.min_weight_g)
        previous: WeightTier | None = None
        for tier in ordered:
            if tier.min_weight_g < 0 or tier.max_weight_g < tier.min_weight_g:
                raise ValidationFailure(
                    f"Invalid weight tier {tier.min_weight_g}-{tier.max_weight_g}g"
                )
            if tier.rate_cents < 0:
                raise ValidationFailure("rateCents must be >= 0")
            if previous is not None and tier.min_weight_g <= previous.max_weight_g:
                raise ValidationFailure(
                    f"Weight tiers overlap: {previous.min_weight_g}-{previous.max_weight_g}g "
                    f"and {tier.min_weight_g}-{tier.max_weight_g}g"
                )
            previous = tier
        return ordered

    def upsert_shipping_zone(self, zone: ShippingZone) -> int:
        tiers = self._validate_tiers(zone.tiers)
        countries = sorted({code.strip().upper() for code in zone.countries if code.strip()})
        with self.connection:
            self.connection.execute(
                """
                INSERT INTO shipping_zones (name, countries_json, enabled, free_shipping_min)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    countries_json = excluded.countries_json,
                    enabled = excluded.enabled,
                    free_shipping_min = excluded.free_shipping_min,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (zone.name, self._to_json(countries), int(zone.enabled), zone.free_shipping_min),
            )
            row = self.connection.execute("SELECT id FROM shipping_zones WHERE name = ?", (zone.name,)).fetchone()
            zone_id = int(row["id"])
            self.connection.execute("DELETE FROM weight_tiers WHERE zone_id = ?", (zone_id,))
            self.connection.executemany(
                "INSERT INTO weight_tiers (zone_id, min_weight_g, max_weight_g, rate_cents) VALUES (?, ?, ?, ?)",
                [(zone_id, tier.min_weight_g, tier.max_weight_g, tier.rate_cents) for tier in tiers],
            )
        return zone_id

    def list_shipping_zones(self, enabled_only: bool = False) -> list[ShippingZone]:
        query = "SELECT * FROM shipping_zones"
        if enabled_only:
            query += " WHERE enabled = 1"
        query += " ORDER BY name"
        zones: list[ShippingZone] = []
        for row in self.connection.execute(query).fetchall():
            tier_rows = self.connection.execute(
                """
                SELECT min_weight_g, max_weight_g, rate_cents FROM weight_tiers
                WHERE zone_id = ?
                ORDER BY min_weight_g
                """,
                (row["id"],),
            ).fetchall()
            zones.append(
                ShippingZone(
                    id=int(row["id"]),
                    name=row["name"],
                    countries=json.loads(row["countries_json"] or "[]"),
                    enabled=bool(row["enabled"]),
                    free_shipping_min=row["free_shipping_min"],
                    tiers=[
                        WeightTier(
                            min_weight_g=int(tier["min_weight_g"]),
                            max_weight_g=int(tier["max_weight_g"]),
                            rate_cents=int(tier["rate_cents"]),
                        )
                        for tier in tier_rows
                    ],
                )
            )
        return zones

    # Orders

    @staticmethod
    def _order_from_row(row: sqlite3.Row) -> Order:
        return Order(
            id=int(row["id"]),
            external_payment_ref=row["external_payment_ref"],
            payment_intent_ref=row["payment_intent_ref"],
            status=row["status"],
            product_id=row["product_id"],
            sku=row["sku"],
            quantity=int(row["quantity"]),
            email=row["email"],
            phone=row["phone"],
            shipping=ShippingAddress(
                name=row["shipping_name"],
                line1=row["shipping_line1"],
                line2=row["shipping_line2"],
                city=row["shipping_city"],
                state=row["shipping_state"],
                postal=row["shipping_postal"],
                country=row["shipping_country"],
            ),
            amount_total=int(row["amount_total"]),
            currency=row["currency"],
            items_json=row["items_json"],
            created_at=row["created_at"],
        )

    def find_order_by_ref(self, external_payment_ref: str) -> Order | None:
        row = self.connection.execute(
            "SELECT * FROM orders WHERE external_payment_ref = ?",
            (external_payment_ref,),
        ).fetchone()
        return self._order_from_row(row) if row else None

    def get_order(self, order_id: int) -> Order | None:
        row = self.connection.execute("SELECT * FROM orders WHERE id = ?", (order_id,)).fetchone()
        return self._order_from_row(row) if row else None

    def list_orders(self, since: str | None = None) -> list[Order]:
        if since:
            rows = self.connection.execute(
                "SELECT * FROM orders WHERE created_at >= ? ORDER BY created_at DESC, id DESC",
                (since,),
            ).fetchall()
        else:
            rows = self.connection.execute("SELECT * FROM orders ORDER BY created_at DESC, id DESC").fetchall()
        return [self._order_from_row(row) for row in rows]

    def insert_order(
        self,
        *,
        external_payment_ref: str,
        payment_intent_ref: str | None,
        status: str,
        product_id: str,
        sku: str,
        quantity: int,
        email: str | None,
        phone: str | None,
        shipping: ShippingAddress,
        amount_total: int,
        currency: str,
        lines: list[OrderLine],
    ) -> int:
        """Insert one order row. Must run inside ``transaction()``."""
        cursor = self.connection.execute(
            """
            INSERT INTO orders (
                external_payment_ref, payment_intent_ref, status, product_id, sku, quantity,
                email, phone, shipping_name, shipping_line1, shipping_line2, shipping_city,
                shipping_state, shipping_postal, shipping_country, amount_total, currency,
                items_json, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                external_payment_ref,
                payment_intent_ref,
                status,
                product_id,
                sku,
                quantity,
                email,
                phone,
                shipping.name,
                shipping.line1,
                shipping.line2,
                shipping.city,
                shipping.state,
                shipping.postal,
                shipping.country,
                amount_total,
                currency,
                dump_order_lines(lines),
                _utc_now(),
            ),
        )
        return int(cursor.lastrowid)

    def customer_rows(self) -> list[dict[str, Any]]:
        rows = self.connection.execute(
            """
            SELECT
                lower(trim(email)) AS email,
                COUNT(*) AS total_orders,
                COALESCE(SUM(amount_total), 0) AS total_cents,
                MIN(created_at) AS first_order_at,
                MAX(created_at) AS last_order_at
            FROM orders
            WHERE email IS NOT NULL AND trim(email) != ''
            GROUP BY lower(trim(email))
            ORDER BY MAX(created_at) DESC
            """
        ).fetchall()
        return [dict(row) for row in rows]

    # Webhook audit

    def record_webhook_event(
        self,
        *,
        event_id: str,
        event_type: str,
        external_ref: str | None,
        outcome: str,
        detail: str | None = None,
    ) -> None:
        now = _utc_now()
        with self.connection:
            self.connection.execute(
                """
                INSERT INTO webhook_events (
                    event_id, event_type, external_ref, outcome, detail, received_at, last_received_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(event_id) DO UPDATE SET
                    outcome = excluded.outcome,
                    detail = excluded.detail,
                    external_ref = COALESCE(excluded.external_ref, webhook_events.external_ref),
                    attempts = webhook_events.attempts + 1,
                    last_received_at = excluded.last_received_at
                """,
                (event_id, event_type, external_ref, outcome, detail, now, now),
            )

    def get_webhook_event(self, event_id: str) -> dict[str, Any] | None:
        row = self.connection.execute("SELECT * FROM webhook_events WHERE event_id = ?", (event_id,)).fetchone()
        return dict(row) if row else None
