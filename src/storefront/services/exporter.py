from __future__ import annotations

from pathlib import Path
from typing import Any

import pandas as pd

from storefront.core.db import StorefrontRepository

EXPORT_COLUMNS = [
    "order_id",
    "external_payment_ref",
    "order_source",
    "status",
    "created_at",
    "email",
    "customer_name",
    "shipping_country",
    "order_total_cents",
    "currency",
    "product_id",
    "sku",
    "description",
    "quantity",
    "line_subtotal_cents",
    "line_total_cents",
]


def _order_rows(repository: StorefrontRepository) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for order in repository.list_orders():
        for line in order.line_items():
            rows.append(
                {
                    "order_id": order.id,
                    "external_payment_ref": order.external_payment_ref,
                    "order_source": order.source,
                    "status": order.status,
                    "created_at": order.created_at,
                    "email": order.email,
                    "customer_name": order.shipping.name,
                    "shipping_country": order.shipping.country,
                    "order_total_cents": order.amount_total,
                    "currency": order.currency,
                    "product_id": line.product_id,
                    "sku": line.sku,
                    "description": line.description,
                    "quantity": line.quantity,
                    "line_subtotal_cents": line.amount_subtotal,
                    "line_total_cents": line.amount_total,
                }
            )
    return rows


def export_orders(repository: StorefrontRepository, formats: list[str], out_dir: Path) -> list[Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame(_order_rows(repository), columns=EXPORT_COLUMNS)

    created_files: list[Path] = []
    if "csv" in formats:
        csv_path = (out_dir / "orders_export.csv").resolve()
        df.to_csv(csv_path, index=False, encoding="utf-8-sig")
        created_files.append(csv_path)

    if "xlsx" in formats:
        xlsx_path = (out_dir / "orders_export.xlsx").resolve()
        with pd.ExcelWriter(xlsx_path, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name="order_lines")
        created_files.append(xlsx_path)

    return created_files
