"""Per-SKU stock counter.

Stock only ever moves down here, and only through one conditional UPDATE
(compare-and-decrement). Callers run it on the connection of an open
write transaction so that a failure on any line rolls back every line.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass

from storefront.errors import InsufficientStock, StockInvariantViolation, UnknownProduct


@dataclass(slots=True, frozen=True)
class Decremented:
    product_id: str
    quantity: int
    rows_affected: int


class StockLedger:
    def __init__(self, connection: sqlite3.Connection):
        self.connection = connection

    def try_decrement(self, product_id: str, quantity: int) -> Decremented:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValueError(f"quantity must be a positive integer, got {quantity!r}")

        cursor = self.connection.execute(
            "UPDATE products SET stock = stock - ?, updated_at = CURRENT_TIMESTAMP WHERE id = ? AND stock >= ?",
            (quantity, product_id, quantity),
        )
        rows = cursor.rowcount
        if rows == 1:
            return Decremented(product_id=product_id, quantity=quantity, rows_affected=rows)
        if rows == 0:
            exists = self.connection.execute("SELECT 1 FROM products WHERE id = ?", (product_id,)).fetchone()
            if exists is None:
                raise UnknownProduct(product_id)
            raise InsufficientStock(product_id)
        raise StockInvariantViolation(f"Guarded decrement of {product_id} touched {rows} rows")

    def available(self, product_id: str) -> int | None:
        row = self.connection.execute("SELECT stock FROM products WHERE id = ?", (product_id,)).fetchone()
        return int(row["stock"]) if row else None


def try_decrement(connection: sqlite3.Connection, product_id: str, quantity: int) -> Decremented:
    return StockLedger(connection).try_decrement(product_id, quantity)
