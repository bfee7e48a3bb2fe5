from __future__ import annotations

import pytest

from storefront.core.ledger import StockLedger, try_decrement
from storefront.errors import InsufficientStock, UnknownProduct


def test_decrement_within_stock(repository, catalog) -> None:  # noqa: ANN001
    with repository.transaction() as connection:
        result = try_decrement(connection, "p2", 3)

    assert result.rows_affected == 1
    assert repository.get_product("p2").stock == 2


def test_decrement_to_exactly_zero(repository, catalog) -> None:  # noqa: ANN001
    with repository.transaction() as connection:
        StockLedger(connection).try_decrement("p2", 5)

    assert repository.get_product("p2").stock == 0


def test_decrement_beyond_stock_leaves_counter_untouched(repository, catalog) -> None:  # noqa: ANN001
    with pytest.raises(InsufficientStock) as excinfo:
        with repository.transaction() as connection:
            StockLedger(connection).try_decrement("p2", 6)

    assert excinfo.value.retryable is True
    assert str(excinfo.value) == "Insufficient stock for p2"
    assert repository.get_product("p2").stock == 5


def test_decrement_unknown_product(repository, catalog) -> None:  # noqa: ANN001
    with pytest.raises(UnknownProduct):
        with repository.transaction() as connection:
            StockLedger(connection).try_decrement("missing", 1)


@pytest.mark.parametrize("quantity", [0, -1, 1.5, True])
def test_decrement_rejects_non_positive_quantity(repository, catalog, quantity) -> None:  # noqa: ANN001
    ledger = StockLedger(repository.connection)
    with pytest.raises(ValueError):
        ledger.try_decrement("p1", quantity)


def test_rollback_restores_earlier_decrement(repository, catalog) -> None:  # noqa: ANN001
    with pytest.raises(InsufficientStock):
        with repository.transaction() as connection:
            ledger = StockLedger(connection)
            ledger.try_decrement("p1", 4)
            ledger.try_decrement("p2", 50)

    assert StockLedger(repository.connection).available("p1") == 10
    assert StockLedger(repository.connection).available("p2") == 5
