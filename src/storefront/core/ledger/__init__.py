from .stock import Decremented, StockLedger, try_decrement

__all__ = ["Decremented", "StockLedger", "try_decrement"]
