from .catalog import CartItem, Product, merge_cart_items
from .orders import (
    DEFAULT_MANUAL_STATUS,
    PAID_STATUS,
    Order,
    OrderDraft,
    OrderLine,
    PaymentCompletedEvent,
    ShippingAddress,
    dump_order_lines,
)
from .shipping import ShippingQuote, ShippingZone, WeightTier

__all__ = [
    "CartItem",
    "Product",
    "merge_cart_items",
    "DEFAULT_MANUAL_STATUS",
    "PAID_STATUS",
    "Order",
    "OrderDraft",
    "OrderLine",
    "PaymentCompletedEvent",
    "ShippingAddress",
    "dump_order_lines",
    "ShippingQuote",
    "ShippingZone",
    "WeightTier",
]
