from .cart import parse_cart_metadata, reconcile_quantities, resolve_cart_items
from .webhook_parser import parse_checkout_session, parse_webhook_event

__all__ = [
    "parse_cart_metadata",
    "reconcile_quantities",
    "resolve_cart_items",
    "parse_checkout_session",
    "parse_webhook_event",
]
