"""Error taxonomy for fulfillment, manual orders and webhook ingestion.

Every error carries a ``retryable`` flag. The webhook boundary turns it into
the provider's retry signal; admin callers get the message of the first
failure.
"""

from __future__ import annotations


class StorefrontError(Exception):
    retryable: bool = False


class MalformedEventPayload(StorefrontError):
    """The payment provider sent something that cannot be decoded into an event."""


class MissingOrderMetadata(MalformedEventPayload):
    """A paid session carries neither a usable cart nor legacy single-item fields."""


class WebhookSignatureError(StorefrontError):
    """Signature header missing or not produced with the configured secret."""


class ValidationFailure(StorefrontError):
    """Manual-order input rejected before any stock is touched."""


class UnknownProduct(ValidationFailure):
    def __init__(self, product_id: str):
        super().__init__(f"Product not found: {product_id}")
        self.product_id = product_id


class InactiveProduct(ValidationFailure):
    def __init__(self, product_id: str):
        super().__init__(f"Product is not active: {product_id}")
        self.product_id = product_id


class CurrencyMismatch(ValidationFailure):
    def __init__(self) -> None:
        super().__init__("All items must have the same currency")


class InsufficientStock(StorefrontError):
    retryable = True

    def __init__(self, product_id: str):
        super().__init__(f"Insufficient stock for {product_id}")
        self.product_id = product_id


class StockInvariantViolation(StorefrontError):
    """A guarded decrement touched a number of rows other than one."""


class DuplicateEvent(StorefrontError):
    """An order already exists for this payment reference."""

    def __init__(self, external_ref: str):
        super().__init__(f"Order already exists for {external_ref}")
        self.external_ref = external_ref


class DatastoreUnavailable(StorefrontError):
    retryable = True


class CheckoutGatewayError(StorefrontError):
    retryable = True
