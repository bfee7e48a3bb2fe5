"""Order fulfillment engine.

Turns a confirmed payment into exactly one order row and the matching
stock decrements. Idempotency is keyed on the payment reference; the
UNIQUE index on ``orders.external_payment_ref`` and the guarded
decrement keep concurrent deliveries safe without in-process locks.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from enum import StrEnum

from storefront.core.db import StorefrontRepository
from storefront.core.ledger import StockLedger
from storefront.core.logging import bind_external_ref
from storefront.core.models import (
    PAID_STATUS,
    Order,
    OrderDraft,
    OrderLine,
    PaymentCompletedEvent,
    Product,
    ShippingAddress,
)
from storefront.errors import (
    DatastoreUnavailable,
    DuplicateEvent,
    InsufficientStock,
    MalformedEventPayload,
    StorefrontError,
)
from storefront.parsers import reconcile_quantities, resolve_cart_items


class FulfillmentStatus(StrEnum):
    FULFILLED = "fulfilled"
    ALREADY_FULFILLED = "already_fulfilled"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class FulfillmentResult:
    status: FulfillmentStatus
    external_ref: str
    order: Order | None = None
    reason: str | None = None
    retryable: bool = False

    @property
    def ok(self) -> bool:
        return self.status is not FulfillmentStatus.FAILED


def _build_lines(draft: OrderDraft, products: dict[str, Product]) -> list[OrderLine]:
    provider_items = draft.provider_line_items
    paired = len(provider_items) == len(draft.items)
    lines: list[OrderLine] = []
    for index, item in enumerate(draft.items):
        product = products[item.product_id]
        catalog_amount = product.price_cents * item.quantity
        provider = provider_items[index] if paired else None
        subtotal = catalog_amount
        total = catalog_amount
        description = product.name
        currency = draft.currency
        if provider is not None:
            subtotal = provider.amount_subtotal if provider.amount_subtotal is not None else catalog_amount
            total = provider.amount_total if provider.amount_total is not None else subtotal
            description = provider.description or product.name
            currency = (provider.currency or draft.currency).lower()
        lines.append(
            OrderLine(
                product_id=product.id,
                sku=product.sku,
                description=description,
                quantity=item.quantity,
                amount_subtotal=subtotal,
                amount_total=total,
                currency=currency,
            )
        )
    return lines


class FulfillmentService:
    def __init__(
        self,
        repository: StorefrontRepository,
        logger: logging.Logger | logging.LoggerAdapter,
    ):
        self.repository = repository
        self.logger = logger

    def commit_order(self, draft: OrderDraft) -> Order:
        """Decrement every line and insert the order in one transaction.

        Raises DuplicateEvent when the payment reference already has an
        order, InsufficientStock / UnknownProduct when a line cannot be
        taken. Nothing is written unless everything succeeds.
        """
        if not draft.items:
            raise MalformedEventPayload(f"Order {draft.external_payment_ref} has no line items")

        primary = draft.items[0]
        try:
            with self.repository.transaction() as connection:
                if self.repository.find_order_by_ref(draft.external_payment_ref) is not None:
                    raise DuplicateEvent(draft.external_payment_ref)

                ledger = StockLedger(connection)
                # Stable lock order across concurrent orders sharing SKUs.
                for item in sorted(draft.items, key=lambda cart_item: cart_item.product_id):
                    ledger.try_decrement(item.product_id, item.quantity)

                products = self.repository.get_products([item.product_id for item in draft.items])
                primary_product = products[primary.product_id]

                order_id = self.repository.insert_order(
                    external_payment_ref=draft.external_payment_ref,
                    payment_intent_ref=draft.payment_intent_ref,
                    status=draft.status,
                    product_id=primary.product_id,
                    sku=primary_product.sku,
                    quantity=primary.quantity,
                    email=draft.email,
                    phone=draft.phone,
                    shipping=draft.shipping,
                    amount_total=draft.amount_total,
                    currency=draft.currency,
                    lines=_build_lines(draft, products),
                )
        except sqlite3.IntegrityError as exc:
            if self.repository.is_duplicate_order_error(exc):
                raise DuplicateEvent(draft.external_payment_ref) from exc
            raise
        except sqlite3.OperationalError as exc:
            raise DatastoreUnavailable(f"Datastore error while fulfilling {draft.external_payment_ref}: {exc}") from exc

        order = self.repository.get_order(order_id)
        if order is None:
            raise DatastoreUnavailable(f"Order {order_id} vanished after commit")
        return order

    def fulfill(self, event: PaymentCompletedEvent) -> FulfillmentResult:
        ref = event.external_ref
        logger = bind_external_ref(self.logger, ref)
        try:
            if self.repository.find_order_by_ref(ref) is not None:
                logger.info("Payment %s already fulfilled, skipping", ref)
                return FulfillmentResult(status=FulfillmentStatus.ALREADY_FULFILLED, external_ref=ref)

            if not event.paid:
                logger.info("Payment %s not completed yet, waiting for a later event", ref)
                return FulfillmentResult(status=FulfillmentStatus.SKIPPED, external_ref=ref, reason="not_paid")

            items = reconcile_quantities(resolve_cart_items(event), event.total_quantity_purchased)
            draft = OrderDraft(
                external_payment_ref=ref,
                payment_intent_ref=event.payment_intent_ref,
                status=PAID_STATUS,
                items=items,
                amount_total=event.amount_total_cents,
                currency=event.currency,
                email=event.customer_email,
                phone=event.customer_phone,
                provider_line_items=list(event.provider_line_items),
                shipping=event.shipping_address or ShippingAddress(),
            )
            order = self.commit_order(draft)
        except DuplicateEvent:
            logger.info("Payment %s fulfilled concurrently by another delivery", ref)
            return FulfillmentResult(status=FulfillmentStatus.ALREADY_FULFILLED, external_ref=ref)
        except InsufficientStock as exc:
            logger.warning("Payment %s not fulfilled: %s", ref, exc)
            return FulfillmentResult(
                status=FulfillmentStatus.FAILED,
                external_ref=ref,
                reason=str(exc),
                retryable=exc.retryable,
            )
        except StorefrontError as exc:
            logger.error("Payment %s failed: %s: %s", ref, exc.__class__.__name__, exc)
            return FulfillmentResult(
                status=FulfillmentStatus.FAILED,
                external_ref=ref,
                reason=str(exc),
                retryable=exc.retryable,
            )
        except sqlite3.Error as exc:
            logger.error("Payment %s failed with datastore error: %s", ref, exc)
            return FulfillmentResult(
                status=FulfillmentStatus.FAILED,
                external_ref=ref,
                reason=f"Datastore error: {exc}",
                retryable=True,
            )

        logger.info(
            "Order %s created for payment %s (%s line(s), %s %s)",
            order.id,
            ref,
            len(order.line_items()),
            order.amount_total,
            order.currency,
        )
        return FulfillmentResult(status=FulfillmentStatus.FULFILLED, external_ref=ref, order=order)
