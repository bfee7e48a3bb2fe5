from __future__ import annotations

import stripe

from storefront.errors import CheckoutGatewayError, WebhookSignatureError
from storefront.sources.gateway import CheckoutGateway
from storefront.sources.models import ProviderLineItem

LINE_ITEMS_PAGE_SIZE = 100


def _int_or_none(value: object) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


class StripeCheckoutGateway(CheckoutGateway):
    def __init__(self, secret_key: str | None, webhook_secret: str, tolerance_sec: int = 300):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.tolerance_sec = tolerance_sec

    def verify_signature(self, payload: bytes, signature: str | None) -> None:
        if not signature:
            raise WebhookSignatureError("Missing Stripe-Signature header")
        try:
            text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        except UnicodeDecodeError as exc:
            raise WebhookSignatureError(f"Payload is not valid UTF-8: {exc}") from exc
        try:
            stripe.WebhookSignature.verify_header(
                text,
                signature,
                self.webhook_secret,
                tolerance=self.tolerance_sec,
            )
        except stripe.SignatureVerificationError as exc:
            raise WebhookSignatureError(str(exc)) from exc

    def list_line_items(self, session_id: str) -> list[ProviderLineItem]:
        if not self.secret_key:
            raise CheckoutGatewayError("STRIPE_SECRET_KEY is not configured")
        try:
            page = stripe.checkout.Session.list_line_items(
                session_id,
                limit=LINE_ITEMS_PAGE_SIZE,
                api_key=self.secret_key,
            )
            return [
                ProviderLineItem(
                    description=getattr(item, "description", None),
                    quantity=_int_or_none(getattr(item, "quantity", None)) or 0,
                    amount_subtotal=_int_or_none(getattr(item, "amount_subtotal", None)),
                    amount_total=_int_or_none(getattr(item, "amount_total", None)),
                    currency=getattr(item, "currency", None),
                )
                for item in page.auto_paging_iter()
            ]
        except stripe.StripeError as exc:
            raise CheckoutGatewayError(f"Stripe line item lookup failed for {session_id}: {exc}") from exc
