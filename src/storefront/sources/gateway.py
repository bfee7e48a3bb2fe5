"""Checkout gateway port and an in-memory adapter.

The webhook handler only needs two things from the payment provider:
proof that a payload is authentic and the line items of a paid session.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from storefront.errors import WebhookSignatureError

from .models import ProviderLineItem

FAKE_SIGNATURE = "test-signature"


class CheckoutGateway(ABC):
    @abstractmethod
    def verify_signature(self, payload: bytes, signature: str | None) -> None:
        """Raise WebhookSignatureError unless the payload is authentic."""
        ...

    @abstractmethod
    def list_line_items(self, session_id: str) -> list[ProviderLineItem]:
        """Line items purchased in a checkout session."""
        ...


class FakeCheckoutGateway(CheckoutGateway):
    """Offline gateway for development and tests."""

    def __init__(self, line_items: dict[str, list[ProviderLineItem]] | None = None) -> None:
        self.line_items: dict[str, list[ProviderLineItem]] = dict(line_items or {})
        self.calls: list[str] = []

    def verify_signature(self, payload: bytes, signature: str | None) -> None:  # noqa: ARG002
        if signature != FAKE_SIGNATURE:
            raise WebhookSignatureError("No signatures found matching the expected signature for payload")

    def list_line_items(self, session_id: str) -> list[ProviderLineItem]:
        self.calls.append(session_id)
        return list(self.line_items.get(session_id, []))
