from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(slots=True, frozen=True)
class ProviderLineItem:
    description: str | None
    quantity: int
    amount_subtotal: int | None = None
    amount_total: int | None = None
    currency: str | None = None


@dataclass(slots=True, frozen=True)
class WebhookEnvelope:
    event_id: str
    event_type: str
    data_object: dict[str, Any]
