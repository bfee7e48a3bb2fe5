from __future__ import annotations

import hashlib
import uuid
from typing import Any

MANUAL_REF_PREFIX = "manual_"


def _normalize_part(part: Any) -> str:
    if part is None:
        return ""
    if isinstance(part, bytes):
        return part.decode("utf-8", errors="replace")
    return str(part).strip()


def stable_hash(*parts: Any) -> str:
    payload = "||".join(_normalize_part(part) for part in parts)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def build_manual_payment_ref() -> str:
    return f"{MANUAL_REF_PREFIX}{uuid.uuid4()}"


def is_manual_payment_ref(value: str) -> bool:
    return value.startswith(MANUAL_REF_PREFIX)


def build_payload_event_id(payload: bytes | str) -> str:
    """Audit key for payloads that carry no usable provider event id."""
    return f"payload_{stable_hash('webhook', payload)[:32]}"
