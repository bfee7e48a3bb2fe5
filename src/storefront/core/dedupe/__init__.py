from .keys import (
    MANUAL_REF_PREFIX,
    build_manual_payment_ref,
    build_payload_event_id,
    is_manual_payment_ref,
    stable_hash,
)

__all__ = [
    "MANUAL_REF_PREFIX",
    "stable_hash",
    "build_manual_payment_ref",
    "build_payload_event_id",
    "is_manual_payment_ref",
]
