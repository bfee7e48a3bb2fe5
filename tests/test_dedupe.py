from storefront.core.dedupe import (
    build_manual_payment_ref,
    build_payload_event_id,
    is_manual_payment_ref,
    stable_hash,
)


def test_stable_hash_ignores_surrounding_whitespace() -> None:
    assert stable_hash("webhook", " evt_1 ") == stable_hash("webhook", "evt_1")
    assert stable_hash("a", None) == stable_hash("a", "")


def test_manual_refs_are_unique_and_prefixed() -> None:
    first = build_manual_payment_ref()
    second = build_manual_payment_ref()
    assert first != second
    assert is_manual_payment_ref(first)
    assert not is_manual_payment_ref("cs_test_1")


def test_payload_event_id_is_stable_for_bytes_and_text() -> None:
    key1 = build_payload_event_id(b'{"broken"')
    key2 = build_payload_event_id('{"broken"')
    assert key1 == key2
    assert key1.startswith("payload_")
    assert len(key1) == len("payload_") + 32
