from shared.observability.privacy import hash_payload, is_masked, mask_secret


def test_hash_payload_is_stable_and_order_independent():
    first = hash_payload({"client_name": "ACME", "budget_amount": 10})
    second = hash_payload({"budget_amount": 10, "client_name": "ACME"})

    assert first == second
    assert len(first) == 64
    assert "ACME" not in first


def test_hash_payload_accepts_bytes_and_none():
    assert hash_payload(b"%PDF") == hash_payload("%PDF")
    assert hash_payload(None) == hash_payload("null")


def test_mask_secret_keeps_only_the_tail():
    masked = mask_secret("AIzaSyExample-1234")

    assert masked == "*" * 14 + "1234"
    assert is_masked(masked)


def test_mask_secret_hides_short_values_entirely_and_keeps_empty():
    assert mask_secret("abc123") == "******"
    assert mask_secret("") == ""
    assert mask_secret(None) == ""
    assert not is_masked("")
    assert not is_masked("AIzaSyExample")
