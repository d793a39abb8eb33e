"""Tests for salary sheet integrity hashing."""

import pytest

from hr_payroll_engine.services.integrity import (
    FNV1A_32,
    SHA256,
    canonical_json,
    fnv1a_32,
    hash_payload,
    hash_text,
    verify_payload,
)


class TestFnv1a:
    """Known FNV-1a 32-bit vectors."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("", "811c9dc5"),
            ("a", "e40c292c"),
            ("foobar", "bf9cf968"),
        ],
    )
    def test_known_vectors(self, text, expected):
        assert fnv1a_32(text) == expected

    def test_always_eight_hex_digits(self):
        digest = fnv1a_32("x")
        assert len(digest) == 8
        int(digest, 16)


class TestHashText:
    def test_prefers_sha256(self):
        result = hash_text("abc")
        assert result.algorithm == SHA256
        assert result.hex == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"

    def test_fallback_reports_fnv_tag(self):
        result = hash_text("a", prefer_cryptographic=False)
        assert result.algorithm == FNV1A_32
        assert result.hex == "e40c292c"


class TestCanonicalPayload:
    def test_key_order_does_not_matter(self):
        assert canonical_json({"b": 1, "a": "2"}) == canonical_json({"a": "2", "b": 1})
        assert canonical_json({"b": 1, "a": "2"}) == '{"a":"2","b":1}'

    def test_same_payload_same_hash(self):
        payload = {"net_salary": "27692.31", "employee_id": 4, "status": "Calculated"}
        assert hash_payload(payload) == hash_payload(dict(reversed(list(payload.items()))))

    def test_any_field_change_changes_hash(self):
        payload = {"net_salary": "27692.31", "employee_id": 4}
        changed = {**payload, "net_salary": "27692.32"}
        assert hash_payload(payload).hex != hash_payload(changed).hex


class TestVerifyPayload:
    @pytest.mark.parametrize("prefer", [True, False])
    def test_round_trip(self, prefer):
        payload = {"employee_id": 1, "net_salary": "100.00"}
        result = hash_payload(payload, prefer_cryptographic=prefer)
        assert verify_payload(payload, result.algorithm, result.hex) is True
        assert verify_payload({**payload, "net_salary": "99.00"}, result.algorithm, result.hex) is False

    def test_missing_metadata_never_verifies(self):
        assert verify_payload({"a": 1}, None, None) is False
        assert verify_payload({"a": 1}, SHA256, None) is False

    def test_unknown_algorithm_raises(self):
        with pytest.raises(ValueError):
            verify_payload({"a": 1}, "MD5", "abc")
