"""Integrity hashing for salary sheets.

SHA-256 via ``hashlib`` is preferred. When it is unavailable (or disabled by
configuration) the provider falls back to FNV-1a 32-bit, a deterministic but
non-cryptographic digest. The algorithm tag is always reported.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any

SHA256 = "SHA-256"
FNV1A_32 = "FNV-1A-32"

_FNV_OFFSET_BASIS = 0x811C9DC5
_FNV_PRIME = 0x01000193


@dataclass(frozen=True)
class HashResult:
    algorithm: str
    hex: str


def fnv1a_32(text: str) -> str:
    """FNV-1a over the UTF-8 bytes of ``text``, as 8 lowercase hex digits."""
    value = _FNV_OFFSET_BASIS
    for byte in text.encode("utf-8"):
        value ^= byte
        value = (value * _FNV_PRIME) & 0xFFFFFFFF
    return f"{value:08x}"


def sha256_available() -> bool:
    return "sha256" in hashlib.algorithms_available


def hash_text(text: str, prefer_cryptographic: bool = True) -> HashResult:
    """Hash a string, preferring SHA-256."""
    if prefer_cryptographic and sha256_available():
        return HashResult(SHA256, hashlib.sha256(text.encode("utf-8")).hexdigest())
    return HashResult(FNV1A_32, fnv1a_32(text))


def canonical_json(payload: dict[str, Any]) -> str:
    """Deterministic JSON for hashing (sorted keys, compact separators)."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)


def hash_payload(payload: dict[str, Any], prefer_cryptographic: bool = True) -> HashResult:
    """Hash a canonical payload."""
    return hash_text(canonical_json(payload), prefer_cryptographic)


def verify_payload(payload: dict[str, Any], algorithm: str | None, expected: str | None) -> bool:
    """Recompute a payload hash with the recorded algorithm and compare."""
    if not algorithm or not expected:
        return False
    text = canonical_json(payload)
    if algorithm == SHA256:
        return hashlib.sha256(text.encode("utf-8")).hexdigest() == expected
    if algorithm == FNV1A_32:
        return fnv1a_32(text) == expected
    raise ValueError(f"Unknown hash algorithm: {algorithm}")
