"""
Deterministic canonical encoding primitives.

These helpers back commitment hashing and note encoding: every value that is
hashed or written into a ledger slot passes through here first.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


MAX_U128 = (1 << 128) - 1


def reject_surrogates(s: str) -> None:
    # Lone surrogates are not Unicode scalar values and cannot be UTF-8 encoded.
    for ch in s:
        if 0xD800 <= ord(ch) <= 0xDFFF:
            raise TypeError("surrogate code points are not allowed in canonical encoding")


def _reject_floats(value: Any) -> None:
    if isinstance(value, float):
        raise TypeError("floats are not allowed in canonical encoding")
    if isinstance(value, str):
        reject_surrogates(value)
    if isinstance(value, dict):
        for k in value.keys():
            if not isinstance(k, str):
                raise TypeError("dict keys must be str for canonical encoding")
        for k, v in value.items():
            reject_surrogates(k)
            _reject_floats(v)
        return
    if isinstance(value, (list, tuple)):
        for item in value:
            _reject_floats(item)
        return


def canonical_json_bytes(value: Any) -> bytes:
    """
    Canonical JSON encoding for hashing.

    Rules:
    - UTF-8
    - sort_keys=True
    - separators=(',', ':') (no whitespace)
    - allow_nan=False
    - floats rejected (to avoid representation ambiguity)
    """
    _reject_floats(value)
    text = json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )
    return text.encode("utf-8")


def domain_sep_bytes(label: str, version: int = 1) -> bytes:
    """
    Create a domain separation prefix.

    The output is ASCII-only and NUL-terminated to make concatenation unambiguous.
    """
    if not isinstance(label, str) or not label:
        raise TypeError("label must be a non-empty str")
    if "\x00" in label:
        raise ValueError("label must not contain NUL")
    try:
        label_bytes = label.encode("ascii")
    except UnicodeEncodeError as exc:
        raise ValueError("label must be ASCII") from exc
    if not isinstance(version, int) or isinstance(version, bool) or version <= 0:
        raise ValueError("version must be a positive int")
    return b"voile:" + label_bytes + b":v" + str(version).encode("ascii") + b"\x00"


def sha256_int(data: bytes) -> int:
    """SHA-256 digest interpreted as a big-endian unsigned integer."""
    return int.from_bytes(hashlib.sha256(data).digest(), "big")


def require_uint(value: Any, *, name: str, bits: int = 64, positive: bool = False) -> int:
    """Return `value` as an int after checking it is an unsigned `bits`-wide integer."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0:
        raise ValueError(f"{name} must be non-negative: {value}")
    if value >= (1 << bits):
        raise ValueError(f"{name} must fit in u{bits}: {value}")
    if positive and value == 0:
        raise ValueError(f"{name} must be positive")
    return int(value)
