"""
Commitment and nullifier derivation.

The concrete one-way function is pluggable: anything implementing
`CommitmentScheme` can be passed where a scheme is accepted. The default
hashes domain-separated canonical JSON with SHA-256 and yields a 256-bit
integer that is never 0 (0 is the ledgers' "unset" value).
"""

from __future__ import annotations

import secrets
from typing import Protocol, Sequence, Union, runtime_checkable

from ..state.canonical import canonical_json_bytes, domain_sep_bytes, sha256_int


Field = Union[int, str]

NULLIFIER_SECRET_BYTES = 32

REQUEST_LABEL = "unlock-request"
OFFER_LABEL = "lp-offer"
NULLIFIER_LABEL = "nullifier"
NOTE_LABEL = "note"


@runtime_checkable
class CommitmentScheme(Protocol):
    def hash_fields(self, label: str, fields: Sequence[Field]) -> int:
        """Return a non-zero fixed-width digest binding `label` and `fields`."""
        ...


class Sha256CommitmentScheme:
    """SHA-256 over `domain_sep(label) || canonical_json(fields)`."""

    def __init__(self, version: int = 1) -> None:
        self.version = version

    def hash_fields(self, label: str, fields: Sequence[Field]) -> int:
        for v in fields:
            if isinstance(v, bool) or not isinstance(v, (int, str)):
                raise TypeError(f"commitment fields must be int or str, got {type(v).__name__}")
        digest = sha256_int(domain_sep_bytes(label, self.version) + canonical_json_bytes(list(fields)))
        # 0 is reserved for "unset" in ledger slots.
        return digest or 1


DEFAULT_SCHEME: CommitmentScheme = Sha256CommitmentScheme()


def generate_nullifier_secret() -> bytes:
    return secrets.token_bytes(NULLIFIER_SECRET_BYTES)


def request_commitment(
    amount: int,
    cooldown_end: int,
    nullifier_secret: bytes,
    user_id: str,
    scheme: CommitmentScheme = DEFAULT_SCHEME,
) -> int:
    """commitment = H(amount, cooldown_end, nullifier_secret, user_id)"""
    return scheme.hash_fields(
        REQUEST_LABEL, [amount, cooldown_end, bytes(nullifier_secret).hex(), user_id]
    )


def offer_commitment(
    offer_id: int,
    lp_id: str,
    max_amount: int,
    min_amount: int,
    custom_apr_bps: int | None = None,
    scheme: CommitmentScheme = DEFAULT_SCHEME,
) -> int:
    """commitment = H(offer_id, lp_id, max_amount, min_amount, apr)"""
    apr = -1 if custom_apr_bps is None else custom_apr_bps
    return scheme.hash_fields(OFFER_LABEL, [offer_id, lp_id, max_amount, min_amount, apr])


def nullifier(
    request_id: int,
    nullifier_secret: bytes,
    scheme: CommitmentScheme = DEFAULT_SCHEME,
) -> int:
    """Per-request nullifier; publishing it marks the request as spent without revealing it."""
    return scheme.hash_fields(NULLIFIER_LABEL, [request_id, bytes(nullifier_secret).hex()])


def note_hash(kind: str, fields: Sequence[int], scheme: CommitmentScheme = DEFAULT_SCHEME) -> int:
    """Hash of a note's ordered input fields, tagged with the note kind."""
    return scheme.hash_fields(NOTE_LABEL, [kind, *fields])
