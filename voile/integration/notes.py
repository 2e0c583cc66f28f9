"""
Note inputs consumed at finalization.

Each note is an ordered field list:

    settlement = [request_id, amount, cooldown_end_timestamp, deal_id]
    advance    = [advance_amount, deal_id, offer_id, user_commitment]

`from_fields(note.to_fields()) == note` for every valid note. The note hash
binds the field list under the note kind and is what the ledgers store as
`settlement_note_hash`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..core.commitments import DEFAULT_SCHEME, CommitmentScheme, note_hash
from ..core.errors import ValidationError
from ..ledgers.base import require_field as _require

SETTLEMENT_NOTE_KIND = "settlement"
ADVANCE_NOTE_KIND = "advance"


def _unpack(fields: Sequence[int], n: int, kind: str) -> Sequence[int]:
    if isinstance(fields, (str, bytes)) or len(fields) != n:
        raise ValidationError(f"{kind} note must have exactly {n} fields")
    return fields


@dataclass(frozen=True)
class SettlementNoteInputs:
    request_id: int
    amount: int
    cooldown_end_timestamp: int
    deal_id: int

    def __post_init__(self) -> None:
        _require(self.request_id, "request_id", positive=True)
        _require(self.amount, "amount", positive=True)
        _require(self.cooldown_end_timestamp, "cooldown_end_timestamp")
        _require(self.deal_id, "deal_id", bits=128, positive=True)

    def to_fields(self) -> list[int]:
        return [self.request_id, self.amount, self.cooldown_end_timestamp, self.deal_id]

    @classmethod
    def from_fields(cls, fields: Sequence[int]) -> "SettlementNoteInputs":
        request_id, amount, cooldown_end_timestamp, deal_id = _unpack(fields, 4, SETTLEMENT_NOTE_KIND)
        return cls(request_id, amount, cooldown_end_timestamp, deal_id)

    def note_hash(self, scheme: CommitmentScheme = DEFAULT_SCHEME) -> int:
        return note_hash(SETTLEMENT_NOTE_KIND, self.to_fields(), scheme)


@dataclass(frozen=True)
class AdvanceNoteInputs:
    advance_amount: int
    deal_id: int
    offer_id: int
    user_commitment: int

    def __post_init__(self) -> None:
        _require(self.advance_amount, "advance_amount", positive=True)
        _require(self.deal_id, "deal_id", bits=128, positive=True)
        _require(self.offer_id, "offer_id", positive=True)
        _require(self.user_commitment, "user_commitment", bits=256, positive=True)

    def to_fields(self) -> list[int]:
        return [self.advance_amount, self.deal_id, self.offer_id, self.user_commitment]

    @classmethod
    def from_fields(cls, fields: Sequence[int]) -> "AdvanceNoteInputs":
        advance_amount, deal_id, offer_id, user_commitment = _unpack(fields, 4, ADVANCE_NOTE_KIND)
        return cls(advance_amount, deal_id, offer_id, user_commitment)

    def note_hash(self, scheme: CommitmentScheme = DEFAULT_SCHEME) -> int:
        return note_hash(ADVANCE_NOTE_KIND, self.to_fields(), scheme)
