"""
Matched-deal / settlement ledger.

The authoritative owner of each deal's settled bit. Deals are keyed by their
(128-bit) deal id; an insertion-order index kept in the scalar entity lets
callers enumerate deals without an iteration primitive on the store.
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional

from ..core.errors import AlreadySettled, ConsistencyError, NotFound, StateError
from ..core.types import DealRecord
from .base import Ledger, require_field


logger = logging.getLogger(__name__)

# Deal record field offsets
USER_COMMITMENT = 0
ADVANCE_AMOUNT = 1
OFFER_ID = 2
SETTLED = 3
SETTLEMENT_NOTE_HASH = 4
STAKED_RECEIVED = 5
LP_FEE = 6
INTEREST = 7

# Scalar offsets (entity 0)
SETTLED_COUNT = 0
DEAL_COUNT = 1
# Offsets DEAL_INDEX_BASE + n hold the id of the n-th recorded deal (n >= 1).
DEAL_INDEX_BASE = 16


class DealLedger(Ledger):
    """Settlement ledger: one record per committed deal."""

    def exists(self, deal_id: int) -> bool:
        return deal_id > 0 and self.store.get(deal_id, USER_COMMITMENT) != 0

    def is_settled(self, deal_id: int) -> bool:
        return self.exists(deal_id) and self.store.get(deal_id, SETTLED) == 1

    @property
    def settled_count(self) -> int:
        return self._scalar(SETTLED_COUNT)

    @property
    def deal_count(self) -> int:
        return self._scalar(DEAL_COUNT)

    def record_deal(
        self,
        deal_id: int,
        user_commitment: int,
        advance_amount: int,
        offer_id: int,
        settlement_note_hash: int = 0,
    ) -> None:
        """
        Write a new deal record.

        Raises:
            ValidationError: zero deal id, commitment, amount or offer id
            StateError: the deal id is already in use
        """
        require_field(deal_id, "deal_id", bits=128, positive=True)
        require_field(user_commitment, "user_commitment", bits=256, positive=True)
        require_field(advance_amount, "advance_amount", positive=True)
        require_field(offer_id, "offer_id", positive=True)
        require_field(settlement_note_hash, "settlement_note_hash", bits=256)
        if self.exists(deal_id):
            raise StateError(f"deal id already used: {deal_id:#x}")

        with self.transaction():
            self.store.set(deal_id, USER_COMMITMENT, user_commitment)
            self.store.set(deal_id, ADVANCE_AMOUNT, advance_amount)
            self.store.set(deal_id, OFFER_ID, offer_id)
            self.store.set(deal_id, SETTLEMENT_NOTE_HASH, settlement_note_hash)
            seq = self._next_id(DEAL_COUNT)
            self._set_scalar(DEAL_INDEX_BASE + seq, deal_id)
        logger.debug("recorded deal %#x (offer=%d, advance=%d)", deal_id, offer_id, advance_amount)

    def get_deal(self, deal_id: int) -> Optional[DealRecord]:
        if not self.exists(deal_id):
            return None
        get = self.store.get
        return DealRecord(
            deal_id=deal_id,
            user_commitment=get(deal_id, USER_COMMITMENT),
            advance_amount=get(deal_id, ADVANCE_AMOUNT),
            offer_id=get(deal_id, OFFER_ID),
            settled=get(deal_id, SETTLED) == 1,
            settlement_note_hash=get(deal_id, SETTLEMENT_NOTE_HASH),
            staked_received=get(deal_id, STAKED_RECEIVED),
            lp_fee=get(deal_id, LP_FEE),
            interest=get(deal_id, INTEREST),
        )

    def deal_ids(self) -> Iterator[int]:
        """Deal ids in the order they were recorded."""
        for seq in range(1, self.deal_count + 1):
            yield self._scalar(DEAL_INDEX_BASE + seq)

    def deals(self) -> list[DealRecord]:
        records = []
        for deal_id in self.deal_ids():
            record = self.get_deal(deal_id)
            if record is not None:
                records.append(record)
        return records

    def mark_settled(self, deal_id: int, staked_received: int, lp_fee: int, interest: int) -> None:
        """
        Flip the deal's settled bit (false -> true only) and record its earnings.

        Raises:
            NotFound: unknown deal id
            AlreadySettled: the deal was settled before
        """
        require_field(staked_received, "staked_received")
        require_field(lp_fee, "lp_fee")
        require_field(interest, "interest")
        if not self.exists(deal_id):
            raise NotFound(f"unknown deal: {deal_id:#x}")
        if self.is_settled(deal_id):
            raise AlreadySettled(f"deal already settled: {deal_id:#x}")

        with self.transaction():
            self.store.set(deal_id, SETTLED, 1)
            self.store.set(deal_id, STAKED_RECEIVED, staked_received)
            self.store.set(deal_id, LP_FEE, lp_fee)
            self.store.set(deal_id, INTEREST, interest)
            self._set_scalar(SETTLED_COUNT, self.settled_count + 1)
        logger.info("deal %#x settled (staked=%d, lp_fee=%d, interest=%d)", deal_id, staked_received, lp_fee, interest)

    def verify_deal(
        self,
        deal_id: int,
        expected_user_commitment: int,
        expected_advance: Optional[int] = None,
    ) -> DealRecord:
        """
        Check a disclosed deal against the stored record and return the record.

        Raises:
            NotFound: unknown deal id
            ConsistencyError: stored commitment or advance differs from the expected one
        """
        record = self.get_deal(deal_id)
        if record is None:
            raise NotFound(f"unknown deal: {deal_id:#x}")
        if record.user_commitment != expected_user_commitment:
            raise ConsistencyError("user_commitment", record.user_commitment, expected_user_commitment)
        if expected_advance is not None and record.advance_amount != expected_advance:
            raise ConsistencyError("advance_amount", record.advance_amount, expected_advance)
        return record
