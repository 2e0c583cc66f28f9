"""
User account ledger: locked staked assets and private unlock requests.

A request is recorded on-ledger only by its commitment, its locked amount and
its cooldown end; the plaintext terms stay with the user.

State machine (one-way):

    Unmatched -> Matched -> Settled
    Unmatched -> Cancelled
"""

from __future__ import annotations

import logging
from typing import Optional

from ..core.errors import (
    AlreadyCancelled,
    AlreadyMatched,
    AlreadySettled,
    ConsistencyError,
    InsufficientBalance,
    NotFound,
    StateError,
)
from ..core.types import AccountScalars, RequestRecord, RequestStatus
from .base import Ledger, require_field


logger = logging.getLogger(__name__)

# Request record field offsets
COMMITMENT = 0
LP_COMMITMENT = 1
LOCKED_AMOUNT = 2
SETTLED = 3
SETTLEMENT_NOTE_HASH = 4
COOLDOWN_END = 5

_FIELDS = (COMMITMENT, LP_COMMITMENT, LOCKED_AMOUNT, SETTLED, SETTLEMENT_NOTE_HASH, COOLDOWN_END)

# Scalar offsets (entity 0)
STAKED_BALANCE = 0
REQUEST_COUNTER = 1
TOTAL_DEPOSITED = 2
TOTAL_RELEASED = 3


class UnlockRequestLedger(Ledger):
    """One user's staked balance and unlock requests."""

    # -- scalars ---------------------------------------------------------------

    @property
    def staked_balance(self) -> int:
        return self._scalar(STAKED_BALANCE)

    @property
    def request_counter(self) -> int:
        return self._scalar(REQUEST_COUNTER)

    def scalars(self) -> AccountScalars:
        return AccountScalars(
            staked_balance=self.staked_balance,
            request_counter=self.request_counter,
            total_deposited=self._scalar(TOTAL_DEPOSITED),
            total_released=self._scalar(TOTAL_RELEASED),
        )

    def deposit_staked_assets(self, amount: int) -> int:
        """Lock more staked assets in the account. Returns the new balance."""
        require_field(amount, "amount", positive=True)
        with self.transaction():
            balance = self.staked_balance + amount
            self._set_scalar(STAKED_BALANCE, balance)
            self._set_scalar(TOTAL_DEPOSITED, self._scalar(TOTAL_DEPOSITED) + amount)
        logger.debug("deposited %d staked, balance=%d", amount, balance)
        return balance

    # -- reads -----------------------------------------------------------------

    def _known(self, request_id: int) -> bool:
        return isinstance(request_id, int) and 1 <= request_id <= self.request_counter

    def get_request(self, request_id: int) -> Optional[RequestRecord]:
        """The stored record, or None for an id never allocated. Cancelled ids are returned flagged."""
        if not self._known(request_id):
            return None
        get = self.store.get
        commitment = get(request_id, COMMITMENT)
        return RequestRecord(
            request_id=request_id,
            commitment=commitment,
            lp_commitment=get(request_id, LP_COMMITMENT),
            locked_amount=get(request_id, LOCKED_AMOUNT),
            settled=get(request_id, SETTLED) == 1,
            settlement_note_hash=get(request_id, SETTLEMENT_NOTE_HASH),
            cooldown_end_timestamp=get(request_id, COOLDOWN_END),
            cancelled=commitment == 0,
        )

    def requests(self) -> list[RequestRecord]:
        return [r for r in map(self.get_request, range(1, self.request_counter + 1)) if r is not None]

    def request_status(self, request_id: int) -> RequestStatus:
        record = self.get_request(request_id)
        if record is None:
            raise NotFound(f"unknown request: {request_id}")
        return record.status

    def verify_request(self, request_id: int, expected_commitment: int) -> RequestRecord:
        """
        Check a disclosed request commitment against the stored one.

        Raises:
            NotFound: unknown or cancelled request
            ConsistencyError: stored commitment differs
        """
        record = self.get_request(request_id)
        if record is None or record.cancelled:
            raise NotFound(f"unknown request: {request_id}")
        if record.commitment != expected_commitment:
            raise ConsistencyError("request commitment", record.commitment, expected_commitment)
        return record

    # -- transitions -----------------------------------------------------------

    def create_unlock_request(self, amount: int, cooldown_end: int, commitment: int) -> int:
        """
        Lock `amount` of the staked balance behind a new request commitment.

        Returns:
            The new request id (monotonically increasing, starting at 1).

        Raises:
            ValidationError: zero amount or zero commitment
            InsufficientBalance: amount exceeds the staked balance
        """
        require_field(amount, "amount", positive=True)
        require_field(cooldown_end, "cooldown_end")
        require_field(commitment, "commitment", bits=256, positive=True)
        balance = self.staked_balance
        if amount > balance:
            logger.info("unlock request rejected: %s", InsufficientBalance.code)
            raise InsufficientBalance(balance, amount)

        with self.transaction():
            self._set_scalar(STAKED_BALANCE, balance - amount)
            request_id = self._next_id(REQUEST_COUNTER)
            self.store.set(request_id, COMMITMENT, commitment)
            self.store.set(request_id, LOCKED_AMOUNT, amount)
            self.store.set(request_id, COOLDOWN_END, cooldown_end)
        logger.debug("created unlock request %d (amount=%d, cooldown_end=%d)", request_id, amount, cooldown_end)
        return request_id

    def mark_matched(self, request_id: int, lp_commitment: int, settlement_note_hash: int = 0) -> None:
        """
        Bind the request to an LP commitment (Unmatched -> Matched).

        Raises:
            ValidationError: zero LP commitment
            NotFound: request commitment unset (unknown or cancelled)
            AlreadyMatched: an LP commitment is already stored
        """
        require_field(lp_commitment, "lp_commitment", bits=256, positive=True)
        require_field(settlement_note_hash, "settlement_note_hash", bits=256)
        if not self._known(request_id) or self.store.get(request_id, COMMITMENT) == 0:
            raise NotFound(f"unknown request: {request_id}")
        if self.store.get(request_id, LP_COMMITMENT) != 0:
            raise AlreadyMatched(f"request {request_id} is already matched")

        with self.transaction():
            self.store.set(request_id, LP_COMMITMENT, lp_commitment)
            self.store.set(request_id, SETTLEMENT_NOTE_HASH, settlement_note_hash)
        logger.debug("request %d matched", request_id)

    def cancel_request(self, request_id: int) -> int:
        """
        Cancel an unmatched request and unlock its amount. Returns the amount credited back.

        Raises:
            NotFound: unknown request id
            AlreadyCancelled: the request was cancelled before
            AlreadyMatched: the request has an LP commitment
        """
        record = self.get_request(request_id)
        if record is None:
            raise NotFound(f"unknown request: {request_id}")
        if record.cancelled:
            raise AlreadyCancelled(f"request {request_id} is already cancelled")
        if record.lp_commitment != 0:
            logger.info("cancel of request %d rejected: %s", request_id, AlreadyMatched.code)
            raise AlreadyMatched(f"request {request_id} is matched and cannot be cancelled")

        with self.transaction():
            for offset in _FIELDS:
                self.store.set(request_id, offset, 0)
            self._set_scalar(STAKED_BALANCE, self.staked_balance + record.locked_amount)
        logger.debug("cancelled request %d, unlocked %d", request_id, record.locked_amount)
        return record.locked_amount

    def authorize_settlement(self, request_id: int, current_timestamp: int, cooldown_end_timestamp: int) -> bool:
        """
        Gate asset release: set the settled flag once the cooldown has elapsed.

        Returns False without mutating when the request is unmatched (or unknown),
        already settled, or `current_timestamp` is before the later of the
        supplied and the recorded cooldown end.
        """
        require_field(current_timestamp, "current_timestamp")
        require_field(cooldown_end_timestamp, "cooldown_end_timestamp")
        record = self.get_request(request_id)
        if record is None or record.cancelled or record.lp_commitment == 0:
            return False
        if record.settled:
            return False
        if current_timestamp < max(cooldown_end_timestamp, record.cooldown_end_timestamp):
            return False

        with self.transaction():
            self.store.set(request_id, SETTLED, 1)
        logger.info("request %d authorized for settlement", request_id)
        return True

    def release_settled(self, request_id: int) -> int:
        """
        Release the locked amount of a settled request to the LP side.

        Returns:
            The amount that leaves the account.

        Raises:
            NotFound: unknown request id
            StateError: the request is not settled
            AlreadySettled: the amount was already released
        """
        record = self.get_request(request_id)
        if record is None or record.cancelled:
            raise NotFound(f"unknown request: {request_id}")
        if not record.settled:
            raise StateError(f"request {request_id} is not settled")
        if record.locked_amount == 0:
            raise AlreadySettled(f"request {request_id} was already released")

        with self.transaction():
            self.store.set(request_id, LOCKED_AMOUNT, 0)
            self._set_scalar(TOTAL_RELEASED, self._scalar(TOTAL_RELEASED) + record.locked_amount)
        logger.debug("released %d from request %d", record.locked_amount, request_id)
        return record.locked_amount
