"""
Deal coordinator: the imperative shell around the ledgers.

Drives one request through its lifecycle:

1. `open_request`: derive the request commitment and lock the amount on the
   user ledger.
2. `match_and_commit`: match against a fresh offer snapshot, then commit the
   deal on the pool ledger and mark the request matched, in one atomic scope.
   A match that loses the race for an offer raises `StateError`; the caller
   decides whether to re-run matching.
3. `settle`: after the cooldown, check the settlement note against all three
   ledgers, authorize, release the locked amount and credit the pool, again in
   one atomic scope.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from ..core.commitments import DEFAULT_SCHEME, CommitmentScheme, request_commitment
from ..core.config import ProtocolConfig
from ..core.errors import (
    AlreadySettled,
    ConsistencyError,
    CooldownActive,
    InvariantViolation,
    NotFound,
    StateError,
    ValidationError,
)
from ..core.invariants import LedgerSnapshot, check_all
from ..core.matching import MatchingEngine
from ..core.types import DealRecord, DealStatus, MatchedDeal, UnlockRequest
from ..ledgers.lp_pool import LpOfferLedger
from ..ledgers.user_account import UnlockRequestLedger
from .notes import AdvanceNoteInputs, SettlementNoteInputs


logger = logging.getLogger(__name__)


class DealCoordinator:
    def __init__(
        self,
        user_ledger: UnlockRequestLedger,
        pool_ledger: LpOfferLedger,
        engine: Optional[MatchingEngine] = None,
        config: Optional[ProtocolConfig] = None,
        *,
        lp_id: str = "",
        scheme: CommitmentScheme = DEFAULT_SCHEME,
        check_invariants: bool = False,
    ) -> None:
        if config is None:
            config = engine.config if engine is not None else pool_ledger.config
        self.config = config
        self.user = user_ledger
        self.pool = pool_ledger
        self.engine = engine if engine is not None else MatchingEngine(config)
        self.pricing = self.engine.pricing
        self.lp_id = lp_id
        self.scheme = scheme
        self.check_invariants = check_invariants

    # -- lifecycle -------------------------------------------------------------

    def open_request(
        self,
        amount: int,
        user_id: str,
        now: int,
        cooldown_end: Optional[int] = None,
        nullifier_secret: Optional[bytes] = None,
    ) -> UnlockRequest:
        """
        Create a private unlock request and lock its amount.

        `cooldown_end` defaults to `now + config.cooldown_seconds`.

        Raises:
            ValidationError: deal below the minimum size, cooldown outside policy
                or malformed user id
            InsufficientBalance: not enough staked balance
        """
        if cooldown_end is None:
            cooldown_end = now + self.config.cooldown_seconds
        if not self.pricing.is_minimum_deal_size(amount):
            raise ValidationError(f"amount below minimum deal size: {amount} < {self.config.min_deal_amount}")
        if not self.pricing.is_valid_cooldown(cooldown_end - now):
            raise ValidationError(f"cooldown outside policy: {cooldown_end - now}s")

        try:
            request = UnlockRequest.new(
                0,
                amount,
                cooldown_end,
                user_id,
                created_at=now,
                nullifier_secret=nullifier_secret,
                scheme=self.scheme,
            )
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"invalid request: {exc}") from exc
        request_id = self.user.create_unlock_request(amount, cooldown_end, request.commitment)
        logger.info("opened request %d for %s (amount=%d)", request_id, user_id, amount)
        self._maybe_check()
        return request.with_id(request_id)

    def match_and_commit(
        self,
        request: UnlockRequest,
        now: int,
        offer_id: Optional[int] = None,
    ) -> Optional[tuple[MatchedDeal, AdvanceNoteInputs, SettlementNoteInputs]]:
        """
        Match `request` (best offer, or `offer_id` when given) and commit the deal.

        Returns None when no offer is eligible.

        Raises:
            ConsistencyError: `request` does not open the recorded commitment, or its
                amount or cooldown end differs from what the ledger locked
            StateError: the pool refused the deal, or the request is no longer matchable
        """
        self._verify_request(request)
        offers = self.pool.offer_snapshot(self.lp_id)
        if offer_id is None:
            deal = self.engine.match_request(request, offers, now)
        else:
            deal = self.engine.match_with_offer(request, offers, offer_id, now)
        if deal is None:
            logger.info("request %d: no eligible offer", request.request_id)
            return None

        settlement = SettlementNoteInputs(
            request_id=request.request_id,
            amount=request.amount,
            cooldown_end_timestamp=request.cooldown_end_timestamp,
            deal_id=deal.deal_id,
        )
        advance = AdvanceNoteInputs(
            advance_amount=deal.advance_amount,
            deal_id=deal.deal_id,
            offer_id=deal.offer_ref,
            user_commitment=request.commitment,
        )
        settlement_hash = settlement.note_hash(self.scheme)

        with self.user.transaction(self.pool, self.pool.deals):
            accepted = self.pool.accept_match(
                deal.offer_ref,
                request.commitment,
                deal.advance_amount,
                deal.deal_id,
                settlement_hash,
            )
            if not accepted:
                # Lost to a concurrent commit on the same offer; no retry here.
                raise StateError(f"offer {deal.offer_ref} no longer accepts request {request.request_id}")
            self.user.mark_matched(request.request_id, deal.offer.commitment, settlement_hash)

        logger.info(
            "request %d committed as deal %#x on offer %d",
            request.request_id,
            deal.deal_id,
            deal.offer_ref,
        )
        self._maybe_check()
        committed = replace(
            deal,
            request=replace(request, lp_commitment=deal.offer.commitment),
            settlement_note_hash=settlement_hash,
            advance_note_hash=advance.note_hash(self.scheme),
            status=DealStatus.ADVANCED,
        )
        return committed, advance, settlement

    def settle(
        self,
        note: SettlementNoteInputs,
        now: int,
        interest_days: Optional[int] = None,
    ) -> DealRecord:
        """
        Settle the deal named by a settlement note.

        `interest_days` defaults to the configured cooldown in whole days.

        Raises:
            NotFound: unknown deal or request
            AlreadySettled: the deal was settled before
            ConsistencyError: the note disagrees with the recorded request or deal
            CooldownActive: `now` is before the cooldown end
            StateError: the request is not in a settleable state
        """
        deal = self.pool.deals.get_deal(note.deal_id)
        if deal is None:
            raise NotFound(f"unknown deal: {note.deal_id:#x}")
        if deal.settled:
            logger.warning("double settlement attempt for deal %#x", note.deal_id)
            raise AlreadySettled(f"deal already settled: {note.deal_id:#x}")
        request = self.user.get_request(note.request_id)
        if request is None or request.cancelled:
            raise NotFound(f"unknown request: {note.request_id}")

        self._verify_note(note, request.commitment, request.locked_amount, request.cooldown_end_timestamp, deal)

        if now < note.cooldown_end_timestamp:
            logger.info("settlement of deal %#x rejected: %s", note.deal_id, CooldownActive.code)
            raise CooldownActive(now, note.cooldown_end_timestamp)

        fee = self.pricing.advance_fee(note.amount)
        days = self.config.cooldown_days if interest_days is None else interest_days
        offer = self.pool.get_offer(deal.offer_id)
        apr = self.engine.effective_apr_bps(offer) if offer is not None else self.config.default_apr_bps
        interest = self.pricing.apr_interest(note.amount, days, apr)

        with self.user.transaction(self.pool, self.pool.deals):
            if not self.user.authorize_settlement(note.request_id, now, note.cooldown_end_timestamp):
                raise StateError(f"request {note.request_id} cannot be settled")
            staked = self.user.release_settled(note.request_id)
            if not self.pool.record_settlement(note.deal_id, staked, fee, interest):
                raise StateError(f"pool refused settlement of deal {note.deal_id:#x}")

        logger.info("settled deal %#x (staked=%d, fee=%d, interest=%d)", note.deal_id, staked, fee, interest)
        self._maybe_check()
        return self.pool.deals.verify_deal(note.deal_id, request.commitment)

    def _verify_request(self, request: UnlockRequest) -> None:
        record = self.user.verify_request(request.request_id, request.commitment)
        opened = request_commitment(
            request.amount,
            request.cooldown_end_timestamp,
            request.nullifier_secret,
            request.user_id,
            self.scheme,
        )
        if opened != record.commitment:
            raise ConsistencyError("request opening", record.commitment, opened)
        if record.locked_amount != request.amount:
            raise ConsistencyError("locked amount", record.locked_amount, request.amount)
        if record.cooldown_end_timestamp != request.cooldown_end_timestamp:
            raise ConsistencyError("cooldown end", record.cooldown_end_timestamp, request.cooldown_end_timestamp)

    def _verify_note(
        self,
        note: SettlementNoteInputs,
        commitment: int,
        locked_amount: int,
        cooldown_end: int,
        deal: DealRecord,
    ) -> None:
        self.pool.deals.verify_deal(note.deal_id, commitment, self.pricing.net_advance(note.amount))
        expected_hash = note.note_hash(self.scheme)
        if deal.settlement_note_hash != expected_hash:
            raise ConsistencyError("settlement_note_hash", deal.settlement_note_hash, expected_hash)
        if locked_amount != note.amount:
            raise ConsistencyError("locked amount", locked_amount, note.amount)
        if cooldown_end != note.cooldown_end_timestamp:
            raise ConsistencyError("cooldown end", cooldown_end, note.cooldown_end_timestamp)

    # -- checks ----------------------------------------------------------------

    def snapshot(self) -> LedgerSnapshot:
        deals = self.pool.deals
        return LedgerSnapshot(
            config=self.config,
            account=self.user.scalars(),
            requests=tuple(self.user.requests()),
            pool=self.pool.scalars(),
            offers=tuple(self.pool.offers(self.lp_id)),
            deals=tuple(deals.deals()),
            settled_count=deals.settled_count,
        )

    def verify_invariants(self) -> None:
        """Raise `InvariantViolation` if the current ledger state breaks any invariant."""
        violations = check_all(self.snapshot())
        if violations:
            logger.error("invariant violations: %s", ", ".join(violations))
            raise InvariantViolation(violations)

    def _maybe_check(self) -> None:
        if self.check_invariants:
            self.verify_invariants()
