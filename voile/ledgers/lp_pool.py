"""
LP pool ledger: USDC balance, standing offers and deal commitment.

`accept_match` is the only operation that debits the pool for an advance. It
writes the pool debit and the deal record in the settlement ledger as one
unit: either both land or neither does.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from ..core.config import BPS_DENOM, DEFAULT_CONFIG, ProtocolConfig
from ..core.errors import InsufficientBalance, ValidationError
from ..core.types import LpOffer, PoolScalars
from ..state.store import KeyedStore
from .base import Ledger, require_field
from .deals import DealLedger


logger = logging.getLogger(__name__)

# Offer record field offsets
COMMITMENT = 0
MAX_AMOUNT = 1
MIN_AMOUNT = 2
IS_ACTIVE = 3
# custom_apr_bps + 1; 0 means "use the protocol default".
CUSTOM_APR = 4

# Scalar offsets (entity 0)
USDC_BALANCE = 0
TOTAL_EARNED = 1
OFFER_COUNTER = 2
DEAL_COUNTER = 3
TOTAL_DEPOSITED = 4
TOTAL_WITHDRAWN = 5


class LpOfferLedger(Ledger):
    """One LP pool: its balance, its offers and the deals committed against them."""

    def __init__(
        self,
        store: KeyedStore | None = None,
        deals: Optional[DealLedger] = None,
        config: ProtocolConfig = DEFAULT_CONFIG,
    ) -> None:
        super().__init__(store)
        self.deals = deals if deals is not None else DealLedger()
        self.config = config

    # -- balance ---------------------------------------------------------------

    @property
    def usdc_balance(self) -> int:
        return self._scalar(USDC_BALANCE)

    @property
    def total_earned(self) -> int:
        return self._scalar(TOTAL_EARNED)

    @property
    def offer_counter(self) -> int:
        return self._scalar(OFFER_COUNTER)

    @property
    def deal_counter(self) -> int:
        return self._scalar(DEAL_COUNTER)

    def scalars(self) -> PoolScalars:
        return PoolScalars(
            usdc_balance=self.usdc_balance,
            total_earned=self.total_earned,
            offer_counter=self.offer_counter,
            deal_counter=self.deal_counter,
            total_deposited=self._scalar(TOTAL_DEPOSITED),
            total_withdrawn=self._scalar(TOTAL_WITHDRAWN),
        )

    def deposit_usdc(self, amount: int) -> int:
        """Add USDC to the pool. Returns the new balance."""
        require_field(amount, "amount", positive=True)
        with self.transaction():
            balance = self.usdc_balance + amount
            self._set_scalar(USDC_BALANCE, balance)
            self._set_scalar(TOTAL_DEPOSITED, self._scalar(TOTAL_DEPOSITED) + amount)
        logger.debug("deposited %d USDC, balance=%d", amount, balance)
        return balance

    def withdraw_usdc(self, amount: int) -> bool:
        """Withdraw from the available balance. False if the balance is short."""
        require_field(amount, "amount", positive=True)
        balance = self.usdc_balance
        if balance < amount:
            logger.info("withdrawal of %d rejected: %s", amount, InsufficientBalance.code)
            return False
        with self.transaction():
            self._set_scalar(USDC_BALANCE, balance - amount)
            self._set_scalar(TOTAL_WITHDRAWN, self._scalar(TOTAL_WITHDRAWN) + amount)
        return True

    # -- offers ----------------------------------------------------------------

    def create_offer(
        self,
        max_amount: int,
        min_amount: int,
        commitment: int,
        custom_apr_bps: Optional[int] = None,
    ) -> int:
        """
        Publish a new active offer.

        Returns:
            The new offer id (starting at 1).

        Raises:
            ValidationError: zero or inverted bounds, zero commitment, bad APR
            InsufficientBalance: pool balance is below `max_amount`
        """
        require_field(max_amount, "max_amount", positive=True)
        require_field(min_amount, "min_amount", positive=True)
        if min_amount > max_amount:
            raise ValidationError(f"min_amount must be <= max_amount: {min_amount} > {max_amount}")
        require_field(commitment, "commitment", bits=256, positive=True)
        if custom_apr_bps is not None:
            require_field(custom_apr_bps, "custom_apr_bps", bits=32)
        balance = self.usdc_balance
        if balance < max_amount:
            logger.info("offer rejected: %s", InsufficientBalance.code)
            raise InsufficientBalance(balance, max_amount)

        with self.transaction():
            offer_id = self._next_id(OFFER_COUNTER)
            self.store.set(offer_id, COMMITMENT, commitment)
            self.store.set(offer_id, MAX_AMOUNT, max_amount)
            self.store.set(offer_id, MIN_AMOUNT, min_amount)
            self.store.set(offer_id, IS_ACTIVE, 1)
            if custom_apr_bps is not None:
                self.store.set(offer_id, CUSTOM_APR, custom_apr_bps + 1)
        logger.debug("created offer %d [%d, %d]", offer_id, min_amount, max_amount)
        return offer_id

    def cancel_offer(self, offer_id: int) -> bool:
        """Deactivate an offer. False if it is unknown or already inactive."""
        if not self._known(offer_id) or self.store.get(offer_id, IS_ACTIVE) != 1:
            return False
        with self.transaction():
            self.store.set(offer_id, IS_ACTIVE, 0)
        logger.debug("cancelled offer %d", offer_id)
        return True

    def _known(self, offer_id: int) -> bool:
        return isinstance(offer_id, int) and 1 <= offer_id <= self.offer_counter

    def get_offer(self, offer_id: int, lp_id: str = "") -> Optional[LpOffer]:
        if not self._known(offer_id):
            return None
        get = self.store.get
        apr = get(offer_id, CUSTOM_APR)
        return LpOffer(
            offer_id=offer_id,
            max_amount=get(offer_id, MAX_AMOUNT),
            min_amount=get(offer_id, MIN_AMOUNT),
            commitment=get(offer_id, COMMITMENT),
            custom_apr_bps=apr - 1 if apr else None,
            is_active=get(offer_id, IS_ACTIVE) == 1,
            lp_id=lp_id,
        )

    def offers(self, lp_id: str = "") -> list[LpOffer]:
        """Every offer ever created, active or not, in id order."""
        return [o for o in (self.get_offer(i, lp_id) for i in range(1, self.offer_counter + 1)) if o is not None]

    def offer_snapshot(self, lp_id: str = "") -> list[LpOffer]:
        """Active offers, each stating the pool's current balance as its available liquidity."""
        balance = self.usdc_balance
        snapshot = []
        for offer_id in range(1, self.offer_counter + 1):
            offer = self.get_offer(offer_id, lp_id)
            if offer is None or not offer.is_active:
                continue
            snapshot.append(replace(offer, available_liquidity=balance))
        return snapshot

    # -- deals -----------------------------------------------------------------

    def accept_match(
        self,
        offer_id: int,
        user_commitment: int,
        advance_amount: int,
        deal_id: int,
        settlement_note_hash: int = 0,
    ) -> bool:
        """
        Commit a matched deal: debit the advance and record the deal.

        Returns False (nothing written) when the offer is inactive or unknown,
        `advance_amount` lies outside the offer's bounds, the pool balance is
        short, or `deal_id` is already in use.

        Raises:
            ValidationError: zero commitment, zero amount or malformed deal id
        """
        require_field(user_commitment, "user_commitment", bits=256, positive=True)
        require_field(advance_amount, "advance_amount", positive=True)
        require_field(deal_id, "deal_id", bits=128, positive=True)
        require_field(settlement_note_hash, "settlement_note_hash", bits=256)

        rejection = self._match_rejection(offer_id, advance_amount, deal_id)
        if rejection is not None:
            logger.info("accept_match on offer %s rejected: %s", offer_id, rejection)
            return False

        with self.transaction(self.deals):
            self._set_scalar(USDC_BALANCE, self.usdc_balance - advance_amount)
            self._set_scalar(DEAL_COUNTER, self.deal_counter + 1)
            self.deals.record_deal(deal_id, user_commitment, advance_amount, offer_id, settlement_note_hash)
        logger.info("deal %#x accepted on offer %d, advanced %d", deal_id, offer_id, advance_amount)
        return True

    def _match_rejection(self, offer_id: int, advance_amount: int, deal_id: int) -> Optional[str]:
        if not self._known(offer_id) or self.store.get(offer_id, IS_ACTIVE) != 1:
            return "offer_inactive"
        if not self.store.get(offer_id, MIN_AMOUNT) <= advance_amount <= self.store.get(offer_id, MAX_AMOUNT):
            return "out_of_bounds"
        if self.usdc_balance < advance_amount:
            return InsufficientBalance.code
        if self.deals.exists(deal_id):
            return "deal_id_used"
        return None

    def record_settlement(
        self,
        deal_id: int,
        staked_assets_received: int,
        fee_earned: int,
        interest_earned: int,
    ) -> bool:
        """
        Credit a settled deal to the pool.

        The pool receives `staked_assets_received` plus the LP share of
        `fee_earned` plus `interest_earned`; the latter two also count towards
        `total_earned`. Returns False for an unknown or already-settled deal.
        """
        require_field(staked_assets_received, "staked_assets_received")
        require_field(fee_earned, "fee_earned")
        require_field(interest_earned, "interest_earned")
        if not self.deals.exists(deal_id):
            logger.info("settlement of deal %#x rejected: not_found", deal_id)
            return False
        if self.deals.is_settled(deal_id):
            logger.warning("settlement of deal %#x rejected: already_settled", deal_id)
            return False

        lp_fee = self.calculate_lp_fee(fee_earned)
        earnings = lp_fee + interest_earned
        with self.transaction(self.deals):
            self._set_scalar(USDC_BALANCE, self.usdc_balance + staked_assets_received + earnings)
            self._set_scalar(TOTAL_EARNED, self.total_earned + earnings)
            self.deals.mark_settled(deal_id, staked_assets_received, lp_fee, interest_earned)
        return True

    # -- fee split -------------------------------------------------------------

    def calculate_lp_fee(self, total_fee: int) -> int:
        return (total_fee * self.config.lp_fee_bps) // BPS_DENOM

    def calculate_protocol_fee(self, total_fee: int) -> int:
        # Remainder, so the two shares sum to the fee exactly.
        return total_fee - self.calculate_lp_fee(total_fee)
