"""Data types for the Voile protocol core.

All domain types are frozen dataclasses validated in ``__post_init__``.

Units/conventions:
- amounts are integers in the smallest denomination (1 USDC = 1_000_000),
  staked-asset amounts use the same scale;
- ``*_bps`` rates are basis points (1/10_000);
- timestamps are unix seconds;
- commitments are opaque non-zero 256-bit integers, deal ids are non-zero
  128-bit integers, request and offer ids are u64 and start at 1.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum, unique
from typing import Optional

from ..state.canonical import reject_surrogates, require_uint
from .commitments import (
    DEFAULT_SCHEME,
    CommitmentScheme,
    generate_nullifier_secret,
    offer_commitment,
    request_commitment,
)
from .pricing import PricingCalculator


_DEFAULT_PRICING = PricingCalculator()


def _require_user_id(user_id: str) -> str:
    if not isinstance(user_id, str) or not user_id:
        raise ValueError("user_id must be a non-empty str")
    reject_surrogates(user_id)
    return user_id


@unique
class RequestStatus(Enum):
    UNMATCHED = "unmatched"
    MATCHED = "matched"
    SETTLED = "settled"
    CANCELLED = "cancelled"


@unique
class DealStatus(Enum):
    # Matched locally, advance not yet committed on the pool ledger.
    PENDING_ADVANCE = "pending_advance"
    # Committed: advance paid out, waiting for the cooldown to end.
    ADVANCED = "advanced"
    SETTLED = "settled"


@dataclass(frozen=True)
class UnlockRequest:
    """A user's private unlock intent. Only `commitment` is ever written to a ledger."""

    request_id: int
    amount: int
    cooldown_end_timestamp: int
    commitment: int
    nullifier_secret: bytes
    user_id: str
    created_at: int = 0
    lp_commitment: int = 0
    settled: bool = False

    def __post_init__(self) -> None:
        require_uint(self.request_id, name="request_id")
        require_uint(self.amount, name="amount", positive=True)
        require_uint(self.cooldown_end_timestamp, name="cooldown_end_timestamp")
        require_uint(self.commitment, name="commitment", bits=256, positive=True)
        require_uint(self.lp_commitment, name="lp_commitment", bits=256)
        require_uint(self.created_at, name="created_at")
        if not isinstance(self.nullifier_secret, (bytes, bytearray)) or not self.nullifier_secret:
            raise TypeError("nullifier_secret must be non-empty bytes")
        _require_user_id(self.user_id)

    @classmethod
    def new(
        cls,
        request_id: int,
        amount: int,
        cooldown_end_timestamp: int,
        user_id: str,
        *,
        created_at: int = 0,
        nullifier_secret: Optional[bytes] = None,
        scheme: CommitmentScheme = DEFAULT_SCHEME,
    ) -> "UnlockRequest":
        _require_user_id(user_id)
        secret = generate_nullifier_secret() if nullifier_secret is None else bytes(nullifier_secret)
        commitment = request_commitment(amount, cooldown_end_timestamp, secret, user_id, scheme)
        return cls(
            request_id=request_id,
            amount=amount,
            cooldown_end_timestamp=cooldown_end_timestamp,
            commitment=commitment,
            nullifier_secret=secret,
            user_id=user_id,
            created_at=created_at,
        )

    @property
    def status(self) -> RequestStatus:
        if self.settled:
            return RequestStatus.SETTLED
        if self.lp_commitment:
            return RequestStatus.MATCHED
        return RequestStatus.UNMATCHED

    def with_id(self, request_id: int) -> "UnlockRequest":
        return replace(self, request_id=request_id)

    def advance_fee(self, pricing: PricingCalculator = _DEFAULT_PRICING) -> int:
        return pricing.advance_fee(self.amount)

    def net_advance(self, pricing: PricingCalculator = _DEFAULT_PRICING) -> int:
        return pricing.net_advance(self.amount)

    def apr_interest(self, cooldown_days: int, pricing: PricingCalculator = _DEFAULT_PRICING) -> int:
        return pricing.apr_interest(self.amount, cooldown_days)


@dataclass(frozen=True)
class LpOffer:
    """A liquidity provider's standing offer to advance between `min_amount` and `max_amount`."""

    offer_id: int
    max_amount: int
    min_amount: int
    commitment: int
    custom_apr_bps: Optional[int] = None
    is_active: bool = True
    lp_id: str = ""
    # Remaining pool liquidity behind this offer, when the caller knows it.
    available_liquidity: Optional[int] = None

    def __post_init__(self) -> None:
        require_uint(self.offer_id, name="offer_id")
        require_uint(self.max_amount, name="max_amount", positive=True)
        require_uint(self.min_amount, name="min_amount", positive=True)
        if self.min_amount > self.max_amount:
            raise ValueError(f"min_amount must be <= max_amount: {self.min_amount} > {self.max_amount}")
        require_uint(self.commitment, name="commitment", bits=256, positive=True)
        if self.custom_apr_bps is not None:
            require_uint(self.custom_apr_bps, name="custom_apr_bps", bits=32)
        if self.available_liquidity is not None:
            require_uint(self.available_liquidity, name="available_liquidity")

    @classmethod
    def new(
        cls,
        offer_id: int,
        lp_id: str,
        max_amount: int,
        min_amount: int,
        custom_apr_bps: Optional[int] = None,
        *,
        available_liquidity: Optional[int] = None,
        scheme: CommitmentScheme = DEFAULT_SCHEME,
    ) -> "LpOffer":
        commitment = offer_commitment(offer_id, lp_id, max_amount, min_amount, custom_apr_bps, scheme)
        return cls(
            offer_id=offer_id,
            max_amount=max_amount,
            min_amount=min_amount,
            commitment=commitment,
            custom_apr_bps=custom_apr_bps,
            lp_id=lp_id,
            available_liquidity=available_liquidity,
        )

    def can_match(self, request_amount: int) -> bool:
        return self.is_active and self.min_amount <= request_amount <= self.max_amount

    def effective_apr_bps(self, default_apr_bps: int) -> int:
        return default_apr_bps if self.custom_apr_bps is None else self.custom_apr_bps


@dataclass(frozen=True)
class MatchedDeal:
    """The pairing of one unlock request with one LP offer."""

    deal_id: int
    request: UnlockRequest
    offer: LpOffer
    advance_amount: int
    advance_fee: int
    expected_interest: int = 0
    settlement_note_hash: int = 0
    advance_note_hash: int = 0
    matched_at: int = 0
    is_settled: bool = False
    status: DealStatus = DealStatus.PENDING_ADVANCE

    def __post_init__(self) -> None:
        require_uint(self.deal_id, name="deal_id", bits=128, positive=True)
        require_uint(self.advance_amount, name="advance_amount")
        require_uint(self.advance_fee, name="advance_fee")
        if self.advance_amount + self.advance_fee != self.request.amount:
            raise ValueError("advance_amount + advance_fee must equal the request amount")

    @property
    def request_ref(self) -> int:
        return self.request.request_id

    @property
    def offer_ref(self) -> int:
        return self.offer.offer_id

    @property
    def cooldown_end_timestamp(self) -> int:
        return self.request.cooldown_end_timestamp

    def lp_earnings(self, cooldown_days: int, pricing: PricingCalculator = _DEFAULT_PRICING) -> tuple[int, int]:
        """(lp share of the advance fee, APR interest at the offer's rate)."""
        lp_fee = pricing.lp_fee_share(self.advance_fee)
        apr = self.offer.effective_apr_bps(pricing.config.default_apr_bps)
        interest = pricing.apr_interest(self.request.amount, cooldown_days, apr)
        return lp_fee, interest

    def protocol_earnings(self, pricing: PricingCalculator = _DEFAULT_PRICING) -> int:
        return pricing.protocol_fee_share(self.advance_fee)


# -- Ledger read models --------------------------------------------------------


@dataclass(frozen=True)
class RequestRecord:
    """What the unlock-request ledger holds for one request id."""

    request_id: int
    commitment: int
    lp_commitment: int
    locked_amount: int
    settled: bool
    settlement_note_hash: int
    cooldown_end_timestamp: int
    cancelled: bool = False

    @property
    def status(self) -> RequestStatus:
        if self.cancelled:
            return RequestStatus.CANCELLED
        if self.settled:
            return RequestStatus.SETTLED
        if self.lp_commitment:
            return RequestStatus.MATCHED
        return RequestStatus.UNMATCHED


@dataclass(frozen=True)
class DealRecord:
    """What the settlement ledger holds for one deal id."""

    deal_id: int
    user_commitment: int
    advance_amount: int
    offer_id: int
    settled: bool
    settlement_note_hash: int = 0
    staked_received: int = 0
    lp_fee: int = 0
    interest: int = 0


@dataclass(frozen=True)
class PoolScalars:
    usdc_balance: int
    total_earned: int
    offer_counter: int
    deal_counter: int
    total_deposited: int = 0
    total_withdrawn: int = 0

    @property
    def net_deposited(self) -> int:
        """Deposits minus withdrawals; the balance-conservation baseline."""
        return self.total_deposited - self.total_withdrawn


@dataclass(frozen=True)
class AccountScalars:
    staked_balance: int
    request_counter: int
    total_deposited: int = 0
    total_released: int = 0
