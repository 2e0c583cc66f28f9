"""
Off-chain matching engine.

Selects the best-priced LP offer for an unlock request from a locally visible
snapshot of offers:

1. keep offers that are active and whose [min_amount, max_amount] contains the
   request amount (and whose stated liquidity covers the net advance, when stated);
2. stable-sort ascending by effective APR (custom rate, else the protocol default);
3. the first element is the best match.

The engine holds no mutable state and never touches a ledger. A returned
`MatchedDeal` is provisional until `LpOfferLedger.accept_match` commits it.
"""

from __future__ import annotations

import itertools
import logging
import secrets
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from ..state.canonical import MAX_U128
from .config import DEFAULT_CONFIG, SECONDS_PER_DAY, ProtocolConfig
from .pricing import PricingBreakdown, PricingCalculator
from .types import DealStatus, LpOffer, MatchedDeal, UnlockRequest


logger = logging.getLogger(__name__)

DealIdSource = Callable[[], int]


def random_deal_id() -> int:
    """Fresh non-zero 128-bit deal id."""
    while True:
        deal_id = secrets.randbits(128)
        if deal_id:
            return deal_id


def counter_deal_ids(start: int = 1) -> DealIdSource:
    """Deterministic deal id source yielding start, start+1, ..."""
    if not isinstance(start, int) or isinstance(start, bool) or not (1 <= start <= MAX_U128):
        raise ValueError(f"start must be in [1, 2^128): {start!r}")
    counter = itertools.count(start)
    return lambda: next(counter)


@dataclass(frozen=True)
class MatchPreview:
    best_offer: Optional[LpOffer]
    pricing: Optional[PricingBreakdown]
    alternative_offers: tuple[LpOffer, ...] = ()


class MatchingEngine:
    def __init__(
        self,
        config: ProtocolConfig = DEFAULT_CONFIG,
        deal_id_source: Optional[DealIdSource] = None,
    ) -> None:
        self.config = config
        self.pricing = PricingCalculator(config)
        self._next_deal_id = deal_id_source if deal_id_source is not None else random_deal_id

    def effective_apr_bps(self, offer: LpOffer) -> int:
        return offer.effective_apr_bps(self.config.default_apr_bps)

    def can_match(self, offer: LpOffer, request: UnlockRequest) -> bool:
        if not offer.can_match(request.amount):
            return False
        if offer.available_liquidity is not None:
            return offer.available_liquidity >= self.pricing.net_advance(request.amount)
        return True

    def find_matches(self, request: UnlockRequest, offers: Iterable[LpOffer]) -> List[LpOffer]:
        """Eligible offers, lowest APR first; ties keep input order."""
        eligible = [offer for offer in offers if self.can_match(offer, request)]
        return sorted(eligible, key=self.effective_apr_bps)

    def match_request(
        self,
        request: UnlockRequest,
        offers: Iterable[LpOffer],
        now: Optional[int] = None,
    ) -> Optional[MatchedDeal]:
        """Match `request` with the best offer, or return None when nothing is eligible."""
        matches = self.find_matches(request, offers)
        if not matches:
            logger.debug("no eligible offer for request amount=%d", request.amount)
            return None
        return self._create_deal(request, matches[0], now)

    def match_with_offer(
        self,
        request: UnlockRequest,
        offers: Iterable[LpOffer],
        offer_id: int,
        now: Optional[int] = None,
    ) -> Optional[MatchedDeal]:
        """Match `request` with one specific offer, if it is present and eligible."""
        for offer in offers:
            if offer.offer_id == offer_id:
                if not self.can_match(offer, request):
                    return None
                return self._create_deal(request, offer, now)
        return None

    def preview_match(
        self,
        request: UnlockRequest,
        offers: Iterable[LpOffer],
        now: Optional[int] = None,
    ) -> MatchPreview:
        """Pricing preview against the best offer. Allocates no deal id."""
        matches = self.find_matches(request, offers)
        if not matches:
            return MatchPreview(best_offer=None, pricing=None)
        best = matches[0]
        pricing = self.pricing.breakdown(
            request.amount, self._interest_days(request, now), self.effective_apr_bps(best)
        )
        return MatchPreview(best_offer=best, pricing=pricing, alternative_offers=tuple(matches[1:]))

    def _interest_days(self, request: UnlockRequest, now: Optional[int]) -> int:
        if now is None:
            return self.config.cooldown_days
        remaining = request.cooldown_end_timestamp - now
        return max(1, remaining // SECONDS_PER_DAY)

    def _create_deal(self, request: UnlockRequest, offer: LpOffer, now: Optional[int]) -> MatchedDeal:
        deal_id = self._next_deal_id()
        fee = self.pricing.advance_fee(request.amount)
        interest = self.pricing.apr_interest(
            request.amount, self._interest_days(request, now), self.effective_apr_bps(offer)
        )
        deal = MatchedDeal(
            deal_id=deal_id,
            request=request,
            offer=offer,
            advance_amount=request.amount - fee,
            advance_fee=fee,
            expected_interest=interest,
            matched_at=0 if now is None else now,
        )
        logger.debug(
            "matched request amount=%d with offer %d (apr=%d bps), advance=%d",
            request.amount,
            offer.offer_id,
            self.effective_apr_bps(offer),
            deal.advance_amount,
        )
        return deal


def is_ready_for_settlement(deal: MatchedDeal, now: int) -> bool:
    return (
        deal.status is DealStatus.ADVANCED
        and not deal.is_settled
        and now >= deal.cooldown_end_timestamp
    )

