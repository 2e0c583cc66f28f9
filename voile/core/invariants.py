"""Invariant checkers over a committed ledger state.

Each function returns True when the invariant holds, and `check_all()` returns
the list of violated invariant IDs (empty = all pass).

A `LedgerSnapshot` is a read-only view assembled from the three ledgers (see
`DealCoordinator.snapshot()`). The checks are global: they relate the user
account, the pool and the settlement ledger to each other.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from .config import BPS_DENOM, ProtocolConfig
from .types import AccountScalars, DealRecord, LpOffer, PoolScalars, RequestRecord


@dataclass(frozen=True)
class LedgerSnapshot:
    config: ProtocolConfig
    account: AccountScalars
    requests: tuple[RequestRecord, ...]
    pool: PoolScalars
    offers: tuple[LpOffer, ...]
    deals: tuple[DealRecord, ...]
    settled_count: int


def inv_request_amount_positive(s: LedgerSnapshot) -> bool:
    # Released settled requests keep their record but no longer hold assets.
    return all(
        r.locked_amount > 0
        for r in s.requests
        if not r.cancelled and not r.settled
    )


def inv_cancelled_request_zeroed(s: LedgerSnapshot) -> bool:
    return all(
        r.lp_commitment == 0 and r.locked_amount == 0 and not r.settled
        for r in s.requests
        if r.cancelled
    )


def inv_settled_request_was_matched(s: LedgerSnapshot) -> bool:
    return all(r.lp_commitment != 0 for r in s.requests if r.settled)


def inv_account_conservation(s: LedgerSnapshot) -> bool:
    locked = sum(r.locked_amount for r in s.requests)
    return s.account.staked_balance + locked + s.account.total_released == s.account.total_deposited


def inv_request_ids_allocated(s: LedgerSnapshot) -> bool:
    return all(1 <= r.request_id <= s.account.request_counter for r in s.requests)


def inv_offer_bounds_ordered(s: LedgerSnapshot) -> bool:
    return all(0 < o.min_amount <= o.max_amount for o in s.offers)


def inv_offer_ids_allocated(s: LedgerSnapshot) -> bool:
    return all(1 <= o.offer_id <= s.pool.offer_counter for o in s.offers)


def inv_deal_within_offer_bounds(s: LedgerSnapshot) -> bool:
    offers = {o.offer_id: o for o in s.offers}
    for d in s.deals:
        offer = offers.get(d.offer_id)
        if offer is None:
            return False
        if not offer.min_amount <= d.advance_amount <= offer.max_amount:
            return False
    return True


def inv_deal_count_matches_counter(s: LedgerSnapshot) -> bool:
    return len(s.deals) == s.pool.deal_counter


def inv_settled_count_matches(s: LedgerSnapshot) -> bool:
    return sum(1 for d in s.deals if d.settled) == s.settled_count


def inv_unsettled_deal_has_no_earnings(s: LedgerSnapshot) -> bool:
    return all(
        d.staked_received == 0 and d.lp_fee == 0 and d.interest == 0
        for d in s.deals
        if not d.settled
    )


def inv_pool_earnings_match_deals(s: LedgerSnapshot) -> bool:
    earned = sum(d.lp_fee + d.interest for d in s.deals if d.settled)
    return s.pool.total_earned == earned


def inv_pool_balance_conservation(s: LedgerSnapshot) -> bool:
    advanced = sum(d.advance_amount for d in s.deals)
    received = sum(d.staked_received + d.lp_fee + d.interest for d in s.deals if d.settled)
    return s.pool.usdc_balance == s.pool.net_deposited - advanced + received


def inv_fee_split_exact(s: LedgerSnapshot) -> bool:
    return s.config.lp_fee_bps + s.config.protocol_fee_bps == BPS_DENOM


# ---------------------------------------------------------------------------
# Registry + check_all
# ---------------------------------------------------------------------------

INVARIANT_REGISTRY: dict[str, Callable[[LedgerSnapshot], bool]] = {
    "inv_request_amount_positive": inv_request_amount_positive,
    "inv_cancelled_request_zeroed": inv_cancelled_request_zeroed,
    "inv_settled_request_was_matched": inv_settled_request_was_matched,
    "inv_account_conservation": inv_account_conservation,
    "inv_request_ids_allocated": inv_request_ids_allocated,
    "inv_offer_bounds_ordered": inv_offer_bounds_ordered,
    "inv_offer_ids_allocated": inv_offer_ids_allocated,
    "inv_deal_within_offer_bounds": inv_deal_within_offer_bounds,
    "inv_deal_count_matches_counter": inv_deal_count_matches_counter,
    "inv_settled_count_matches": inv_settled_count_matches,
    "inv_unsettled_deal_has_no_earnings": inv_unsettled_deal_has_no_earnings,
    "inv_pool_earnings_match_deals": inv_pool_earnings_match_deals,
    "inv_pool_balance_conservation": inv_pool_balance_conservation,
    "inv_fee_split_exact": inv_fee_split_exact,
}


def check_all(snapshot: LedgerSnapshot) -> list[str]:
    """Return list of violated invariant IDs (empty = all pass)."""
    return [
        inv_id
        for inv_id, check_fn in INVARIANT_REGISTRY.items()
        if not check_fn(snapshot)
    ]
