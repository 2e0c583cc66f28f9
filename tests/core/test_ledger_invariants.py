# [TESTER] v1

from __future__ import annotations

from dataclasses import replace

import pytest

from voile.core.config import DEFAULT_CONFIG
from voile.core.errors import InvariantViolation
from voile.core.invariants import INVARIANT_REGISTRY, LedgerSnapshot, check_all
from voile.core.types import AccountScalars, DealRecord, LpOffer, PoolScalars, RequestRecord
from voile.integration import DealCoordinator
from voile.ledgers import LpOfferLedger, UnlockRequestLedger


def _healthy() -> LedgerSnapshot:
    """One matched request backed by one unsettled deal."""
    return LedgerSnapshot(
        config=DEFAULT_CONFIG,
        account=AccountScalars(staked_balance=7_000, request_counter=1, total_deposited=10_000),
        requests=(
            RequestRecord(
                request_id=1,
                commitment=0xC0,
                lp_commitment=0xA1,
                locked_amount=3_000,
                settled=False,
                settlement_note_hash=0x5E,
                cooldown_end_timestamp=100,
            ),
        ),
        pool=PoolScalars(usdc_balance=97_150, total_earned=0, offer_counter=1, deal_counter=1, total_deposited=100_000),
        offers=(LpOffer(offer_id=1, max_amount=50_000, min_amount=1_000, commitment=0xA1),),
        deals=(DealRecord(deal_id=9, user_commitment=0xC0, advance_amount=2_850, offer_id=1, settled=False),),
        settled_count=0,
    )


def test_healthy_snapshot_passes() -> None:
    assert check_all(_healthy()) == []


def test_registry_names_match_functions() -> None:
    for inv_id, fn in INVARIANT_REGISTRY.items():
        assert fn.__name__ == inv_id


@pytest.mark.parametrize(
    "mutate, violated",
    [
        (
            lambda s: replace(s, pool=replace(s.pool, usdc_balance=s.pool.usdc_balance + 1)),
            "inv_pool_balance_conservation",
        ),
        (
            lambda s: replace(s, account=replace(s.account, staked_balance=7_001)),
            "inv_account_conservation",
        ),
        (
            lambda s: replace(s, deals=(replace(s.deals[0], advance_amount=999),)),
            "inv_deal_within_offer_bounds",
        ),
        (
            lambda s: replace(s, settled_count=1),
            "inv_settled_count_matches",
        ),
        (
            lambda s: replace(s, deals=(replace(s.deals[0], lp_fee=5),)),
            "inv_unsettled_deal_has_no_earnings",
        ),
        (
            lambda s: replace(s, pool=replace(s.pool, deal_counter=2)),
            "inv_deal_count_matches_counter",
        ),
        (
            lambda s: replace(s, requests=(replace(s.requests[0], lp_commitment=0, settled=True),)),
            "inv_settled_request_was_matched",
        ),
        (
            lambda s: replace(s, requests=(replace(s.requests[0], request_id=2),)),
            "inv_request_ids_allocated",
        ),
    ],
)
def test_each_break_is_reported(mutate, violated: str) -> None:
    assert violated in check_all(mutate(_healthy()))


def test_coordinator_raises_on_violation() -> None:
    user = UnlockRequestLedger()
    pool = LpOfferLedger()
    coord = DealCoordinator(user, pool)
    coord.verify_invariants()

    # A write that bypasses the ledger API breaks pool conservation.
    pool.store.set(0, 0, 123)
    with pytest.raises(InvariantViolation) as exc:
        coord.verify_invariants()
    assert exc.value.violations == ["inv_pool_balance_conservation"]
