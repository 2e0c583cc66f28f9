# [TESTER] v1

from __future__ import annotations

import pytest

from voile.core.commitments import request_commitment
from voile.core.config import ONE_USDC
from voile.core.types import (
    LpOffer,
    MatchedDeal,
    RequestRecord,
    RequestStatus,
    UnlockRequest,
)


SECRET = b"\x02" * 32


def test_new_request_commits_to_its_terms() -> None:
    r = UnlockRequest.new(1, 10_000 * ONE_USDC, 1_700_000_000, "alice", nullifier_secret=SECRET)
    assert r.commitment == request_commitment(10_000 * ONE_USDC, 1_700_000_000, SECRET, "alice")
    assert r.advance_fee() == 500 * ONE_USDC
    assert r.net_advance() == 9_500 * ONE_USDC
    assert r.status is RequestStatus.UNMATCHED
    assert r.with_id(9).request_id == 9


def test_request_rejects_zero_amount_and_commitment() -> None:
    with pytest.raises(ValueError):
        UnlockRequest.new(1, 0, 1, "alice")
    with pytest.raises(ValueError):
        UnlockRequest(1, 10, 1, 0, SECRET, "alice")
    with pytest.raises(ValueError):
        UnlockRequest.new(1, 10, 1, "")


def test_request_rejects_surrogate_user_id_before_hashing() -> None:
    with pytest.raises(TypeError):
        UnlockRequest.new(1, 10, 1, "al\udcffice", nullifier_secret=SECRET)


def test_offer_bounds_validated() -> None:
    with pytest.raises(ValueError):
        LpOffer.new(1, "lp", 10, 11)
    with pytest.raises(ValueError):
        LpOffer.new(1, "lp", 10, 0)
    offer = LpOffer.new(1, "lp", 10, 10)
    assert offer.can_match(10)
    assert not offer.can_match(9)
    assert offer.effective_apr_bps(1000) == 1000
    assert LpOffer.new(1, "lp", 10, 1, 0).effective_apr_bps(1000) == 0


def test_deal_amounts_must_sum_to_request() -> None:
    request = UnlockRequest.new(1, 1000, 1, "alice", nullifier_secret=SECRET)
    offer = LpOffer.new(1, "lp", 10_000, 1)
    with pytest.raises(ValueError):
        MatchedDeal(deal_id=1, request=request, offer=offer, advance_amount=950, advance_fee=49)
    with pytest.raises(ValueError):
        MatchedDeal(deal_id=0, request=request, offer=offer, advance_amount=950, advance_fee=50)
    deal = MatchedDeal(deal_id=1, request=request, offer=offer, advance_amount=950, advance_fee=50)
    assert deal.cooldown_end_timestamp == 1


@pytest.mark.parametrize(
    "lp_commitment, settled, cancelled, expected",
    [
        (0, False, False, RequestStatus.UNMATCHED),
        (5, False, False, RequestStatus.MATCHED),
        (5, True, False, RequestStatus.SETTLED),
        (0, False, True, RequestStatus.CANCELLED),
    ],
)
def test_record_status(lp_commitment: int, settled: bool, cancelled: bool, expected: RequestStatus) -> None:
    record = RequestRecord(
        request_id=1,
        commitment=0 if cancelled else 9,
        lp_commitment=lp_commitment,
        locked_amount=0 if cancelled else 100,
        settled=settled,
        settlement_note_hash=0,
        cooldown_end_timestamp=0,
        cancelled=cancelled,
    )
    assert record.status is expected
