# [TESTER] v1

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from voile.core.config import ONE_USDC, ProtocolConfig
from voile.core.pricing import (
    PricingCalculator,
    advance_fee,
    apr_interest,
    cooldown_days,
    is_pricing_profitable,
    lp_fee_share,
    net_advance,
    pricing_breakdown,
    protocol_fee_share,
    raw_to_usdc,
    usdc_to_raw,
)


def test_reference_advance_fee() -> None:
    assert advance_fee(3000 * ONE_USDC) == 150 * ONE_USDC
    assert net_advance(3000 * ONE_USDC) == 2850 * ONE_USDC


def test_reference_interest_for_fourteen_days() -> None:
    interest = apr_interest(3000 * ONE_USDC, 14)
    assert 11 * ONE_USDC < interest < 12 * ONE_USDC
    # 3000e6 * 1000 * 14 // 3_650_000
    assert interest == 11_506_849


def test_reference_fee_split() -> None:
    assert lp_fee_share(100 * ONE_USDC) == 80 * ONE_USDC
    assert protocol_fee_share(100 * ONE_USDC) == 20 * ONE_USDC


def test_division_truncates() -> None:
    assert advance_fee(19) == 0
    assert advance_fee(20) == 1
    assert net_advance(39) == 38
    # 1 unit of fee: all of it is rounding remainder.
    assert lp_fee_share(1) == 0
    assert protocol_fee_share(1) == 1


def test_custom_apr_overrides_default() -> None:
    # 365 USDC at 8% for one day is 0.08 USDC.
    assert apr_interest(365 * ONE_USDC, 1, apr_bps=800) == 80_000
    assert apr_interest(365 * ONE_USDC, 0) == 0


def test_negative_principal_rejected() -> None:
    with pytest.raises(ValueError):
        advance_fee(-1)
    with pytest.raises(TypeError):
        advance_fee(1.5)  # type: ignore[arg-type]


class TestBreakdown:
    def test_reference_deal(self) -> None:
        b = pricing_breakdown(3000 * ONE_USDC)
        assert b.advance_fee == 150 * ONE_USDC
        assert b.net_advance == 2850 * ONE_USDC
        assert b.cooldown_days == 14
        assert b.apr_bps == 1000
        assert b.apr_interest == 11_506_849
        assert b.lp_fee_share == 120 * ONE_USDC
        assert b.protocol_fee_share == 30 * ONE_USDC
        assert b.total_lp_earnings == 120 * ONE_USDC + 11_506_849
        assert b.effective_apy_bps == 12030
        assert is_pricing_profitable(b)

    def test_zero_days_has_no_apy(self) -> None:
        b = pricing_breakdown(1000 * ONE_USDC, cooldown_days=0)
        assert b.apr_interest == 0
        assert b.effective_apy_bps == 0

    def test_custom_rate(self) -> None:
        b = pricing_breakdown(1000 * ONE_USDC, cooldown_days=14, custom_apr_bps=0)
        assert b.apr_bps == 0
        assert b.apr_interest == 0
        assert b.total_lp_earnings == b.lp_fee_share


class TestCalculatorConfig:
    def test_parameters_come_from_config(self) -> None:
        calc = PricingCalculator(ProtocolConfig(advance_fee_bps=1000, lp_fee_bps=5000, protocol_fee_bps=5000))
        assert calc.advance_fee(1000) == 100
        assert calc.lp_fee_share(100) == 50
        assert calc.protocol_fee_share(100) == 50

    def test_validation_helpers(self) -> None:
        calc = PricingCalculator()
        assert calc.is_minimum_deal_size(100 * ONE_USDC)
        assert not calc.is_minimum_deal_size(100 * ONE_USDC - 1)
        assert calc.is_valid_cooldown(86_400)
        assert not calc.is_valid_cooldown(86_399)
        assert not calc.is_valid_cooldown(366 * 86_400)


def test_unit_conversions() -> None:
    assert usdc_to_raw(3) == 3_000_000
    assert raw_to_usdc(3_999_999) == 3
    assert cooldown_days(14 * 86_400 + 86_399) == 14


@given(st.integers(min_value=0, max_value=(1 << 64) - 1))
@settings(max_examples=200)
def test_fee_plus_net_is_principal(principal: int) -> None:
    assert advance_fee(principal) + net_advance(principal) == principal


@given(
    st.integers(min_value=0, max_value=(1 << 64) - 1),
    st.integers(min_value=0, max_value=10_000),
)
@settings(max_examples=200)
def test_fee_split_is_exact(total_fee: int, lp_bps: int) -> None:
    calc = PricingCalculator(ProtocolConfig(lp_fee_bps=lp_bps, protocol_fee_bps=10_000 - lp_bps))
    assert calc.lp_fee_share(total_fee) + calc.protocol_fee_share(total_fee) == total_fee


@given(st.integers(min_value=0, max_value=(1 << 64) - 1).map(lambda x: x * 5))
def test_protocol_share_matches_bps_formula_on_exact_fees(total_fee: int) -> None:
    assert protocol_fee_share(total_fee) == total_fee * 2000 // 10_000
