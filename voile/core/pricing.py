"""
Pricing kernels (deterministic, integer-only).

All amounts are in the smallest denomination (1 USDC = 1_000_000). Every
division floors; the results are bit-exact and must not be replaced by
rounding or float arithmetic.

    advance_fee(p)        = p * advance_fee_bps // 10_000
    net_advance(p)        = p - advance_fee(p)
    apr_interest(p, d)    = p * apr_bps * d // (10_000 * 365)
    lp_fee_share(f)       = f * lp_fee_bps // 10_000
    protocol_fee_share(f) = f - lp_fee_share(f)

The protocol share takes the rounding remainder so that the two shares always
sum to the fee. For fees where `f * protocol_fee_bps` divides evenly this is
the same as `f * protocol_fee_bps // 10_000`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .config import (
    BPS_DENOM,
    DAYS_PER_YEAR,
    DEFAULT_CONFIG,
    ONE_USDC,
    SECONDS_PER_DAY,
    ProtocolConfig,
)


def _require_amount(value: int, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0:
        raise ValueError(f"{name} must be non-negative: {value}")
    return value


@dataclass(frozen=True)
class PricingBreakdown:
    principal: int
    advance_fee: int
    net_advance: int
    apr_interest: int
    lp_fee_share: int
    protocol_fee_share: int
    total_lp_earnings: int
    # Annualized LP return on the net advance, in basis points (floored).
    effective_apy_bps: int
    cooldown_days: int
    apr_bps: int


class PricingCalculator:
    """Fee, interest and fee-split arithmetic bound to one `ProtocolConfig`."""

    def __init__(self, config: ProtocolConfig = DEFAULT_CONFIG) -> None:
        self.config = config

    def advance_fee(self, principal: int) -> int:
        _require_amount(principal, "principal")
        return (principal * self.config.advance_fee_bps) // BPS_DENOM

    def net_advance(self, principal: int) -> int:
        return principal - self.advance_fee(principal)

    def apr_interest(self, principal: int, days: int, apr_bps: Optional[int] = None) -> int:
        _require_amount(principal, "principal")
        _require_amount(days, "days")
        rate = self.config.default_apr_bps if apr_bps is None else _require_amount(apr_bps, "apr_bps")
        return (principal * rate * days) // (BPS_DENOM * DAYS_PER_YEAR)

    def lp_fee_share(self, total_fee: int) -> int:
        _require_amount(total_fee, "total_fee")
        return (total_fee * self.config.lp_fee_bps) // BPS_DENOM

    def protocol_fee_share(self, total_fee: int) -> int:
        return total_fee - self.lp_fee_share(total_fee)

    def effective_apr_bps(self, custom_apr_bps: Optional[int]) -> int:
        return self.config.default_apr_bps if custom_apr_bps is None else custom_apr_bps

    def breakdown(
        self,
        principal: int,
        cooldown_days: Optional[int] = None,
        custom_apr_bps: Optional[int] = None,
    ) -> PricingBreakdown:
        """Full pricing for a deal of `principal` over `cooldown_days` (default: config cooldown)."""
        days = self.config.cooldown_days if cooldown_days is None else cooldown_days
        apr = self.effective_apr_bps(custom_apr_bps)

        fee = self.advance_fee(principal)
        net = principal - fee
        interest = self.apr_interest(principal, days, apr)
        lp_share = self.lp_fee_share(fee)
        protocol_share = self.protocol_fee_share(fee)
        total_lp = lp_share + interest

        # APY = earnings / net * 365 / days
        if net > 0 and days > 0:
            apy_bps = (total_lp * BPS_DENOM * DAYS_PER_YEAR) // (net * days)
        else:
            apy_bps = 0

        return PricingBreakdown(
            principal=principal,
            advance_fee=fee,
            net_advance=net,
            apr_interest=interest,
            lp_fee_share=lp_share,
            protocol_fee_share=protocol_share,
            total_lp_earnings=total_lp,
            effective_apy_bps=apy_bps,
            cooldown_days=days,
            apr_bps=apr,
        )

    # -- validation helpers ---------------------------------------------------

    def is_minimum_deal_size(self, principal: int) -> bool:
        return principal >= self.config.min_deal_amount

    def is_valid_cooldown(self, cooldown_seconds: int) -> bool:
        return self.config.min_cooldown_seconds <= cooldown_seconds <= self.config.max_cooldown_seconds


def is_pricing_profitable(breakdown: PricingBreakdown) -> bool:
    """LP must earn a positive return."""
    return breakdown.total_lp_earnings > 0


def usdc_to_raw(display: int) -> int:
    return _require_amount(display, "display") * ONE_USDC


def raw_to_usdc(raw: int) -> int:
    return _require_amount(raw, "raw") // ONE_USDC


def cooldown_days(cooldown_seconds: int) -> int:
    """Whole days in a cooldown, floored (a partial day does not accrue interest)."""
    return _require_amount(cooldown_seconds, "cooldown_seconds") // SECONDS_PER_DAY


_DEFAULT = PricingCalculator(DEFAULT_CONFIG)


def advance_fee(principal: int) -> int:
    return _DEFAULT.advance_fee(principal)


def net_advance(principal: int) -> int:
    return _DEFAULT.net_advance(principal)


def apr_interest(principal: int, days: int, apr_bps: Optional[int] = None) -> int:
    return _DEFAULT.apr_interest(principal, days, apr_bps)


def lp_fee_share(total_fee: int) -> int:
    return _DEFAULT.lp_fee_share(total_fee)


def protocol_fee_share(total_fee: int) -> int:
    return _DEFAULT.protocol_fee_share(total_fee)


def pricing_breakdown(
    principal: int,
    cooldown_days: Optional[int] = None,
    custom_apr_bps: Optional[int] = None,
) -> PricingBreakdown:
    return _DEFAULT.breakdown(principal, cooldown_days, custom_apr_bps)
