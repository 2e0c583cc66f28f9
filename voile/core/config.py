"""
Protocol configuration.

Pricing and cooldown parameters travel as an explicit `ProtocolConfig` value
passed to the pricing calculator, the matching engine and the ledgers, so tests
can vary them. `load_config()` reads the same fields from a YAML file.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Mapping

import yaml


BPS_DENOM = 10_000

USDC_DECIMALS = 6
ONE_USDC = 1_000_000

SECONDS_PER_DAY = 86_400
DAYS_PER_YEAR = 365

DEFAULT_ADVANCE_FEE_BPS = 500
DEFAULT_APR_BPS = 1000
DEFAULT_COOLDOWN_SECONDS = 14 * SECONDS_PER_DAY
DEFAULT_LP_FEE_BPS = 8000
DEFAULT_PROTOCOL_FEE_BPS = 2000


@dataclass(frozen=True)
class ProtocolConfig:
    advance_fee_bps: int = DEFAULT_ADVANCE_FEE_BPS
    default_apr_bps: int = DEFAULT_APR_BPS
    cooldown_seconds: int = DEFAULT_COOLDOWN_SECONDS
    lp_fee_bps: int = DEFAULT_LP_FEE_BPS
    protocol_fee_bps: int = DEFAULT_PROTOCOL_FEE_BPS

    # Deal-size and cooldown policy used by the validation helpers.
    min_deal_amount: int = 100 * ONE_USDC
    min_cooldown_seconds: int = SECONDS_PER_DAY
    max_cooldown_seconds: int = DAYS_PER_YEAR * SECONDS_PER_DAY

    def __post_init__(self) -> None:
        for f in fields(self):
            v = getattr(self, f.name)
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{f.name} must be an int")
            if v < 0:
                raise ValueError(f"{f.name} must be non-negative: {v}")
        for name in ("advance_fee_bps", "default_apr_bps", "lp_fee_bps", "protocol_fee_bps"):
            v = getattr(self, name)
            if v > BPS_DENOM:
                raise ValueError(f"{name} must be in [0, {BPS_DENOM}]: {v}")
        total = self.lp_fee_bps + self.protocol_fee_bps
        if total != BPS_DENOM:
            raise ValueError(f"lp_fee_bps + protocol_fee_bps must sum to {BPS_DENOM}, got {total}")
        if self.min_cooldown_seconds > self.max_cooldown_seconds:
            raise ValueError("min_cooldown_seconds must be <= max_cooldown_seconds")

    @property
    def cooldown_days(self) -> int:
        return self.cooldown_seconds // SECONDS_PER_DAY


DEFAULT_CONFIG = ProtocolConfig()


def config_from_mapping(data: Mapping[str, Any]) -> ProtocolConfig:
    """Build a config from a mapping. Missing keys take defaults; unknown keys are rejected."""
    if not isinstance(data, Mapping):
        raise TypeError("config must be a mapping")
    known = {f.name for f in fields(ProtocolConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"unknown config keys: {', '.join(map(str, unknown))}")
    return ProtocolConfig(**dict(data))


def config_to_dict(config: ProtocolConfig) -> dict[str, int]:
    return asdict(config)


def load_config(path: str | Path) -> ProtocolConfig:
    """Load a `ProtocolConfig` from a YAML file (an empty file yields the defaults)."""
    obj = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if obj is None:
        return ProtocolConfig()
    return config_from_mapping(obj)


def dump_config(config: ProtocolConfig, path: str | Path) -> None:
    Path(path).write_text(yaml.safe_dump(config_to_dict(config), sort_keys=True), encoding="utf-8")
