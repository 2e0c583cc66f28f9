"""
Pure core of the Voile early-liquidity protocol.

- `config`: protocol parameters (`ProtocolConfig`, YAML loading)
- `pricing`: integer fee / interest / fee-split arithmetic
- `commitments`: pluggable one-way commitment scheme
- `types`: request, offer and deal dataclasses plus ledger read models
- `matching`: off-chain best-offer selection
- `invariants`: global checks over a ledger snapshot
"""

from .config import DEFAULT_CONFIG, ONE_USDC, ProtocolConfig, load_config
from .errors import (
    AlreadyCancelled,
    AlreadyMatched,
    AlreadySettled,
    ConsistencyError,
    CooldownActive,
    InsufficientBalance,
    InvariantViolation,
    NotFound,
    StateError,
    ValidationError,
    VoileError,
)
from .invariants import LedgerSnapshot, check_all
from .matching import MatchingEngine, MatchPreview, counter_deal_ids, random_deal_id
from .pricing import PricingBreakdown, PricingCalculator
from .types import (
    AccountScalars,
    DealRecord,
    DealStatus,
    LpOffer,
    MatchedDeal,
    PoolScalars,
    RequestRecord,
    RequestStatus,
    UnlockRequest,
)

__all__ = [
    "DEFAULT_CONFIG",
    "ONE_USDC",
    "ProtocolConfig",
    "load_config",
    "VoileError",
    "ValidationError",
    "InsufficientBalance",
    "StateError",
    "NotFound",
    "AlreadyMatched",
    "AlreadySettled",
    "AlreadyCancelled",
    "CooldownActive",
    "ConsistencyError",
    "InvariantViolation",
    "LedgerSnapshot",
    "check_all",
    "MatchingEngine",
    "MatchPreview",
    "counter_deal_ids",
    "random_deal_id",
    "PricingBreakdown",
    "PricingCalculator",
    "AccountScalars",
    "DealRecord",
    "DealStatus",
    "LpOffer",
    "MatchedDeal",
    "PoolScalars",
    "RequestRecord",
    "RequestStatus",
    "UnlockRequest",
]
