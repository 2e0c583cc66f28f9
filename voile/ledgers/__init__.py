"""
Store-backed ledgers
"""

from .deals import DealLedger
from .lp_pool import LpOfferLedger
from .user_account import UnlockRequestLedger

__all__ = [
    "DealLedger",
    "LpOfferLedger",
    "UnlockRequestLedger",
]
