"""
Integration layer: note encoding and the deal coordinator.
"""

from .coordinator import DealCoordinator
from .notes import AdvanceNoteInputs, SettlementNoteInputs

__all__ = [
    "AdvanceNoteInputs",
    "DealCoordinator",
    "SettlementNoteInputs",
]
