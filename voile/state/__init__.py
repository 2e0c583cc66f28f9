"""
State management for the Voile ledgers
"""

from .store import (
    SCALARS,
    UNSET,
    JournaledStore,
    KeyedStore,
    MemoryStore,
    TransactionalStore,
    atomic,
    journaled,
)
from .sqlite_store import SqliteStore

__all__ = [
    "SCALARS",
    "UNSET",
    "JournaledStore",
    "KeyedStore",
    "MemoryStore",
    "SqliteStore",
    "TransactionalStore",
    "atomic",
    "journaled",
]
