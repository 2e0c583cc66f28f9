"""
Keyed ledger store: the flat `(entity_id, offset) -> value` persistence port.

Every ledger in this package keeps its records as a small fixed set of field
offsets under an entity id. Reads of never-written slots return 0 ("unset").

`JournaledStore` adds all-or-nothing semantics on top of any backing store:
writes made inside `atomic(...)` are undone if the block raises.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Dict, Iterator, List, Protocol, Tuple, runtime_checkable


logger = logging.getLogger(__name__)

# Type aliases
EntityId = int
Offset = int
Value = int
SlotKey = Tuple[EntityId, Offset]

UNSET: Value = 0

# Entity id reserved for per-ledger scalar counters (balances, id counters).
SCALARS: EntityId = 0


@runtime_checkable
class KeyedStore(Protocol):
    """Storage port injected into every ledger."""

    def get(self, entity_id: EntityId, offset: Offset) -> Value:
        ...

    def set(self, entity_id: EntityId, offset: Offset, value: Value) -> None:
        ...


@runtime_checkable
class TransactionalStore(KeyedStore, Protocol):
    """
    A backing store with its own transactions.

    `JournaledStore` opens one around its outermost savepoint, so the backing
    store never exposes the writes of an unfinished scope.
    """

    def begin(self) -> None:
        ...

    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...


def _check_slot(entity_id: EntityId, offset: Offset, value: Value) -> None:
    for name, v in (("entity_id", entity_id), ("offset", offset), ("value", value)):
        if not isinstance(v, int) or isinstance(v, bool):
            raise TypeError(f"{name} must be an int")
        if v < 0:
            raise ValueError(f"{name} cannot be negative: {v}")


class MemoryStore:
    """
    In-memory keyed store mapping (entity_id, offset) -> value.

    Notes:
    - Values are always non-negative integers (arbitrary precision).
    - Zero values are omitted to keep the table sparse; reading them back yields UNSET.
    """

    def __init__(self) -> None:
        self._slots: Dict[SlotKey, Value] = {}

    def get(self, entity_id: EntityId, offset: Offset) -> Value:
        """Get the value at (entity_id, offset). Returns UNSET if never written."""
        return self._slots.get((entity_id, offset), UNSET)

    def set(self, entity_id: EntityId, offset: Offset, value: Value) -> None:
        """
        Set the value at (entity_id, offset).

        Raises:
            ValueError: If any component is negative
        """
        _check_slot(entity_id, offset, value)
        if value == UNSET:
            self._slots.pop((entity_id, offset), None)
        else:
            self._slots[(entity_id, offset)] = value

    def get_all(self) -> Dict[SlotKey, Value]:
        """Return a shallow copy of all non-zero slots."""
        return dict(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def __repr__(self) -> str:
        return f"MemoryStore({len(self._slots)} slots)"


class JournaledStore:
    """
    Undo-journal wrapper around a backing `KeyedStore`.

    While at least one savepoint is open, every write records the previous value
    of its slot. `rollback_to(mark)` restores those values in reverse order.
    Outside a savepoint writes go straight through with no journal cost.

    When the backing store is a `TransactionalStore`, the outermost savepoint
    also begins a backing transaction, committed on release and rolled back on
    rollback.
    """

    def __init__(self, backing: KeyedStore | None = None) -> None:
        self.backing: KeyedStore = backing if backing is not None else MemoryStore()
        self._tx: TransactionalStore | None = backing if isinstance(backing, TransactionalStore) else None
        self._journal: List[Tuple[SlotKey, Value]] = []
        self._depth = 0

    def get(self, entity_id: EntityId, offset: Offset) -> Value:
        return self.backing.get(entity_id, offset)

    def set(self, entity_id: EntityId, offset: Offset, value: Value) -> None:
        _check_slot(entity_id, offset, value)
        if self._depth > 0:
            self._journal.append(((entity_id, offset), self.backing.get(entity_id, offset)))
        self.backing.set(entity_id, offset, value)

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def savepoint(self) -> int:
        """Open a (possibly nested) savepoint and return its journal mark."""
        if self._depth == 0 and self._tx is not None:
            self._tx.begin()
        self._depth += 1
        return len(self._journal)

    def release(self, mark: int) -> None:
        """Close the innermost savepoint, keeping its writes."""
        if self._depth <= 0:
            raise RuntimeError("release() without an open savepoint")
        self._depth -= 1
        if self._depth == 0:
            self._journal.clear()
            if self._tx is not None:
                self._tx.commit()

    def rollback_to(self, mark: int) -> int:
        """Undo every write made since `mark` and close the savepoint. Returns writes undone."""
        if self._depth <= 0:
            raise RuntimeError("rollback_to() without an open savepoint")
        undone = 0
        while len(self._journal) > mark:
            (entity_id, offset), old = self._journal.pop()
            self.backing.set(entity_id, offset, old)
            undone += 1
        self._depth -= 1
        if self._depth == 0:
            self._journal.clear()
            if self._tx is not None:
                self._tx.rollback()
        return undone

    def __repr__(self) -> str:
        return f"JournaledStore({self.backing!r}, depth={self._depth})"


def journaled(store: KeyedStore | None) -> JournaledStore:
    """Wrap `store` in a JournaledStore unless it already is one."""
    if isinstance(store, JournaledStore):
        return store
    return JournaledStore(store)


@contextmanager
def atomic(*stores: JournaledStore) -> Iterator[None]:
    """
    All-or-nothing scope over one or more journaled stores.

    If the block raises, every write made to any of `stores` inside it is
    undone and the exception propagates. Scopes nest: an inner rollback only
    undoes the inner block's writes.
    """
    # The same store may be reachable through several ledgers.
    unique: List[JournaledStore] = []
    for s in stores:
        if not any(s is u for u in unique):
            unique.append(s)

    marks: List[Tuple[JournaledStore, int]] = []
    try:
        for s in unique:
            marks.append((s, s.savepoint()))
        yield
    except BaseException:
        undone = sum(s.rollback_to(mark) for s, mark in reversed(marks))
        if undone:
            logger.debug("atomic scope rolled back %d write(s)", undone)
        raise
    for s, mark in reversed(marks):
        s.release(mark)
