"""Shared plumbing for the store-backed ledgers."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from ..core.errors import ValidationError
from ..state.canonical import require_uint
from ..state.store import SCALARS, JournaledStore, KeyedStore, atomic, journaled


def require_field(value: Any, name: str, *, bits: int = 64, positive: bool = False) -> int:
    """`require_uint` that reports domain failures as `ValidationError`."""
    try:
        return require_uint(value, name=name, bits=bits, positive=positive)
    except (TypeError, ValueError) as exc:
        raise ValidationError(str(exc)) from exc


class Ledger:
    """
    A ledger owns one journaled keyed store.

    Record fields live at `(entity_id, offset)`; entity 0 holds the ledger's
    scalar counters, so record ids start at 1. Each ledger needs a store (or a
    SQLite namespace) of its own.
    """

    def __init__(self, store: KeyedStore | None = None) -> None:
        self.store: JournaledStore = journaled(store)

    def _scalar(self, offset: int) -> int:
        return self.store.get(SCALARS, offset)

    def _set_scalar(self, offset: int, value: int) -> None:
        self.store.set(SCALARS, offset, value)

    def _next_id(self, counter_offset: int) -> int:
        next_id = self._scalar(counter_offset) + 1
        self._set_scalar(counter_offset, next_id)
        return next_id

    @contextmanager
    def transaction(self, *others: "Ledger") -> Iterator[None]:
        """All-or-nothing scope over this ledger and `others`."""
        with atomic(self.store, *(o.store for o in others)):
            yield
