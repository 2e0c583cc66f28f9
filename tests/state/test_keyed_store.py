# [TESTER] v1

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from voile.state import UNSET, JournaledStore, KeyedStore, MemoryStore, TransactionalStore, atomic, journaled


def test_unwritten_slot_reads_unset() -> None:
    store = MemoryStore()
    assert store.get(7, 3) == UNSET == 0


def test_writing_zero_keeps_the_table_sparse() -> None:
    store = MemoryStore()
    store.set(1, 0, 42)
    assert len(store) == 1
    store.set(1, 0, 0)
    assert len(store) == 0
    assert store.get(1, 0) == 0


def test_large_values_round_trip() -> None:
    store = MemoryStore()
    big = (1 << 256) - 1
    store.set((1 << 128) - 1, 4, big)
    assert store.get((1 << 128) - 1, 4) == big


@pytest.mark.parametrize("entity_id, offset, value", [(-1, 0, 1), (0, -1, 1), (0, 0, -1)])
def test_negative_components_rejected(entity_id: int, offset: int, value: int) -> None:
    with pytest.raises(ValueError):
        MemoryStore().set(entity_id, offset, value)


def test_bool_value_rejected() -> None:
    with pytest.raises(TypeError):
        MemoryStore().set(1, 0, True)


def test_stores_satisfy_the_port() -> None:
    assert isinstance(MemoryStore(), KeyedStore)
    assert isinstance(JournaledStore(), KeyedStore)


def test_journaled_wraps_once() -> None:
    inner = MemoryStore()
    j = journaled(inner)
    assert j.backing is inner
    assert journaled(j) is j


class TestAtomic:
    def test_commit_keeps_writes(self) -> None:
        store = JournaledStore()
        with atomic(store):
            store.set(1, 0, 10)
            store.set(1, 1, 20)
        assert store.get(1, 0) == 10
        assert store.get(1, 1) == 20
        assert not store.in_transaction

    def test_exception_undoes_every_write(self) -> None:
        store = JournaledStore()
        store.set(1, 0, 5)
        with pytest.raises(RuntimeError):
            with atomic(store):
                store.set(1, 0, 6)
                store.set(2, 0, 7)
                raise RuntimeError("abort")
        assert store.get(1, 0) == 5
        assert store.get(2, 0) == 0
        assert not store.in_transaction

    def test_rollback_spans_several_stores(self) -> None:
        a, b = JournaledStore(), JournaledStore()
        with pytest.raises(KeyError):
            with atomic(a, b):
                a.set(1, 0, 1)
                b.set(1, 0, 2)
                raise KeyError("abort")
        assert a.get(1, 0) == 0
        assert b.get(1, 0) == 0

    def test_same_store_listed_twice(self) -> None:
        store = JournaledStore()
        with pytest.raises(ValueError):
            with atomic(store, store):
                store.set(1, 0, 1)
                raise ValueError("abort")
        assert store.get(1, 0) == 0
        assert not store.in_transaction

    def test_inner_rollback_keeps_outer_writes(self) -> None:
        store = JournaledStore()
        with atomic(store):
            store.set(1, 0, 1)
            with pytest.raises(RuntimeError):
                with atomic(store):
                    store.set(1, 0, 2)
                    store.set(1, 1, 3)
                    raise RuntimeError("inner")
            assert store.get(1, 0) == 1
            assert store.get(1, 1) == 0
        assert store.get(1, 0) == 1

    def test_outer_rollback_undoes_committed_inner_scope(self) -> None:
        store = JournaledStore()
        with pytest.raises(RuntimeError):
            with atomic(store):
                with atomic(store):
                    store.set(1, 0, 9)
                raise RuntimeError("outer")
        assert store.get(1, 0) == 0

    def test_release_without_savepoint_is_an_error(self) -> None:
        with pytest.raises(RuntimeError):
            JournaledStore().release(0)


class RecordingStore(MemoryStore):
    """MemoryStore that logs the backing-transaction calls it receives."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[str] = []

    def begin(self) -> None:
        self.calls.append("begin")

    def commit(self) -> None:
        self.calls.append("commit")

    def rollback(self) -> None:
        self.calls.append("rollback")


class TestBackingTransactions:
    def test_plain_store_is_not_transactional(self) -> None:
        assert not isinstance(MemoryStore(), TransactionalStore)
        assert isinstance(RecordingStore(), TransactionalStore)

    def test_only_the_outermost_scope_commits(self) -> None:
        backing = RecordingStore()
        store = JournaledStore(backing)
        with atomic(store):
            store.set(1, 0, 1)
            with atomic(store):
                store.set(1, 1, 2)
            assert backing.calls == ["begin"]
        assert backing.calls == ["begin", "commit"]

    def test_inner_failure_is_undone_by_the_journal(self) -> None:
        backing = RecordingStore()
        store = JournaledStore(backing)
        with atomic(store):
            store.set(1, 0, 1)
            with pytest.raises(ValueError):
                with atomic(store):
                    store.set(1, 1, 2)
                    raise ValueError("inner")
        assert backing.calls == ["begin", "commit"]
        assert backing.get_all() == {(1, 0): 1}

    def test_outer_failure_rolls_back_the_backing_store(self) -> None:
        backing = RecordingStore()
        store = JournaledStore(backing)
        with pytest.raises(ValueError):
            with atomic(store):
                store.set(1, 0, 1)
                raise ValueError("outer")
        assert backing.calls == ["begin", "rollback"]

    def test_writes_outside_a_scope_open_nothing(self) -> None:
        backing = RecordingStore()
        JournaledStore(backing).set(1, 0, 1)
        assert backing.calls == []


@given(
    st.lists(
        st.tuples(
            st.integers(min_value=0, max_value=5),
            st.integers(min_value=0, max_value=3),
            st.integers(min_value=0, max_value=1000),
        ),
        max_size=30,
    ),
    st.lists(
        st.tuples(
            st.integers(min_value=0, max_value=5),
            st.integers(min_value=0, max_value=3),
            st.integers(min_value=0, max_value=1000),
        ),
        max_size=30,
    ),
)
@settings(max_examples=100)
def test_rollback_restores_exact_prior_contents(before, inside) -> None:
    """
    PROPERTY: an aborted scope leaves the backing store exactly as it was.
    """
    backing = MemoryStore()
    store = JournaledStore(backing)
    for e, o, v in before:
        store.set(e, o, v)
    snapshot = backing.get_all()

    with pytest.raises(RuntimeError):
        with atomic(store):
            for e, o, v in inside:
                store.set(e, o, v)
            raise RuntimeError("abort")

    assert backing.get_all() == snapshot
