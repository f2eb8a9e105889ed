from __future__ import annotations

import pytest

from whamo.core.build.config import ComputationalParams, EditorConfig
from whamo.core.models.network import NetworkSnapshot
from whamo.core.store.history import HistoryManager
from whamo.core.store.network_store import NetworkStore


def _snap(tmax: float) -> NetworkSnapshot:
    return NetworkSnapshot(computational_params=ComputationalParams(tmax=tmax))


def test_past_is_capped_most_recent_first():
    h = HistoryManager(capacity=3)
    for i in range(1, 6):
        h.record(_snap(float(i)))
    assert [s.computational_params.tmax for s in h.past] == [5.0, 4.0, 3.0]


def test_undo_redo_on_empty_stacks_are_noops():
    h = HistoryManager()
    assert h.undo(_snap(1.0)) is None
    assert h.redo(_snap(1.0)) is None


def test_record_clears_future():
    h = HistoryManager()
    h.record(_snap(1.0))
    h.undo(_snap(2.0))
    assert h.can_redo
    h.record(_snap(3.0))
    assert not h.can_redo


def test_invalid_capacity():
    with pytest.raises(ValueError):
        HistoryManager(capacity=0)


def test_store_undo_is_bounded():
    store = NetworkStore(EditorConfig(history_capacity=50))
    for _ in range(55):
        store.add_node("node")
    undone = 0
    while store.undo():
        undone += 1
    assert undone == 50
    assert len(store.nodes) == 5
    assert store.undo() is False


def test_undo_then_redo_restores_state(store):
    res = store.add_node("reservoir")
    j = store.add_node("junction")
    e = store.add_edge(res.uid, j.uid)
    mutations = [
        lambda: store.update_node_data(j.uid, {"elevation": 12.5}),
        lambda: store.update_edge_data(e.uid, {"kind": "dummy"}),
        lambda: store.update_computational_params({"tmax": 60}),
        lambda: store.set_global_unit("SI"),
        lambda: store.add_output_request(j.uid, "node", "PLOT", ["Q"]),
        lambda: store.delete_element(res.uid, "node"),
    ]
    for mutate in mutations:
        mutate()
        before = store.snapshot()
        assert store.undo()
        assert store.redo()
        assert store.snapshot() == before


def test_undo_restores_previous_state(store):
    store.add_node("reservoir")
    before = store.snapshot()
    store.add_node("surgeTank")
    store.undo()
    assert store.snapshot() == before


def test_drag_is_not_recorded(store):
    n = store.add_node("node", (0, 0))
    depth = len(store.history.past)
    store.move_node(n.uid, (10, 20))
    assert len(store.history.past) == depth
    assert store.get_node(n.uid).position == (10.0, 20.0)


def test_new_mutation_drops_redo(store):
    store.add_node("node")
    store.undo()
    assert store.can_redo
    store.add_node("junction")
    assert not store.can_redo
