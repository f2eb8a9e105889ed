from __future__ import annotations

import pytest

from whamo.core.build.config import EditorConfig
from whamo.core.store.network_store import NetworkStore


@pytest.fixture
def store() -> NetworkStore:
    """Empty store, FPS global unit (no conversion on export)."""
    return NetworkStore()


@pytest.fixture
def si_store() -> NetworkStore:
    return NetworkStore(EditorConfig(global_unit="SI"))


@pytest.fixture
def reservoir_to_tank(si_store: NetworkStore) -> NetworkStore:
    """
    HW (node 1) --C1--> ST (node 2), SI units.
    """
    res = si_store.add_node("reservoir", (0, 0))
    tank = si_store.add_node("surgeTank", (200, 0))
    si_store.add_edge(res.uid, tank.uid)
    return si_store


@pytest.fixture
def chain(si_store: NetworkStore) -> NetworkStore:
    """
    HW(1) --C1--> N(2) --C2--> N(3) --C3--> N(4), all plain nodes after the reservoir.
    Edge uids are 5, 6, 7.
    """
    uids = [si_store.add_node("reservoir").uid]
    uids += [si_store.add_node("node").uid for _ in range(3)]
    for a, b in zip(uids, uids[1:]):
        si_store.add_edge(a, b)
    return si_store
