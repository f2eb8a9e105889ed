from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from whamo.core.build.config import ComputationalParams
from whamo.core.models.edge import Edge
from whamo.core.models.node import Node, UnitSystem
from whamo.core.models.request import OutputRequest

# data fields that always hold a value; a null or blank on load keeps the default
NON_NULL_FIELDS = frozenset({"label", "variable", "schedule_number", "schedule_points"})


@dataclass(frozen=True, slots=True)
class NetworkSnapshot:
    """
    Immutable value of the whole editable document (unit of undo/redo).

    Nodes and edges keep insertion order; the exporter relies on it.
    """
    nodes: Tuple[Node, ...] = ()
    edges: Tuple[Edge, ...] = ()
    computational_params: ComputationalParams = field(default_factory=ComputationalParams)
    output_requests: Tuple[OutputRequest, ...] = ()
    global_unit: UnitSystem = "FPS"

    def node_by_uid(self) -> Dict[str, Node]:
        return {n.uid: n for n in self.nodes}

    def edge_by_uid(self) -> Dict[str, Edge]:
        return {e.uid: e for e in self.edges}

    def nodes_of_kind(self, *kinds: str) -> List[Node]:
        return [n for n in self.nodes if n.kind in kinds]
