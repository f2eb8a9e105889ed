from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Set, Tuple, Union

from whamo.core.models.edge import Edge
from whamo.core.models.network import NetworkSnapshot
from whamo.core.models.node import Node


@dataclass(frozen=True)
class ElementAt:
    """`ELEM <label> AT <node>` : element anchored at a node."""
    label: str
    node_id: str

    def render(self) -> List[str]:
        return [f"ELEM {self.label} AT {self.node_id}"]


@dataclass(frozen=True)
class JunctionAt:
    """`JUNCTION AT <node>` : branch marker, framed by blank lines."""
    node_id: str

    def render(self) -> List[str]:
        return ["", f"JUNCTION AT {self.node_id}", ""]


@dataclass(frozen=True)
class ElementLink:
    """`ELEM <label> LINK <from> <to>` : directed link."""
    label: str
    from_id: str
    to_id: str

    def render(self) -> List[str]:
        return [f"ELEM {self.label} LINK {self.from_id} {self.to_id}"]


ConnectivityRecord = Union[ElementAt, JunctionAt, ElementLink]


@dataclass(frozen=True)
class ConnectivityResult:
    records: Tuple[ConnectivityRecord, ...]
    special_node_ids: Tuple[str, ...]   # export ids carrying an element or junction marker

    def lines(self) -> List[str]:
        out: List[str] = []
        for r in self.records:
            out.extend(r.render())
        return out


def build_connectivity(snapshot: NetworkSnapshot) -> ConnectivityResult:
    """
    Depth-first linearization of the graph, rooted at every reservoir.

    For each node reached for the first time:
      1. reservoir / surge tank / flow boundary -> ElementAt
      2. junction kind or more than one outgoing edge -> JunctionAt
      3. each outgoing edge not yet visited -> ElementLink, then descend
         into its target

    Each node and each edge is visited at most once (cycles, re-entrant
    graphs). Surge tanks and flow boundaries never reached from a
    reservoir are appended as standalone ElementAt records.

    Iterative (explicit stack of edge iterators); emission order is the same
    as the recursive walk.
    """
    nodes: Dict[str, Node] = snapshot.node_by_uid()
    outgoing: Dict[str, List[Edge]] = {uid: [] for uid in nodes}
    for e in snapshot.edges:
        outgoing.setdefault(e.source, []).append(e)

    records: List[ConnectivityRecord] = []
    special: List[str] = []
    visited_nodes: Set[str] = set()
    visited_edges: Set[str] = set()

    def mark_special(node_id: str) -> None:
        if node_id not in special:
            special.append(node_id)

    def export_id(node_uid: str) -> str:
        node = nodes.get(node_uid)
        return node.export_id if node is not None else node_uid

    def enter(node_uid: str) -> Optional[Iterator[Edge]]:
        if node_uid in visited_nodes:
            return None
        visited_nodes.add(node_uid)

        node = nodes.get(node_uid)
        if node is None:
            return None
        nid = node.export_id

        if node.is_special:
            records.append(ElementAt(node.data.label, nid))
            mark_special(nid)

        out_edges = outgoing.get(node_uid, [])
        if not out_edges:
            return None
        if node.kind == "junction" or len(out_edges) > 1:
            records.append(JunctionAt(nid))
            mark_special(nid)
        return iter(out_edges)

    for root in snapshot.nodes_of_kind("reservoir"):
        first = enter(root.uid)
        stack: List[Iterator[Edge]] = [first] if first is not None else []
        while stack:
            edge = next(stack[-1], None)
            if edge is None:
                stack.pop()
                continue
            if edge.uid in visited_edges:
                continue
            visited_edges.add(edge.uid)
            records.append(ElementLink(edge.label, export_id(edge.source), export_id(edge.target)))
            child = enter(edge.target)
            if child is not None:
                stack.append(child)

    for node in snapshot.nodes_of_kind("surgeTank", "flowBoundary"):
        if node.uid not in visited_nodes:
            records.append(ElementAt(node.data.label, node.export_id))
            mark_special(node.export_id)

    return ConnectivityResult(records=tuple(records), special_node_ids=tuple(special))


def _sort_key(node_id: str) -> Tuple[int, int, str]:
    try:
        return (0, int(node_id), "")
    except ValueError:
        return (1, 0, node_id)


def select_listed_nodes(conn: ConnectivityResult) -> List[str]:
    """
    Node ids that get an explicit `NODE .. ELEV` line.

    Candidates are the ids referenced by the connectivity plus every
    special-element node. A candidate is dropped iff it has exactly one
    incoming and one outgoing link, both with the same element label, and
    carries no special element (an interior point of one conduit). Result is
    ascending numeric, non-numeric ids after, lexicographically.
    """
    incoming: Dict[str, List[str]] = {}
    outgoing: Dict[str, List[str]] = {}
    candidates: List[str] = []

    def add_candidate(node_id: str) -> None:
        if node_id not in incoming:
            incoming[node_id] = []
            outgoing[node_id] = []
            candidates.append(node_id)

    for r in conn.records:
        if isinstance(r, ElementLink):
            add_candidate(r.from_id)
            add_candidate(r.to_id)
            outgoing[r.from_id].append(r.label)
            incoming[r.to_id].append(r.label)
        else:
            add_candidate(r.node_id)
    for nid in conn.special_node_ids:
        add_candidate(nid)

    special = set(conn.special_node_ids)
    included: List[str] = []
    for nid in candidates:
        ins, outs = incoming[nid], outgoing[nid]
        pass_through = len(ins) == 1 and len(outs) == 1 and ins[0] == outs[0]
        if pass_through and nid not in special:
            continue
        included.append(nid)

    return sorted(included, key=_sort_key)
