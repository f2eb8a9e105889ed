from __future__ import annotations

import logging
from dataclasses import fields, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from whamo.core.build.config import UNIT_SYSTEMS, ComputationalParams, EditorConfig
from whamo.core.models.edge import (
    EDGE_KINDS,
    LABEL_PREFIX,
    ConduitData,
    Edge,
    convert_edge_kind,
)
from whamo.core.models.network import NetworkSnapshot
from whamo.core.models.node import (
    NODE_KINDS,
    Node,
    SchedulePoint,
    default_node_data,
)
from whamo.core.models.request import ELEMENT_TYPES, OUTPUT_VARIABLES, REQUEST_TYPES, OutputRequest
from whamo.core.store.history import HistoryManager
from whamo.core.store.requests import auto_select, default_requests_for, new_request_uid
from whamo.core.units.convert import convert_data

logger = logging.getLogger(__name__)


class ReferentialIntegrityError(ValueError):
    """Raised when an edge or request references an element that does not exist."""


class DuplicateNodeNumberError(ValueError):
    """Raised when a node_number is already used by another node."""


def _coerce_schedule(points: Iterable[Any]) -> Tuple[SchedulePoint, ...]:
    out: List[SchedulePoint] = []
    for p in points:
        if isinstance(p, SchedulePoint):
            out.append(p)
        elif isinstance(p, Mapping):
            out.append(SchedulePoint(time=float(p["time"]), flow=float(p["flow"])))
        else:
            t, q = p
            out.append(SchedulePoint(time=float(t), flow=float(q)))
    return tuple(out)


def _merge_fields(data: Any, partial: Mapping[str, Any], what: str) -> Any:
    allowed = {f.name for f in fields(data)}
    unknown = sorted(set(partial) - allowed)
    if unknown:
        raise ValueError(f"{what} has no field(s) {unknown}. Allowed: {sorted(allowed)}")
    if partial.get("unit") not in (None, *UNIT_SYSTEMS):
        raise ValueError(f"{what} unit invalid: {partial['unit']!r}. Allowed: {list(UNIT_SYSTEMS)} or None")

    changes = dict(partial)
    if "schedule_points" in changes:
        changes["schedule_points"] = _coerce_schedule(changes["schedule_points"] or ())
    return replace(data, **changes)


class NetworkStore:
    """
    Owner of the editable network: nodes, edges, computational parameters,
    output requests, global unit and selection.

    Every significant mutation records a snapshot in the HistoryManager
    before changing state. Position-only changes (move_node) and selection
    are not recorded.
    """

    def __init__(self, config: Optional[EditorConfig] = None):
        cfg = config or EditorConfig()
        cfg.validate()

        self._nodes: Dict[str, Node] = {}
        self._edges: Dict[str, Edge] = {}
        self._params = ComputationalParams()
        self._requests: List[OutputRequest] = []
        self._global_unit: str = cfg.global_unit
        self._next_id = 1

        self.history = HistoryManager(cfg.history_capacity)
        self.project_name: str = cfg.project_name
        self.project_name_error: Optional[str] = None
        self.selected_element_id: Optional[str] = None
        self.selected_element_type: Optional[str] = None

    # ------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------

    @property
    def nodes(self) -> Tuple[Node, ...]:
        return tuple(self._nodes.values())

    @property
    def edges(self) -> Tuple[Edge, ...]:
        return tuple(self._edges.values())

    @property
    def output_requests(self) -> Tuple[OutputRequest, ...]:
        return tuple(self._requests)

    @property
    def computational_params(self) -> ComputationalParams:
        return self._params

    @property
    def global_unit(self) -> str:
        return self._global_unit

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def get_node(self, uid: str) -> Node:
        try:
            return self._nodes[uid]
        except KeyError:
            raise KeyError(f"Unknown node uid={uid!r}") from None

    def get_edge(self, uid: str) -> Edge:
        try:
            return self._edges[uid]
        except KeyError:
            raise KeyError(f"Unknown edge uid={uid!r}") from None

    def snapshot(self) -> NetworkSnapshot:
        return NetworkSnapshot(
            nodes=tuple(self._nodes.values()),
            edges=tuple(self._edges.values()),
            computational_params=self._params,
            output_requests=tuple(self._requests),
            global_unit=self._global_unit,  # type: ignore[arg-type]
        )

    # ------------------------------------------------------------
    # History
    # ------------------------------------------------------------

    def _record(self) -> None:
        self.history.record(self.snapshot())

    def _restore(self, snap: NetworkSnapshot) -> None:
        self._nodes = {n.uid: n for n in snap.nodes}
        self._edges = {e.uid: e for e in snap.edges}
        self._params = snap.computational_params
        self._requests = list(snap.output_requests)
        self._global_unit = snap.global_unit
        # ids are never reused, even after undoing a clear
        self._next_id = max(self._next_id, self._max_numeric_id() + 1)
        if self.selected_element_id is not None and not self._exists(
            self.selected_element_id, self.selected_element_type
        ):
            self.select_element(None, None)

    def undo(self) -> bool:
        previous = self.history.undo(self.snapshot())
        if previous is None:
            return False
        self._restore(previous)
        return True

    def redo(self) -> bool:
        following = self.history.redo(self.snapshot())
        if following is None:
            return False
        self._restore(following)
        return True

    # ------------------------------------------------------------
    # Ids
    # ------------------------------------------------------------

    def _max_numeric_id(self) -> int:
        ids = [int(uid) for uid in list(self._nodes) + list(self._edges) if uid.isdigit()]
        return max(ids, default=0)

    def _new_id(self) -> str:
        uid = str(self._next_id)
        self._next_id += 1
        return uid

    def _export_ids(self, exclude: Optional[str] = None) -> Dict[str, str]:
        """Identifier written to the .inp file -> node uid."""
        return {n.export_id: n.uid for n in self._nodes.values() if n.uid != exclude}

    def _next_node_number(self, uid: str) -> int:
        taken = self._export_ids()
        if uid not in taken:
            return int(uid)
        return max(int(x) for x in taken if x.isdigit()) + 1

    def _exists(self, uid: Optional[str], element_type: Optional[str]) -> bool:
        if element_type == "node":
            return uid in self._nodes
        if element_type == "edge":
            return uid in self._edges
        return False

    # ------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------

    def add_node(
        self,
        kind: str,
        position: Tuple[float, float] = (0.0, 0.0),
        *,
        default_requests: bool = True,
    ) -> Node:
        if kind not in NODE_KINDS:
            raise ValueError(f"Unknown node kind: {kind!r}. Allowed: {list(NODE_KINDS)}")

        self._record()
        uid = self._new_id()
        node = Node(
            uid=uid,
            kind=kind,  # type: ignore[arg-type]
            position=(float(position[0]), float(position[1])),
            data=default_node_data(kind, uid, self._next_node_number(uid)),
        )
        self._nodes[uid] = node
        if default_requests:
            self._requests.extend(default_requests_for(uid, "node"))

        logger.debug("add_node uid=%s kind=%s node_number=%s", uid, kind, node.data.node_number)
        return node

    def move_node(self, uid: str, position: Tuple[float, float]) -> Node:
        """Drag update: position only, not recorded in history."""
        node = replace(self.get_node(uid), position=(float(position[0]), float(position[1])))
        self._nodes[uid] = node
        return node

    def update_node_data(self, uid: str, partial: Mapping[str, Any]) -> Node:
        node = self.get_node(uid)
        new_data = _merge_fields(node.data, partial, f"Node(uid={uid}, kind={node.kind})")

        # a node without a number is written under its uid; both must stay unique
        node = replace(node, data=new_data)
        owner = self._export_ids(exclude=uid).get(node.export_id)
        if owner is not None:
            raise DuplicateNodeNumberError(
                f"Node(uid={uid}) would be written as node {node.export_id}, already used by node uid={owner}"
            )

        self._record()
        self._nodes[uid] = node
        logger.debug("update_node_data uid=%s fields=%s", uid, sorted(partial))
        return node

    # ------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------

    def _count_kind(self, kind: str, exclude: Optional[str] = None) -> int:
        return sum(1 for e in self._edges.values() if e.kind == kind and e.uid != exclude)

    def add_edge(self, source: str, target: str, *, default_requests: bool = True) -> Edge:
        """
        Connect two existing nodes with a conduit.

        Self-loops (source == target) are accepted; the exporter handles them
        like any other link.
        """
        for end, nid in (("source", source), ("target", target)):
            if nid not in self._nodes:
                raise ReferentialIntegrityError(f"Edge {end} references unknown node uid={nid!r}")

        self._record()
        uid = self._new_id()
        label = f"{LABEL_PREFIX['conduit']}{self._count_kind('conduit') + 1}"
        edge = Edge(uid=uid, source=source, target=target, data=ConduitData(label=label))
        self._edges[uid] = edge
        if default_requests:
            self._requests.extend(default_requests_for(uid, "edge"))

        if source == target:
            logger.warning("Edge %s (%s) is a self-loop on node uid=%s", uid, label, source)
        logger.debug("add_edge uid=%s %s -> %s label=%s", uid, source, target, label)
        return edge

    def update_edge_data(self, uid: str, partial: Mapping[str, Any]) -> Edge:
        """
        Merge fields into an edge. A 'kind' entry switches the data variant
        and relabels the edge with the new kind's prefix and count.
        """
        edge = self.get_edge(uid)
        changes = dict(partial)
        new_kind = changes.pop("kind", None)

        data = edge.data
        relabel = new_kind is not None and new_kind != edge.kind
        if relabel:
            if new_kind not in EDGE_KINDS:
                raise ValueError(f"Unknown edge kind: {new_kind!r}. Allowed: {list(EDGE_KINDS)}")
            data = convert_edge_kind(data, new_kind)

        data = _merge_fields(data, changes, f"Edge(uid={uid})")
        if relabel:
            label = f"{LABEL_PREFIX[new_kind]}{self._count_kind(new_kind, exclude=uid) + 1}"
            data = replace(data, label=label)

        self._record()
        edge = replace(edge, data=data)
        self._edges[uid] = edge
        logger.debug("update_edge_data uid=%s fields=%s", uid, sorted(partial))
        return edge

    # ------------------------------------------------------------
    # Delete / select
    # ------------------------------------------------------------

    def delete_element(self, uid: str, element_type: str) -> None:
        """
        Remove a node (with every incident edge) or an edge, then prune
        output requests that referenced any removed element.
        """
        if element_type not in ELEMENT_TYPES:
            raise ValueError(f"Unknown element type: {element_type!r}")
        if not self._exists(uid, element_type):
            raise KeyError(f"Unknown {element_type} uid={uid!r}")

        self._record()
        removed_nodes = set()
        removed_edges = set()
        if element_type == "node":
            removed_nodes.add(uid)
            removed_edges = {e.uid for e in self._edges.values() if e.source == uid or e.target == uid}
            del self._nodes[uid]
        else:
            removed_edges.add(uid)

        for eid in removed_edges:
            del self._edges[eid]

        self._requests = [
            r for r in self._requests
            if not (
                (r.element_type == "node" and r.element_id in removed_nodes)
                or (r.element_type == "edge" and r.element_id in removed_edges)
            )
        ]

        if self.selected_element_id in removed_nodes | removed_edges:
            self.select_element(None, None)

        logger.debug("delete_element %s uid=%s removed_edges=%s", element_type, uid, sorted(removed_edges))

    def select_element(self, uid: Optional[str], element_type: Optional[str]) -> None:
        self.selected_element_id = uid
        self.selected_element_type = element_type

    # ------------------------------------------------------------
    # Parameters / requests / unit
    # ------------------------------------------------------------

    def update_computational_params(self, partial: Mapping[str, Any]) -> ComputationalParams:
        params = self._params.merged(partial)
        self._record()
        self._params = params
        return params

    def add_output_request(
        self,
        element_id: str,
        element_type: str,
        request_type: str,
        variables: Iterable[str] = OUTPUT_VARIABLES,
    ) -> OutputRequest:
        if element_type not in ELEMENT_TYPES:
            raise ValueError(f"Unknown element type: {element_type!r}")
        if request_type not in REQUEST_TYPES:
            raise ValueError(f"Unknown request type: {request_type!r}. Allowed: {list(REQUEST_TYPES)}")
        if not self._exists(element_id, element_type):
            raise ReferentialIntegrityError(
                f"Output request references unknown {element_type} uid={element_id!r}"
            )

        self._record()
        req = OutputRequest(
            uid=new_request_uid(),
            element_id=element_id,
            element_type=element_type,    # type: ignore[arg-type]
            request_type=request_type,    # type: ignore[arg-type]
            variables=tuple(variables),
        )
        self._requests.append(req)
        return req

    def remove_output_request(self, uid: str) -> None:
        self._record()
        self._requests = [r for r in self._requests if r.uid != uid]

    def auto_select_output_requests(self) -> List[OutputRequest]:
        """Replace the whole request set with the defaults for every element."""
        self._record()
        self._requests = auto_select(self._nodes.values(), self._edges.values())
        return list(self._requests)

    def set_global_unit(self, unit: str) -> None:
        """
        Switch the global unit system, converting every element that has no
        local unit override. Either all eligible fields move or none do.
        """
        if unit not in UNIT_SYSTEMS:
            raise ValueError(f"Unknown unit system: {unit!r}. Allowed: {list(UNIT_SYSTEMS)}")
        old = self._global_unit
        if unit == old:
            return

        # build everything first, commit in one step
        new_nodes = {
            uid: n if n.data.unit else replace(n, data=convert_data(n.data, old, unit))
            for uid, n in self._nodes.items()
        }
        new_edges = {
            uid: e if e.data.unit else replace(e, data=convert_data(e.data, old, unit))
            for uid, e in self._edges.items()
        }

        self._record()
        self._nodes, self._edges, self._global_unit = new_nodes, new_edges, unit
        logger.info("Global unit changed %s -> %s", old, unit)

    def set_project_name(self, name: str) -> None:
        self.project_name = name
        self.project_name_error = "Please enter a file name" if name.strip() == "" else None

    # ------------------------------------------------------------
    # Whole document
    # ------------------------------------------------------------

    def load_network(
        self,
        nodes: Iterable[Node],
        edges: Iterable[Edge],
        params: Optional[ComputationalParams] = None,
        requests: Optional[Iterable[OutputRequest]] = None,
        *,
        project_name: Optional[str] = None,
        global_unit: Optional[str] = None,
    ) -> None:
        """
        Replace the document with a loaded network. History is cleared; when
        no requests are given the default set is generated.
        """
        node_map = {n.uid: n for n in nodes}
        edge_map = {e.uid: e for e in edges}

        numbers: Dict[int, str] = {}
        for n in node_map.values():
            number = n.data.node_number
            if number is None:
                continue
            if number in numbers:
                raise DuplicateNodeNumberError(
                    f"node_number {number} used by nodes uid={numbers[number]} and uid={n.uid}"
                )
            numbers[number] = n.uid

        for e in edge_map.values():
            for end, nid in (("source", e.source), ("target", e.target)):
                if nid not in node_map:
                    raise ReferentialIntegrityError(
                        f"Edge(uid={e.uid}, label={e.data.label}) {end} references unknown node uid={nid!r}"
                    )

        if global_unit is not None and global_unit not in UNIT_SYSTEMS:
            raise ValueError(f"Unknown unit system: {global_unit!r}. Allowed: {list(UNIT_SYSTEMS)}")

        req_list = list(requests or [])
        for r in req_list:
            pool = node_map if r.element_type == "node" else edge_map
            if r.element_id not in pool:
                raise ReferentialIntegrityError(
                    f"OutputRequest(uid={r.uid}) references unknown {r.element_type} uid={r.element_id!r}"
                )

        self._nodes = node_map
        self._edges = edge_map
        if params is not None:
            self._params = params
        if global_unit is not None:
            self._global_unit = global_unit
        if project_name:
            self.set_project_name(project_name)

        self._next_id = self._max_numeric_id() + 1

        self._requests = req_list or auto_select(node_map.values(), edge_map.values())
        self.select_element(None, None)
        self.history.clear()
        logger.info("Loaded network: %d nodes, %d edges, %d requests",
                    len(node_map), len(edge_map), len(self._requests))

    def clear_network(self) -> None:
        self._record()
        self._nodes = {}
        self._edges = {}
        self._requests = []
        self._next_id = 1
        self.project_name = "Untitled Network"
        self.project_name_error = None
        self.select_element(None, None)


def schedule_from_pairs(pairs: Iterable[Tuple[float, float]]) -> Tuple[SchedulePoint, ...]:
    """(time, flow) pairs -> schedule points."""
    return _coerce_schedule(pairs)
