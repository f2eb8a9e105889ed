from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Set, Union

from whamo.core.export.connectivity import build_connectivity, select_listed_nodes
from whamo.core.models.edge import ConduitData, DummyData, Edge
from whamo.core.models.network import NetworkSnapshot
from whamo.core.models.node import FlowBoundaryData, Node, ReservoirData, SurgeTankData
from whamo.core.models.request import OutputRequest
from whamo.core.units.convert import to_export

logger = logging.getLogger(__name__)

# engine defaults used when the network does not say otherwise
DEFAULT_SCHEDULE = "T 0 Q 3000 T 20 Q 0 T 3000 Q 0"
DEFAULT_HISTORY_BLOCK = ["HISTORY", " NODE 2 Q HEAD", " ELEM ST Q ELEV", " FINISH"]


def _plain(value: Union[int, float]) -> str:
    """Non-dimensional number as written by hand: 500.0 -> '500', 0.02 -> '0.02'."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class _Lines:
    def __init__(self) -> None:
        self.lines: List[str] = []

    def add(self, *lines: str) -> None:
        self.lines.extend(lines)

    def comment(self, text: Optional[str]) -> None:
        if text:
            self.lines.append(f"c {text}")

    def field(self, keyword: str, value: Optional[str], indent: str = " ") -> None:
        # undefined values are omitted, never zero-filled
        if value is not None:
            self.lines.append(f"{indent}{keyword} {value}")

    def text(self) -> str:
        return "\n".join(self.lines)


# ============================================================
# Sections
# ============================================================

def _write_system(out: _Lines, snapshot: NetworkSnapshot, unit: str) -> None:
    out.add("C  SYSTEM CONNECTIVITY", "", "SYSTEM", "")

    conn = build_connectivity(snapshot)
    out.add(*conn.lines())

    nodes_by_export_id: Dict[str, Node] = {}
    for n in snapshot.nodes:
        nodes_by_export_id.setdefault(n.export_id, n)

    out.add("")
    for nid in select_listed_nodes(conn):
        node = nodes_by_export_id.get(nid)
        if node is None:
            continue
        elev = to_export(node.data.node_elevation(), node.data.unit or unit, "elevation")
        if elev is not None:
            out.add(f"NODE {nid} ELEV {elev}")

    out.add("", "FINISH", "")


def _write_reservoir(out: _Lines, d: ReservoirData, unit: str) -> None:
    level = d.reservoir_elevation if d.reservoir_elevation is not None else d.elevation
    out.comment(d.comment)
    out.add("RESERVOIR", f" ID {d.label}")
    out.field("ELEV", to_export(level, unit, "elevation"))
    out.add(" FINISH", "")


def _write_conduit(out: _Lines, label: str, d: ConduitData, unit: str) -> None:
    out.comment(d.comment)
    out.add("CONDUIT", f" ID {label}")

    if d.variable:
        out.add(" VARIABLE")
        out.field("DISTANCE", to_export(d.distance, unit, "length"))
        out.field("AREA", to_export(d.area, unit, "area"))
        out.field("D", to_export(d.d, unit, "diameter"))
        out.field("A", to_export(d.a, unit, "area"))

    out.field("LENGTH", to_export(d.length, unit, "length"))
    if not d.variable:
        out.field("DIAM", to_export(d.diameter, unit, "diameter"))
    out.field("CELERITY", to_export(d.celerity, unit, "celerity"))
    if d.friction is not None:
        out.field("FRICTION", _plain(d.friction))

    if d.cplus is not None or d.cminus is not None:
        out.add(" ADDEDLOSS")
        if d.cplus is not None:
            out.field("CPLUS", _plain(d.cplus), indent="     ")
        if d.cminus is not None:
            out.field("CMINUS", _plain(d.cminus), indent="     ")

    if d.num_segments is not None:
        out.field("NUMSEG", _plain(d.num_segments))
    out.add("FINISH", "")


def _write_dummy(out: _Lines, label: str, d: DummyData, unit: str) -> None:
    out.comment(d.comment)
    out.add(f"CONDUIT ID {label}", " DUMMY")
    out.field("DIAMETER", to_export(d.diameter, unit, "diameter"))
    if d.cplus is not None or d.cminus is not None:
        out.add(" ADDEDLOSS")
        if d.cplus is not None:
            out.field("CPLUS", _plain(d.cplus))
        if d.cminus is not None:
            out.field("CMINUS", _plain(d.cminus))
    out.add("FINISH", "")


def _write_surge_tank(out: _Lines, d: SurgeTankData, unit: str) -> None:
    out.comment(d.comment)
    out.add("SURGETANK", f" ID {d.label} SIMPLE")
    out.field("ELTOP", to_export(d.top_elevation, unit, "elevation"))
    out.field("ELBOTTOM", to_export(d.bottom_elevation, unit, "elevation"))
    out.field("DIAM", to_export(d.diameter, unit, "diameter"))
    out.field("CELERITY", to_export(d.celerity, unit, "celerity"))
    if d.friction is not None:
        out.field("FRICTION", _plain(d.friction))
    out.add("FINISH", "")


def _write_properties(out: _Lines, snapshot: NetworkSnapshot, unit: str) -> None:
    out.add("C ELEMENT PROPERTIES", "")

    for n in snapshot.nodes_of_kind("reservoir"):
        _write_reservoir(out, n.data, n.data.unit or unit)  # type: ignore[arg-type]

    # composite conduits drawn as several edges share one label: first wins
    exported: Set[str] = set()
    for kind, writer in (("conduit", _write_conduit), ("dummy", _write_dummy)):
        for e in snapshot.edges:
            if e.kind != kind or e.label in exported:
                continue
            exported.add(e.label)
            writer(out, e.label, e.data, e.data.unit or unit)  # type: ignore[arg-type]

    for n in snapshot.nodes_of_kind("surgeTank"):
        _write_surge_tank(out, n.data, n.data.unit or unit)  # type: ignore[arg-type]

    for n in snapshot.nodes_of_kind("flowBoundary"):
        d = n.data
        out.comment(d.comment)
        out.add(f"FLOWBC ID {d.label} QSCHEDULE {d.schedule_number} FINISH")  # type: ignore[union-attr]


def _write_schedules(out: _Lines, snapshot: NetworkSnapshot, unit: str) -> None:
    out.add("", "", "SCHEDULE")
    for n in snapshot.nodes_of_kind("flowBoundary"):
        d: FlowBoundaryData = n.data  # type: ignore[assignment]
        if d.schedule_points:
            u = d.unit or unit
            schedule = " ".join(
                f"T {_plain(p.time)} Q {to_export(p.flow, u, 'flow')}" for p in d.schedule_points
            )
        else:
            schedule = DEFAULT_SCHEDULE
        out.add(f" QSCHEDULE {d.schedule_number} {schedule}")
    out.add("", "FINISH", "", "")


def _request_target(req: OutputRequest, nodes: Dict[str, Node], edges: Dict[str, Edge]) -> str:
    if req.element_type == "node":
        node = nodes.get(req.element_id)
        if node is None:
            return f"NODE {req.element_id}"
        if node.kind == "surgeTank":
            return f"ELEM {node.data.label or node.uid}"
        if node.data.node_number is not None:
            return f"NODE {node.data.node_number}"
        return f"NODE {node.data.label or node.uid}"

    edge = edges.get(req.element_id)
    return f"NODE {edge.label if edge is not None else req.element_id}"


def _write_requests(out: _Lines, snapshot: NetworkSnapshot) -> None:
    out.add("C OUTPUT REQUEST", "")

    groups: Dict[str, List[OutputRequest]] = {}
    for r in snapshot.output_requests:
        groups.setdefault(r.request_type, []).append(r)

    if not groups:
        out.add(*DEFAULT_HISTORY_BLOCK)
        return

    nodes = snapshot.node_by_uid()
    edges = snapshot.edge_by_uid()
    for request_type, reqs in groups.items():
        out.add(request_type)
        for r in reqs:
            out.add(f" {_request_target(r, nodes, edges)} {' '.join(r.variables)}")
        out.add(" FINISH", "")

    if len(groups) > 1:
        out.add(" DISPLAY", "  ALL", " FINISH", "")


def _write_control(out: _Lines, snapshot: NetworkSnapshot) -> None:
    cp = snapshot.computational_params
    out.add("", "", "C COMPUTATIONAL PARAMETERS", "CONTROL")
    out.add(f" DTCOMP {_plain(cp.dtcomp)} DTOUT {_plain(cp.dtout)} TMAX {_plain(cp.tmax)}")
    out.add("FINISH", "", "C EXECUTION CONTROL", "GO", "GOODBYE")


# ============================================================
# Public API
# ============================================================

def generate_inp(
    snapshot: NetworkSnapshot,
    *,
    global_unit: Optional[str] = None,
    project_name: str = "Project Name",
) -> str:
    """
    Render a network snapshot as WHAMO input text.

    Pure read: the snapshot is not modified. `global_unit` overrides the unit
    stored in the snapshot for elements without a local unit. All
    dimensional values are written in FPS with 2 decimals.
    """
    unit = global_unit or snapshot.global_unit
    out = _Lines()
    out.add(f"c {project_name}")
    _write_system(out, snapshot, unit)
    _write_properties(out, snapshot, unit)
    _write_schedules(out, snapshot, unit)
    _write_requests(out, snapshot)
    _write_control(out, snapshot)
    return out.text()


def write_inp(
    snapshot: NetworkSnapshot,
    path: Union[str, Path],
    *,
    global_unit: Optional[str] = None,
    project_name: str = "Project Name",
) -> Path:
    path = Path(path)
    text = generate_inp(snapshot, global_unit=global_unit, project_name=project_name)
    path.write_text(text, encoding="utf-8")
    logger.info("Wrote %s (%d lines)", path, text.count("\n") + 1)
    return path
