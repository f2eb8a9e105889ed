from __future__ import annotations

from dataclasses import fields
from typing import Any, Dict, List, Optional

import pandas as pd

from whamo.core.models.network import NetworkSnapshot
from whamo.core.models.node import FlowBoundaryData

# -----------------------------
# Spreadsheet contract
# -----------------------------
SHEET_NODES = "nodes"
SHEET_EDGES = "edges"
SHEET_REQUESTS = "requests"
SHEET_CONTROL = "control"

NODE_COLUMNS = [
    "node_id", "kind", "label", "x", "y", "node_number", "unit", "elevation",
    "reservoir_elevation", "top_elevation", "bottom_elevation", "diameter",
    "celerity", "friction", "schedule_number", "schedule", "comment",
]
EDGE_COLUMNS = [
    "edge_id", "source", "target", "kind", "label", "unit", "length", "diameter",
    "celerity", "friction", "num_segments", "cplus", "cminus", "variable",
    "distance", "area", "d", "a", "comment",
]
REQUEST_COLUMNS = ["request_id", "element_id", "element_type", "request_type", "variables"]
CONTROL_COLUMNS = ["key", "value"]


def format_schedule(data: FlowBoundaryData) -> str:
    """Schedule points as 'time:flow;time:flow'."""
    return ";".join(f"{p.time!r}:{p.flow!r}" for p in data.schedule_points)


def _data_row(data: Any) -> Dict[str, Any]:
    row = {f.name: getattr(data, f.name) for f in fields(data)}
    if isinstance(data, FlowBoundaryData):
        row["schedule"] = format_schedule(data)
        row.pop("schedule_points")
    return row


def network_tables(snapshot: NetworkSnapshot, *, project_name: Optional[str] = None) -> Dict[str, pd.DataFrame]:
    """
    Flatten a snapshot into one DataFrame per sheet of the spreadsheet
    contract (nodes, edges, requests, control).
    """
    node_rows: List[Dict[str, Any]] = []
    for n in snapshot.nodes:
        row = {"node_id": n.uid, "kind": n.kind, "x": n.position[0], "y": n.position[1]}
        row.update(_data_row(n.data))
        node_rows.append(row)

    edge_rows: List[Dict[str, Any]] = []
    for e in snapshot.edges:
        row = {"edge_id": e.uid, "source": e.source, "target": e.target, "kind": e.kind}
        row.update(_data_row(e.data))
        edge_rows.append(row)

    request_rows = [
        {
            "request_id": r.uid,
            "element_id": r.element_id,
            "element_type": r.element_type,
            "request_type": r.request_type,
            "variables": ";".join(r.variables),
        }
        for r in snapshot.output_requests
    ]

    control: Dict[str, Any] = dict(snapshot.computational_params.to_dict())
    control["global_unit"] = snapshot.global_unit
    if project_name:
        control["project_name"] = project_name

    return {
        SHEET_NODES: pd.DataFrame(node_rows, columns=NODE_COLUMNS),
        SHEET_EDGES: pd.DataFrame(edge_rows, columns=EDGE_COLUMNS),
        SHEET_REQUESTS: pd.DataFrame(request_rows, columns=REQUEST_COLUMNS),
        SHEET_CONTROL: pd.DataFrame(list(control.items()), columns=CONTROL_COLUMNS),
    }


def export_network_excel(
    snapshot: NetworkSnapshot,
    path_xlsx: str,
    *,
    project_name: Optional[str] = None,
) -> None:
    """
    Export the network to an Excel workbook readable by load_network_from_excel.
    """
    tables = network_tables(snapshot, project_name=project_name)
    with pd.ExcelWriter(path_xlsx, engine="openpyxl") as writer:
        for sheet_name, df in tables.items():
            df.to_excel(writer, sheet_name=sheet_name, index=False)


def export_requests_csv(snapshot: NetworkSnapshot, path_csv: str) -> None:
    """
    Export output requests:
      request_id, element_id, element_type, request_type, variables
    """
    df = network_tables(snapshot)[SHEET_REQUESTS]
    df.to_csv(path_csv, index=False)
