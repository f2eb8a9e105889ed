from __future__ import annotations

import logging
from dataclasses import fields
from typing import Any, Dict, List, Optional

import pandas as pd

from whamo.core.build.config import UNIT_SYSTEMS, ComputationalParams, EditorConfig
from whamo.core.export.tables import SHEET_CONTROL, SHEET_EDGES, SHEET_NODES, SHEET_REQUESTS
from whamo.core.models.edge import EDGE_KINDS, Edge, data_class_for_edge
from whamo.core.models.network import NON_NULL_FIELDS
from whamo.core.models.node import NODE_KINDS, Node, SchedulePoint, data_class_for
from whamo.core.models.request import ELEMENT_TYPES, REQUEST_TYPES, OutputRequest
from whamo.core.store.network_store import NetworkStore
from whamo.core.store.requests import new_request_uid

logger = logging.getLogger(__name__)

# Required columns
REQ_NODES = {"node_id", "kind", "label"}
REQ_EDGES = {"edge_id", "source", "target", "kind", "label"}
REQ_REQUESTS = {"element_id", "element_type", "request_type", "variables"}
REQ_CONTROL = {"key", "value"}

INT_FIELDS = {"node_number", "schedule_number", "num_segments"}
STR_FIELDS = {"label", "comment"}


def _is_blank(x: Any) -> bool:
    if x is None:
        return True
    if isinstance(x, float) and pd.isna(x):
        return True
    return isinstance(x, str) and x.strip() == ""


def _norm_str(x: Any) -> str:
    if _is_blank(x):
        return ""
    return str(x).strip()


def _norm_id(x: Any) -> str:
    # Excel turns 1 into 1.0 as soon as a column has an empty cell
    if isinstance(x, float) and not pd.isna(x) and x.is_integer():
        return str(int(x))
    return _norm_str(x)


def _require_columns(df: pd.DataFrame, required: set[str], sheet: str) -> None:
    missing = sorted(list(required - set(df.columns)))
    if missing:
        raise ValueError(f"Sheet '{sheet}' is missing required columns: {missing}")


def _as_bool(x: Any) -> bool:
    if isinstance(x, str):
        return x.strip().lower() in ("1", "true", "yes", "y", "x")
    return bool(x)


def _cell_value(name: str, x: Any, sheet: str, row_hint: str) -> Any:
    if name in STR_FIELDS:
        return _norm_str(x)
    if name == "unit":
        unit = _norm_str(x).upper()
        if unit not in UNIT_SYSTEMS:
            raise ValueError(f"Invalid unit in sheet '{sheet}' ({row_hint}): {x!r}. Allowed: {list(UNIT_SYSTEMS)}")
        return unit
    if name == "variable":
        return _as_bool(x)
    try:
        v = float(x)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid numeric value for '{name}' in sheet '{sheet}' ({row_hint}): {x!r}") from e
    return int(v) if name in INT_FIELDS else v


def parse_schedule(cell: Any, row_hint: str = "") -> tuple:
    """
    'time:flow;time:flow' -> (SchedulePoint, ...). Empty -> ().
    """
    s = _norm_str(cell)
    if not s:
        return ()
    points: List[SchedulePoint] = []
    for part in (p.strip() for p in s.split(";")):
        if not part:
            continue
        try:
            t, q = part.split(":")
            points.append(SchedulePoint(time=float(t), flow=float(q)))
        except ValueError as e:
            raise ValueError(f"Invalid schedule entry {part!r} in sheet '{SHEET_NODES}' ({row_hint})") from e
    return tuple(points)


def _build_data(cls: type, row: pd.Series, sheet: str, row_hint: str) -> Any:
    kwargs: Dict[str, Any] = {}
    for f in fields(cls):
        if f.name == "schedule_points":
            kwargs[f.name] = parse_schedule(row.get("schedule", ""), row_hint)
            continue
        if f.name not in row.index:
            continue
        if _is_blank(row[f.name]):
            # blank cell in a present column: the field was cleared
            if f.name not in NON_NULL_FIELDS:
                kwargs[f.name] = None
            continue
        kwargs[f.name] = _cell_value(f.name, row[f.name], sheet, row_hint)
    return cls(**kwargs)


def _check_duplicates(ids: List[str], column: str, sheet: str) -> None:
    dups = sorted({x for x in ids if ids.count(x) > 1})
    if dups:
        raise ValueError(f"Duplicate {column} in sheet '{sheet}': {dups}")


def _read_config(df: pd.DataFrame) -> Dict[str, Any]:
    config: Dict[str, Any] = {}
    for _, r in df.iterrows():
        key = _norm_str(r["key"]).lower()
        if not key or _is_blank(r["value"]):
            continue
        config[key] = r["value"]
    return config


def load_network_from_excel(path: str, *, config: Optional[EditorConfig] = None) -> NetworkStore:
    """
    Reads 'nodes', 'edges' and, when present, 'requests' and 'control' from
    an Excel file and returns a NetworkStore holding the network.

    Blank rows are skipped. Ids, kinds and edge endpoints are checked here;
    node_number uniqueness is checked by the store.
    """
    logger.info("Loading network from Excel: %s", path)
    book = pd.ExcelFile(path, engine="openpyxl")
    for sheet in (SHEET_NODES, SHEET_EDGES):
        if sheet not in book.sheet_names:
            raise ValueError(f"Workbook {path!r} has no sheet '{sheet}'")

    df_nodes = book.parse(SHEET_NODES)
    df_edges = book.parse(SHEET_EDGES)
    _require_columns(df_nodes, REQ_NODES, SHEET_NODES)
    _require_columns(df_edges, REQ_EDGES, SHEET_EDGES)

    # -----------------------------
    # Control
    # -----------------------------
    control: Dict[str, Any] = {}
    if SHEET_CONTROL in book.sheet_names:
        df_control = book.parse(SHEET_CONTROL)
        _require_columns(df_control, REQ_CONTROL, SHEET_CONTROL)
        control = _read_config(df_control)

    params = ComputationalParams.from_dict(control)
    editor_cfg = config or EditorConfig.from_dict(control)
    global_unit = _norm_str(control.get("global_unit", editor_cfg.global_unit)).upper()

    # -----------------------------
    # Nodes
    # -----------------------------
    _check_duplicates([_norm_id(x) for x in df_nodes["node_id"].tolist() if _norm_id(x)], "node_id", SHEET_NODES)

    nodes: List[Node] = []
    for _, r in df_nodes.iterrows():
        node_id = _norm_id(r["node_id"])
        if not node_id:
            continue  # allow blank rows
        hint = f"node_id={node_id}"

        kind = _norm_str(r["kind"])
        if kind not in NODE_KINDS:
            raise ValueError(
                f"Invalid kind in '{SHEET_NODES}' ({hint}): {kind!r}. Allowed: {list(NODE_KINDS)}"
            )

        x = 0.0 if _is_blank(r.get("x")) else float(r["x"])
        y = 0.0 if _is_blank(r.get("y")) else float(r["y"])
        nodes.append(Node(
            uid=node_id,
            kind=kind,  # type: ignore[arg-type]
            position=(x, y),
            data=_build_data(data_class_for(kind), r, SHEET_NODES, hint),
        ))

    node_ids = {n.uid for n in nodes}

    # -----------------------------
    # Edges
    # -----------------------------
    _check_duplicates([_norm_id(x) for x in df_edges["edge_id"].tolist() if _norm_id(x)], "edge_id", SHEET_EDGES)

    edges: List[Edge] = []
    for _, r in df_edges.iterrows():
        edge_id = _norm_id(r["edge_id"])
        if not edge_id:
            continue
        hint = f"edge_id={edge_id}"

        kind = _norm_str(r["kind"]) or "conduit"
        if kind not in EDGE_KINDS:
            raise ValueError(f"Invalid kind in '{SHEET_EDGES}' ({hint}): {kind!r}. Allowed: {list(EDGE_KINDS)}")

        source, target = _norm_id(r["source"]), _norm_id(r["target"])
        if source not in node_ids:
            raise ValueError(f"Unknown source '{source}' in '{SHEET_EDGES}' ({hint})")
        if target not in node_ids:
            raise ValueError(f"Unknown target '{target}' in '{SHEET_EDGES}' ({hint})")

        edges.append(Edge(
            uid=edge_id,
            source=source,
            target=target,
            data=_build_data(data_class_for_edge(kind), r, SHEET_EDGES, hint),
        ))

    # -----------------------------
    # Requests
    # -----------------------------
    requests: List[OutputRequest] = []
    if SHEET_REQUESTS in book.sheet_names:
        df_req = book.parse(SHEET_REQUESTS)
        _require_columns(df_req, REQ_REQUESTS, SHEET_REQUESTS)
        for i, r in df_req.iterrows():
            element_id = _norm_id(r["element_id"])
            if not element_id:
                continue
            element_type = _norm_str(r["element_type"]).lower()
            request_type = _norm_str(r["request_type"]).upper()
            if element_type not in ELEMENT_TYPES or request_type not in REQUEST_TYPES:
                raise ValueError(
                    f"Invalid element_type/request_type in '{SHEET_REQUESTS}' (row {i + 2}): "
                    f"{element_type!r}/{request_type!r}"
                )
            variables = tuple(v.strip().upper() for v in _norm_str(r["variables"]).split(";") if v.strip())
            requests.append(OutputRequest(
                uid=_norm_str(r.get("request_id", "")) or new_request_uid(),
                element_id=element_id,
                element_type=element_type,    # type: ignore[arg-type]
                request_type=request_type,    # type: ignore[arg-type]
                variables=variables,
            ))

    store = NetworkStore(editor_cfg)
    store.load_network(
        nodes,
        edges,
        params,
        requests,
        project_name=_norm_str(control.get("project_name", "")) or None,
        global_unit=global_unit,
    )
    return store
