"""
Project file I/O (JSON).

Reads and writes the editor's project file: camelCase keys, one object per
node/edge with a free-form `data` record. Older files are accepted too:
`tankTop`/`tankBottom` for surge tanks, `numSegments`, and conduits that
keep their variable-geometry profile under a nested `variableData` object.
"""
from __future__ import annotations

import json
import logging
from dataclasses import fields, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from whamo.core.build.config import UNIT_SYSTEMS, ComputationalParams, EditorConfig
from whamo.core.models.edge import Edge, data_class_for_edge
from whamo.core.models.network import NON_NULL_FIELDS
from whamo.core.models.node import FlowBoundaryData, Node, data_class_for
from whamo.core.models.request import OutputRequest
from whamo.core.store.network_store import NetworkStore, schedule_from_pairs
from whamo.core.store.requests import new_request_uid

logger = logging.getLogger(__name__)

# python field -> project file key
FIELD_TO_KEY: Dict[str, str] = {
    "node_number": "nodeNumber",
    "reservoir_elevation": "reservoirElevation",
    "top_elevation": "topElevation",
    "bottom_elevation": "bottomElevation",
    "schedule_number": "scheduleNumber",
    "schedule_points": "schedulePoints",
    "num_segments": "numSegments",
}

# accepted on load only
KEY_ALIASES: Dict[str, str] = {
    "tankTop": "top_elevation",
    "tankBottom": "bottom_elevation",
}

KEY_TO_FIELD: Dict[str, str] = {v: k for k, v in FIELD_TO_KEY.items()}
KEY_TO_FIELD.update(KEY_ALIASES)


# ============================================================
# Save
# ============================================================

def _data_to_dict(data: Any, kind: str) -> Dict[str, Any]:
    out: Dict[str, Any] = {"type": kind}
    for f in fields(data):
        value = getattr(data, f.name)
        # cleared fields are written as null so a reload keeps them cleared
        if f.name == "schedule_points":
            value = [{"time": p.time, "flow": p.flow} for p in value]
        out[FIELD_TO_KEY.get(f.name, f.name)] = value
    return out


def project_to_dict(store: NetworkStore) -> Dict[str, Any]:
    snap = store.snapshot()
    return {
        "projectName": store.project_name,
        "globalUnit": snap.global_unit,
        "nodes": [
            {
                "id": n.uid,
                "type": n.kind,
                "position": {"x": n.position[0], "y": n.position[1]},
                "data": _data_to_dict(n.data, n.kind),
            }
            for n in snap.nodes
        ],
        "edges": [
            {
                "id": e.uid,
                "source": e.source,
                "target": e.target,
                "data": _data_to_dict(e.data, e.kind),
            }
            for e in snap.edges
        ],
        "computationalParams": snap.computational_params.to_dict(),
        "outputRequests": [
            {
                "id": r.uid,
                "elementId": r.element_id,
                "elementType": r.element_type,
                "requestType": r.request_type,
                "variables": list(r.variables),
            }
            for r in snap.output_requests
        ],
    }


def save_project(store: NetworkStore, path: Union[str, Path]) -> Path:
    path = Path(path)
    logger.info("Saving project to: %s", path)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(project_to_dict(store), fh, indent=2)
    return path


# ============================================================
# Load
# ============================================================

def _flatten_variable_data(data: Mapping[str, Any]) -> Dict[str, Any]:
    flat = dict(data)
    nested = flat.pop("variableData", None)
    if nested:
        flat.update(nested)
        flat["variable"] = True
    return flat


def _data_from_dict(cls: type, raw: Mapping[str, Any], what: str) -> Any:
    allowed = {f.name for f in fields(cls)}
    kwargs: Dict[str, Any] = {}
    for key, value in raw.items():
        name = KEY_TO_FIELD.get(key, key)
        if name not in allowed:
            continue
        if value is None:
            # named but null: the field was cleared
            if name not in NON_NULL_FIELDS:
                kwargs[name] = None
            continue
        if name == "unit" and value not in UNIT_SYSTEMS:
            raise ValueError(f"Invalid unit for {what}: {value!r}. Allowed: {list(UNIT_SYSTEMS)}")
        if name == "schedule_points":
            value = schedule_from_pairs((p["time"], p["flow"]) for p in value)
        elif name in ("node_number", "schedule_number", "num_segments"):
            value = int(value)
        kwargs[name] = value
    try:
        return cls(**kwargs)
    except TypeError as e:
        raise ValueError(f"Invalid data for {what}: {e}") from e


def _node_from_dict(raw: Mapping[str, Any]) -> Node:
    uid = str(raw["id"])
    kind = raw.get("type") or raw.get("data", {}).get("type")
    pos = raw.get("position") or {}
    data = _data_from_dict(data_class_for(kind), raw.get("data", {}), f"node id={uid}")
    if isinstance(data, FlowBoundaryData) and not data.label:
        data = replace(data, label=f"FB{uid}")
    return Node(
        uid=uid,
        kind=kind,
        position=(float(pos.get("x", 0.0)), float(pos.get("y", 0.0))),
        data=data,
    )


def _edge_from_dict(raw: Mapping[str, Any]) -> Edge:
    uid = str(raw["id"])
    data = _flatten_variable_data(raw.get("data", {}))
    kind = data.get("type", "conduit")
    return Edge(
        uid=uid,
        source=str(raw["source"]),
        target=str(raw["target"]),
        data=_data_from_dict(data_class_for_edge(kind), data, f"edge id={uid}"),
    )


def _request_from_dict(raw: Mapping[str, Any]) -> OutputRequest:
    return OutputRequest(
        uid=str(raw.get("id") or new_request_uid()),
        element_id=str(raw["elementId"]),
        element_type=raw["elementType"],
        request_type=raw["requestType"],
        variables=tuple(raw.get("variables", ())),
    )


def project_from_dict(payload: Mapping[str, Any], *, config: Optional[EditorConfig] = None) -> NetworkStore:
    """
    Build a NetworkStore from a project dict. Missing output requests are
    replaced by the default set.
    """
    try:
        nodes: List[Node] = [_node_from_dict(n) for n in payload.get("nodes", [])]
        edges: List[Edge] = [_edge_from_dict(e) for e in payload.get("edges", [])]
        requests = [_request_from_dict(r) for r in payload.get("outputRequests") or []]
    except KeyError as e:
        raise ValueError(f"Project file is missing required key {e}") from e

    params_raw = payload.get("computationalParams")
    params = ComputationalParams.from_dict(params_raw) if params_raw else None

    store = NetworkStore(config or EditorConfig.from_dict(payload))
    store.load_network(
        nodes,
        edges,
        params,
        requests,
        project_name=payload.get("projectName"),
        global_unit=payload.get("globalUnit"),
    )
    return store


def load_project(path: Union[str, Path], *, config: Optional[EditorConfig] = None) -> NetworkStore:
    path = Path(path)
    logger.info("Loading project from: %s", path)
    with path.open("r", encoding="utf-8") as fh:
        try:
            payload = json.load(fh)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in project file {path}: {e}") from e
    return project_from_dict(payload, config=config)
