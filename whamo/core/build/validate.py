from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Set

import numpy as np

from whamo.core.build.config import UNIT_SYSTEMS
from whamo.core.models.network import NetworkSnapshot
from whamo.core.units.convert import FIELD_QUANTITY


@dataclass(frozen=True)
class ValidationIssue:
    level: str              # "error" | "warning"
    message: str
    hint: Optional[str] = None


class NetworkValidationError(ValueError):
    """Raised when validation finds one or more errors."""
    def __init__(self, issues: List[ValidationIssue]):
        self.issues = issues
        lines = ["Network validation failed with errors:"]
        for it in issues:
            if it.level == "error":
                lines.append(f"- {it.message}" + (f" | hint: {it.hint}" if it.hint else ""))
        super().__init__("\n".join(lines))


def _dimensional_values(data) -> Dict[str, float]:
    return {
        name: getattr(data, name)
        for name in FIELD_QUANTITY
        if isinstance(getattr(data, name, None), (int, float))
    }


def validate_network(snapshot: NetworkSnapshot) -> List[ValidationIssue]:
    """
    Check a snapshot before export.
    Returns a list of issues (errors and warnings). If errors exist, caller may raise.

    The store already rejects dangling references at mutation time; this also
    covers networks assembled by hand or loaded from files.
    """
    issues: List[ValidationIssue] = []
    nodes = snapshot.node_by_uid()
    edges = snapshot.edge_by_uid()

    # --- Nodes ---
    if not nodes:
        issues.append(ValidationIssue("warning", "Network has zero nodes."))

    # nodes without a number are written under their uid
    seen_ids: Dict[str, str] = {}
    for uid, n in nodes.items():
        number = n.data.node_number
        nid = n.export_id
        if nid in seen_ids:
            what = f"node_number {number}" if number is not None else f"uid {uid} (no node_number)"
            issues.append(ValidationIssue(
                "error",
                f"Node(uid={uid}) {what} already used by node uid={seen_ids[nid]}.",
                "Node numbers must be unique; renumber one of them.",
            ))
        else:
            seen_ids[nid] = uid

        if n.data.unit not in (None, *UNIT_SYSTEMS):
            issues.append(ValidationIssue("error", f"Node(uid={uid}, label={n.data.label}) unit invalid: {n.data.unit!r}"))

        values = _dimensional_values(n.data)
        if values and not np.all(np.isfinite(list(values.values()))):
            issues.append(ValidationIssue("error", f"Node(uid={uid}, label={n.data.label}) has non-finite values: {values}"))

        if n.data.node_elevation() is None and n.kind != "flowBoundary":
            issues.append(ValidationIssue(
                "warning",
                f"Node(uid={uid}, label={n.data.label}) has no elevation; it will not get a NODE line.",
            ))

        if n.kind == "surgeTank":
            top, bottom = n.data.top_elevation, n.data.bottom_elevation  # type: ignore[union-attr]
            if top is not None and bottom is not None and top <= bottom:
                issues.append(ValidationIssue(
                    "error",
                    f"SurgeTank(uid={uid}, label={n.data.label}) top {top} <= bottom {bottom}.",
                ))

    if nodes and not snapshot.nodes_of_kind("reservoir"):
        issues.append(ValidationIssue(
            "warning",
            "Network has no reservoir; connectivity traversal will be empty.",
            "Add a reservoir upstream of the system.",
        ))

    # --- Edges ---
    for uid, e in edges.items():
        for end, nid in (("source", e.source), ("target", e.target)):
            if nid not in nodes:
                issues.append(ValidationIssue(
                    "error",
                    f"Edge(uid={uid}, label={e.label}) references unknown {end} node uid={nid!r}.",
                ))
        if e.data.unit not in (None, *UNIT_SYSTEMS):
            issues.append(ValidationIssue("error", f"Edge(uid={uid}, label={e.label}) unit invalid: {e.data.unit!r}"))
        if e.source == e.target:
            issues.append(ValidationIssue("warning", f"Edge(uid={uid}, label={e.label}) is a self-loop."))

        values = _dimensional_values(e.data)
        for name, v in values.items():
            if not np.isfinite(v) or v < 0:
                issues.append(ValidationIssue("error", f"Edge(uid={uid}, label={e.label}) {name} invalid: {v}"))

    # --- Reachability from reservoirs (undirected) ---
    if nodes and edges:
        adj: Dict[str, Set[str]] = {nid: set() for nid in nodes}
        for e in edges.values():
            if e.source in adj and e.target in adj:
                adj[e.source].add(e.target)
                adj[e.target].add(e.source)

        visited: Set[str] = set()
        stack = [n.uid for n in snapshot.nodes_of_kind("reservoir")]
        while stack:
            cur = stack.pop()
            if cur in visited:
                continue
            visited.add(cur)
            stack.extend(adj[cur] - visited)

        unreached = [nid for nid in nodes if nid not in visited]
        if visited and unreached:
            issues.append(ValidationIssue(
                "warning",
                f"{len(unreached)} node(s) are not connected to any reservoir: {unreached}",
            ))

    # --- Output requests ---
    for r in snapshot.output_requests:
        pool = nodes if r.element_type == "node" else edges
        if r.element_id not in pool:
            issues.append(ValidationIssue(
                "error",
                f"OutputRequest(uid={r.uid}) references unknown {r.element_type} uid={r.element_id!r}.",
            ))
        if not r.variables:
            issues.append(ValidationIssue("warning", f"OutputRequest(uid={r.uid}) has no variables."))

    # --- Control ---
    cp = snapshot.computational_params
    try:
        cp.validate()
    except ValueError as e:
        issues.append(ValidationIssue("error", str(e)))
    else:
        if cp.dtout < cp.dtcomp:
            issues.append(ValidationIssue("warning", f"DTOUT {cp.dtout} is smaller than DTCOMP {cp.dtcomp}."))

    return issues


def raise_on_errors(issues: List[ValidationIssue]) -> None:
    errors = [i for i in issues if i.level == "error"]
    if errors:
        raise NetworkValidationError(errors)
