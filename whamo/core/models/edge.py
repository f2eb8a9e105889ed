from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Literal, Optional, Union

from whamo.core.models.node import UnitSystem

EdgeKind = Literal["conduit", "dummy"]

EDGE_KINDS = ("conduit", "dummy")

LABEL_PREFIX = {
    "conduit": "C",
    "dummy": "D",
}


@dataclass(frozen=True, slots=True)
class ConduitData:
    """
    Hydraulic conduit between two nodes.

    Notes:
    - variable=True means the geometry is carried by the profile samples
      (distance/area/d/a) and the fixed diameter is not exported
    - friction is Darcy f (dimensionless), cplus/cminus are added-loss
      coefficients (dimensionless)
    """
    label: str = ""
    unit: Optional[UnitSystem] = None
    comment: Optional[str] = None

    length: Optional[float] = 1000.0      # [m] / [ft]
    diameter: Optional[float] = 0.5       # [m] / [ft]
    celerity: Optional[float] = 1000.0    # wave speed [m/s] / [ft/s]
    friction: Optional[float] = 0.02
    num_segments: Optional[int] = 1
    cplus: Optional[float] = None
    cminus: Optional[float] = None

    # variable geometry profile
    variable: bool = False
    distance: Optional[float] = None
    area: Optional[float] = None
    d: Optional[float] = None
    a: Optional[float] = None


@dataclass(frozen=True, slots=True)
class DummyData:
    """Zero-length, loss-only connector."""
    label: str = ""
    unit: Optional[UnitSystem] = None
    comment: Optional[str] = None

    diameter: Optional[float] = None
    cplus: Optional[float] = None
    cminus: Optional[float] = None


AnyEdgeData = Union[ConduitData, DummyData]


def data_class_for_edge(kind: str) -> type:
    if kind == "conduit":
        return ConduitData
    if kind == "dummy":
        return DummyData
    raise ValueError(f"Unknown edge kind: {kind!r}. Allowed: {list(EDGE_KINDS)}")


def convert_edge_kind(data: AnyEdgeData, kind: str) -> AnyEdgeData:
    """
    Switch an edge data record to another kind, keeping the fields both
    variants share (label, unit, comment, diameter, cplus, cminus).
    """
    target_cls = data_class_for_edge(kind)
    if isinstance(data, target_cls):
        return data

    shared = {f.name for f in fields(target_cls)} & {f.name for f in fields(data)}
    kwargs = {name: getattr(data, name) for name in shared}
    return target_cls(**kwargs)


@dataclass(frozen=True, slots=True)
class Edge:
    """
    Directed link of the editor network (source -> target reference Node.uid).
    """
    uid: str
    source: str
    target: str
    data: AnyEdgeData

    @property
    def kind(self) -> EdgeKind:
        return "dummy" if isinstance(self.data, DummyData) else "conduit"

    @property
    def label(self) -> str:
        return self.data.label or self.uid
