from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Tuple, Union

UnitSystem = Literal["SI", "FPS"]

NodeKind = Literal["reservoir", "node", "junction", "surgeTank", "flowBoundary"]

NODE_KINDS: Tuple[str, ...] = ("reservoir", "node", "junction", "surgeTank", "flowBoundary")

# kinds that carry an element anchored AT the node
SPECIAL_KINDS: Tuple[str, ...] = ("reservoir", "surgeTank", "flowBoundary")


@dataclass(frozen=True, slots=True)
class SchedulePoint:
    time: float     # [s]
    flow: float     # [m3/s] or [ft3/s] depending on the element unit


@dataclass(frozen=True, slots=True)
class NodeData:
    """
    Fields shared by every node kind.

    Notes:
    - unit: local unit override. When set, the element is pinned to that
      system and the global unit toggle leaves it alone.
    - node_number: externally visible id written to the .inp file.
    """
    label: str = ""
    unit: Optional[UnitSystem] = None
    node_number: Optional[int] = None
    comment: Optional[str] = None
    elevation: Optional[float] = None   # [m] / [ft]

    def node_elevation(self) -> Optional[float]:
        return self.elevation


@dataclass(frozen=True, slots=True)
class ReservoirData(NodeData):
    label: str = "HW"
    elevation: Optional[float] = 100.0
    reservoir_elevation: Optional[float] = 100.0  # water surface


@dataclass(frozen=True, slots=True)
class JunctionData(NodeData):
    """Plain nodes and junctions share the same field set."""
    elevation: Optional[float] = 50.0


@dataclass(frozen=True, slots=True)
class SurgeTankData(NodeData):
    label: str = "ST"
    top_elevation: Optional[float] = 120.0
    bottom_elevation: Optional[float] = 80.0
    diameter: Optional[float] = 5.0
    celerity: Optional[float] = 1000.0
    friction: Optional[float] = 0.01

    def node_elevation(self) -> Optional[float]:
        # tank without an explicit node elevation sits on its bottom
        if self.elevation is not None:
            return self.elevation
        return self.bottom_elevation


@dataclass(frozen=True, slots=True)
class FlowBoundaryData(NodeData):
    schedule_number: int = 1
    schedule_points: Tuple[SchedulePoint, ...] = ()


AnyNodeData = Union[ReservoirData, JunctionData, SurgeTankData, FlowBoundaryData]


def data_class_for(kind: str) -> type:
    if kind == "reservoir":
        return ReservoirData
    if kind in ("node", "junction"):
        return JunctionData
    if kind == "surgeTank":
        return SurgeTankData
    if kind == "flowBoundary":
        return FlowBoundaryData
    raise ValueError(f"Unknown node kind: {kind!r}. Allowed: {list(NODE_KINDS)}")


def default_node_data(kind: str, uid: str, node_number: int) -> AnyNodeData:
    """
    Kind-specific defaults for a freshly placed node.
    """
    if kind == "reservoir":
        return ReservoirData(node_number=node_number)
    if kind in ("node", "junction"):
        return JunctionData(label=f"Node {node_number}", node_number=node_number)
    if kind == "surgeTank":
        return SurgeTankData(node_number=node_number)
    if kind == "flowBoundary":
        return FlowBoundaryData(label=f"FB{uid}", node_number=node_number)
    raise ValueError(f"Unknown node kind: {kind!r}. Allowed: {list(NODE_KINDS)}")


@dataclass(frozen=True, slots=True)
class Node:
    """
    Graph vertex of the editor network.

    Notes:
    - uid: stable store id (string form of the store counter)
    - position: canvas coordinates, not part of the exported model
    """
    uid: str
    kind: NodeKind
    position: Tuple[float, float]
    data: AnyNodeData

    @property
    def is_special(self) -> bool:
        return self.kind in SPECIAL_KINDS

    @property
    def export_id(self) -> str:
        """Identifier written to the .inp file."""
        if self.data.node_number is not None:
            return str(self.data.node_number)
        return self.uid
