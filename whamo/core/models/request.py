from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Tuple

ElementType = Literal["node", "edge"]

RequestType = Literal["HISTORY", "PLOT", "SPREADSHEET"]

ELEMENT_TYPES: Tuple[str, ...] = ("node", "edge")
REQUEST_TYPES: Tuple[str, ...] = ("HISTORY", "PLOT", "SPREADSHEET")

# telemetry variables understood by the engine
OUTPUT_VARIABLES: Tuple[str, ...] = ("Q", "HEAD", "ELEV", "VEL", "PRESS", "PIEZHEAD")


@dataclass(frozen=True, slots=True)
class OutputRequest:
    """
    Telemetry request for one element.

    Notes:
    - element_id refers to Node.uid or Edge.uid depending on element_type
    - variables keeps the caller's order (written as-is to the .inp file)
    """
    uid: str
    element_id: str
    element_type: ElementType
    request_type: RequestType
    variables: Tuple[str, ...] = OUTPUT_VARIABLES
