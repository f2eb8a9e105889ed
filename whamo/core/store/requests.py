from __future__ import annotations

import uuid
from typing import Iterable, List

from whamo.core.models.edge import Edge
from whamo.core.models.node import Node
from whamo.core.models.request import OUTPUT_VARIABLES, REQUEST_TYPES, OutputRequest


def new_request_uid() -> str:
    return f"req-{uuid.uuid4().hex}"


def default_requests_for(element_id: str, element_type: str) -> List[OutputRequest]:
    """
    One request per request type, each asking for every output variable.
    """
    return [
        OutputRequest(
            uid=new_request_uid(),
            element_id=element_id,
            element_type=element_type,   # type: ignore[arg-type]
            request_type=request_type,   # type: ignore[arg-type]
            variables=OUTPUT_VARIABLES,
        )
        for request_type in REQUEST_TYPES
    ]


def auto_select(nodes: Iterable[Node], edges: Iterable[Edge]) -> List[OutputRequest]:
    """
    Full default request set for a network (nodes first, then edges).
    Used as a replacement, not merged with existing requests.
    """
    out: List[OutputRequest] = []
    for n in nodes:
        out.extend(default_requests_for(n.uid, "node"))
    for e in edges:
        out.extend(default_requests_for(e.uid, "edge"))
    return out
