from __future__ import annotations

from dataclasses import fields, replace
from typing import Dict, Iterable, Literal, Optional, TypeVar

import numpy as np

from whamo.core.models.node import FlowBoundaryData, SchedulePoint

QuantityKind = Literal["length", "diameter", "elevation", "celerity", "area", "flow"]

# SI -> FPS multipliers
SI_TO_FPS: Dict[str, float] = {
    "length": 3.28084,      # m -> ft
    "diameter": 3.28084,    # m -> ft
    "elevation": 3.28084,   # m -> ft
    "celerity": 3.28084,    # m/s -> ft/s
    "area": 10.7639,        # m2 -> ft2
    "flow": 35.3147,        # m3/s -> ft3/s
}

# unit the engine expects in the .inp file
EXPORT_UNIT = "FPS"

STORAGE_DECIMALS = 4
EXPORT_DECIMALS = 2

# data field -> quantity kind (fields not listed are dimensionless)
FIELD_QUANTITY: Dict[str, str] = {
    "length": "length",
    "distance": "length",
    "diameter": "diameter",
    "d": "diameter",
    "elevation": "elevation",
    "reservoir_elevation": "elevation",
    "top_elevation": "elevation",
    "bottom_elevation": "elevation",
    "celerity": "celerity",
    "area": "area",
    "a": "area",
}

T = TypeVar("T")


def _factor(quantity: str) -> float:
    try:
        return SI_TO_FPS[quantity]
    except KeyError as e:
        raise ValueError(f"Unknown quantity kind: {quantity!r}. Allowed: {sorted(SI_TO_FPS)}") from e


def convert(
    value: Optional[float],
    from_unit: str,
    to_unit: str,
    quantity: str,
    *,
    precision: int = STORAGE_DECIMALS,
) -> Optional[float]:
    """
    Convert a dimensional value between SI and FPS.

    - None stays None (undefined fields are skipped, not zero-filled)
    - same unit -> identity (still rounded to `precision`)
    - to FPS multiplies by SI_TO_FPS[quantity], to SI divides
    """
    if value is None:
        return None
    factor = _factor(quantity)
    v = float(value)
    if from_unit != to_unit:
        v = v * factor if to_unit == "FPS" else v / factor
    return round(v, precision)


def convert_many(
    values: Iterable[float],
    from_unit: str,
    to_unit: str,
    quantity: str,
    *,
    precision: int = STORAGE_DECIMALS,
) -> np.ndarray:
    """Vectorised convert() for sample series (schedule flows, profiles)."""
    arr = np.asarray(list(values), dtype=float)
    factor = _factor(quantity)
    if from_unit != to_unit:
        arr = arr * factor if to_unit == "FPS" else arr / factor
    return np.round(arr, precision)


def to_export(value: Optional[float], unit: str, quantity: str) -> Optional[str]:
    """
    Format a value stored in `unit` as the engine expects it
    (EXPORT_UNIT, EXPORT_DECIMALS). Returns None when the value is undefined.
    """
    if value is None:
        return None
    v = convert(value, unit, EXPORT_UNIT, quantity, precision=12)
    return f"{v:.{EXPORT_DECIMALS}f}"


def convert_data(data: T, from_unit: str, to_unit: str) -> T:
    """
    Convert every dimensional field of a node/edge data record.

    Works on the frozen data variants: returns a new record, the input is
    never modified. Schedule point flows are converted as 'flow'.
    """
    if from_unit == to_unit:
        return data

    changes: Dict[str, object] = {}
    for f in fields(data):
        quantity = FIELD_QUANTITY.get(f.name)
        if quantity is None:
            continue
        value = getattr(data, f.name)
        if value is None or isinstance(value, bool):
            continue
        changes[f.name] = convert(value, from_unit, to_unit, quantity)

    if isinstance(data, FlowBoundaryData) and data.schedule_points:
        flows = convert_many((p.flow for p in data.schedule_points), from_unit, to_unit, "flow")
        changes["schedule_points"] = tuple(
            SchedulePoint(time=p.time, flow=float(q))
            for p, q in zip(data.schedule_points, flows)
        )

    return replace(data, **changes) if changes else data
