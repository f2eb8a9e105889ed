# whamo/core/build/config.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping


UNIT_SYSTEMS = ("SI", "FPS")


def _as_unit(value: Any) -> str:
    return str(value).strip().upper()


# ============================================================
# ComputationalParams (CONTROL block)
# ============================================================

@dataclass(frozen=True)
class ComputationalParams:
    """
    Simulation control values written to the CONTROL block.
    """
    dtcomp: float = 0.01   # [s] computational step
    dtout: float = 0.1     # [s] output step
    tmax: float = 500.0    # [s] simulated time

    @staticmethod
    def from_dict(cfg: Mapping[str, Any]) -> "ComputationalParams":
        out = ComputationalParams(
            dtcomp=float(cfg.get("dtcomp", cfg.get("dt_comp", 0.01))),
            dtout=float(cfg.get("dtout", cfg.get("dt_out", 0.1))),
            tmax=float(cfg.get("tmax", cfg.get("t_max", 500.0))),
        )
        out.validate()
        return out

    def merged(self, partial: Mapping[str, Any]) -> "ComputationalParams":
        unknown = sorted(set(partial) - {"dtcomp", "dtout", "tmax"})
        if unknown:
            raise ValueError(f"Unknown computational parameters: {unknown}")
        return ComputationalParams(
            dtcomp=float(partial.get("dtcomp", self.dtcomp)),
            dtout=float(partial.get("dtout", self.dtout)),
            tmax=float(partial.get("tmax", self.tmax)),
        )

    def to_dict(self) -> Dict[str, float]:
        return {"dtcomp": self.dtcomp, "dtout": self.dtout, "tmax": self.tmax}

    def validate(self) -> None:
        if self.dtcomp <= 0:
            raise ValueError(f"ComputationalParams.dtcomp must be > 0 (got {self.dtcomp})")
        if self.dtout <= 0:
            raise ValueError(f"ComputationalParams.dtout must be > 0 (got {self.dtout})")
        if self.tmax <= 0:
            raise ValueError(f"ComputationalParams.tmax must be > 0 (got {self.tmax})")


# ============================================================
# EditorConfig
# ============================================================

@dataclass(frozen=True)
class EditorConfig:
    """
    Editor-wide settings of a NetworkStore.
    """
    global_unit: str = "FPS"
    history_capacity: int = 50
    project_name: str = "Untitled Network"

    @staticmethod
    def from_dict(cfg: Mapping[str, Any]) -> "EditorConfig":
        unit = _as_unit(cfg.get("global_unit", cfg.get("globalUnit", cfg.get("unit", "FPS"))))
        capacity = cfg.get("history_capacity", cfg.get("history", 50))
        name = str(cfg.get("project_name", cfg.get("projectName", "Untitled Network"))).strip()

        out = EditorConfig(
            global_unit=unit,
            history_capacity=int(capacity),
            project_name=name or "Untitled Network",
        )
        out.validate()
        return out

    def validate(self) -> None:
        if self.global_unit not in UNIT_SYSTEMS:
            raise ValueError(f"EditorConfig.global_unit invalid: {self.global_unit!r}. Allowed: {list(UNIT_SYSTEMS)}")
        if self.history_capacity <= 0:
            raise ValueError(f"EditorConfig.history_capacity must be > 0 (got {self.history_capacity})")
