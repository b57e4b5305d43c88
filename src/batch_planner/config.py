from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic import BaseModel, Field, field_validator, model_validator


class OpType(str, Enum):
    depletion = "depletion"
    replenish = "replenish"
    defense_reduction = "defense_reduction"


class NodePhase(str, Enum):
    prep = "prep"
    batch = "batch"
    desync_recovery = "desync-recovery"


class OpDurations(BaseModel):
    depletion_ms: float = Field(..., ge=0.0)
    replenish_ms: float = Field(..., ge=0.0)
    defense_reduction_ms: float = Field(..., ge=0.0)

    def for_op(self, op: OpType) -> float:
        if op == OpType.depletion:
            return self.depletion_ms
        if op == OpType.replenish:
            return self.replenish_ms
        return self.defense_reduction_ms


class NodeState(BaseModel):
    node_id: str
    min_defense: float = Field(..., ge=0.0)
    defense: float = Field(..., ge=0.0)
    max_value: float = Field(..., ge=0.0)
    value: float = Field(..., ge=0.0)
    op_durations: OpDurations

    @field_validator("defense")
    @classmethod
    def _validate_defense(cls, v: float, info):  # noqa: ANN001
        min_defense = info.data.get("min_defense")
        if min_defense is not None and v < min_defense:
            raise ValueError(f"defense ({v}) must be >= min_defense ({min_defense})")
        return v

    @field_validator("value")
    @classmethod
    def _validate_value(cls, v: float, info):  # noqa: ANN001
        max_value = info.data.get("max_value")
        if max_value is not None and v > max_value:
            raise ValueError(f"value ({v}) must be <= max_value ({max_value})")
        return v

    @property
    def defense_gap(self) -> float:
        return max(self.defense - self.min_defense, 0.0)

    def conditioned(self) -> "NodeState":
        return self.model_copy(update={"defense": self.min_defense, "value": self.max_value})


class DefenseDeltas(BaseModel):
    per_depletion_thread: float = Field(0.002, ge=0.0)
    per_replenish_thread: float = Field(0.004, ge=0.0)
    per_reduction_thread: float = Field(0.05, gt=0.0)


class Tolerances(BaseModel):
    prep_defense: float = Field(0.5, ge=0.0)
    prep_value: float = Field(0.999, ge=0.0, le=1.0)
    desync_value: float = Field(0.95, ge=0.0, le=1.0)
    desync_defense_factor: float = Field(2.0, ge=1.0)


class SweepConfig(BaseModel):
    start: float = Field(0.01, gt=0.0, lt=1.0)
    stop: float = Field(0.95, gt=0.0, lt=1.0)
    step: float = Field(0.01, gt=0.0)
    fallback_fraction: float = Field(0.05, gt=0.0, lt=1.0)

    @model_validator(mode="after")
    def _validate_bounds(self) -> "SweepConfig":
        if self.stop < self.start:
            raise ValueError(f"sweep.stop ({self.stop}) must be >= sweep.start ({self.start})")
        return self


class PlannerConfig(BaseModel):
    batch_spacer_ms: float = Field(200.0, gt=0.0)
    defense: DefenseDeltas = Field(default_factory=DefenseDeltas)
    tolerances: Tolerances = Field(default_factory=Tolerances)
    sweep: SweepConfig = Field(default_factory=SweepConfig)
    max_batches_per_node: int = Field(4, ge=1)
    prep_ram_share: float = Field(0.5, gt=0.0, le=1.0)
    worker_ram_gb: float = Field(1.75, gt=0.0)

    @property
    def landing_window_ms(self) -> float:
        return self.batch_spacer_ms * 4

    @classmethod
    def from_yaml(cls, path: str | Path) -> "PlannerConfig":
        data = _load_yaml(path)
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid planner config: {path}\n{exc}") from exc


def _load_yaml(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(str(path))
    try:
        return yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:  # pragma: no cover
        raise ValueError(f"Failed to parse YAML: {p}") from exc
