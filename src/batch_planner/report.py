from __future__ import annotations

from pydantic import BaseModel, Field

from .config import OpType


class PrepPlan(BaseModel):
    defense_reduction_threads: int = Field(..., ge=0)
    replenish_threads: int = Field(..., ge=0)
    compensating_defense_reduction_threads: int = Field(..., ge=0)
    total_threads: int = Field(..., ge=0)
    estimated_duration_ms: float = Field(..., ge=0.0)

    @property
    def is_empty(self) -> bool:
        return self.total_threads == 0


class BatchThreads(BaseModel):
    depletion_threads: int = Field(..., ge=1)
    defense_reduction1_threads: int = Field(..., ge=1)
    replenish_threads: int = Field(..., ge=1)
    defense_reduction2_threads: int = Field(..., ge=1)
    total_threads: int = Field(..., ge=4)
    ram_per_batch: float

    @classmethod
    def from_counts(
        cls,
        depletion: int,
        defense_reduction1: int,
        replenish: int,
        defense_reduction2: int,
        per_thread_ram: float,
    ) -> "BatchThreads":
        total = depletion + defense_reduction1 + replenish + defense_reduction2
        return cls(
            depletion_threads=depletion,
            defense_reduction1_threads=defense_reduction1,
            replenish_threads=replenish,
            defense_reduction2_threads=defense_reduction2,
            total_threads=total,
            ram_per_batch=total * per_thread_ram,
        )


class BatchDelays(BaseModel):
    depletion_delay_ms: float = Field(..., ge=0.0)
    defense_reduction1_delay_ms: float = Field(..., ge=0.0)
    replenish_delay_ms: float = Field(..., ge=0.0)
    defense_reduction2_delay_ms: float = Field(..., ge=0.0)

    def in_landing_order(self) -> tuple[float, float, float, float]:
        return (
            self.depletion_delay_ms,
            self.defense_reduction1_delay_ms,
            self.replenish_delay_ms,
            self.defense_reduction2_delay_ms,
        )


class TargetScore(BaseModel):
    node_id: str
    score: float
    extraction_fraction: float = Field(..., gt=0.0, lt=1.0)
    batch_threads: BatchThreads
    cycle_time_ms: float = Field(..., ge=0.0)


class BatchOp(BaseModel):
    type: OpType
    target: str
    threads: int = Field(..., ge=1)
    delay_ms: float = Field(..., ge=0.0)
    tag: str


class AllocatedOp(BatchOp):
    worker: str


class PlannedBatch(BaseModel):
    target: str
    ops: list[BatchOp]
    expected_end_ms: float


class CyclePlan(BaseModel):
    prep_ops: list[BatchOp] = Field(default_factory=list)
    new_batches: list[PlannedBatch] = Field(default_factory=list)
    abort_targets: list[str] = Field(default_factory=list)
    ready_targets: list[str] = Field(default_factory=list)


class PlanReport(BaseModel):
    generated_at: str
    per_thread_ram_gb: float = Field(..., gt=0.0)
    targets: list[TargetScore]
    prep: dict[str, PrepPlan] = Field(default_factory=dict)
    cycle: CyclePlan
    notes: list[str] = Field(default_factory=list)
