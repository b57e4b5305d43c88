from __future__ import annotations

import itertools
import logging
import time
from typing import Iterator, Mapping

from pydantic import BaseModel, Field

from .config import NodePhase, OpType, PlannerConfig
from .delays import LANDING_ORDER, calculate_batch_delays
from .desync import detect_desync
from .host import NodeHost
from .prep import calculate_prep_plan, is_node_prepped
from .report import AllocatedOp, BatchOp, CyclePlan, PlannedBatch
from .threads import calculate_batch_threads


logger = logging.getLogger(__name__)


class NodeBatchState(BaseModel):
    node_id: str
    phase: NodePhase = NodePhase.prep
    score: float = 0.0
    extraction_fraction: float = Field(0.05, gt=0.0, lt=1.0)
    active_batches: int = Field(0, ge=0)


class WorkerSlot(BaseModel):
    name: str
    available_ram: float = Field(..., ge=0.0)


def _prep_ops(node_id: str, reduction: int, replenish: int, compensating: int) -> list[BatchOp]:
    ops: list[BatchOp] = []
    if reduction > 0:
        ops.append(BatchOp(type=OpType.defense_reduction, target=node_id, threads=reduction, delay_ms=0.0, tag="prep"))
    if replenish > 0:
        ops.append(BatchOp(type=OpType.replenish, target=node_id, threads=replenish, delay_ms=0.0, tag="prep"))
    if compensating > 0:
        ops.append(
            BatchOp(type=OpType.defense_reduction, target=node_id, threads=compensating, delay_ms=0.0, tag="prep-cw")
        )
    return ops


def plan_batch_cycle(
    host: NodeHost,
    states: Mapping[str, NodeBatchState],
    per_thread_ram: float,
    config: PlannerConfig | None = None,
    *,
    batch_ids: Iterator[int] | None = None,
    prepping: frozenset[str] | set[str] = frozenset(),
    now_ms: float | None = None,
) -> CyclePlan:
    config = config or PlannerConfig()
    if batch_ids is None:
        batch_ids = itertools.count()
    if now_ms is None:
        now_ms = time.time() * 1000

    plan = CyclePlan()

    for state in sorted(states.values(), key=lambda s: s.score, reverse=True):
        node_id = state.node_id
        if state.phase == NodePhase.desync_recovery:
            plan.abort_targets.append(node_id)
            continue

        node = host.node_state(node_id)
        in_flight = state.active_batches > 0

        if state.phase == NodePhase.batch and detect_desync(node, config, depletion_expected=in_flight):
            logger.info("desync on %s (defense %.3f/%.3f, value %.0f/%.0f)", node_id, node.defense,
                        node.min_defense, node.value, node.max_value)
            plan.abort_targets.append(node_id)
            continue

        if state.phase == NodePhase.prep or (not in_flight and not is_node_prepped(node, config)):
            if node_id in prepping:
                continue
            prep = calculate_prep_plan(host, node, config)
            if not prep.is_empty:
                logger.debug("prepping %s with %d threads", node_id, prep.total_threads)
                plan.prep_ops.extend(
                    _prep_ops(
                        node_id,
                        prep.defense_reduction_threads,
                        prep.replenish_threads,
                        prep.compensating_defense_reduction_threads,
                    )
                )
                continue
            plan.ready_targets.append(node_id)

        durations = node.op_durations
        bt = calculate_batch_threads(host, node, state.extraction_fraction, per_thread_ram, config)
        thread_counts = (
            bt.depletion_threads,
            bt.defense_reduction1_threads,
            bt.replenish_threads,
            bt.defense_reduction2_threads,
        )

        for index in range(state.active_batches, config.max_batches_per_node):
            delays = calculate_batch_delays(durations, index, config)
            tag = f"b-{next(batch_ids)}"
            ops = [
                BatchOp(type=op, target=node_id, threads=threads, delay_ms=delay, tag=tag)
                for op, threads, delay in zip(LANDING_ORDER, thread_counts, delays.in_landing_order())
            ]
            expected_end = now_ms + durations.defense_reduction_ms + delays.defense_reduction2_delay_ms
            plan.new_batches.append(PlannedBatch(target=node_id, ops=ops, expected_end_ms=expected_end))

    return plan


class _Fleet:
    def __init__(self, workers: list[WorkerSlot], thread_ram: float) -> None:
        self.free = {w.name: w.available_ram for w in workers}
        self.thread_ram = thread_ram

    def place(self, op: BatchOp, budget: float | None = None) -> list[AllocatedOp]:
        remaining = op.threads
        out: list[AllocatedOp] = []
        for name, free in self.free.items():
            if remaining <= 0 or (budget is not None and budget < self.thread_ram):
                break
            room = free if budget is None else min(free, budget)
            fit = int(room // self.thread_ram)
            if fit <= 0:
                continue
            assign = min(fit, remaining)
            cost = assign * self.thread_ram
            out.append(AllocatedOp(**op.model_dump(exclude={"threads"}), threads=assign, worker=name))
            self.free[name] = free - cost
            if budget is not None:
                budget -= cost
            remaining -= assign
        if remaining > 0 and budget is None:
            self.release(out)
            return []
        return out

    def release(self, ops: list[AllocatedOp]) -> None:
        for op in ops:
            self.free[op.worker] += op.threads * self.thread_ram


def allocate_cycle(
    plan: CyclePlan,
    workers: list[WorkerSlot],
    config: PlannerConfig | None = None,
) -> list[AllocatedOp]:
    config = config or PlannerConfig()
    fleet = _Fleet(workers, config.worker_ram_gb)
    allocated: list[AllocatedOp] = []

    total_ram = sum(w.available_ram for w in workers)
    prep_budget = total_ram * config.prep_ram_share if plan.new_batches else total_ram
    for op in plan.prep_ops:
        if prep_budget < fleet.thread_ram:
            break
        placed = fleet.place(op, budget=prep_budget)
        prep_budget -= sum(p.threads for p in placed) * fleet.thread_ram
        allocated.extend(placed)

    for batch in plan.new_batches:
        placed_batch: list[AllocatedOp] = []
        for op in batch.ops:
            placed = fleet.place(op)
            if not placed:
                fleet.release(placed_batch)
                placed_batch = []
                logger.debug("skipping batch %s on %s: not enough RAM", batch.ops[0].tag, batch.target)
                break
            placed_batch.extend(placed)
        allocated.extend(placed_batch)

    return allocated
