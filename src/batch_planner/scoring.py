from __future__ import annotations

import logging
from typing import Iterable

from .config import NodeState, PlannerConfig, SweepConfig
from .estimators import ThreadEstimator, select_estimator
from .host import NodeHost
from .report import BatchThreads, TargetScore
from .threads import calculate_batch_threads


logger = logging.getLogger(__name__)


def sweep_fractions(sweep: SweepConfig) -> list[float]:
    # Integer stepping keeps 0.01..0.95 from drifting past the stop bound.
    count = int(round((sweep.stop - sweep.start) / sweep.step)) + 1
    out: list[float] = []
    for i in range(count):
        fraction = round(sweep.start + i * sweep.step, 10)
        if fraction > sweep.stop + 1e-12:
            break
        out.append(fraction)
    return out


def cycle_time_ms(node: NodeState, config: PlannerConfig) -> float:
    return node.op_durations.defense_reduction_ms + config.landing_window_ms


def score_fraction(
    host: NodeHost,
    node: NodeState,
    estimator: ThreadEstimator,
    fraction: float,
    per_thread_ram: float,
    config: PlannerConfig,
) -> tuple[float | None, BatchThreads]:
    bt = calculate_batch_threads(host, node, fraction, per_thread_ram, config, estimator=estimator)
    if bt.ram_per_batch <= 0:
        return None, bt

    extracted = min(fraction, estimator.yield_per_thread() * bt.depletion_threads)
    expected_yield = node.max_value * extracted * estimator.success_chance()
    cycle_seconds = max(cycle_time_ms(node, config) / 1000, 1e-3)
    score = expected_yield / cycle_seconds / bt.ram_per_batch
    if score <= 0:
        return None, bt
    return score, bt


def optimize_extraction_fraction(
    host: NodeHost,
    node: NodeState,
    per_thread_ram: float,
    config: PlannerConfig | None = None,
) -> TargetScore:
    config = config or PlannerConfig()
    estimator = select_estimator(host, node)

    best_score: float | None = None
    best_fraction = config.sweep.fallback_fraction
    best_batch: BatchThreads | None = None

    for fraction in sweep_fractions(config.sweep):
        score, bt = score_fraction(host, node, estimator, fraction, per_thread_ram, config)
        if score is None:
            continue
        if best_score is None or score > best_score:
            best_score = score
            best_fraction = fraction
            best_batch = bt

    if best_batch is None:
        logger.debug("no scoreable fraction for %s, falling back to %.2f", node.node_id, best_fraction)
        best_batch = calculate_batch_threads(host, node, best_fraction, per_thread_ram, config, estimator=estimator)

    return TargetScore(
        node_id=node.node_id,
        score=best_score if best_score is not None else 0.0,
        extraction_fraction=best_fraction,
        batch_threads=best_batch,
        cycle_time_ms=cycle_time_ms(node, config),
    )


def score_target(
    host: NodeHost,
    node_id: str,
    per_thread_ram: float,
    config: PlannerConfig | None = None,
) -> TargetScore:
    return optimize_extraction_fraction(host, host.node_state(node_id), per_thread_ram, config)


def rank_targets(
    host: NodeHost,
    node_ids: Iterable[str],
    per_thread_ram: float,
    config: PlannerConfig | None = None,
    max_targets: int | None = None,
) -> list[TargetScore]:
    config = config or PlannerConfig()
    scores = [score_target(host, node_id, per_thread_ram, config) for node_id in node_ids]
    ranked = sorted((s for s in scores if s.score > 0), key=lambda s: s.score, reverse=True)
    if max_targets is not None:
        ranked = ranked[:max_targets]
    return ranked
