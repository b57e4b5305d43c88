from __future__ import annotations

from .config import NodeState, PlannerConfig
from .estimators import ThreadEstimator, ceil_count, select_estimator
from .host import NodeHost
from .report import BatchThreads


def calculate_batch_threads(
    host: NodeHost,
    node: NodeState,
    fraction: float,
    per_thread_ram: float,
    config: PlannerConfig | None = None,
    estimator: ThreadEstimator | None = None,
) -> BatchThreads:
    config = config or PlannerConfig()
    deltas = config.defense
    if estimator is None:
        estimator = select_estimator(host, node)

    fraction = min(max(fraction, 0.0), 1.0)
    depletion = max(1, estimator.depletion_threads(fraction))
    replenish = max(1, estimator.replenish_threads(fraction))

    reduction1 = max(1, ceil_count(depletion * deltas.per_depletion_thread / deltas.per_reduction_thread))
    reduction2 = max(1, ceil_count(replenish * deltas.per_replenish_thread / deltas.per_reduction_thread))

    return BatchThreads.from_counts(depletion, reduction1, replenish, reduction2, per_thread_ram)
