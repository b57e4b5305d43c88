from __future__ import annotations

from .config import NodeState, PlannerConfig
from .estimators import ceil_count
from .host import NodeHost
from .report import PrepPlan


def is_node_prepped(node: NodeState, config: PlannerConfig | None = None) -> bool:
    config = config or PlannerConfig()
    tol = config.tolerances
    return node.defense_gap <= tol.prep_defense and node.value >= node.max_value * tol.prep_value


def prep_progress(node: NodeState, config: PlannerConfig | None = None) -> float:
    config = config or PlannerConfig()
    gap = node.defense_gap
    if gap <= config.tolerances.prep_defense:
        defense_progress = 1.0
    else:
        defense_progress = max(0.0, 1 - gap / 100)
    value_progress = node.value / node.max_value if node.max_value > 0 else 1.0
    return (defense_progress + value_progress) / 2


def calculate_prep_plan(host: NodeHost, node: NodeState, config: PlannerConfig | None = None) -> PrepPlan:
    config = config or PlannerConfig()
    deltas = config.defense
    tol = config.tolerances

    gap = node.defense_gap
    reduction_threads = ceil_count(gap / deltas.per_reduction_thread) if gap > tol.prep_defense else 0

    replenish_threads = 0
    if node.value < node.max_value * tol.prep_value:
        multiplier = node.max_value / max(node.value, 1.0)
        replenish_threads = ceil_count(host.growth_threads(node.node_id, multiplier))

    compensating_threads = 0
    if replenish_threads > 0:
        compensating_threads = ceil_count(
            replenish_threads * deltas.per_replenish_thread / deltas.per_reduction_thread
        )

    return PrepPlan(
        defense_reduction_threads=reduction_threads,
        replenish_threads=replenish_threads,
        compensating_defense_reduction_threads=compensating_threads,
        total_threads=reduction_threads + replenish_threads + compensating_threads,
        estimated_duration_ms=node.op_durations.defense_reduction_ms,
    )
