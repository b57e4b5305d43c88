from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from .config import NodePhase, PlannerConfig
from .cycle import NodeBatchState, plan_batch_cycle
from .host import NodeHost
from .prep import calculate_prep_plan, is_node_prepped
from .report import PlanReport, PrepPlan
from .scoring import rank_targets


def build_report(
    host: NodeHost,
    node_ids: Iterable[str],
    per_thread_ram: float | None = None,
    config: PlannerConfig | None = None,
    max_targets: int | None = None,
) -> PlanReport:
    config = config or PlannerConfig()
    if per_thread_ram is None:
        per_thread_ram = config.worker_ram_gb

    targets = rank_targets(host, node_ids, per_thread_ram, config, max_targets=max_targets)

    states: dict[str, NodeBatchState] = {}
    prep: dict[str, PrepPlan] = {}
    for target in targets:
        node = host.node_state(target.node_id)
        prepped = is_node_prepped(node, config)
        if not prepped:
            prep[target.node_id] = calculate_prep_plan(host, node, config)
        states[target.node_id] = NodeBatchState(
            node_id=target.node_id,
            phase=NodePhase.batch if prepped else NodePhase.prep,
            score=target.score,
            extraction_fraction=target.extraction_fraction,
        )

    cycle = plan_batch_cycle(host, states, per_thread_ram, config)

    return PlanReport(
        generated_at=datetime.now(timezone.utc).isoformat(),
        per_thread_ram_gb=per_thread_ram,
        targets=targets,
        prep=prep,
        cycle=cycle,
        notes=[
            "Planning only: no operation is launched and no worker RAM is reserved.",
            f"Extraction fraction swept {config.sweep.start:g}..{config.sweep.stop:g} "
            f"in steps of {config.sweep.step:g}.",
        ],
    )
