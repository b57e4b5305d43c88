from __future__ import annotations

from .config import OpDurations, OpType, PlannerConfig
from .report import BatchDelays


LANDING_ORDER = (OpType.depletion, OpType.defense_reduction, OpType.replenish, OpType.defense_reduction)


def calculate_batch_delays(
    durations: OpDurations,
    batch_index: int,
    config: PlannerConfig | None = None,
) -> BatchDelays:
    config = config or PlannerConfig()
    spacer = config.batch_spacer_ms
    offset = max(batch_index, 0) * config.landing_window_ms
    reduction = durations.defense_reduction_ms

    # Lands at reduction - spacer, reduction, reduction + spacer, reduction + 2 * spacer.
    depletion_delay = reduction - durations.depletion_ms - spacer + offset
    reduction1_delay = offset
    replenish_delay = reduction - durations.replenish_ms + spacer + offset
    reduction2_delay = spacer * 2 + offset

    return BatchDelays(
        depletion_delay_ms=max(0.0, depletion_delay),
        defense_reduction1_delay_ms=max(0.0, reduction1_delay),
        replenish_delay_ms=max(0.0, replenish_delay),
        defense_reduction2_delay_ms=max(0.0, reduction2_delay),
    )


def landing_times(delays: BatchDelays, durations: OpDurations) -> list[float]:
    return [
        delay + durations.for_op(op)
        for op, delay in zip(LANDING_ORDER, delays.in_landing_order())
    ]
