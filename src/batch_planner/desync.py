from __future__ import annotations

from .config import NodeState, PlannerConfig


def detect_desync(
    node: NodeState,
    config: PlannerConfig | None = None,
    *,
    depletion_expected: bool = False,
) -> bool:
    config = config or PlannerConfig()
    tol = config.tolerances

    if node.defense_gap > tol.prep_defense * tol.desync_defense_factor:
        return True

    if not depletion_expected and node.value < node.max_value * tol.desync_value:
        return True

    return False
