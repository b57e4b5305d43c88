from typing import Callable

import pytest

from batch_planner.host import SnapshotNode


HARBOR = {
    "node_id": "harbor",
    "min_defense": 5.0,
    "defense": 5.0,
    "max_value": 1_000_000.0,
    "value": 1_000_000.0,
    "op_durations": {"depletion_ms": 1000, "replenish_ms": 3200, "defense_reduction_ms": 4000},
    "yield_per_thread": 0.004,
    "growth_per_thread": 1.01,
    "success_chance": 0.8,
}


@pytest.fixture
def make_node() -> Callable[..., SnapshotNode]:
    def _make(**overrides) -> SnapshotNode:  # noqa: ANN003
        return SnapshotNode.model_validate({**HARBOR, **overrides})

    return _make
