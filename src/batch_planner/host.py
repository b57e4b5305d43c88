from __future__ import annotations

from math import log
from typing import Mapping, Protocol

from pydantic import Field

from .config import NodeState


class YieldFormulas(Protocol):
    def depletion_fraction(self, node: NodeState) -> float: ...

    def replenish_threads(self, node: NodeState, target_value: float) -> float: ...

    def success_chance(self, node: NodeState) -> float: ...


class NodeHost(Protocol):
    def node_state(self, node_id: str) -> NodeState: ...

    def formulas(self) -> YieldFormulas | None: ...

    def depletion_fraction(self, node_id: str) -> float: ...

    def growth_threads(self, node_id: str, multiplier: float) -> float: ...

    def success_chance(self, node_id: str) -> float: ...


class SnapshotNode(NodeState):
    # Fraction of max value removed by one depletion thread at zero defense.
    yield_per_thread: float = Field(0.002, ge=0.0)
    # Value multiplier applied by one replenish thread.
    growth_per_thread: float = Field(1.0025, gt=1.0)
    success_chance: float = Field(1.0, ge=0.0, le=1.0)


def _defense_scaled_yield(node: SnapshotNode, defense: float) -> float:
    return node.yield_per_thread * max(0.0, (100.0 - defense) / 100.0)


def _threads_for_growth(growth_per_thread: float, multiplier: float) -> float:
    if multiplier <= 1.0:
        return 0.0
    return log(multiplier) / log(growth_per_thread)


class SnapshotFormulas:
    def __init__(self, nodes: Mapping[str, SnapshotNode]) -> None:
        self._nodes = nodes

    def depletion_fraction(self, node: NodeState) -> float:
        return _defense_scaled_yield(self._nodes[node.node_id], node.defense)

    def replenish_threads(self, node: NodeState, target_value: float) -> float:
        multiplier = target_value / max(node.value, 1.0)
        return _threads_for_growth(self._nodes[node.node_id].growth_per_thread, multiplier)

    def success_chance(self, node: NodeState) -> float:
        return self._nodes[node.node_id].success_chance


class SnapshotHost:
    """Answers every query from a fixed set of node snapshots."""

    def __init__(self, nodes: list[SnapshotNode], formulas_available: bool = True) -> None:
        self._nodes = {n.node_id: n for n in nodes}
        self._formulas = SnapshotFormulas(self._nodes) if formulas_available else None

    @property
    def node_ids(self) -> list[str]:
        return list(self._nodes)

    def node_state(self, node_id: str) -> NodeState:
        return self._nodes[node_id]

    def formulas(self) -> YieldFormulas | None:
        return self._formulas

    def depletion_fraction(self, node_id: str) -> float:
        node = self._nodes[node_id]
        return _defense_scaled_yield(node, node.defense)

    def growth_threads(self, node_id: str, multiplier: float) -> float:
        return _threads_for_growth(self._nodes[node_id].growth_per_thread, multiplier)

    def success_chance(self, node_id: str) -> float:
        return self._nodes[node_id].success_chance
