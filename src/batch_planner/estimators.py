from __future__ import annotations

from abc import ABC, abstractmethod
from math import ceil

from .config import NodeState
from .host import NodeHost, YieldFormulas


def ceil_count(x: float) -> int:
    # Round off float noise first so 200.00000000000003 stays 200.
    if x <= 0:
        return 0
    return int(ceil(round(x, 9)))


class ThreadEstimator(ABC):
    def __init__(self, host: NodeHost, node: NodeState) -> None:
        self.host = host
        self.node = node

    @abstractmethod
    def yield_per_thread(self) -> float:
        raise NotImplementedError

    @abstractmethod
    def replenish_threads(self, fraction: float) -> int:
        raise NotImplementedError

    @abstractmethod
    def success_chance(self) -> float:
        raise NotImplementedError

    def depletion_threads(self, fraction: float) -> int:
        per_thread = self.yield_per_thread()
        if per_thread <= 0:
            return 1
        return max(1, ceil_count(fraction / per_thread))


class PreciseEstimator(ThreadEstimator):
    """Evaluates the yield formulas against the node's conditioned baseline."""

    def __init__(self, host: NodeHost, node: NodeState, formulas: YieldFormulas) -> None:
        super().__init__(host, node)
        self.formulas = formulas
        self.baseline = node.conditioned()
        self._yield: float | None = None

    def yield_per_thread(self) -> float:
        if self._yield is None:
            self._yield = max(self.formulas.depletion_fraction(self.baseline), 0.0)
        return self._yield

    def replenish_threads(self, fraction: float) -> int:
        max_value = self.baseline.max_value
        depleted_value = max(max_value * (1 - min(fraction, 1.0)), 0.0)
        if depleted_value > 0:
            depleted = self.baseline.model_copy(update={"value": depleted_value})
            threads = self.formulas.replenish_threads(depleted, max_value)
        else:
            threads = self.host.growth_threads(self.node.node_id, max_value / max(depleted_value, 1.0))
        return max(1, ceil_count(threads))

    def success_chance(self) -> float:
        return self.formulas.success_chance(self.baseline)


class CoarseEstimator(ThreadEstimator):
    """Linear estimates from the host's per-node queries at the node's current state."""

    def yield_per_thread(self) -> float:
        return max(self.host.depletion_fraction(self.node.node_id), 0.0)

    def replenish_threads(self, fraction: float) -> int:
        multiplier = 1 / (1 - min(fraction, 0.99))
        return max(1, ceil_count(self.host.growth_threads(self.node.node_id, multiplier)))

    def success_chance(self) -> float:
        return self.host.success_chance(self.node.node_id)


def select_estimator(host: NodeHost, node: NodeState) -> ThreadEstimator:
    formulas = host.formulas()
    if formulas is None:
        return CoarseEstimator(host, node)
    return PreciseEstimator(host, node, formulas)
