from __future__ import annotations

import bisect
import logging
import time
from collections import deque
from typing import Any, Callable, Iterable, Mapping

from pydantic import BaseModel


logger = logging.getLogger(__name__)


class IncomeSample(BaseModel):
    time: float  # epoch milliseconds
    amount: float


def _now_ms() -> float:
    return time.time() * 1000


class IncomeTracker:
    """Trailing average of realized gains over a rolling time window."""

    def __init__(self, window_seconds: float = 60.0, clock: Callable[[], float] | None = None) -> None:
        self._window_ms = window_seconds * 1000
        self._clock = clock or _now_ms
        self._samples: deque[IncomeSample] = deque()

    def __len__(self) -> int:
        return len(self._samples)

    def record(self, amount: float) -> None:
        now = self._clock()
        # Sorted by time; the clock may step backwards.
        bisect.insort(self._samples, IncomeSample(time=now, amount=amount), key=lambda s: s.time)
        self._prune(now)

    def income_per_sec(self) -> float:
        now = self._clock()
        self._prune(now)
        if not self._samples:
            return 0.0
        total = sum(s.amount for s in self._samples)
        elapsed_ms = max(now - self._samples[0].time, 1000.0)
        return total / (elapsed_ms / 1000)

    def to_json(self) -> list[dict[str, float]]:
        self._prune(self._clock())
        return [s.model_dump() for s in self._samples]

    def load_samples(self, samples: Iterable[IncomeSample | Mapping[str, Any]]) -> None:
        cutoff = self._clock() - self._window_ms
        parsed = [s if isinstance(s, IncomeSample) else IncomeSample.model_validate(s) for s in samples]
        kept = sorted((s for s in parsed if s.time >= cutoff), key=lambda s: s.time)
        if len(kept) < len(parsed):
            logger.debug("dropped %d income samples older than the window", len(parsed) - len(kept))
        self._samples = deque(kept)

    def _prune(self, now: float) -> None:
        cutoff = now - self._window_ms
        while self._samples and self._samples[0].time < cutoff:
            self._samples.popleft()
