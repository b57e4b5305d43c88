from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from .host import SnapshotHost, SnapshotNode
from .income import IncomeTracker


class NodeSnapshot(BaseModel):
    formulas_available: bool = True
    nodes: list[SnapshotNode] = Field(default_factory=list)


def _read_structured(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(str(path))

    suffix = p.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        return yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if suffix == ".json":
        return json.loads(p.read_text(encoding="utf-8"))
    raise ValueError(f"Unsupported snapshot format: {p.suffix} (expected .json/.yaml/.yml)")


def load_node_snapshot(path: str | Path) -> SnapshotHost:
    raw = _read_structured(path)
    try:
        snapshot = NodeSnapshot.model_validate(raw)
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"Invalid node snapshot: {path}") from exc
    return SnapshotHost(snapshot.nodes, formulas_available=snapshot.formulas_available)


def save_income_samples(path: str | Path, tracker: IncomeTracker) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(tracker.to_json()) + "\n", encoding="utf-8")


def load_income_samples(path: str | Path, tracker: IncomeTracker) -> None:
    p = Path(path)
    if not p.exists():
        return
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
        tracker.load_samples(raw)
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"Invalid income samples: {p}") from exc
