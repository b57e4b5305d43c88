from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .config import PlannerConfig
from .io import load_node_snapshot
from .planner import build_report


def _existing_path(value: str) -> Path:
    path = Path(value)
    if not path.exists():
        raise argparse.ArgumentTypeError(f"File not found: {value}")
    return path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="batch-planner", add_help=True)
    parser.add_argument("--nodes", required=True, type=_existing_path, help="Path to node snapshot (json|yaml)")
    parser.add_argument("--config", type=_existing_path, default=None, help="Path to planner.yaml")
    parser.add_argument(
        "--ram",
        type=float,
        default=None,
        help="RAM per worker thread in GB (default: worker_ram_gb from config)",
    )
    parser.add_argument("--max-targets", type=int, default=None, help="Keep only the N best targets")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write report JSON to this path (default: stdout)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity on stderr",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)

    try:
        config = PlannerConfig.from_yaml(args.config) if args.config is not None else PlannerConfig()
        host = load_node_snapshot(args.nodes)
        report = build_report(
            host,
            host.node_ids,
            per_thread_ram=args.ram,
            config=config,
            max_targets=args.max_targets,
        )
    except Exception as exc:  # noqa: BLE001
        print(f"error: {exc}", file=sys.stderr)
        return 2

    payload = report.model_dump(mode="json")
    text = json.dumps(payload, indent=2, sort_keys=True)
    if args.output is None:
        print(text)
        return 0

    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_text(text + "\n", encoding="utf-8")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
