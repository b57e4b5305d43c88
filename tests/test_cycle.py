import itertools

import pytest

from batch_planner.config import NodePhase, OpType, PlannerConfig
from batch_planner.cycle import NodeBatchState, WorkerSlot, allocate_cycle, plan_batch_cycle
from batch_planner.delays import LANDING_ORDER
from batch_planner.host import SnapshotHost, SnapshotNode
from batch_planner.report import BatchOp, CyclePlan, PlannedBatch


QUARRY = {
    "node_id": "quarry",
    "min_defense": 10.0,
    "defense": 24.0,
    "max_value": 25_000_000.0,
    "value": 4_000_000.0,
    "op_durations": {"depletion_ms": 6000, "replenish_ms": 19200, "defense_reduction_ms": 24000},
    "yield_per_thread": 0.0015,
    "growth_per_thread": 1.004,
    "success_chance": 0.65,
}

CONFIG = PlannerConfig(max_batches_per_node=2)


def _host(make_node, **harbor_overrides) -> SnapshotHost:  # noqa: ANN001, ANN003
    return SnapshotHost(
        [
            make_node(**harbor_overrides),
            SnapshotNode.model_validate(QUARRY),
            make_node(node_id="ghost"),
        ]
    )


def _states(**harbor) -> dict[str, NodeBatchState]:  # noqa: ANN003
    harbor_state = {"node_id": "harbor", "phase": NodePhase.batch, "score": 3.0, "extraction_fraction": 0.1, **harbor}
    return {
        "harbor": NodeBatchState(**harbor_state),
        "quarry": NodeBatchState(node_id="quarry", phase=NodePhase.prep, score=2.0),
        "ghost": NodeBatchState(node_id="ghost", phase=NodePhase.desync_recovery, score=1.0),
    }


def _plan(host: SnapshotHost, states: dict[str, NodeBatchState], **kwargs) -> CyclePlan:  # noqa: ANN003
    return plan_batch_cycle(host, states, 1.75, CONFIG, batch_ids=itertools.count(7), now_ms=0.0, **kwargs)


def test_cycle_plans_batches_prep_and_aborts(make_node) -> None:
    plan = _plan(_host(make_node), _states())

    assert plan.abort_targets == ["ghost"]
    assert plan.ready_targets == []

    # 14 / 0.05 = 280; log(6.25) / log(1.004) = 459.1 -> 460; 460 * 0.004 / 0.05 = 36.8 -> 37
    assert [op.type for op in plan.prep_ops] == [OpType.defense_reduction, OpType.replenish, OpType.defense_reduction]
    assert [op.tag for op in plan.prep_ops] == ["prep", "prep", "prep-cw"]
    assert [op.threads for op in plan.prep_ops] == [280, 460, 37]
    assert all(op.target == "quarry" and op.delay_ms == 0.0 for op in plan.prep_ops)

    assert len(plan.new_batches) == 2
    first, second = plan.new_batches
    assert first.target == "harbor"
    assert [op.type for op in first.ops] == list(LANDING_ORDER)
    assert [op.threads for op in first.ops] == [27, 2, 11, 1]
    assert {op.tag for op in first.ops} == {"b-7"}
    assert {op.tag for op in second.ops} == {"b-8"}
    for a, b in zip(first.ops, second.ops):
        assert b.delay_ms - a.delay_ms == pytest.approx(800.0)
    assert first.expected_end_ms == pytest.approx(4400.0)
    assert second.expected_end_ms == pytest.approx(5200.0)


def test_nodes_already_prepping_are_skipped(make_node) -> None:
    plan = _plan(_host(make_node), _states(), prepping={"quarry"})
    assert plan.prep_ops == []


def test_full_pipeline_gets_no_new_batches(make_node) -> None:
    plan = _plan(_host(make_node), _states(active_batches=2))
    assert plan.new_batches == []


def test_idle_node_with_value_drop_is_aborted(make_node) -> None:
    plan = _plan(_host(make_node, value=500_000.0), _states())
    assert plan.abort_targets == ["harbor", "ghost"]
    assert plan.new_batches == []


def test_value_drop_with_batches_in_flight_keeps_batching(make_node) -> None:
    plan = _plan(_host(make_node, value=500_000.0), _states(active_batches=1))
    assert "harbor" not in plan.abort_targets
    assert len(plan.new_batches) == 1
    assert plan.new_batches[0].ops[1].delay_ms == pytest.approx(800.0)


def test_blown_defense_with_batches_in_flight_is_aborted(make_node) -> None:
    plan = _plan(_host(make_node, defense=9.0), _states(active_batches=1))
    assert "harbor" in plan.abort_targets


def test_prepped_node_in_prep_phase_is_promoted(make_node) -> None:
    plan = _plan(_host(make_node), _states(phase=NodePhase.prep))
    assert plan.ready_targets == ["harbor"]
    assert len(plan.new_batches) == 2


def _harbor_batch_plan(make_node) -> CyclePlan:  # noqa: ANN001
    states = {"harbor": NodeBatchState(node_id="harbor", phase=NodePhase.batch, score=1.0, extraction_fraction=0.1)}
    config = PlannerConfig(max_batches_per_node=1)
    return plan_batch_cycle(_host(make_node), states, 1.75, config, now_ms=0.0)


def test_allocation_places_whole_batch(make_node) -> None:
    workers = [WorkerSlot(name="w1", available_ram=70.0), WorkerSlot(name="w2", available_ram=7.0)]
    ops = allocate_cycle(_harbor_batch_plan(make_node), workers)

    assert sum(op.threads for op in ops) == 41
    assert [(op.type, op.worker, op.threads) for op in ops] == [
        (OpType.depletion, "w1", 27),
        (OpType.defense_reduction, "w1", 2),
        (OpType.replenish, "w1", 11),
        (OpType.defense_reduction, "w2", 1),
    ]
    assert workers[0].available_ram == 70.0


def test_batch_that_does_not_fit_is_skipped(make_node) -> None:
    ops = allocate_cycle(_harbor_batch_plan(make_node), [WorkerSlot(name="w1", available_ram=70.0)])
    assert ops == []


def _prep_and_batch_plan(with_batch: bool) -> CyclePlan:
    prep = BatchOp(type=OpType.defense_reduction, target="quarry", threads=100, delay_ms=0.0, tag="prep")
    batches = []
    if with_batch:
        ops = [BatchOp(type=t, target="harbor", threads=1, delay_ms=0.0, tag="b-0") for t in LANDING_ORDER]
        batches.append(PlannedBatch(target="harbor", ops=ops, expected_end_ms=0.0))
    return CyclePlan(prep_ops=[prep], new_batches=batches)


def test_prep_is_capped_when_batches_compete() -> None:
    workers = [WorkerSlot(name="w1", available_ram=35.0)]

    ops = allocate_cycle(_prep_and_batch_plan(with_batch=True), workers)
    assert sum(op.threads for op in ops if op.tag == "prep") == 10
    assert sum(op.threads for op in ops if op.tag == "b-0") == 4

    ops = allocate_cycle(_prep_and_batch_plan(with_batch=False), workers)
    assert sum(op.threads for op in ops) == 20


def test_node_state_carries_only_what_planning_reads() -> None:
    assert set(NodeBatchState.model_fields) == {"node_id", "phase", "score", "extraction_fraction", "active_batches"}
    assert set(CyclePlan.model_fields) == {"prep_ops", "new_batches", "abort_targets", "ready_targets"}
