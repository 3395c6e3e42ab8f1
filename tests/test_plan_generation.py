from __future__ import annotations

import pytest

pytest.importorskip("ortools")

from tutoring_backend.domain.constraints import PlanConstraints
from tutoring_backend.domain.models import ChangeType, InefficiencyType, PlanStatus
from tutoring_backend.repository.document_store import Collections
from tutoring_backend.services.plan_service import (
    OptimizationPlanGenerator,
    PlanValidationError,
    resolve_focus_areas,
)


def _changes(plan) -> list[tuple[str, str, str, str]]:
    return [(c.type.value, c.resource_id, c.from_id, c.to_id) for c in plan.changes]


def test_demo_plan_contains_one_change_per_actionable_finding(settings, demo_store) -> None:
    plan = OptimizationPlanGenerator(store=demo_store, settings=settings).generate_optimization_plan()

    assert plan.status is PlanStatus.DRAFT
    assert plan.name.startswith("Optimization Plan - ")
    assert "5 changes" in plan.description
    assert _changes(plan) == [
        ("reallocate_session", "ses_2", "tut_1", "tut_2"),
        ("adjust_group_size", "cls_1", "cls_1", "cls_1"),
        ("adjust_group_size", "cls_2", "cls_2", "cls_2"),
        ("modify_schedule", "ses_15", "ses_15", "ses_15"),
        ("modify_schedule", "ses_17", "ses_17", "ses_17"),
    ]
    impact = plan.estimated_impact
    assert impact.workload_reduction == 15.0
    assert impact.balance_improvement == 40.0
    assert impact.resource_utilization == 80.0


def test_plan_generation_is_deterministic(settings, demo_store) -> None:
    generator = OptimizationPlanGenerator(store=demo_store, settings=settings)
    first = generator.generate_optimization_plan(focus_areas=["workload", "group_balance"])
    second = generator.generate_optimization_plan(focus_areas=["workload", "group_balance"])

    assert [c.to_document() for c in first.changes] == [c.to_document() for c in second.changes]
    assert first.id != second.id


def test_every_change_references_existing_resource(settings, demo_store) -> None:
    plan = OptimizationPlanGenerator(store=demo_store, settings=settings).generate_optimization_plan()
    for change in plan.changes:
        collection = Collections.CLASSES if change.type is ChangeType.ADJUST_GROUP_SIZE else Collections.SESSIONS
        assert demo_store.find_by_id(collection, change.resource_id) is not None


def test_focus_area_aliases_restrict_changes(settings, demo_store) -> None:
    generator = OptimizationPlanGenerator(store=demo_store, settings=settings)

    workload_plan = generator.generate_optimization_plan(focus_areas=["workload"])
    assert [c.type for c in workload_plan.changes] == [ChangeType.REALLOCATE_SESSION]
    assert workload_plan.estimated_impact.balance_improvement == 0.0

    conflict_plan = generator.generate_optimization_plan(focus_areas=["resource_conflict"])
    assert {c.type for c in conflict_plan.changes} == {ChangeType.MODIFY_SCHEDULE}

    utilization_plan = generator.generate_optimization_plan(focus_areas=["utilization"])
    assert utilization_plan.changes == ()


def test_unknown_focus_area_is_rejected() -> None:
    with pytest.raises(PlanValidationError, match="Unknown focus area"):
        resolve_focus_areas(["happiness"])


def test_resolve_focus_areas_accepts_types_and_aliases() -> None:
    assert resolve_focus_areas(None) is None
    assert resolve_focus_areas([]) is None
    assert resolve_focus_areas(["group_balance", "overloaded_tutor"]) == frozenset(
        {InefficiencyType.UNBALANCED_GROUP, InefficiencyType.OVERLOADED_TUTOR}
    )


def test_max_changes_truncates_after_deduplication(settings, demo_store) -> None:
    plan = OptimizationPlanGenerator(store=demo_store, settings=settings).generate_optimization_plan(
        constraints=PlanConstraints(max_changes=2),
    )
    assert [c.resource_id for c in plan.changes] == ["ses_2", "cls_1"]


def test_excluded_receiver_leaves_no_reallocation(settings, demo_store) -> None:
    plan = OptimizationPlanGenerator(store=demo_store, settings=settings).generate_optimization_plan(
        focus_areas=["workload"],
        constraints=PlanConstraints(excluded_tutor_ids=frozenset({"tut_2"})),
    )
    # tut_3 only teaches Chemistry, so nobody can take the session.
    assert plan.changes == ()


def test_excluded_source_is_not_reallocated(settings, demo_store) -> None:
    plan = OptimizationPlanGenerator(store=demo_store, settings=settings).generate_optimization_plan(
        focus_areas=["workload"],
        constraints=PlanConstraints(excluded_tutor_ids=frozenset({"tut_1"})),
    )
    assert plan.changes == ()


def test_max_workload_per_tutor_caps_receiving_tutor(settings, demo_store) -> None:
    plan = OptimizationPlanGenerator(store=demo_store, settings=settings).generate_optimization_plan(
        focus_areas=["workload"],
        constraints=PlanConstraints(max_workload_per_tutor=2.5),
    )
    # tut_2 holds 1h, so only the 60-minute session still fits.
    assert _changes(plan) == [("reallocate_session", "ses_15", "tut_1", "tut_2")]


def test_max_group_size_skips_oversized_proposals(settings, demo_store) -> None:
    plan = OptimizationPlanGenerator(store=demo_store, settings=settings).generate_optimization_plan(
        focus_areas=["group_balance"],
        constraints=PlanConstraints(max_group_size=20),
    )
    # cls_1 keeps its capacity of 30, which already exceeds the limit.
    assert [c.resource_id for c in plan.changes] == ["cls_2"]


def test_invalid_constraints_raise_validation_error(settings, demo_store) -> None:
    generator = OptimizationPlanGenerator(store=demo_store, settings=settings)
    with pytest.raises(PlanValidationError, match="maxChanges"):
        generator.generate_optimization_plan(constraints=PlanConstraints(max_changes=0))
