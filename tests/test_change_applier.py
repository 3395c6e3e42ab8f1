"""Tests for filing plan changes for approval and for manual overrides."""

from __future__ import annotations

import pytest

from tutoring_backend.domain.models import (
    AllocationChangeType,
    ApprovalStatus,
    ChangeType,
    PlanStatus,
)
from tutoring_backend.repository.document_store import Collections, InMemoryDocumentStore
from tutoring_backend.services.change_service import ChangeApplier
from tutoring_backend.services.errors import (
    PlanStateError,
    ResourceNotFoundError,
    ResourceValidationError,
)


def _plan(plan_id: str, changes: list[dict], status: str = "draft") -> dict:
    return {
        "id": plan_id,
        "name": "Optimization Plan - 2026-03-02",
        "description": "test plan",
        "status": status,
        "changes": changes,
        "estimatedImpact": {"workloadReduction": 0, "balanceImprovement": 20, "resourceUtilization": 100},
        "createdBy": "mgr_1",
        "createdAt": "2026-03-02T08:00:00.000Z",
        "updatedAt": "2026-03-02T08:00:00.000Z",
    }


def _group_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore(
        {
            Collections.USERS: [
                {"id": "mgr_1", "name": "Coordinator", "role": "management"},
                {"id": "mgr_2", "name": "Officer", "role": "management"},
                {"id": "tut_9", "name": "Tutor", "role": "tutor"},
            ],
            Collections.CLASSES: [
                {"id": "cls_1", "code": "C01", "tutorId": "tut_9", "maxStudents": 10, "status": "active"},
            ],
            Collections.ENROLLMENTS: [
                {"id": f"enr_{index}", "studentId": f"stu_{index}", "classId": "cls_1", "status": "active"}
                for index in range(1, 4)
            ],
            Collections.OPTIMIZATION_PLANS: [
                _plan(
                    "plan_1",
                    [{"type": "adjust_group_size", "resourceId": "cls_1", "reason": "low fill"}],
                )
            ],
        }
    )


# --- apply_optimization ---

def test_group_size_change_is_translated_and_plan_goes_pending(settings) -> None:
    store = _group_store()
    approval = ChangeApplier(store=store, settings=settings).apply_optimization(
        requester_id="mgr_1",
        plan_id="plan_1",
        selected_changes=["cls_1"],
    )

    [change] = approval.resource_allocation_data.changes
    assert change.type is AllocationChangeType.ADJUST_GROUP_SIZE
    assert change.from_value == {"maxStudents": 10, "currentStudents": 3}
    assert change.to_value == {"maxStudents": 10, "currentStudents": 3}
    assert approval.status is ApprovalStatus.PENDING
    assert approval.target_id == "plan_1"
    assert approval.priority == "medium"
    assert store.find_by_id(Collections.OPTIMIZATION_PLANS, "plan_1")["status"] == PlanStatus.PENDING.value
    assert store.find_by_id(Collections.APPROVALS, approval.id) is not None
    # Filing never mutates the class itself.
    assert store.find_by_id(Collections.CLASSES, "cls_1")["maxStudents"] == 10
    assert set(approval.resource_allocation_data.affected_student_ids) == {"stu_1", "stu_2", "stu_3"}


def test_other_managers_are_notified(settings) -> None:
    store = _group_store()
    approval = ChangeApplier(store=store, settings=settings).apply_optimization(
        requester_id="mgr_1",
        plan_id="plan_1",
        selected_changes=["cls_1"],
    )

    notifications = store.read(Collections.NOTIFICATIONS)
    assert [item["userId"] for item in notifications] == ["mgr_2"]
    assert notifications[0]["type"] == "approval_request"
    assert notifications[0]["link"] == f"/management/approvals/{approval.id}"
    assert notifications[0]["metadata"] == {
        "approvalRequestId": approval.id,
        "type": "resource_allocation",
        "priority": "medium",
        "planId": "plan_1",
    }


def test_zero_matching_changes_creates_no_approval(settings) -> None:
    store = _group_store()
    with pytest.raises(ResourceValidationError):
        ChangeApplier(store=store, settings=settings).apply_optimization(
            requester_id="mgr_1",
            plan_id="plan_1",
            selected_changes=["cls_unknown"],
        )
    assert store.read(Collections.APPROVALS) == []
    assert store.find_by_id(Collections.OPTIMIZATION_PLANS, "plan_1")["status"] == "draft"


@pytest.mark.parametrize(("plan_id", "selected"), [("", ["cls_1"]), ("plan_1", [])])
def test_missing_inputs_are_rejected(settings, plan_id, selected) -> None:
    with pytest.raises(ResourceValidationError):
        ChangeApplier(store=_group_store(), settings=settings).apply_optimization(
            requester_id="mgr_1",
            plan_id=plan_id,
            selected_changes=selected,
        )


def test_unknown_plan_raises_not_found(settings) -> None:
    with pytest.raises(ResourceNotFoundError):
        ChangeApplier(store=_group_store(), settings=settings).apply_optimization(
            requester_id="mgr_1",
            plan_id="plan_missing",
            selected_changes=["cls_1"],
        )


def test_pending_plan_cannot_be_filed_twice(settings) -> None:
    store = _group_store()
    applier = ChangeApplier(store=store, settings=settings)
    applier.apply_optimization(requester_id="mgr_1", plan_id="plan_1", selected_changes=["cls_1"])

    with pytest.raises(PlanStateError):
        applier.apply_optimization(requester_id="mgr_1", plan_id="plan_1", selected_changes=["cls_1"])
    assert len(store.read(Collections.APPROVALS)) == 1


def test_approval_description_falls_back_to_plan_description(settings) -> None:
    store = _group_store()
    approval = ChangeApplier(store=store, settings=settings).apply_optimization(
        requester_id="mgr_1",
        plan_id="plan_1",
        selected_changes=["cls_1"],
        description="   ",
    )
    assert approval.description == "test plan"


def test_unresolvable_changes_are_dropped(settings, demo_store) -> None:
    demo_store.create(
        Collections.OPTIMIZATION_PLANS,
        _plan(
            "plan_mixed",
            [
                {"type": "reallocate_session", "resourceId": "ses_9", "from": "tut_1", "to": "tut_2", "reason": "r"},
                {"type": "reallocate_session", "resourceId": "ses_gone", "from": "tut_1", "to": "tut_2", "reason": "r"},
                {"type": "reallocate_student", "resourceId": "stu_1", "from": "cls_1", "to": "cls_2", "reason": "r"},
                {"type": "modify_schedule", "resourceId": "ses_15", "from": "ses_15", "to": "ses_15", "reason": "r"},
            ],
        ),
    )
    approval = ChangeApplier(store=demo_store, settings=settings).apply_optimization(
        requester_id="mgr_1",
        plan_id="plan_mixed",
        selected_changes=["ses_9", "ses_gone", "stu_1", "ses_15"],
        description="Rebalance the senior tutor",
    )

    data = approval.resource_allocation_data
    assert [(c.type, c.resource_id) for c in data.changes] == [
        (AllocationChangeType.REASSIGN_TUTOR, "ses_9"),
        (AllocationChangeType.ADJUST_SCHEDULE, "ses_15"),
    ]
    reassign, schedule = data.changes
    assert reassign.from_value == "tut_1"
    assert reassign.to_value == "tut_2"
    assert schedule.from_value == schedule.to_value
    assert set(schedule.to_value) == {"startTime", "endTime", "duration"}
    assert {"ses_9", "ses_15"} <= set(data.affected_session_ids)
    assert {"tut_1", "tut_2"} <= set(data.affected_tutor_ids)
    assert approval.description == "Rebalance the senior tutor"
    # Nothing is reassigned until the request is approved.
    assert demo_store.find_by_id(Collections.SESSIONS, "ses_9")["tutorId"] == "tut_1"


def test_only_unapplicable_changes_is_bad_request(settings, demo_store) -> None:
    demo_store.create(
        Collections.OPTIMIZATION_PLANS,
        _plan(
            "plan_student",
            [{"type": "reallocate_student", "resourceId": "stu_1", "from": "cls_1", "to": "cls_2", "reason": "r"}],
        ),
    )
    with pytest.raises(ResourceValidationError):
        ChangeApplier(store=demo_store, settings=settings).apply_optimization(
            requester_id="mgr_1",
            plan_id="plan_student",
            selected_changes=["stu_1"],
        )
    assert demo_store.read(Collections.APPROVALS) == []


# --- manual_override ---

def test_manual_session_reallocation_notifies_target_once(settings, demo_store) -> None:
    change = ChangeApplier(store=demo_store, settings=settings).manual_override(
        type=ChangeType.REALLOCATE_SESSION,
        from_id="tut_1",
        to_id="tut_2",
        resource_id="ses_9",
        reason="rebalance",
    )

    assert change.type is ChangeType.REALLOCATE_SESSION
    assert demo_store.find_by_id(Collections.SESSIONS, "ses_9")["tutorId"] == "tut_2"
    notifications = demo_store.read(Collections.NOTIFICATIONS)
    assert len(notifications) == 1
    assert notifications[0]["userId"] == "tut_2"
    assert notifications[0]["type"] == "system"
    assert notifications[0]["link"] == "/management/resources"
    assert notifications[0]["metadata"]["resourceId"] == "ses_9"


def test_manual_override_leaves_plans_untouched(settings) -> None:
    store = _group_store()
    ChangeApplier(store=store, settings=settings).manual_override(
        type=ChangeType.ADJUST_GROUP_SIZE,
        from_id="cls_1",
        to_id="cls_1",
        resource_id="cls_1",
        reason="grow",
    )
    assert store.find_by_id(Collections.CLASSES, "cls_1")["maxStudents"] == 10
    assert store.find_by_id(Collections.OPTIMIZATION_PLANS, "plan_1")["status"] == "draft"


def test_manual_group_size_grows_full_class(settings, demo_store) -> None:
    ChangeApplier(store=demo_store, settings=settings).manual_override(
        type=ChangeType.ADJUST_GROUP_SIZE,
        from_id="cls_2",
        to_id="cls_2",
        resource_id="cls_2",
        reason="full class",
    )
    assert demo_store.find_by_id(Collections.CLASSES, "cls_2")["maxStudents"] == 6


def test_manual_student_move_updates_first_active_enrollment(settings, demo_store) -> None:
    ChangeApplier(store=demo_store, settings=settings).manual_override(
        type=ChangeType.REALLOCATE_STUDENT,
        from_id="cls_1",
        to_id="cls_2",
        resource_id="stu_1",
        reason="schedule clash",
    )
    enrollment = demo_store.find_by_id(Collections.ENROLLMENTS, "enr_1")
    assert enrollment["classId"] == "cls_2"
    assert enrollment["updatedAt"]


def test_manual_schedule_change_is_a_logged_noop(settings, demo_store) -> None:
    before = demo_store.find_by_id(Collections.SESSIONS, "ses_15")
    ChangeApplier(store=demo_store, settings=settings).manual_override(
        type=ChangeType.MODIFY_SCHEDULE,
        from_id="ses_15",
        to_id="tut_1",
        resource_id="ses_15",
        reason="overlap",
    )
    assert demo_store.find_by_id(Collections.SESSIONS, "ses_15") == before
    assert len(demo_store.read(Collections.NOTIFICATIONS)) == 1


@pytest.mark.parametrize(
    ("change_type", "resource_id", "to_id"),
    [
        (ChangeType.REALLOCATE_SESSION, "ses_missing", "tut_2"),
        (ChangeType.REALLOCATE_SESSION, "ses_9", "tut_missing"),
        (ChangeType.REALLOCATE_STUDENT, "stu_12", "cls_1"),
        (ChangeType.REALLOCATE_STUDENT, "stu_1", "cls_missing"),
        (ChangeType.ADJUST_GROUP_SIZE, "cls_missing", "cls_missing"),
    ],
)
def test_manual_override_missing_resources(settings, demo_store, change_type, resource_id, to_id) -> None:
    with pytest.raises(ResourceNotFoundError):
        ChangeApplier(store=demo_store, settings=settings).manual_override(
            type=change_type,
            from_id="",
            to_id=to_id,
            resource_id=resource_id,
            reason="test",
        )
    assert demo_store.read(Collections.NOTIFICATIONS) == []
