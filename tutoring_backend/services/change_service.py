"""Turns plan changes into approval requests and applies manual overrides."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from threading import RLock
from typing import Any, Iterable, Optional

from tutoring_backend.domain.models import (
    AllocationChange,
    AllocationChangeType,
    ApprovalRequest,
    ApprovalStatus,
    ApprovalType,
    ChangeType,
    EnrollmentStatus,
    NotificationType,
    OptimizationChange,
    OptimizationPlan,
    PlanStatus,
    ResourceAllocationData,
    UserRole,
)
from tutoring_backend.repository.document_store import Collections, DocumentStore
from tutoring_backend.services.approval_service import close_lapsed_request, deadline_passed
from tutoring_backend.services.errors import (
    PlanStateError,
    ResourceNotFoundError,
    ResourceValidationError,
)
from tutoring_backend.services.notification_service import NotificationDispatcher
from tutoring_backend.services.workload_service import active_enrollments
from tutoring_backend.utils.config import Settings, get_settings
from tutoring_backend.utils.identifiers import generate_id, now_iso, to_iso, utc_now
from tutoring_backend.utils.logger import get_logger


logger = get_logger(__name__)

FILEABLE_PLAN_STATUSES = frozenset({PlanStatus.DRAFT, PlanStatus.REJECTED})
APPROVAL_PRIORITY = "medium"


@dataclass
class _AffectedIds:
    tutors: dict[str, None] = field(default_factory=dict)
    sessions: dict[str, None] = field(default_factory=dict)
    students: dict[str, None] = field(default_factory=dict)

    def add(
        self,
        *,
        tutors: Iterable[Any] = (),
        sessions: Iterable[Any] = (),
        students: Iterable[Any] = (),
    ) -> None:
        for bucket, values in (
            (self.tutors, tutors),
            (self.sessions, sessions),
            (self.students, students),
        ):
            for value in values:
                if value:
                    bucket[str(value)] = None


def _schedule_of(session: dict[str, Any]) -> dict[str, Any]:
    return {
        "startTime": session.get("startTime"),
        "endTime": session.get("endTime"),
        "duration": session.get("duration"),
    }


class ChangeApplier:
    """Files selected plan changes for approval and applies manual overrides.

    Filing never touches sessions, classes or enrollments; it only records an
    approval request, moves the plan to ``pending`` and notifies the other
    managers. Manual overrides mutate the store immediately.
    """

    def __init__(
        self,
        store: DocumentStore,
        notifier: Optional[NotificationDispatcher] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._store = store
        self._notifier = notifier or NotificationDispatcher(store)
        self._lock = RLock()

    def apply_optimization(
        self,
        *,
        requester_id: str,
        plan_id: str,
        selected_changes: list[str],
        description: Optional[str] = None,
    ) -> ApprovalRequest:
        if not plan_id or not plan_id.strip():
            raise ResourceValidationError("planId is required")
        if not selected_changes:
            raise ResourceValidationError("selectedChanges must contain at least one resource id")

        with self._lock:
            plan_document = self._store.find_by_id(Collections.OPTIMIZATION_PLANS, plan_id)
            if plan_document is None:
                raise ResourceNotFoundError(f"Optimization plan not found: {plan_id}")
            plan = OptimizationPlan.from_document(plan_document)
            if plan.status is PlanStatus.PENDING:
                self._close_lapsed_requests(plan.id)
            elif plan.status not in FILEABLE_PLAN_STATUSES:
                raise PlanStateError(
                    f"Optimization plan {plan_id} is {plan.status.value} and cannot be submitted"
                )

            wanted = set(selected_changes)
            chosen = [change for change in plan.changes if change.resource_id in wanted]
            if not chosen:
                raise ResourceValidationError("None of the selected changes belong to this plan")

            affected = _AffectedIds()
            translated: list[AllocationChange] = []
            for change in chosen:
                allocation_change = self._translate(change, affected)
                if allocation_change is not None:
                    translated.append(allocation_change)
            if not translated:
                raise ResourceValidationError("None of the selected changes can be applied")

            approval = self._file_approval(
                requester_id=requester_id,
                plan=plan,
                changes=translated,
                affected=affected,
                description=description,
            )
            self._store.update(
                Collections.OPTIMIZATION_PLANS,
                plan.id,
                {"status": PlanStatus.PENDING.value, "updatedAt": now_iso()},
            )

        logger.info(
            "Optimization submitted for approval | plan_id=%s | approval_id=%s | changes=%s | dropped=%s",
            plan.id,
            approval.id,
            len(translated),
            len(chosen) - len(translated),
        )
        self._notify_reviewers(requester_id=requester_id, approval=approval, plan=plan)
        return approval

    def manual_override(
        self,
        *,
        type: ChangeType,
        from_id: str,
        to_id: str,
        resource_id: str,
        reason: str,
    ) -> OptimizationChange:
        if not resource_id or not resource_id.strip():
            raise ResourceValidationError("resourceId is required")
        if not to_id or not to_id.strip():
            raise ResourceValidationError("to is required")

        with self._lock:
            if type is ChangeType.REALLOCATE_SESSION:
                self._override_session_tutor(resource_id, to_id)
            elif type is ChangeType.REALLOCATE_STUDENT:
                self._override_student_class(resource_id, to_id)
            elif type is ChangeType.ADJUST_GROUP_SIZE:
                self._override_group_size(resource_id)
            else:
                logger.warning(
                    "Manual schedule change is not implemented | resource_id=%s",
                    resource_id,
                )

        change = OptimizationChange(
            type=type,
            resource_id=resource_id,
            from_id=from_id,
            to_id=to_id,
            reason=reason,
        )
        self._notifier.notify(
            user_id=to_id,
            type=NotificationType.SYSTEM,
            title="Resource allocation updated",
            message=f"A manual {type.value} change was applied to {resource_id}: {reason}",
            link="/management/resources",
            metadata={
                "type": type.value,
                "from": from_id,
                "to": to_id,
                "resourceId": resource_id,
                "reason": reason,
            },
        )
        logger.info(
            "Manual override applied | type=%s | resource_id=%s | from=%s | to=%s",
            type.value,
            resource_id,
            from_id,
            to_id,
        )
        return change

    def _close_lapsed_requests(self, plan_id: str) -> None:
        open_requests = [
            ApprovalRequest.from_document(document)
            for document in self._store.find(
                Collections.APPROVALS,
                lambda a: a.get("targetId") == plan_id
                and a.get("type") == ApprovalType.RESOURCE_ALLOCATION.value
                and a.get("status") == ApprovalStatus.PENDING.value,
            )
        ]
        if any(not deadline_passed(request.deadline) for request in open_requests):
            raise PlanStateError(
                f"Optimization plan {plan_id} is pending and cannot be submitted"
            )
        for request in open_requests:
            close_lapsed_request(self._store, request)

    def _translate(
        self,
        change: OptimizationChange,
        affected: _AffectedIds,
    ) -> Optional[AllocationChange]:
        if change.type is ChangeType.REALLOCATE_SESSION:
            session = self._store.find_by_id(Collections.SESSIONS, change.resource_id)
            if session is None:
                logger.warning("Dropping change for missing session | session_id=%s", change.resource_id)
                return None
            current_tutor = session.get("tutorId")
            affected.add(
                tutors=(current_tutor, change.to_id),
                sessions=(change.resource_id,),
                students=session.get("studentIds") or (),
            )
            return AllocationChange(
                type=AllocationChangeType.REASSIGN_TUTOR,
                resource_id=change.resource_id,
                from_value=current_tutor,
                to_value=change.to_id,
                reason=change.reason,
            )

        if change.type is ChangeType.ADJUST_GROUP_SIZE:
            class_item = self._store.find_by_id(Collections.CLASSES, change.resource_id)
            if class_item is None:
                logger.warning("Dropping change for missing class | class_id=%s", change.resource_id)
                return None
            try:
                max_students = int(class_item["maxStudents"])
            except (KeyError, TypeError, ValueError):
                logger.warning("Dropping change for class without capacity | class_id=%s", change.resource_id)
                return None
            enrollments = active_enrollments(self._store, [change.resource_id])
            current = len(enrollments)
            affected.add(
                tutors=(class_item.get("tutorId"),),
                students=(item.get("studentId") for item in enrollments),
            )
            return AllocationChange(
                type=AllocationChangeType.ADJUST_GROUP_SIZE,
                resource_id=change.resource_id,
                from_value={"maxStudents": max_students, "currentStudents": current},
                to_value={
                    "maxStudents": max(current + self._settings.group_size_buffer, max_students),
                    "currentStudents": current,
                },
                reason=change.reason,
            )

        if change.type is ChangeType.MODIFY_SCHEDULE:
            session = self._store.find_by_id(Collections.SESSIONS, change.resource_id)
            if session is None:
                logger.warning("Dropping change for missing session | session_id=%s", change.resource_id)
                return None
            affected.add(
                tutors=(session.get("tutorId"),),
                sessions=(change.resource_id,),
                students=session.get("studentIds") or (),
            )
            # No new time is proposed yet; reviewers reschedule by hand.
            return AllocationChange(
                type=AllocationChangeType.ADJUST_SCHEDULE,
                resource_id=change.resource_id,
                from_value=_schedule_of(session),
                to_value=_schedule_of(session),
                reason=change.reason,
            )

        logger.warning(
            "Dropping change without an approval form | type=%s | resource_id=%s",
            change.type.value,
            change.resource_id,
        )
        return None

    def _file_approval(
        self,
        *,
        requester_id: str,
        plan: OptimizationPlan,
        changes: list[AllocationChange],
        affected: _AffectedIds,
        description: Optional[str],
    ) -> ApprovalRequest:
        now = utc_now()
        timestamp = to_iso(now)
        approval = ApprovalRequest(
            id=generate_id("approval"),
            type=ApprovalType.RESOURCE_ALLOCATION,
            requester_id=requester_id,
            target_id=plan.id,
            title=f"Resource allocation: {plan.name}",
            description=(
                (description or "").strip()
                or plan.description.strip()
                or f"Apply {len(changes)} changes from {plan.name}"
            ),
            status=ApprovalStatus.PENDING,
            priority=APPROVAL_PRIORITY,
            deadline=to_iso(now + timedelta(hours=self._settings.approval_deadline_hours)),
            resource_allocation_data=_allocation_data(plan.id, changes, affected),
            created_at=timestamp,
            updated_at=timestamp,
        )
        self._store.create(Collections.APPROVALS, approval.to_document())
        return approval

    def _notify_reviewers(
        self,
        *,
        requester_id: str,
        approval: ApprovalRequest,
        plan: OptimizationPlan,
    ) -> None:
        requester = self._store.find_by_id(Collections.USERS, requester_id) or {}
        requester_name = requester.get("name") or requester_id
        change_count = len(approval.resource_allocation_data.changes)
        self._notifier.notify_many(
            self._notifier.management_user_ids(exclude=requester_id),
            type=NotificationType.APPROVAL_REQUEST,
            title="New resource allocation request",
            message=f"{requester_name} requested approval for {change_count} changes from {plan.name}",
            link=f"/management/approvals/{approval.id}",
            metadata={
                "approvalRequestId": approval.id,
                "type": approval.type.value,
                "priority": approval.priority,
                "planId": plan.id,
            },
        )

    def _override_session_tutor(self, session_id: str, tutor_id: str) -> None:
        if self._store.find_by_id(Collections.SESSIONS, session_id) is None:
            raise ResourceNotFoundError(f"Session not found: {session_id}")
        tutor = self._store.find_by_id(Collections.USERS, tutor_id)
        if tutor is None or tutor.get("role") != UserRole.TUTOR.value:
            raise ResourceNotFoundError(f"Tutor not found: {tutor_id}")
        self._store.update(
            Collections.SESSIONS,
            session_id,
            {"tutorId": tutor_id, "updatedAt": now_iso()},
        )

    def _override_student_class(self, student_id: str, class_id: str) -> None:
        enrollments = self._store.find(
            Collections.ENROLLMENTS,
            lambda e: e.get("studentId") == student_id and e.get("status") == EnrollmentStatus.ACTIVE.value,
        )
        if not enrollments:
            raise ResourceNotFoundError(f"No active enrollment for student: {student_id}")
        if self._store.find_by_id(Collections.CLASSES, class_id) is None:
            raise ResourceNotFoundError(f"Class not found: {class_id}")
        self._store.update(
            Collections.ENROLLMENTS,
            str(enrollments[0]["id"]),
            {"classId": class_id, "updatedAt": now_iso()},
        )

    def _override_group_size(self, class_id: str) -> None:
        class_item = self._store.find_by_id(Collections.CLASSES, class_id)
        if class_item is None:
            raise ResourceNotFoundError(f"Class not found: {class_id}")
        try:
            max_students = int(class_item.get("maxStudents") or 0)
        except (TypeError, ValueError) as exc:
            raise ResourceValidationError(f"Class {class_id} has an invalid capacity") from exc
        current = len(active_enrollments(self._store, [class_id]))
        self._store.update(
            Collections.CLASSES,
            class_id,
            {
                "maxStudents": max(current + self._settings.group_size_buffer, max_students),
                "updatedAt": now_iso(),
            },
        )


def _allocation_data(
    plan_id: str,
    changes: list[AllocationChange],
    affected: _AffectedIds,
) -> ResourceAllocationData:
    return ResourceAllocationData(
        optimization_plan_id=plan_id,
        changes=tuple(changes),
        affected_tutor_ids=tuple(affected.tutors),
        affected_session_ids=tuple(affected.sessions),
        affected_student_ids=tuple(affected.students),
    )
