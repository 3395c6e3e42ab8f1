"""Review of resource-allocation approval requests."""

from __future__ import annotations

from threading import RLock
from typing import Any, Optional

from tutoring_backend.domain.models import (
    AllocationChange,
    AllocationChangeType,
    ApprovalRequest,
    ApprovalStatus,
    ApprovalType,
    NotificationType,
    PlanStatus,
)
from tutoring_backend.repository.document_store import Collections, DocumentStore
from tutoring_backend.services.errors import (
    PlanStateError,
    ResourceNotFoundError,
    ResourceValidationError,
)
from tutoring_backend.services.notification_service import NotificationDispatcher
from tutoring_backend.utils.config import Settings, get_settings
from tutoring_backend.utils.identifiers import now_iso, parse_iso, utc_now
from tutoring_backend.utils.logger import get_logger


logger = get_logger(__name__)

MIN_REJECTION_NOTES_LENGTH = 10
LAPSED_REVIEW_NOTES = "Closed automatically after the review deadline passed"


def deadline_passed(deadline: Optional[str]) -> bool:
    try:
        return parse_iso(deadline) < utc_now()
    except (TypeError, ValueError):
        return False


def close_lapsed_request(store: DocumentStore, approval: ApprovalRequest) -> None:
    """Reject a request whose deadline lapsed and make its plan fileable again."""
    timestamp = now_iso()
    store.update(
        Collections.APPROVALS,
        approval.id,
        {
            "status": ApprovalStatus.REJECTED.value,
            "reviewNotes": LAPSED_REVIEW_NOTES,
            "updatedAt": timestamp,
        },
    )
    plan = store.find_by_id(Collections.OPTIMIZATION_PLANS, approval.target_id)
    if plan is not None and plan.get("status") == PlanStatus.PENDING.value:
        store.update(
            Collections.OPTIMIZATION_PLANS,
            approval.target_id,
            {"status": PlanStatus.REJECTED.value, "updatedAt": timestamp},
        )
    logger.info(
        "Lapsed approval request closed | approval_id=%s | plan_id=%s",
        approval.id,
        approval.target_id,
    )


class ApprovalExecutor:
    """Approves or rejects pending resource-allocation requests."""

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

    def approve(
        self,
        *,
        reviewer_id: str,
        approval_id: str,
        review_notes: Optional[str] = None,
    ) -> ApprovalRequest:
        """Approve the request and commit its changes; the plan ends ``applied``."""
        with self._lock:
            approval = self._load_pending(approval_id)
            notes = review_notes.strip() if review_notes and review_notes.strip() else None
            updated = self._record_review(approval, ApprovalStatus.APPROVED, reviewer_id, notes)
            plan_id = approval.target_id
            self._set_plan_status(plan_id, PlanStatus.APPROVED)

            committed = 0
            for change in approval.resource_allocation_data.changes:
                if self._commit(change):
                    committed += 1

            applied_at = now_iso()
            self._store.update(
                Collections.OPTIMIZATION_PLANS,
                plan_id,
                {
                    "status": PlanStatus.APPLIED.value,
                    "appliedAt": applied_at,
                    "updatedAt": applied_at,
                },
            )

        logger.info(
            "Approval granted | approval_id=%s | plan_id=%s | committed=%s | skipped=%s",
            approval.id,
            plan_id,
            committed,
            len(approval.resource_allocation_data.changes) - committed,
        )

        data = approval.resource_allocation_data
        self._notifier.notify_many(
            [*data.affected_tutor_ids, *data.affected_student_ids],
            type=NotificationType.SYSTEM,
            title="Schedule updated",
            message="A resource allocation change affecting you has been approved",
            link="/management/resources",
            metadata={"approvalRequestId": approval.id, "planId": plan_id},
        )
        self._notifier.notify(
            user_id=approval.requester_id,
            type=NotificationType.APPROVAL_APPROVED,
            title="Resource allocation approved",
            message=f"Your request '{approval.title}' was approved",
            link=f"/management/approvals/{approval.id}",
            metadata={"approvalRequestId": approval.id, "planId": plan_id},
        )
        return updated

    def reject(
        self,
        *,
        reviewer_id: str,
        approval_id: str,
        review_notes: Optional[str],
    ) -> ApprovalRequest:
        notes = (review_notes or "").strip()
        if len(notes) < MIN_REJECTION_NOTES_LENGTH:
            raise ResourceValidationError(
                f"reviewNotes must be at least {MIN_REJECTION_NOTES_LENGTH} characters when rejecting"
            )

        with self._lock:
            approval = self._load_pending(approval_id)
            updated = self._record_review(approval, ApprovalStatus.REJECTED, reviewer_id, notes)
            self._set_plan_status(approval.target_id, PlanStatus.REJECTED)

        logger.info(
            "Approval rejected | approval_id=%s | plan_id=%s",
            approval.id,
            approval.target_id,
        )
        self._notifier.notify(
            user_id=approval.requester_id,
            type=NotificationType.APPROVAL_REJECTED,
            title="Resource allocation rejected",
            message=f"Your request '{approval.title}' was rejected: {notes}",
            link=f"/management/approvals/{approval.id}",
            metadata={"approvalRequestId": approval.id, "planId": approval.target_id},
        )
        return updated

    def _load_pending(self, approval_id: str) -> ApprovalRequest:
        document = self._store.find_by_id(Collections.APPROVALS, approval_id)
        if document is None:
            raise ResourceNotFoundError(f"Approval request not found: {approval_id}")
        if document.get("type") != ApprovalType.RESOURCE_ALLOCATION.value:
            raise ResourceValidationError(
                f"Approval request {approval_id} is not a resource allocation request"
            )
        approval = ApprovalRequest.from_document(document)
        if approval.status is not ApprovalStatus.PENDING:
            raise PlanStateError(
                f"Approval request {approval_id} is already {approval.status.value}"
            )
        if deadline_passed(approval.deadline):
            close_lapsed_request(self._store, approval)
            raise PlanStateError(f"Approval request {approval_id} is past its deadline")
        return approval

    def _record_review(
        self,
        approval: ApprovalRequest,
        status: ApprovalStatus,
        reviewer_id: str,
        notes: Optional[str],
    ) -> ApprovalRequest:
        changes: dict[str, Any] = {
            "status": status.value,
            "reviewerId": reviewer_id,
            "updatedAt": now_iso(),
        }
        if notes is not None:
            changes["reviewNotes"] = notes
        document = self._store.update(Collections.APPROVALS, approval.id, changes)
        if document is None:
            raise ResourceNotFoundError(f"Approval request not found: {approval.id}")
        return ApprovalRequest.from_document(document)

    def _set_plan_status(self, plan_id: str, status: PlanStatus) -> None:
        updated = self._store.update(
            Collections.OPTIMIZATION_PLANS,
            plan_id,
            {"status": status.value, "updatedAt": now_iso()},
        )
        if updated is None:
            logger.warning("Approval references a missing plan | plan_id=%s", plan_id)

    def _commit(self, change: AllocationChange) -> bool:
        if change.type is AllocationChangeType.REASSIGN_TUTOR:
            collection = Collections.SESSIONS
            changes: dict[str, Any] = {"tutorId": change.to_value}
        elif change.type is AllocationChangeType.ADJUST_GROUP_SIZE:
            collection = Collections.CLASSES
            target = change.to_value if isinstance(change.to_value, dict) else {}
            if "maxStudents" not in target:
                logger.warning("Skipping group size change without target | class_id=%s", change.resource_id)
                return False
            changes = {"maxStudents": target["maxStudents"]}
        else:
            collection = Collections.SESSIONS
            target = change.to_value if isinstance(change.to_value, dict) else {}
            changes = {
                key: target[key]
                for key in ("startTime", "endTime", "duration")
                if target.get(key) is not None
            }
            if not changes:
                logger.warning("Skipping schedule change without target | session_id=%s", change.resource_id)
                return False

        changes["updatedAt"] = now_iso()
        if self._store.update(collection, change.resource_id, changes) is None:
            logger.warning(
                "Skipping change for missing resource | type=%s | resource_id=%s",
                change.type.value,
                change.resource_id,
            )
            return False
        return True
