"""Domain models for workload analysis and allocation optimization."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class UserRole(str, Enum):
    STUDENT = "student"
    TUTOR = "tutor"
    MANAGEMENT = "management"


class SessionStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


class ClassStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    FULL = "full"


class EnrollmentStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    DROPPED = "dropped"
    CANCELLED = "cancelled"


class WorkloadTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    OVERLOADED = "overloaded"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self]


SEVERITY_RANK = {Severity.HIGH: 3, Severity.MEDIUM: 2, Severity.LOW: 1}


class InefficiencyType(str, Enum):
    OVERLOADED_TUTOR = "overloaded_tutor"
    UNDERUTILIZED_TUTOR = "underutilized_tutor"
    UNBALANCED_GROUP = "unbalanced_group"
    RESOURCE_CONFLICT = "resource_conflict"


class ChangeType(str, Enum):
    REALLOCATE_SESSION = "reallocate_session"
    REALLOCATE_STUDENT = "reallocate_student"
    ADJUST_GROUP_SIZE = "adjust_group_size"
    MODIFY_SCHEDULE = "modify_schedule"


class AllocationChangeType(str, Enum):
    """Change kinds carried by an approval request once translated."""

    REASSIGN_TUTOR = "reassign_tutor"
    ADJUST_GROUP_SIZE = "adjust_group_size"
    ADJUST_SCHEDULE = "adjust_schedule"


class PlanStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    APPLIED = "applied"


class ApprovalType(str, Enum):
    RESOURCE_ALLOCATION = "resource_allocation"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class NotificationType(str, Enum):
    APPROVAL_REQUEST = "approval_request"
    APPROVAL_APPROVED = "approval_approved"
    APPROVAL_REJECTED = "approval_rejected"
    SYSTEM = "system"


@dataclass(frozen=True)
class TutorWorkload:
    tutor_id: str
    session_ids: tuple[str, ...]
    class_ids: tuple[str, ...]
    total_hours: float
    student_count: int
    workload: WorkloadTier

    def to_document(self) -> dict[str, Any]:
        return {
            "tutorId": self.tutor_id,
            "sessionIds": list(self.session_ids),
            "classIds": list(self.class_ids),
            "totalHours": self.total_hours,
            "studentCount": self.student_count,
            "workload": self.workload.value,
        }


@dataclass(frozen=True)
class ResourceInefficiency:
    id: str
    type: InefficiencyType
    severity: Severity
    description: str
    resource_id: str
    affected_resource_ids: tuple[str, ...]
    suggested_actions: tuple[str, ...]
    created_at: str

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "severity": self.severity.value,
            "description": self.description,
            "resourceId": self.resource_id,
            "affectedResourceIds": list(self.affected_resource_ids),
            "suggestedActions": list(self.suggested_actions),
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class OptimizationChange:
    type: ChangeType
    resource_id: str
    from_id: str
    to_id: str
    reason: str

    def to_document(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "resourceId": self.resource_id,
            "from": self.from_id,
            "to": self.to_id,
            "reason": self.reason,
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "OptimizationChange":
        return cls(
            type=ChangeType(document["type"]),
            resource_id=str(document["resourceId"]),
            from_id=str(document.get("from") or ""),
            to_id=str(document.get("to") or ""),
            reason=str(document.get("reason") or ""),
        )


@dataclass(frozen=True)
class EstimatedImpact:
    workload_reduction: float
    balance_improvement: float
    resource_utilization: float

    def to_document(self) -> dict[str, float]:
        return {
            "workloadReduction": self.workload_reduction,
            "balanceImprovement": self.balance_improvement,
            "resourceUtilization": self.resource_utilization,
        }


@dataclass(frozen=True)
class OptimizationPlan:
    id: str
    name: str
    description: str
    status: PlanStatus
    changes: tuple[OptimizationChange, ...]
    estimated_impact: EstimatedImpact
    created_by: str
    created_at: str
    updated_at: str
    applied_at: Optional[str] = None

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "changes": [change.to_document() for change in self.changes],
            "estimatedImpact": self.estimated_impact.to_document(),
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.applied_at is not None:
            document["appliedAt"] = self.applied_at
        return document

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "OptimizationPlan":
        impact = document.get("estimatedImpact") or {}
        return cls(
            id=str(document["id"]),
            name=str(document.get("name") or ""),
            description=str(document.get("description") or ""),
            status=PlanStatus(document.get("status", PlanStatus.DRAFT.value)),
            changes=tuple(
                OptimizationChange.from_document(item)
                for item in document.get("changes") or []
            ),
            estimated_impact=EstimatedImpact(
                workload_reduction=float(impact.get("workloadReduction", 0.0)),
                balance_improvement=float(impact.get("balanceImprovement", 0.0)),
                resource_utilization=float(impact.get("resourceUtilization", 0.0)),
            ),
            created_by=str(document.get("createdBy") or "system"),
            created_at=str(document.get("createdAt") or ""),
            updated_at=str(document.get("updatedAt") or document.get("createdAt") or ""),
            applied_at=document.get("appliedAt"),
        )


@dataclass(frozen=True)
class AllocationChange:
    type: AllocationChangeType
    resource_id: str
    from_value: Any
    to_value: Any
    reason: str

    def to_document(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "resourceId": self.resource_id,
            "fromValue": self.from_value,
            "toValue": self.to_value,
            "reason": self.reason,
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "AllocationChange":
        return cls(
            type=AllocationChangeType(document["type"]),
            resource_id=str(document["resourceId"]),
            from_value=document.get("fromValue"),
            to_value=document.get("toValue"),
            reason=str(document.get("reason") or ""),
        )


@dataclass(frozen=True)
class ResourceAllocationData:
    optimization_plan_id: str
    changes: tuple[AllocationChange, ...]
    affected_tutor_ids: tuple[str, ...]
    affected_session_ids: tuple[str, ...]
    affected_student_ids: tuple[str, ...]

    def to_document(self) -> dict[str, Any]:
        return {
            "optimizationPlanId": self.optimization_plan_id,
            "changes": [change.to_document() for change in self.changes],
            "affectedTutorIds": list(self.affected_tutor_ids),
            "affectedSessionIds": list(self.affected_session_ids),
            "affectedStudentIds": list(self.affected_student_ids),
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "ResourceAllocationData":
        return cls(
            optimization_plan_id=str(document.get("optimizationPlanId") or ""),
            changes=tuple(
                AllocationChange.from_document(item)
                for item in document.get("changes") or []
            ),
            affected_tutor_ids=tuple(document.get("affectedTutorIds") or ()),
            affected_session_ids=tuple(document.get("affectedSessionIds") or ()),
            affected_student_ids=tuple(document.get("affectedStudentIds") or ()),
        )


@dataclass(frozen=True)
class ApprovalRequest:
    id: str
    type: ApprovalType
    requester_id: str
    target_id: str
    title: str
    description: str
    status: ApprovalStatus
    priority: str
    deadline: str
    resource_allocation_data: ResourceAllocationData
    created_at: str
    updated_at: str
    reviewer_id: Optional[str] = None
    review_notes: Optional[str] = None

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "requesterId": self.requester_id,
            "targetId": self.target_id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority,
            "deadline": self.deadline,
            "resourceAllocationData": self.resource_allocation_data.to_document(),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.reviewer_id is not None:
            document["reviewerId"] = self.reviewer_id
        if self.review_notes is not None:
            document["reviewNotes"] = self.review_notes
        return document

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "ApprovalRequest":
        return cls(
            id=str(document["id"]),
            type=ApprovalType(document["type"]),
            requester_id=str(document.get("requesterId") or ""),
            target_id=str(document.get("targetId") or ""),
            title=str(document.get("title") or ""),
            description=str(document.get("description") or ""),
            status=ApprovalStatus(document.get("status", ApprovalStatus.PENDING.value)),
            priority=str(document.get("priority") or "medium"),
            deadline=str(document.get("deadline") or ""),
            resource_allocation_data=ResourceAllocationData.from_document(
                document.get("resourceAllocationData") or {}
            ),
            created_at=str(document.get("createdAt") or ""),
            updated_at=str(document.get("updatedAt") or ""),
            reviewer_id=document.get("reviewerId"),
            review_notes=document.get("reviewNotes"),
        )


@dataclass(frozen=True)
class Notification:
    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    link: str
    created_at: str
    metadata: dict[str, Any] = field(default_factory=dict)
    read: bool = False

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "read": self.read,
            "link": self.link,
            "metadata": dict(self.metadata),
            "createdAt": self.created_at,
        }
