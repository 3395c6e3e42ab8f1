"""Optimization plan generation from detected inefficiencies."""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Optional

from tutoring_backend.domain.constraints import PlanConstraints, validate_plan_constraints
from tutoring_backend.domain.models import (
    ChangeType,
    EstimatedImpact,
    InefficiencyType,
    OptimizationChange,
    OptimizationPlan,
    PlanStatus,
    ResourceInefficiency,
    SessionStatus,
    WorkloadTier,
)
from tutoring_backend.repository.document_store import Collections, DocumentStore
from tutoring_backend.services.errors import ResourceValidationError
from tutoring_backend.services.inefficiency_service import DetectionReport, InefficiencyDetector
from tutoring_backend.services.matching_service import (
    Reallocation,
    ReallocationCandidate,
    ReallocationMatcher,
    ReceivingTutor,
)
from tutoring_backend.services.workload_service import active_enrollments
from tutoring_backend.utils.config import Settings, get_settings
from tutoring_backend.utils.identifiers import generate_id, now_iso, utc_now
from tutoring_backend.utils.logger import get_logger


logger = get_logger(__name__)

FOCUS_AREA_ALIASES = {
    "workload": InefficiencyType.OVERLOADED_TUTOR,
    "utilization": InefficiencyType.UNDERUTILIZED_TUTOR,
    "group_balance": InefficiencyType.UNBALANCED_GROUP,
    "resource_conflicts": InefficiencyType.RESOURCE_CONFLICT,
}

MOVABLE_SESSION_STATUSES = frozenset(
    {
        SessionStatus.PENDING.value,
        SessionStatus.CONFIRMED.value,
        SessionStatus.RESCHEDULED.value,
    }
)


class PlanValidationError(ResourceValidationError):
    """Raised when plan generation inputs are invalid."""


def resolve_focus_areas(
    focus_areas: Optional[Iterable[str]],
) -> Optional[frozenset[InefficiencyType]]:
    """Map focus areas (aliases or inefficiency types) to types; ``None`` means all."""
    if not focus_areas:
        return None
    resolved: set[InefficiencyType] = set()
    for area in focus_areas:
        key = str(area).strip()
        if key in FOCUS_AREA_ALIASES:
            resolved.add(FOCUS_AREA_ALIASES[key])
            continue
        try:
            resolved.add(InefficiencyType(key))
        except ValueError as exc:
            raise PlanValidationError(f"Unknown focus area: {key}") from exc
    return frozenset(resolved)


def estimate_impact(inefficiencies: list[ResourceInefficiency]) -> EstimatedImpact:
    counts = Counter(item.type for item in inefficiencies)
    workload_reduction = min(100.0, counts[InefficiencyType.OVERLOADED_TUTOR] * 15.0)
    balance_improvement = min(100.0, counts[InefficiencyType.UNBALANCED_GROUP] * 20.0)
    utilization = (1.0 - counts[InefficiencyType.UNDERUTILIZED_TUTOR] / 10.0) * 100.0
    return EstimatedImpact(
        workload_reduction=workload_reduction,
        balance_improvement=balance_improvement,
        resource_utilization=max(0.0, min(100.0, utilization)),
    )


class OptimizationPlanGenerator:
    """Turns inefficiencies into an ordered, auditable list of proposed changes."""

    def __init__(
        self,
        store: DocumentStore,
        detector: Optional[InefficiencyDetector] = None,
        matcher: Optional[ReallocationMatcher] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._store = store
        self._detector = detector or InefficiencyDetector(store=store, settings=self._settings)
        self._matcher = matcher or ReallocationMatcher(settings=self._settings)

    def generate_optimization_plan(
        self,
        focus_areas: Optional[Iterable[str]] = None,
        constraints: Optional[PlanConstraints] = None,
        *,
        created_by: str = "system",
    ) -> OptimizationPlan:
        effective_constraints = constraints or PlanConstraints()
        try:
            validate_plan_constraints(effective_constraints)
        except ValueError as exc:
            raise PlanValidationError(str(exc)) from exc
        focus = resolve_focus_areas(focus_areas)

        report = self._detector.scan()
        inefficiencies = [
            item for item in report.inefficiencies if focus is None or item.type in focus
        ]
        reallocations = self._plan_reallocations(report, inefficiencies, effective_constraints)

        changes: list[OptimizationChange] = []
        seen_resources: set[str] = set()
        for inefficiency in inefficiencies:
            change = self._change_for(inefficiency, reallocations, effective_constraints)
            if change is None or change.resource_id in seen_resources:
                continue
            seen_resources.add(change.resource_id)
            changes.append(change)

        if effective_constraints.max_changes is not None:
            changes = changes[: effective_constraints.max_changes]

        high_count = sum(1 for item in inefficiencies if item.severity.value == "high")
        timestamp = now_iso()
        plan = OptimizationPlan(
            id=generate_id("plan"),
            name=f"Optimization Plan - {utc_now().strftime('%Y-%m-%d')}",
            description=(
                f"Resource optimization plan with {len(changes)} changes "
                f"addressing {len(inefficiencies)} findings ({high_count} high severity)"
            ),
            status=PlanStatus.DRAFT,
            changes=tuple(changes),
            estimated_impact=estimate_impact(inefficiencies),
            created_by=created_by,
            created_at=timestamp,
            updated_at=timestamp,
        )
        logger.info(
            "Optimization plan generated | plan_id=%s | findings=%s | changes=%s | focus=%s",
            plan.id,
            len(inefficiencies),
            len(changes),
            sorted(item.value for item in focus) if focus else "all",
        )
        return plan

    def _change_for(
        self,
        inefficiency: ResourceInefficiency,
        reallocations: dict[str, Reallocation],
        constraints: PlanConstraints,
    ) -> Optional[OptimizationChange]:
        if inefficiency.type is InefficiencyType.OVERLOADED_TUTOR:
            reallocation = reallocations.get(inefficiency.resource_id)
            if reallocation is None:
                return None
            return OptimizationChange(
                type=ChangeType.REALLOCATE_SESSION,
                resource_id=reallocation.session_id,
                from_id=reallocation.source_tutor_id,
                to_id=reallocation.target_tutor_id,
                reason=(
                    f"Reduce workload of tutor {reallocation.source_tutor_id} by moving "
                    f"a {reallocation.minutes}-minute session to tutor {reallocation.target_tutor_id}"
                ),
            )
        if inefficiency.type is InefficiencyType.UNBALANCED_GROUP:
            class_id = inefficiency.resource_id
            if not self._group_size_allowed(class_id, constraints):
                return None
            return OptimizationChange(
                type=ChangeType.ADJUST_GROUP_SIZE,
                resource_id=class_id,
                from_id=class_id,
                to_id=class_id,
                reason=f"Rebalance group size for class {class_id}",
            )
        if inefficiency.type is InefficiencyType.RESOURCE_CONFLICT:
            session_id = inefficiency.resource_id
            return OptimizationChange(
                type=ChangeType.MODIFY_SCHEDULE,
                resource_id=session_id,
                from_id=session_id,
                to_id=session_id,
                reason=f"Resolve schedule conflict for session {session_id}",
            )
        return None

    def _group_size_allowed(self, class_id: str, constraints: PlanConstraints) -> bool:
        class_item = self._store.find_by_id(Collections.CLASSES, class_id)
        if class_item is None:
            return False
        if constraints.max_group_size is None:
            return True
        try:
            current_max = int(class_item["maxStudents"])
        except (KeyError, TypeError, ValueError):
            return False
        enrolled = len(active_enrollments(self._store, [class_id]))
        proposed = max(enrolled + self._settings.group_size_buffer, current_max)
        return proposed <= constraints.max_group_size

    def _plan_reallocations(
        self,
        report: DetectionReport,
        inefficiencies: list[ResourceInefficiency],
        constraints: PlanConstraints,
    ) -> dict[str, Reallocation]:
        excluded = constraints.excluded_tutor_ids
        source_ids = [
            item.resource_id
            for item in inefficiencies
            if item.type is InefficiencyType.OVERLOADED_TUTOR and item.resource_id not in excluded
        ]
        if not source_ids:
            return {}

        candidates: list[ReallocationCandidate] = []
        for source_id in source_ids:
            workload = report.workload_for(source_id)
            if workload is None:
                continue
            sessions = self._store.find_by_ids(Collections.SESSIONS, workload.session_ids)
            for session_id in workload.session_ids:
                session = sessions.get(session_id)
                if session is None or session.get("status") not in MOVABLE_SESSION_STATUSES:
                    continue
                try:
                    minutes = int(session.get("duration") or 0)
                except (TypeError, ValueError):
                    continue
                subject = str(session.get("subject") or "").strip()
                if minutes <= 0 or not subject:
                    continue
                candidates.append(
                    ReallocationCandidate(
                        source_tutor_id=source_id,
                        session_id=session_id,
                        subject=subject,
                        minutes=minutes,
                    )
                )

        tutors_by_id = {str(tutor["id"]): tutor for tutor in report.tutors}
        underutilized_hours = self._settings.underutilized_max_hours
        receivers: list[ReceivingTutor] = []
        for workload in report.workloads:
            if workload.tutor_id in excluded:
                continue
            if workload.workload is not WorkloadTier.LOW or workload.total_hours >= underutilized_hours:
                continue
            tutor = tutors_by_id.get(workload.tutor_id) or {}
            subjects = frozenset(
                str(subject).strip() for subject in tutor.get("subjects") or [] if str(subject).strip()
            )
            if subjects:
                receivers.append(
                    ReceivingTutor(
                        tutor_id=workload.tutor_id,
                        subjects=subjects,
                        current_hours=workload.total_hours,
                    )
                )

        max_workload_hours = (
            constraints.max_workload_per_tutor
            if constraints.max_workload_per_tutor is not None
            else self._settings.workload_medium_hours
        )
        return self._matcher.match(
            candidates=candidates,
            receivers=receivers,
            max_workload_hours=max_workload_hours,
        )
