"""Resource management orchestration used by the HTTP layer."""

from __future__ import annotations

from collections import Counter
from typing import Any, Iterable, Optional

from tutoring_backend.domain.constraints import PlanConstraints
from tutoring_backend.domain.models import (
    InefficiencyType,
    OptimizationPlan,
    PlanStatus,
    ResourceInefficiency,
    Severity,
    WorkloadTier,
)
from tutoring_backend.repository.document_store import Collections, DocumentStore, Page
from tutoring_backend.services.errors import ResourceNotFoundError, ResourceValidationError
from tutoring_backend.services.inefficiency_service import InefficiencyDetector
from tutoring_backend.services.plan_service import OptimizationPlanGenerator
from tutoring_backend.services.workload_service import active_enrollments
from tutoring_backend.utils.config import Settings, get_settings
from tutoring_backend.utils.logger import get_logger


logger = get_logger(__name__)

TUTOR_PROFILE_FIELDS = ("id", "name", "email", "avatar", "subjects", "rating")


class ResourceWorkflowService:
    """Coordinates overview -> inefficiencies -> plan generation -> plan lookup."""

    def __init__(
        self,
        store: DocumentStore,
        detector: Optional[InefficiencyDetector] = None,
        plan_generator: Optional[OptimizationPlanGenerator] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._store = store
        self._detector = detector or InefficiencyDetector(store=store, settings=self._settings)
        self._plan_generator = plan_generator or OptimizationPlanGenerator(
            store=store,
            detector=self._detector,
            settings=self._settings,
        )

    def get_overview(self) -> dict[str, Any]:
        report = self._detector.scan()
        tutors_by_id = {str(tutor["id"]): tutor for tutor in report.tutors}

        enriched: list[dict[str, Any]] = []
        for workload in report.workloads:
            tutor = tutors_by_id.get(workload.tutor_id)
            document = workload.to_document()
            document["tutor"] = (
                {key: tutor.get(key) for key in TUTOR_PROFILE_FIELDS} if tutor else None
            )
            enriched.append(document)

        session_ids = [sid for workload in report.workloads for sid in workload.session_ids]
        class_ids = [cid for workload in report.workloads for cid in workload.class_ids]
        student_ids: set[str] = set()
        for session in self._store.find_by_ids(Collections.SESSIONS, session_ids).values():
            student_ids.update(str(item) for item in session.get("studentIds") or [])
        if class_ids:
            student_ids.update(
                str(enrollment["studentId"])
                for enrollment in active_enrollments(self._store, class_ids)
                if enrollment.get("studentId")
            )

        distribution = Counter(workload.workload for workload in report.workloads)
        total_hours = sum(workload.total_hours for workload in report.workloads)
        overview = {
            "totalTutors": len(report.tutors),
            "totalHours": round(total_hours, 2),
            "totalStudents": len(student_ids),
            "workloadDistribution": {
                tier.value: distribution.get(tier, 0)
                for tier in (
                    WorkloadTier.OVERLOADED,
                    WorkloadTier.HIGH,
                    WorkloadTier.MEDIUM,
                    WorkloadTier.LOW,
                )
            },
        }
        logger.info(
            "Resource overview built | tutors=%s | hours=%.2f | students=%s",
            overview["totalTutors"],
            overview["totalHours"],
            overview["totalStudents"],
        )
        return {"overview": overview, "workloads": enriched}

    def list_inefficiencies(
        self,
        *,
        severity: Optional[Severity] = None,
        type: Optional[InefficiencyType] = None,
    ) -> dict[str, Any]:
        findings: list[ResourceInefficiency] = [
            item
            for item in self._detector.identify_inefficiencies()
            if (severity is None or item.severity is severity)
            and (type is None or item.type is type)
        ]
        # sorted() is stable, so detector order is kept within a severity.
        findings = sorted(findings, key=lambda item: item.severity.rank, reverse=True)
        counts = Counter(item.severity for item in findings)
        return {
            "inefficiencies": [item.to_document() for item in findings],
            "total": len(findings),
            "bySeverity": {
                level.value: counts.get(level, 0)
                for level in (Severity.HIGH, Severity.MEDIUM, Severity.LOW)
            },
        }

    def create_plan(
        self,
        *,
        created_by: str,
        focus_areas: Optional[Iterable[str]] = None,
        constraints: Optional[PlanConstraints] = None,
    ) -> OptimizationPlan:
        plan = self._plan_generator.generate_optimization_plan(
            focus_areas=focus_areas,
            constraints=constraints,
            created_by=created_by,
        )
        self._store.create(Collections.OPTIMIZATION_PLANS, plan.to_document())
        logger.info("Optimization plan stored | plan_id=%s | created_by=%s", plan.id, created_by)
        return plan

    def list_plans(
        self,
        *,
        page: int = 1,
        limit: Optional[int] = None,
        status: Optional[PlanStatus] = None,
    ) -> Page:
        effective_limit = limit if limit is not None else self._settings.default_page_size
        if page < 1:
            raise ResourceValidationError("page must be >= 1")
        if effective_limit < 1 or effective_limit > self._settings.max_page_size:
            raise ResourceValidationError(
                f"limit must be between 1 and {self._settings.max_page_size}"
            )
        return self._store.paginate(
            Collections.OPTIMIZATION_PLANS,
            page=page,
            limit=effective_limit,
            predicate=(lambda p: p.get("status") == status.value) if status else None,
            sort_key=lambda p: (str(p.get("createdAt") or ""), str(p.get("id") or "")),
            reverse=True,
        )

    def get_plan(self, plan_id: str) -> OptimizationPlan:
        document = self._store.find_by_id(Collections.OPTIMIZATION_PLANS, plan_id)
        if document is None:
            raise ResourceNotFoundError(f"Optimization plan not found: {plan_id}")
        return OptimizationPlan.from_document(document)
