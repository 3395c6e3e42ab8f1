"""Per-tutor workload aggregation over sessions, classes and enrollments."""

from __future__ import annotations

from typing import Any, Iterable, Optional

from tutoring_backend.domain.constraints import WorkloadThresholds, validate_workload_thresholds
from tutoring_backend.domain.models import (
    ClassStatus,
    EnrollmentStatus,
    SessionStatus,
    TutorWorkload,
    WorkloadTier,
)
from tutoring_backend.repository.document_store import Collections, DocumentStore
from tutoring_backend.utils.config import Settings, get_settings
from tutoring_backend.utils.logger import get_logger


logger = get_logger(__name__)

ACTIVE_SESSION_STATUSES = frozenset(
    {
        SessionStatus.PENDING.value,
        SessionStatus.CONFIRMED.value,
        SessionStatus.ONGOING.value,
        SessionStatus.RESCHEDULED.value,
    }
)


def classify_workload(
    total_hours: float,
    student_count: int,
    thresholds: WorkloadThresholds,
) -> WorkloadTier:
    if total_hours > thresholds.overloaded_hours or student_count > thresholds.overloaded_students:
        return WorkloadTier.OVERLOADED
    if total_hours > thresholds.high_hours or student_count > thresholds.high_students:
        return WorkloadTier.HIGH
    if total_hours > thresholds.medium_hours or student_count > thresholds.medium_students:
        return WorkloadTier.MEDIUM
    return WorkloadTier.LOW


def _minutes(document: dict[str, Any]) -> float:
    duration = document.get("duration")
    if duration is None:
        return 0.0
    minutes = float(duration)
    if minutes < 0:
        raise ValueError(f"negative duration on {document.get('id')}")
    return minutes


def active_enrollments(
    store: DocumentStore,
    class_ids: Optional[Iterable[str]] = None,
) -> list[dict[str, Any]]:
    """Active enrollments, optionally restricted to ``class_ids``."""
    wanted = set(class_ids) if class_ids is not None else None
    return store.find(
        Collections.ENROLLMENTS,
        lambda e: e.get("status") == EnrollmentStatus.ACTIVE.value
        and (wanted is None or e.get("classId") in wanted),
    )


class WorkloadCalculator:
    """Computes hours-per-week and a workload tier for a tutor."""

    def __init__(
        self,
        store: DocumentStore,
        settings: Optional[Settings] = None,
        thresholds: Optional[WorkloadThresholds] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._store = store
        self._thresholds = thresholds or WorkloadThresholds.from_settings(self._settings)
        validate_workload_thresholds(self._thresholds)

    @property
    def thresholds(self) -> WorkloadThresholds:
        return self._thresholds

    def calculate_tutor_workload(self, tutor_id: str) -> TutorWorkload:
        sessions = self._store.find(
            Collections.SESSIONS,
            lambda s: s.get("tutorId") == tutor_id
            and s.get("status") in ACTIVE_SESSION_STATUSES,
        )
        classes = self._store.find(
            Collections.CLASSES,
            lambda c: c.get("tutorId") == tutor_id
            and c.get("status") == ClassStatus.ACTIVE.value,
        )
        class_ids = [str(item["id"]) for item in classes]
        enrollments = active_enrollments(self._store, class_ids) if class_ids else []

        total_minutes = 0.0
        counted_sessions: list[str] = []
        for session in sessions:
            try:
                total_minutes += _minutes(session)
            except (TypeError, ValueError):
                logger.warning("Skipping session with invalid duration | session_id=%s", session.get("id"))
                continue
            counted_sessions.append(str(session["id"]))

        counted_classes: list[str] = []
        for class_item in classes:
            try:
                # Classes meet once a week for ``duration`` minutes.
                total_minutes += _minutes(class_item)
            except (TypeError, ValueError):
                logger.warning("Skipping class with invalid duration | class_id=%s", class_item.get("id"))
                continue
            counted_classes.append(str(class_item["id"]))

        students: set[str] = set()
        for session in sessions:
            students.update(str(student_id) for student_id in session.get("studentIds") or [])
        students.update(str(enrollment["studentId"]) for enrollment in enrollments if enrollment.get("studentId"))

        total_hours = round(total_minutes / 60.0, 2)
        tier = classify_workload(total_hours, len(students), self._thresholds)
        logger.debug(
            "Workload computed | tutor_id=%s | hours=%.2f | students=%s | tier=%s",
            tutor_id,
            total_hours,
            len(students),
            tier.value,
        )
        return TutorWorkload(
            tutor_id=tutor_id,
            session_ids=tuple(counted_sessions),
            class_ids=tuple(counted_classes),
            total_hours=total_hours,
            student_count=len(students),
            workload=tier,
        )
