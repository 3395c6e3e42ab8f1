"""Detection of workload, group-size and scheduling inefficiencies.

Every finding is derived from a single read of the store. Records that cannot
be interpreted (dangling tutor ids, unparseable times, zero capacity) are
logged and skipped so one bad document never aborts the scan.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from tutoring_backend.domain.constraints import GroupBalanceConfig, validate_group_balance_config
from tutoring_backend.domain.models import (
    ClassStatus,
    InefficiencyType,
    ResourceInefficiency,
    SessionStatus,
    Severity,
    TutorWorkload,
    UserRole,
    WorkloadTier,
)
from tutoring_backend.repository.document_store import Collections, DocumentStore
from tutoring_backend.services.workload_service import WorkloadCalculator, active_enrollments
from tutoring_backend.utils.config import Settings, get_settings
from tutoring_backend.utils.identifiers import generate_id, now_iso, parse_iso
from tutoring_backend.utils.logger import get_logger


logger = get_logger(__name__)

SCHEDULED_SESSION_STATUSES = frozenset(
    {SessionStatus.CONFIRMED.value, SessionStatus.ONGOING.value}
)
GROUP_CLASS_STATUSES = frozenset({ClassStatus.ACTIVE.value, ClassStatus.FULL.value})


@dataclass(frozen=True)
class DetectionReport:
    tutors: tuple[dict[str, Any], ...]
    workloads: tuple[TutorWorkload, ...]
    inefficiencies: tuple[ResourceInefficiency, ...]

    def workload_for(self, tutor_id: str) -> Optional[TutorWorkload]:
        for workload in self.workloads:
            if workload.tutor_id == tutor_id:
                return workload
        return None


@dataclass(frozen=True)
class _TimedSession:
    session_id: str
    tutor_id: str
    location: Optional[str]
    is_online: bool
    start: datetime
    end: datetime


def _overlaps(first: _TimedSession, second: _TimedSession) -> bool:
    return first.start < second.end and second.start < first.end


class InefficiencyDetector:
    """Scans tutors, classes and sessions for allocation problems."""

    def __init__(
        self,
        store: DocumentStore,
        workload_calculator: Optional[WorkloadCalculator] = None,
        settings: Optional[Settings] = None,
        group_config: Optional[GroupBalanceConfig] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._store = store
        self._workload_calculator = workload_calculator or WorkloadCalculator(
            store=store,
            settings=self._settings,
        )
        self._group_config = group_config or GroupBalanceConfig.from_settings(self._settings)
        validate_group_balance_config(self._group_config)

    def list_tutors(self) -> list[dict[str, Any]]:
        return self._store.find(
            Collections.USERS,
            lambda u: u.get("role") == UserRole.TUTOR.value and bool(u.get("id")),
        )

    def identify_inefficiencies(self) -> list[ResourceInefficiency]:
        return list(self.scan().inefficiencies)

    def scan(self) -> DetectionReport:
        tutors = self.list_tutors()
        tutor_ids = {str(tutor["id"]) for tutor in tutors}
        workloads = [
            self._workload_calculator.calculate_tutor_workload(str(tutor["id"]))
            for tutor in tutors
        ]

        findings: list[ResourceInefficiency] = []
        findings.extend(self._workload_findings(workloads))
        findings.extend(self._group_findings(tutor_ids))
        findings.extend(self._conflict_findings(tutor_ids))

        counts = Counter(finding.type.value for finding in findings)
        logger.info(
            "Inefficiency scan completed | tutors=%s | findings=%s | by_type=%s",
            len(tutors),
            len(findings),
            dict(sorted(counts.items())),
        )
        return DetectionReport(
            tutors=tuple(tutors),
            workloads=tuple(workloads),
            inefficiencies=tuple(findings),
        )

    def _workload_findings(self, workloads: list[TutorWorkload]) -> list[ResourceInefficiency]:
        thresholds = self._workload_calculator.thresholds
        overloaded: list[ResourceInefficiency] = []
        underutilized: list[ResourceInefficiency] = []
        for workload in workloads:
            if workload.workload in (WorkloadTier.OVERLOADED, WorkloadTier.HIGH):
                overloaded.append(
                    ResourceInefficiency(
                        id=generate_id("ineff"),
                        type=InefficiencyType.OVERLOADED_TUTOR,
                        severity=(
                            Severity.HIGH
                            if workload.workload is WorkloadTier.OVERLOADED
                            else Severity.MEDIUM
                        ),
                        description=(
                            f"Tutor workload is too high: {workload.total_hours} hours/week "
                            f"with {workload.student_count} students"
                        ),
                        resource_id=workload.tutor_id,
                        affected_resource_ids=(
                            workload.tutor_id,
                            *workload.session_ids,
                            *workload.class_ids,
                        ),
                        suggested_actions=(
                            "Reallocate some sessions to other tutors",
                            "Reduce the number of students in classes",
                            "Add a tutor to share the load",
                        ),
                        created_at=now_iso(),
                    )
                )
            elif (
                workload.workload is WorkloadTier.LOW
                and workload.total_hours < thresholds.underutilized_max_hours
            ):
                underutilized.append(
                    ResourceInefficiency(
                        id=generate_id("ineff"),
                        type=InefficiencyType.UNDERUTILIZED_TUTOR,
                        severity=Severity.LOW,
                        description=(
                            f"Tutor is underutilized: only {workload.total_hours} hours/week"
                        ),
                        resource_id=workload.tutor_id,
                        affected_resource_ids=(workload.tutor_id,),
                        suggested_actions=(
                            "Assign more sessions to this tutor",
                            "Enroll the tutor in classes that need support",
                            "Review the tutor's availability",
                        ),
                        created_at=now_iso(),
                    )
                )
        return overloaded + underutilized

    def _group_findings(self, tutor_ids: set[str]) -> list[ResourceInefficiency]:
        classes = self._store.find(
            Collections.CLASSES,
            lambda c: c.get("status") in GROUP_CLASS_STATUSES,
        )
        enrollment_counts = Counter(
            str(enrollment.get("classId"))
            for enrollment in active_enrollments(self._store)
        )

        findings: list[ResourceInefficiency] = []
        for class_item in classes:
            class_id = str(class_item.get("id") or "")
            try:
                max_students = int(class_item["maxStudents"])
                if not class_id or max_students <= 0:
                    raise ValueError("class capacity must be positive")
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping class in group scan | class_id=%s | reason=%s", class_id, exc)
                continue

            enrolled = enrollment_counts.get(class_id, 0)
            fill_ratio = enrolled / max_students
            code = class_item.get("code") or class_id
            tutor_id = class_item.get("tutorId")

            if 0 < enrolled and fill_ratio < self._group_config.underfilled_ratio:
                affected = [class_id]
                if tutor_id in tutor_ids:
                    affected.append(str(tutor_id))
                findings.append(
                    ResourceInefficiency(
                        id=generate_id("ineff"),
                        type=InefficiencyType.UNBALANCED_GROUP,
                        severity=(
                            Severity.HIGH
                            if fill_ratio < self._group_config.critical_underfilled_ratio
                            else Severity.MEDIUM
                        ),
                        description=(
                            f"Class {code} only has {enrolled}/{max_students} students "
                            f"({round(fill_ratio * 100)}%)"
                        ),
                        resource_id=class_id,
                        affected_resource_ids=tuple(affected),
                        suggested_actions=(
                            "Enroll more students in the class",
                            "Merge with another class of the same subject",
                            "Reduce the class capacity",
                        ),
                        created_at=now_iso(),
                    )
                )
            elif enrolled >= max_students:
                findings.append(
                    ResourceInefficiency(
                        id=generate_id("ineff"),
                        type=InefficiencyType.UNBALANCED_GROUP,
                        severity=Severity.HIGH,
                        description=f"Class {code} is full ({enrolled}/{max_students})",
                        resource_id=class_id,
                        affected_resource_ids=(class_id,),
                        suggested_actions=(
                            "Increase the class capacity if possible",
                            "Open a new class for the same subject",
                            "Move some students to another class",
                        ),
                        created_at=now_iso(),
                    )
                )
        return findings

    def _timed_sessions(self) -> list[_TimedSession]:
        timed: list[_TimedSession] = []
        for session in self._store.find(
            Collections.SESSIONS,
            lambda s: s.get("status") in SCHEDULED_SESSION_STATUSES,
        ):
            session_id = session.get("id")
            try:
                start = parse_iso(session.get("startTime"))
                end = parse_iso(session.get("endTime"))
                if not session_id or end <= start:
                    raise ValueError("session must end after it starts")
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping session in conflict scan | session_id=%s | reason=%s", session_id, exc)
                continue
            location = session.get("location")
            timed.append(
                _TimedSession(
                    session_id=str(session_id),
                    tutor_id=str(session.get("tutorId") or ""),
                    location=str(location).strip() if location else None,
                    is_online=bool(session.get("isOnline", False)),
                    start=start,
                    end=end,
                )
            )
        timed.sort(key=lambda item: (item.start, item.session_id))
        return timed

    def _conflict_findings(self, tutor_ids: set[str]) -> list[ResourceInefficiency]:
        sessions = self._timed_sessions()

        by_tutor: dict[str, list[_TimedSession]] = defaultdict(list)
        by_location: dict[str, list[_TimedSession]] = defaultdict(list)
        for session in sessions:
            if session.tutor_id:
                by_tutor[session.tutor_id].append(session)
            if session.location and not session.is_online:
                by_location[session.location].append(session)

        findings: list[ResourceInefficiency] = []
        for tutor_id, tutor_sessions in by_tutor.items():
            for index, first in enumerate(tutor_sessions):
                for second in tutor_sessions[index + 1:]:
                    if not _overlaps(first, second):
                        continue
                    affected = [first.session_id, second.session_id]
                    if tutor_id in tutor_ids:
                        affected.insert(0, tutor_id)
                    findings.append(
                        ResourceInefficiency(
                            id=generate_id("ineff"),
                            type=InefficiencyType.RESOURCE_CONFLICT,
                            severity=Severity.HIGH,
                            description=(
                                f"Schedule conflict: tutor has overlapping sessions "
                                f"{first.session_id} and {second.session_id}"
                            ),
                            resource_id=second.session_id,
                            affected_resource_ids=tuple(affected),
                            suggested_actions=(
                                "Reschedule one of the two sessions",
                                "Cancel the unnecessary session",
                                "Reallocate one session to another tutor",
                            ),
                            created_at=now_iso(),
                        )
                    )
                    break

        for location, room_sessions in by_location.items():
            for index, first in enumerate(room_sessions):
                for second in room_sessions[index + 1:]:
                    # Same-tutor overlaps are already reported above.
                    if first.tutor_id == second.tutor_id or not _overlaps(first, second):
                        continue
                    findings.append(
                        ResourceInefficiency(
                            id=generate_id("ineff"),
                            type=InefficiencyType.RESOURCE_CONFLICT,
                            severity=Severity.HIGH,
                            description=(
                                f"Room conflict: {location} is booked by overlapping sessions "
                                f"{first.session_id} and {second.session_id}"
                            ),
                            resource_id=second.session_id,
                            affected_resource_ids=(first.session_id, second.session_id),
                            suggested_actions=(
                                "Move one session to another room",
                                "Reschedule one of the two sessions",
                                "Switch one session online",
                            ),
                            created_at=now_iso(),
                        )
                    )
                    break
        return findings
