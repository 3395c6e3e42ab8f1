"""Deterministic demo dataset for local runs and environment validation."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional

from tutoring_backend.repository.document_store import Collections, DocumentStore
from tutoring_backend.utils.identifiers import to_iso
from tutoring_backend.utils.logger import get_logger


logger = get_logger(__name__)

DEMO_STUDENT_COUNT = 12


def _at(day: date, hour: int, minute: int = 0) -> str:
    return to_iso(datetime.combine(day, time(hour, minute), tzinfo=timezone.utc))


def _session(
    session_id: str,
    tutor_id: str,
    subject: str,
    day: date,
    start_hour: int,
    duration_minutes: int,
    student_ids: list[str],
    status: str = "confirmed",
    location: Optional[str] = None,
) -> dict[str, Any]:
    start = datetime.combine(day, time(start_hour), tzinfo=timezone.utc)
    end = start + timedelta(minutes=duration_minutes)
    return {
        "id": session_id,
        "tutorId": tutor_id,
        "studentIds": student_ids,
        "subject": subject,
        "status": status,
        "startTime": to_iso(start),
        "endTime": to_iso(end),
        "duration": duration_minutes,
        "isOnline": location is None,
        "location": location,
        "createdAt": _at(day - timedelta(days=7), 8),
        "updatedAt": _at(day - timedelta(days=7), 8),
    }


def build_demo_dataset(today: Optional[date] = None) -> dict[str, list[dict[str, Any]]]:
    """Return demo documents per collection, dated relative to ``today``."""
    base_day = today or datetime.now(timezone.utc).date()
    created_at = _at(base_day - timedelta(days=30), 8)

    users: list[dict[str, Any]] = [
        {
            "id": "mgr_1",
            "name": "Department Coordinator",
            "email": "coordinator@example.edu",
            "role": "management",
            "createdAt": created_at,
            "updatedAt": created_at,
        },
        {
            "id": "mgr_2",
            "name": "Academic Affairs Officer",
            "email": "affairs@example.edu",
            "role": "management",
            "createdAt": created_at,
            "updatedAt": created_at,
        },
        {
            "id": "tut_1",
            "name": "Senior Math Tutor",
            "email": "math.senior@example.edu",
            "role": "tutor",
            "subjects": ["Mathematics", "Physics"],
            "rating": 4.8,
            "createdAt": created_at,
            "updatedAt": created_at,
        },
        {
            "id": "tut_2",
            "name": "Junior Math Tutor",
            "email": "math.junior@example.edu",
            "role": "tutor",
            "subjects": ["Mathematics"],
            "rating": 4.5,
            "createdAt": created_at,
            "updatedAt": created_at,
        },
        {
            "id": "tut_3",
            "name": "Chemistry Tutor",
            "email": "chemistry@example.edu",
            "role": "tutor",
            "subjects": ["Chemistry"],
            "rating": 4.6,
            "createdAt": created_at,
            "updatedAt": created_at,
        },
    ]
    student_ids = [f"stu_{index}" for index in range(1, DEMO_STUDENT_COUNT + 1)]
    for student_id in student_ids:
        users.append(
            {
                "id": student_id,
                "name": f"Student {student_id.split('_')[1]}",
                "email": f"{student_id}@example.edu",
                "role": "student",
                "createdAt": created_at,
                "updatedAt": created_at,
            }
        )

    sessions: list[dict[str, Any]] = []
    # Fourteen two-hour sessions over the coming week overload tut_1.
    for index in range(14):
        day = base_day + timedelta(days=1 + index // 2)
        start_hour = 9 if index % 2 == 0 else 14
        sessions.append(
            _session(
                f"ses_{index + 1}",
                "tut_1",
                "Mathematics" if index % 3 else "Physics",
                day,
                start_hour,
                120,
                [student_ids[index % DEMO_STUDENT_COUNT]],
            )
        )
    # Overlaps ses_1 for the same tutor.
    sessions.append(
        _session(
            "ses_15",
            "tut_1",
            "Mathematics",
            base_day + timedelta(days=1),
            10,
            60,
            [student_ids[1], student_ids[2]],
        )
    )
    sessions.append(
        _session(
            "ses_16",
            "tut_3",
            "Chemistry",
            base_day + timedelta(days=2),
            13,
            90,
            [student_ids[5]],
            location="B1-204",
        )
    )
    sessions.append(
        _session(
            "ses_17",
            "tut_2",
            "Mathematics",
            base_day + timedelta(days=2),
            13,
            60,
            [student_ids[6]],
            location="B1-204",
        )
    )
    sessions.append(
        _session(
            "ses_18",
            "tut_2",
            "Mathematics",
            base_day - timedelta(days=3),
            8,
            60,
            [student_ids[7]],
            status="completed",
        )
    )

    semester_start = to_iso(datetime.combine(base_day - timedelta(days=14), time(0), tzinfo=timezone.utc))
    semester_end = to_iso(datetime.combine(base_day + timedelta(days=98), time(0), tzinfo=timezone.utc))
    classes = [
        {
            "id": "cls_1",
            "code": "C01",
            "tutorId": "tut_1",
            "subject": "Mathematics",
            "day": "monday",
            "startTime": "08:00",
            "endTime": "10:00",
            "duration": 120,
            "maxStudents": 30,
            "currentEnrollment": 3,
            "status": "active",
            "semesterStart": semester_start,
            "semesterEnd": semester_end,
            "isOnline": False,
            "location": "B2-101",
            "createdAt": created_at,
            "updatedAt": created_at,
        },
        {
            "id": "cls_2",
            "code": "C02",
            "tutorId": "tut_3",
            "subject": "Chemistry",
            "day": "wednesday",
            "startTime": "13:00",
            "endTime": "15:00",
            "duration": 120,
            "maxStudents": 4,
            "currentEnrollment": 4,
            "status": "active",
            "semesterStart": semester_start,
            "semesterEnd": semester_end,
            "isOnline": True,
            "createdAt": created_at,
            "updatedAt": created_at,
        },
    ]

    enrollments: list[dict[str, Any]] = []
    for index, student_id in enumerate(student_ids[:3]):
        enrollments.append(
            {
                "id": f"enr_{index + 1}",
                "studentId": student_id,
                "classId": "cls_1",
                "status": "active",
                "enrolledAt": created_at,
            }
        )
    for index, student_id in enumerate(student_ids[3:7]):
        enrollments.append(
            {
                "id": f"enr_{index + 4}",
                "studentId": student_id,
                "classId": "cls_2",
                "status": "active",
                "enrolledAt": created_at,
            }
        )

    return {
        Collections.USERS: users,
        Collections.SESSIONS: sessions,
        Collections.CLASSES: classes,
        Collections.ENROLLMENTS: enrollments,
    }


def seed_demo_data_if_empty(store: DocumentStore, today: Optional[date] = None) -> int:
    """Seed the demo dataset only when the users collection is empty."""
    if store.read(Collections.USERS):
        logger.info("Demo data already present; skipping seed")
        return 0

    dataset = build_demo_dataset(today)
    seeded = 0
    for collection, documents in dataset.items():
        store.write(collection, documents)
        seeded += len(documents)
    logger.info("Demo seed completed with %s documents", seeded)
    return seeded
