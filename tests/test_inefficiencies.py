from __future__ import annotations

from tutoring_backend.domain.models import InefficiencyType, Severity
from tutoring_backend.repository.document_store import Collections, InMemoryDocumentStore
from tutoring_backend.services.inefficiency_service import InefficiencyDetector


def _known_ids(store) -> set[str]:
    ids: set[str] = set()
    for collection in (Collections.USERS, Collections.SESSIONS, Collections.CLASSES):
        ids.update(str(item["id"]) for item in store.read(collection))
    return ids


def test_demo_dataset_produces_each_category(settings, demo_store) -> None:
    findings = InefficiencyDetector(store=demo_store, settings=settings).identify_inefficiencies()
    summary = [(item.type, item.resource_id, item.severity) for item in findings]

    assert summary == [
        (InefficiencyType.OVERLOADED_TUTOR, "tut_1", Severity.HIGH),
        (InefficiencyType.UNDERUTILIZED_TUTOR, "tut_2", Severity.LOW),
        (InefficiencyType.UNDERUTILIZED_TUTOR, "tut_3", Severity.LOW),
        (InefficiencyType.UNBALANCED_GROUP, "cls_1", Severity.HIGH),
        (InefficiencyType.UNBALANCED_GROUP, "cls_2", Severity.HIGH),
        (InefficiencyType.RESOURCE_CONFLICT, "ses_15", Severity.HIGH),
        (InefficiencyType.RESOURCE_CONFLICT, "ses_17", Severity.HIGH),
    ]


def test_findings_never_reference_missing_resources(settings) -> None:
    store = InMemoryDocumentStore(
        {
            Collections.USERS: [{"id": "tut_a", "role": "tutor", "subjects": ["Biology"]}],
            Collections.SESSIONS: [
                {
                    "id": "s1",
                    "tutorId": "ghost",
                    "status": "confirmed",
                    "duration": 60,
                    "startTime": "2026-03-03T09:00:00.000Z",
                    "endTime": "2026-03-03T10:00:00.000Z",
                },
                {
                    "id": "s2",
                    "tutorId": "ghost",
                    "status": "ongoing",
                    "duration": 60,
                    "startTime": "2026-03-03T09:30:00.000Z",
                    "endTime": "2026-03-03T10:30:00.000Z",
                },
                {
                    "id": "s3",
                    "tutorId": "tut_a",
                    "status": "confirmed",
                    "duration": 60,
                    "startTime": "not-a-time",
                    "endTime": "2026-03-03T10:30:00.000Z",
                },
            ],
            Collections.CLASSES: [
                {"id": "c1", "tutorId": "ghost", "maxStudents": 20, "status": "active", "duration": 60},
                {"id": "c2", "tutorId": "tut_a", "maxStudents": 0, "status": "active", "duration": 60},
            ],
            Collections.ENROLLMENTS: [
                {"id": "e1", "studentId": "ghost_student", "classId": "c1", "status": "active"},
            ],
        }
    )
    findings = InefficiencyDetector(store=store, settings=settings).identify_inefficiencies()
    known = _known_ids(store)

    assert findings
    for finding in findings:
        assert finding.resource_id in known
        assert set(finding.affected_resource_ids) <= known

    conflicts = [item for item in findings if item.type is InefficiencyType.RESOURCE_CONFLICT]
    assert [item.affected_resource_ids for item in conflicts] == [("s1", "s2")]
    groups = [item for item in findings if item.type is InefficiencyType.UNBALANCED_GROUP]
    assert [item.affected_resource_ids for item in groups] == [("c1",)]


def test_group_fill_severity_bands(settings) -> None:
    classes = [
        {"id": "c_low", "maxStudents": 10, "status": "active"},
        {"id": "c_mid", "maxStudents": 10, "status": "full"},
        {"id": "c_ok", "maxStudents": 10, "status": "active"},
        {"id": "c_empty", "maxStudents": 10, "status": "active"},
        {"id": "c_off", "maxStudents": 10, "status": "inactive"},
    ]
    enrolled = {"c_low": 1, "c_mid": 2, "c_ok": 5, "c_off": 1}
    enrollments = [
        {"id": f"{class_id}_{index}", "studentId": f"s{index}", "classId": class_id, "status": "active"}
        for class_id, count in enrolled.items()
        for index in range(count)
    ]
    store = InMemoryDocumentStore({Collections.CLASSES: classes, Collections.ENROLLMENTS: enrollments})

    findings = InefficiencyDetector(store=store, settings=settings).identify_inefficiencies()
    assert [(item.resource_id, item.severity) for item in findings] == [
        ("c_low", Severity.HIGH),
        ("c_mid", Severity.MEDIUM),
    ]


def test_online_sessions_do_not_cause_room_conflicts(settings) -> None:
    sessions = [
        {
            "id": sid,
            "tutorId": tutor,
            "status": "confirmed",
            "isOnline": online,
            "location": "Lab 1",
            "startTime": "2026-03-03T09:00:00.000Z",
            "endTime": "2026-03-03T10:00:00.000Z",
        }
        for sid, tutor, online in (("s1", "t1", True), ("s2", "t2", False))
    ]
    store = InMemoryDocumentStore({Collections.SESSIONS: sessions})
    assert InefficiencyDetector(store=store, settings=settings).identify_inefficiencies() == []


def test_scan_is_stable_for_unchanged_store(settings, demo_store) -> None:
    detector = InefficiencyDetector(store=demo_store, settings=settings)
    first = [(item.type, item.resource_id) for item in detector.identify_inefficiencies()]
    second = [(item.type, item.resource_id) for item in detector.identify_inefficiencies()]
    assert first == second


def test_sessions_with_non_string_timestamps_are_skipped(settings) -> None:
    sessions = [
        {
            "id": sid,
            "tutorId": tutor,
            "status": "confirmed",
            "isOnline": False,
            "location": "Lab 1",
            "startTime": start,
            "endTime": "2026-03-03T10:00:00.000Z",
        }
        for sid, tutor, start in (
            ("s1", "t1", "2026-03-03T09:00:00.000Z"),
            ("s2", "t2", "2026-03-03T09:30:00.000Z"),
            ("s3", "t3", 1772528400000),
        )
    ]
    store = InMemoryDocumentStore({Collections.SESSIONS: sessions})

    findings = InefficiencyDetector(store=store, settings=settings).identify_inefficiencies()

    assert findings
    assert {item.type for item in findings} == {InefficiencyType.RESOURCE_CONFLICT}
    assert all("s3" not in item.affected_resource_ids for item in findings)
