from __future__ import annotations

import json

import pytest

from tutoring_backend.repository.document_store import (
    Collections,
    InMemoryDocumentStore,
    JsonFileDocumentStore,
    StoreError,
)
from tutoring_backend.repository.seed_data import seed_demo_data_if_empty


def test_json_store_persists_across_instances(settings) -> None:
    store = JsonFileDocumentStore(settings)
    store.initialize_collections()
    store.create(Collections.OPTIMIZATION_PLANS, {"id": "plan_1", "status": "draft"})
    store.update(Collections.OPTIMIZATION_PLANS, "plan_1", {"status": "pending"})

    reopened = JsonFileDocumentStore(settings)
    assert reopened.find_by_id(Collections.OPTIMIZATION_PLANS, "plan_1") == {
        "id": "plan_1",
        "status": "pending",
    }
    for collection in Collections.ALL:
        assert (settings.data_dir / collection).exists()


def test_json_store_wraps_corrupt_files(settings) -> None:
    store = JsonFileDocumentStore(settings)
    (settings.data_dir / Collections.USERS).write_text("{not json", encoding="utf-8")
    with pytest.raises(StoreError):
        store.read(Collections.USERS)


def test_json_store_rejects_non_array_payload(settings) -> None:
    store = JsonFileDocumentStore(settings)
    (settings.data_dir / Collections.USERS).write_text(json.dumps({"id": "x"}), encoding="utf-8")
    with pytest.raises(StoreError):
        store.read(Collections.USERS)


def test_create_rejects_duplicate_and_missing_ids() -> None:
    store = InMemoryDocumentStore()
    store.create(Collections.USERS, {"id": "u1"})
    with pytest.raises(StoreError):
        store.create(Collections.USERS, {"id": "u1"})
    with pytest.raises(StoreError):
        store.create(Collections.USERS, {"name": "anonymous"})


def test_reads_return_copies() -> None:
    store = InMemoryDocumentStore({Collections.USERS: [{"id": "u1", "subjects": ["Math"]}]})
    document = store.find_by_id(Collections.USERS, "u1")
    document["subjects"].append("Physics")
    assert store.find_by_id(Collections.USERS, "u1")["subjects"] == ["Math"]


def test_update_and_delete_missing_documents() -> None:
    store = InMemoryDocumentStore()
    assert store.update(Collections.SESSIONS, "missing", {"status": "cancelled"}) is None
    assert store.delete(Collections.SESSIONS, "missing") is False


def test_find_by_ids_skips_unknown_ids() -> None:
    store = InMemoryDocumentStore({Collections.USERS: [{"id": "a"}, {"id": "b"}]})
    assert set(store.find_by_ids(Collections.USERS, ["a", "zzz", "b"])) == {"a", "b"}


def test_paginate_sorts_filters_and_slices() -> None:
    plans = [
        {"id": f"plan_{index}", "status": "draft" if index % 2 else "applied", "createdAt": f"2026-03-0{index}"}
        for index in range(1, 8)
    ]
    store = InMemoryDocumentStore({Collections.OPTIMIZATION_PLANS: plans})

    page = store.paginate(
        Collections.OPTIMIZATION_PLANS,
        page=2,
        limit=2,
        predicate=lambda p: p["status"] == "draft",
        sort_key=lambda p: p["createdAt"],
        reverse=True,
    )
    assert page.total == 4
    assert page.total_pages == 2
    assert [item["id"] for item in page.items] == ["plan_3", "plan_1"]

    with pytest.raises(ValueError):
        store.paginate(Collections.OPTIMIZATION_PLANS, page=0)


def test_unknown_collection_names_are_rejected() -> None:
    store = InMemoryDocumentStore()
    with pytest.raises(ValueError):
        store.read("../secrets.json")


def test_seed_only_runs_on_empty_store(settings) -> None:
    store = JsonFileDocumentStore(settings)
    assert seed_demo_data_if_empty(store) > 0
    assert seed_demo_data_if_empty(store) == 0
    assert store.find_by_id(Collections.SESSIONS, "ses_9")["tutorId"] == "tut_1"
