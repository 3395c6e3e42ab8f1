from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest

from tutoring_backend.repository.document_store import InMemoryDocumentStore
from tutoring_backend.repository.seed_data import build_demo_dataset
from tutoring_backend.utils.config import Settings, get_settings


DEMO_DAY = date(2026, 3, 2)


@pytest.fixture
def settings(tmp_path) -> Settings:
    get_settings.cache_clear()
    return replace(
        get_settings(),
        data_dir=tmp_path / "data",
        seed_demo_data=False,
        matching_solver_max_time_seconds=5.0,
        matching_cp_sat_workers=1,
        matching_solver_random_seed=42,
    )


@pytest.fixture
def demo_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore(build_demo_dataset(DEMO_DAY))
