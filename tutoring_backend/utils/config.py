"""Process configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str
    data_dir: Path
    seed_demo_data: bool

    workload_overloaded_hours: float
    workload_high_hours: float
    workload_medium_hours: float
    workload_overloaded_students: int
    workload_high_students: int
    workload_medium_students: int
    underutilized_max_hours: float

    group_underfilled_ratio: float
    group_critical_underfilled_ratio: float
    group_size_buffer: int

    approval_deadline_hours: int

    matching_solver_max_time_seconds: float
    matching_solver_random_seed: int
    matching_cp_sat_workers: int

    default_page_size: int
    max_page_size: int


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; call ``cache_clear`` to reload."""
    return Settings(
        app_name=_env_str("TUTORING_APP_NAME", "Tutoring Resource Optimizer"),
        app_version=_env_str("TUTORING_APP_VERSION", "1.0.0"),
        log_level=_env_str("LOG_LEVEL", "INFO"),
        data_dir=Path(_env_str("TUTORING_DATA_DIR", str(PROJECT_ROOT / "data"))),
        seed_demo_data=_env_bool("TUTORING_SEED_DEMO_DATA", True),
        workload_overloaded_hours=_env_float("TUTORING_WORKLOAD_OVERLOADED_HOURS", 30.0),
        workload_high_hours=_env_float("TUTORING_WORKLOAD_HIGH_HOURS", 20.0),
        workload_medium_hours=_env_float("TUTORING_WORKLOAD_MEDIUM_HOURS", 10.0),
        workload_overloaded_students=_env_int("TUTORING_WORKLOAD_OVERLOADED_STUDENTS", 50),
        workload_high_students=_env_int("TUTORING_WORKLOAD_HIGH_STUDENTS", 30),
        workload_medium_students=_env_int("TUTORING_WORKLOAD_MEDIUM_STUDENTS", 15),
        underutilized_max_hours=_env_float("TUTORING_UNDERUTILIZED_MAX_HOURS", 5.0),
        group_underfilled_ratio=_env_float("TUTORING_GROUP_UNDERFILLED_RATIO", 0.30),
        group_critical_underfilled_ratio=_env_float(
            "TUTORING_GROUP_CRITICAL_UNDERFILLED_RATIO", 0.20
        ),
        group_size_buffer=_env_int("TUTORING_GROUP_SIZE_BUFFER", 2),
        approval_deadline_hours=_env_int("TUTORING_APPROVAL_DEADLINE_HOURS", 48),
        matching_solver_max_time_seconds=_env_float("TUTORING_MATCHING_MAX_TIME_SECONDS", 5.0),
        matching_solver_random_seed=_env_int("TUTORING_MATCHING_RANDOM_SEED", 42),
        matching_cp_sat_workers=_env_int("TUTORING_MATCHING_CP_SAT_WORKERS", 1),
        default_page_size=_env_int("TUTORING_DEFAULT_PAGE_SIZE", 20),
        max_page_size=_env_int("TUTORING_MAX_PAGE_SIZE", 100),
    )
