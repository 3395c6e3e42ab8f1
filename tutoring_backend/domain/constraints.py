"""Domain-level validation rules for workload analysis and plan generation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from tutoring_backend.utils.config import Settings


@dataclass(frozen=True)
class WorkloadThresholds:
    overloaded_hours: float
    high_hours: float
    medium_hours: float
    overloaded_students: int
    high_students: int
    medium_students: int
    underutilized_max_hours: float

    @classmethod
    def from_settings(cls, settings: Settings) -> "WorkloadThresholds":
        return cls(
            overloaded_hours=settings.workload_overloaded_hours,
            high_hours=settings.workload_high_hours,
            medium_hours=settings.workload_medium_hours,
            overloaded_students=settings.workload_overloaded_students,
            high_students=settings.workload_high_students,
            medium_students=settings.workload_medium_students,
            underutilized_max_hours=settings.underutilized_max_hours,
        )


@dataclass(frozen=True)
class GroupBalanceConfig:
    underfilled_ratio: float
    critical_underfilled_ratio: float
    size_buffer: int

    @classmethod
    def from_settings(cls, settings: Settings) -> "GroupBalanceConfig":
        return cls(
            underfilled_ratio=settings.group_underfilled_ratio,
            critical_underfilled_ratio=settings.group_critical_underfilled_ratio,
            size_buffer=settings.group_size_buffer,
        )


@dataclass(frozen=True)
class MatchingConfig:
    solver_max_time_seconds: float
    solver_random_seed: int
    cp_sat_workers: int

    @classmethod
    def from_settings(cls, settings: Settings) -> "MatchingConfig":
        return cls(
            solver_max_time_seconds=settings.matching_solver_max_time_seconds,
            solver_random_seed=settings.matching_solver_random_seed,
            cp_sat_workers=settings.matching_cp_sat_workers,
        )


@dataclass(frozen=True)
class PlanConstraints:
    """Caller-supplied limits applied while generating an optimization plan."""

    max_changes: Optional[int] = None
    excluded_tutor_ids: frozenset[str] = field(default_factory=frozenset)
    max_workload_per_tutor: Optional[float] = None
    max_group_size: Optional[int] = None


def validate_workload_thresholds(thresholds: WorkloadThresholds) -> None:
    if not 0.0 < thresholds.medium_hours < thresholds.high_hours < thresholds.overloaded_hours:
        raise ValueError("hour thresholds must satisfy 0 < medium < high < overloaded")
    if not (
        0 < thresholds.medium_students
        < thresholds.high_students
        < thresholds.overloaded_students
    ):
        raise ValueError("student thresholds must satisfy 0 < medium < high < overloaded")
    if thresholds.underutilized_max_hours < 0.0:
        raise ValueError("underutilized_max_hours must be >= 0")
    if thresholds.underutilized_max_hours > thresholds.medium_hours:
        raise ValueError("underutilized_max_hours must not exceed medium_hours")


def validate_group_balance_config(config: GroupBalanceConfig) -> None:
    if not 0.0 < config.underfilled_ratio <= 1.0:
        raise ValueError("underfilled_ratio must be in (0, 1]")
    if not 0.0 < config.critical_underfilled_ratio <= config.underfilled_ratio:
        raise ValueError("critical_underfilled_ratio must be in (0, underfilled_ratio]")
    if config.size_buffer < 0:
        raise ValueError("size_buffer must be >= 0")


def validate_matching_config(config: MatchingConfig) -> None:
    if config.solver_max_time_seconds <= 0:
        raise ValueError("solver_max_time_seconds must be > 0")
    if config.solver_random_seed < 0:
        raise ValueError("solver_random_seed must be >= 0")
    if config.cp_sat_workers <= 0:
        raise ValueError("cp_sat_workers must be > 0")


def validate_plan_constraints(constraints: PlanConstraints) -> None:
    if constraints.max_changes is not None and constraints.max_changes <= 0:
        raise ValueError("maxChanges must be > 0")
    if constraints.max_workload_per_tutor is not None and constraints.max_workload_per_tutor <= 0:
        raise ValueError("maxWorkloadPerTutor must be > 0")
    if constraints.max_group_size is not None and constraints.max_group_size <= 0:
        raise ValueError("maxGroupSize must be > 0")
    for tutor_id in constraints.excluded_tutor_ids:
        if not tutor_id.strip():
            raise ValueError("excludedTutorIds must not contain blank ids")
