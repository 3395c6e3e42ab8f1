"""Tests for workload, group balance, matching and plan constraint validation."""

from __future__ import annotations

import pytest

from tutoring_backend.domain.constraints import (
    GroupBalanceConfig,
    MatchingConfig,
    PlanConstraints,
    WorkloadThresholds,
    validate_group_balance_config,
    validate_matching_config,
    validate_plan_constraints,
    validate_workload_thresholds,
)
from tutoring_backend.utils.identifiers import parse_iso


def valid_thresholds(**overrides) -> WorkloadThresholds:
    defaults = {
        "overloaded_hours": 30.0,
        "high_hours": 20.0,
        "medium_hours": 10.0,
        "overloaded_students": 50,
        "high_students": 30,
        "medium_students": 15,
        "underutilized_max_hours": 5.0,
    }
    defaults.update(overrides)
    return WorkloadThresholds(**defaults)


# --- Baseline pass ---

def test_default_configs_pass(settings) -> None:
    validate_workload_thresholds(WorkloadThresholds.from_settings(settings))
    validate_group_balance_config(GroupBalanceConfig.from_settings(settings))
    validate_matching_config(MatchingConfig.from_settings(settings))
    validate_plan_constraints(PlanConstraints())


# --- workload thresholds ---

def test_hour_thresholds_out_of_order_raise() -> None:
    with pytest.raises(ValueError):
        validate_workload_thresholds(valid_thresholds(high_hours=35.0))


def test_student_thresholds_out_of_order_raise() -> None:
    with pytest.raises(ValueError):
        validate_workload_thresholds(valid_thresholds(medium_students=40))


def test_underutilized_above_medium_raises() -> None:
    with pytest.raises(ValueError):
        validate_workload_thresholds(valid_thresholds(underutilized_max_hours=12.0))


# --- group balance ---

def test_critical_ratio_above_underfilled_raises() -> None:
    with pytest.raises(ValueError):
        validate_group_balance_config(
            GroupBalanceConfig(underfilled_ratio=0.2, critical_underfilled_ratio=0.3, size_buffer=2)
        )


def test_negative_size_buffer_raises() -> None:
    with pytest.raises(ValueError):
        validate_group_balance_config(
            GroupBalanceConfig(underfilled_ratio=0.3, critical_underfilled_ratio=0.2, size_buffer=-1)
        )


# --- matching ---

@pytest.mark.parametrize(
    "overrides",
    [
        {"solver_max_time_seconds": 0.0},
        {"solver_random_seed": -1},
        {"cp_sat_workers": 0},
    ],
)
def test_invalid_matching_config_raises(overrides) -> None:
    values = {"solver_max_time_seconds": 5.0, "solver_random_seed": 42, "cp_sat_workers": 1}
    values.update(overrides)
    with pytest.raises(ValueError):
        validate_matching_config(MatchingConfig(**values))


# --- plan constraints ---

@pytest.mark.parametrize(
    ("constraints", "message"),
    [
        (PlanConstraints(max_changes=0), "maxChanges"),
        (PlanConstraints(max_workload_per_tutor=0.0), "maxWorkloadPerTutor"),
        (PlanConstraints(max_group_size=-3), "maxGroupSize"),
        (PlanConstraints(excluded_tutor_ids=frozenset({" "})), "excludedTutorIds"),
    ],
)
def test_invalid_plan_constraints_raise(constraints, message) -> None:
    with pytest.raises(ValueError, match=message):
        validate_plan_constraints(constraints)


def test_parse_iso_rejects_non_string_timestamps() -> None:
    with pytest.raises(TypeError):
        parse_iso(1767225600000)
    with pytest.raises(ValueError):
        parse_iso("")
    assert parse_iso("2026-03-03T09:00:00.000Z").tzinfo is not None
