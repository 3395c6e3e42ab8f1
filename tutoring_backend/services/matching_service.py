"""Session reallocation matching between overloaded and underutilized tutors using CP-SAT."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Optional

from ortools.sat.python import cp_model

from tutoring_backend.domain.constraints import MatchingConfig, validate_matching_config
from tutoring_backend.utils.config import Settings, get_settings
from tutoring_backend.utils.logger import get_logger


logger = get_logger(__name__)

PairKey = tuple[str, str, str]


@dataclass(frozen=True)
class ReallocationCandidate:
    """A session that may leave an overloaded tutor."""

    source_tutor_id: str
    session_id: str
    subject: str
    minutes: int


@dataclass(frozen=True)
class ReceivingTutor:
    tutor_id: str
    subjects: frozenset[str]
    current_hours: float


@dataclass(frozen=True)
class Reallocation:
    source_tutor_id: str
    session_id: str
    target_tutor_id: str
    minutes: int


@dataclass(frozen=True)
class BuildArtifacts:
    model: Any
    variables: dict[PairKey, Any]
    objective_coefficients: dict[PairKey, int]
    candidate_minutes: dict[PairKey, int]


def _ranked_receivers(receivers: list[ReceivingTutor]) -> list[ReceivingTutor]:
    return sorted(receivers, key=lambda item: (item.current_hours, item.tutor_id))


def build_model(
    *,
    candidates: list[ReallocationCandidate],
    receivers: list[ReceivingTutor],
    max_workload_hours: float,
) -> BuildArtifacts:
    """Build the assignment model.

    At most one session leaves each source tutor, each receiver accepts at
    most one session and must stay within ``max_workload_hours``. Moved
    minutes dominate the objective; the remaining weight prefers earlier
    candidates and less-loaded receivers so ties resolve the same way on
    every run.
    """
    model = cp_model.CpModel()
    ranked = _ranked_receivers(receivers)
    source_count = len({candidate.source_tutor_id for candidate in candidates})
    penalty_span = max(1, len(candidates) * len(ranked))
    minute_weight = penalty_span * max(1, source_count) + 1

    variables: dict[PairKey, Any] = {}
    objective_coefficients: dict[PairKey, int] = {}
    candidate_minutes: dict[PairKey, int] = {}

    for candidate_rank, candidate in enumerate(candidates):
        if candidate.minutes <= 0:
            continue
        for receiver_rank, receiver in enumerate(ranked):
            if receiver.tutor_id == candidate.source_tutor_id:
                continue
            if candidate.subject not in receiver.subjects:
                continue
            if receiver.current_hours + candidate.minutes / 60.0 > max_workload_hours:
                continue
            key = (candidate.source_tutor_id, candidate.session_id, receiver.tutor_id)
            variables[key] = model.NewBoolVar(
                f"x_{candidate.source_tutor_id}_{candidate.session_id}_{receiver.tutor_id}"
            )
            penalty = candidate_rank * len(ranked) + receiver_rank
            objective_coefficients[key] = candidate.minutes * minute_weight - penalty
            candidate_minutes[key] = candidate.minutes

    by_source: dict[str, list[Any]] = defaultdict(list)
    by_receiver: dict[str, list[Any]] = defaultdict(list)
    by_session: dict[str, list[Any]] = defaultdict(list)
    for (source_id, session_id, receiver_id), var in variables.items():
        by_source[source_id].append(var)
        by_receiver[receiver_id].append(var)
        by_session[session_id].append(var)

    for group in (by_source, by_receiver, by_session):
        for group_vars in group.values():
            model.Add(sum(group_vars) <= 1)

    if variables:
        model.Maximize(
            sum(objective_coefficients[key] * var for key, var in variables.items())
        )
    else:
        model.Maximize(0)

    return BuildArtifacts(
        model=model,
        variables=variables,
        objective_coefficients=objective_coefficients,
        candidate_minutes=candidate_minutes,
    )


def solve_model(
    *,
    artifacts: BuildArtifacts,
    config: MatchingConfig,
) -> list[Reallocation]:
    """Solve the model and return chosen reallocations in variable order."""
    if not artifacts.variables:
        return []

    solver = cp_model.CpSolver()
    solver.parameters.max_time_in_seconds = float(config.solver_max_time_seconds)
    solver.parameters.num_workers = config.cp_sat_workers
    solver.parameters.random_seed = config.solver_random_seed

    status = solver.Solve(artifacts.model)
    status_name = solver.StatusName(status)
    if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
        logger.warning("Reallocation solve failed | status=%s", status_name)
        return []

    chosen: list[Reallocation] = []
    for key, var in artifacts.variables.items():
        if solver.Value(var) != 1:
            continue
        source_id, session_id, receiver_id = key
        chosen.append(
            Reallocation(
                source_tutor_id=source_id,
                session_id=session_id,
                target_tutor_id=receiver_id,
                minutes=artifacts.candidate_minutes[key],
            )
        )

    logger.info(
        "Reallocation solve completed | status=%s | variables=%s | reallocations=%s",
        status_name,
        len(artifacts.variables),
        len(chosen),
    )
    return chosen


class ReallocationMatcher:
    """Chooses which session each overloaded tutor should hand over, and to whom."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        config: Optional[MatchingConfig] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._config = config or MatchingConfig.from_settings(self._settings)
        validate_matching_config(self._config)

    def match(
        self,
        *,
        candidates: list[ReallocationCandidate],
        receivers: list[ReceivingTutor],
        max_workload_hours: float,
    ) -> dict[str, Reallocation]:
        """Return the chosen reallocation keyed by source tutor id."""
        if not candidates or not receivers:
            return {}
        artifacts = build_model(
            candidates=candidates,
            receivers=receivers,
            max_workload_hours=max_workload_hours,
        )
        return {
            item.source_tutor_id: item
            for item in solve_model(artifacts=artifacts, config=self._config)
        }
