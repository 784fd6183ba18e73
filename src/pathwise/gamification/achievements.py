"""Achievement criteria evaluation.

Every criteria kind maps to exactly one metric function over an
``ActivitySnapshot``. Progress is ``min(100, metric / threshold * 100)``.
The table is checked at import time, so adding a ``CriteriaType`` member
without a metric fails loudly instead of scoring zero forever.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from pathwise.exceptions import InvalidCriteriaError

logger = logging.getLogger(__name__)


class CriteriaType(str, Enum):
    MODULES_COMPLETED = "complete_modules"
    PATHWAYS_COMPLETED = "complete_pathways"
    QUIZ_SCORE = "quiz_score"
    STREAK_DAYS = "streak_days"
    RESOURCES_COMPLETED = "resources_completed"
    TIME_SPENT = "time_spent"
    SPECIAL_EVENT = "special_event"
    LEVEL = "level"
    TOTAL_XP = "total_xp"


class AchievementLike(Protocol):
    id: int
    slug: str
    criteria_type: str
    threshold: float
    criteria_params: dict[str, Any]


@dataclass(frozen=True)
class ActivitySnapshot:
    """Aggregate learner activity, read once per unit of work."""

    completed_modules: int = 0
    completed_pathways: int = 0
    completed_resources: int = 0
    quiz_scores: tuple[float, ...] = ()  # best first, at most N
    quiz_attempts: int = 0
    streak_days: int = 0
    hours_spent: float = 0.0
    special_events: Mapping[str, int] = field(default_factory=dict)
    level: int = 1
    total_xp: int = 0


@dataclass(frozen=True)
class AchievementEvaluation:
    definition: AchievementLike
    progress: float
    just_completed: bool


def _quiz_average(snapshot: ActivitySnapshot, _definition: AchievementLike) -> float:
    if not snapshot.quiz_scores:
        return 0.0
    return sum(snapshot.quiz_scores) / len(snapshot.quiz_scores)


def _special_event_count(snapshot: ActivitySnapshot, definition: AchievementLike) -> float:
    event = (definition.criteria_params or {}).get("event") or definition.slug
    return float(snapshot.special_events.get(event, 0))


METRICS: dict[CriteriaType, Callable[[ActivitySnapshot, AchievementLike], float]] = {
    CriteriaType.MODULES_COMPLETED: lambda s, _d: float(s.completed_modules),
    CriteriaType.PATHWAYS_COMPLETED: lambda s, _d: float(s.completed_pathways),
    CriteriaType.QUIZ_SCORE: _quiz_average,
    CriteriaType.STREAK_DAYS: lambda s, _d: float(s.streak_days),
    CriteriaType.RESOURCES_COMPLETED: lambda s, _d: float(s.completed_resources),
    CriteriaType.TIME_SPENT: lambda s, _d: s.hours_spent,
    CriteriaType.SPECIAL_EVENT: _special_event_count,
    CriteriaType.LEVEL: lambda s, _d: float(s.level),
    CriteriaType.TOTAL_XP: lambda s, _d: float(s.total_xp),
}

_missing = set(CriteriaType) - set(METRICS)
if _missing:  # pragma: no cover
    raise RuntimeError(f"No metric registered for criteria: {sorted(m.value for m in _missing)}")


def parse_criteria(definition: AchievementLike) -> CriteriaType:
    """Resolve the definition's criteria, rejecting unknown kinds and bad thresholds."""
    try:
        criteria = CriteriaType(definition.criteria_type)
    except ValueError as e:
        raise InvalidCriteriaError(f"Unknown criteria type: {definition.criteria_type!r}") from e
    if definition.threshold is None or definition.threshold <= 0:
        raise InvalidCriteriaError(f"Threshold must be positive, got {definition.threshold!r}")
    return criteria


def compute_progress(definition: AchievementLike, snapshot: ActivitySnapshot) -> float:
    """Progress percentage (0-100) for one definition."""
    criteria = parse_criteria(definition)
    metric = METRICS[criteria](snapshot, definition)
    progress = min(100.0, metric / definition.threshold * 100)

    if criteria is CriteriaType.QUIZ_SCORE:
        min_count = int((definition.criteria_params or {}).get("min_quiz_count") or 0)
        if min_count > 0 and snapshot.quiz_attempts < min_count:
            progress = min(progress, snapshot.quiz_attempts / min_count * 100)

    return max(0.0, progress)


def evaluate(
    definitions: Iterable[AchievementLike],
    snapshot: ActivitySnapshot,
    completed_ids: set[int],
    previous_progress: Mapping[int, float] | None = None,
) -> list[AchievementEvaluation]:
    """Evaluate every incomplete achievement against ``snapshot``.

    Completed achievements are skipped entirely. Progress never goes below
    the previously recorded value. A definition with invalid criteria
    scores 0 and never blocks the others.
    """
    previous_progress = previous_progress or {}
    results: list[AchievementEvaluation] = []

    for definition in definitions:
        if definition.id in completed_ids:
            continue
        try:
            progress = compute_progress(definition, snapshot)
        except InvalidCriteriaError as e:
            logger.warning("Skipping achievement %s: %s", definition.slug, e.detail)
            progress = 0.0

        progress = max(progress, previous_progress.get(definition.id, 0.0))
        results.append(AchievementEvaluation(
            definition=definition,
            progress=progress,
            just_completed=progress >= 100,
        ))

    return results
