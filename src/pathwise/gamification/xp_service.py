"""XP awards: action table, idempotent ledger and level-state persistence."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pathwise.db.models import LearnerEventCounter, LearnerLevel, XPLedger
from pathwise.exceptions import InvalidActionError
from pathwise.gamification.leveling import LevelState, compute_rank

logger = logging.getLogger(__name__)


class ActionKind(str, Enum):
    COMPLETE_RESOURCE = "complete_resource"
    COMPLETE_MODULE = "complete_module"
    COMPLETE_QUIZ = "complete_quiz"
    COMPLETE_PATHWAY = "complete_pathway"
    DAILY_LOGIN = "daily_login"
    STREAK_MILESTONE = "streak_milestone"
    ASSESSMENT_COMPLETION = "assessment_completion"
    SPECIAL_EVENT = "special_event"


FIXED_ACTION_XP: dict[ActionKind, int] = {
    ActionKind.COMPLETE_RESOURCE: 10,
    ActionKind.COMPLETE_MODULE: 50,
    ActionKind.COMPLETE_PATHWAY: 200,
    ActionKind.DAILY_LOGIN: 5,
    ActionKind.ASSESSMENT_COMPLETION: 25,
    ActionKind.SPECIAL_EVENT: 0,
}

QUIZ_BASE_XP = 30
QUIZ_MAX_BONUS_XP = 20
STREAK_XP_PER_DAY = 5
MAX_STREAK_DAYS = 3650

# Actions that also bump a special-event counter
ACTION_EVENTS: dict[ActionKind, str] = {
    ActionKind.DAILY_LOGIN: "daily_login",
}


def parse_action(action: str | ActionKind) -> ActionKind:
    try:
        return ActionKind(action)
    except ValueError as e:
        raise InvalidActionError(f"Unknown action: {action!r}") from e


def _numeric_param(params: Mapping[str, Any], name: str) -> float:
    value = params.get(name) or 0
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidActionError(f"Parameter {name!r} must be numeric") from e
    if not math.isfinite(number):
        raise InvalidActionError(f"Parameter {name!r} must be a finite number")
    if number < 0:
        raise InvalidActionError(f"Parameter {name!r} must be non-negative")
    return number


def compute_action_xp(action: ActionKind, params: Mapping[str, Any] | None = None) -> tuple[int, str]:
    """Return ``(xp, reason)`` for an action.

    Quiz completion pays a base award plus up to 20 XP proportional to the
    score; streak milestones pay 5 XP per streak day.
    """
    params = params or {}

    if action is ActionKind.COMPLETE_QUIZ:
        score = _numeric_param(params, "score")
        if score > 100:
            raise InvalidActionError("Parameter 'score' must be between 0 and 100")
        bonus = math.floor(score / 100 * QUIZ_MAX_BONUS_XP)
        return QUIZ_BASE_XP + bonus, f"Quiz completed with {score:g}%"

    if action is ActionKind.STREAK_MILESTONE:
        raw_days = _numeric_param(params, "days")
        if not raw_days.is_integer() or raw_days > MAX_STREAK_DAYS:
            raise InvalidActionError(f"Parameter 'days' must be a whole number up to {MAX_STREAK_DAYS}")
        days = int(raw_days)
        return days * STREAK_XP_PER_DAY, f"{days}-day streak"

    if action is ActionKind.SPECIAL_EVENT:
        event = params.get("event")
        if not event or not isinstance(event, str):
            raise InvalidActionError("special_event requires an 'event' name")
        return 0, f"Special event: {event}"

    reasons = {
        ActionKind.COMPLETE_RESOURCE: "Resource completed",
        ActionKind.COMPLETE_MODULE: "Module completed",
        ActionKind.COMPLETE_PATHWAY: "Learning pathway completed",
        ActionKind.DAILY_LOGIN: "Daily login",
        ActionKind.ASSESSMENT_COMPLETION: "Assessment completed",
    }
    return FIXED_ACTION_XP[action], reasons[action]


def action_event(action: ActionKind, params: Mapping[str, Any] | None = None) -> str | None:
    """Special-event counter bumped by this action, if any."""
    if action is ActionKind.SPECIAL_EVENT:
        return str((params or {})["event"])
    return ACTION_EVENTS.get(action)


# ---------------------------------------------------------------------------
# Level state rows
# ---------------------------------------------------------------------------


async def get_level_row(db: AsyncSession, learner_id: int) -> LearnerLevel | None:
    result = await db.execute(select(LearnerLevel).where(LearnerLevel.learner_id == learner_id))
    return result.scalar_one_or_none()


async def get_or_create_level(db: AsyncSession, learner_id: int) -> LearnerLevel:
    """Get or create the level row for a learner (level 1, 0/100 XP)."""
    row = await get_level_row(db, learner_id)
    if row is None:
        row = LearnerLevel(
            learner_id=learner_id,
            level=1,
            current_xp=0,
            required_xp=100,
            total_xp=0,
            rank=compute_rank(1),
            streak_days=0,
            longest_streak=0,
            last_activity_date=None,
            updated_at=datetime.now(timezone.utc),
        )
        db.add(row)
        await db.flush()
    return row


def level_state_of(row: LearnerLevel) -> LevelState:
    return LevelState(
        level=row.level,
        current_xp=row.current_xp,
        required_xp=row.required_xp,
        total_xp=row.total_xp,
        rank=row.rank,
    )


def store_level_state(row: LearnerLevel, state: LevelState, now: datetime) -> None:
    row.level = state.level
    row.current_xp = state.current_xp
    row.required_xp = state.required_xp
    row.total_xp = state.total_xp
    row.rank = state.rank
    row.updated_at = now


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


async def ledger_has_key(db: AsyncSession, idempotency_key: str) -> bool:
    existing = await db.execute(
        select(XPLedger.id).where(XPLedger.idempotency_key == idempotency_key)
    )
    return existing.scalar_one_or_none() is not None


def record_ledger_entry(
    db: AsyncSession,
    learner_id: int,
    amount: int,
    source: str,
    source_id: str | None,
    description: str,
    idempotency_key: str | None,
    now: datetime,
) -> XPLedger:
    entry = XPLedger(
        learner_id=learner_id,
        amount=amount,
        source=source,
        source_id=source_id,
        description=description,
        idempotency_key=idempotency_key,
        created_at=now,
    )
    db.add(entry)
    return entry


async def increment_event_counter(db: AsyncSession, learner_id: int, event: str, now: datetime) -> int:
    result = await db.execute(
        select(LearnerEventCounter).where(
            LearnerEventCounter.learner_id == learner_id,
            LearnerEventCounter.event == event,
        )
    )
    counter = result.scalar_one_or_none()
    if counter is None:
        counter = LearnerEventCounter(learner_id=learner_id, event=event, count=0)
        db.add(counter)
    counter.count += 1
    counter.updated_at = now
    return counter.count
