"""Gamification orchestrator.

Every mutating operation runs as one unit of work::

    per-learner lock -> single transaction -> commit -> publish events

A reward request flows action -> XP -> leveling -> streak -> achievement
fixed point. Achievement XP can level the learner up and a level-up can
unlock level-based achievements, so evaluation repeats until a pass
completes nothing new. Each pass completes at least one achievement and
completed ones are never revisited, so the catalog size bounds the loop.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from pathwise.config import Settings, get_settings
from pathwise.db.models import (
    AchievementDefinition,
    AchievementProgress,
    Learner,
    LearnerLevel,
)
from pathwise.exceptions import (
    ConcurrentModificationError,
    LearnerNotFoundError,
    StorageUnavailableError,
)
from pathwise.gamification.achievements import evaluate
from pathwise.gamification.activity import build_activity_snapshot
from pathwise.gamification.events import (
    CHANNEL_ACHIEVEMENT_UNLOCKED,
    CHANNEL_LEVEL_UP,
    CHANNEL_STREAK_UPDATE,
    publish_events,
)
from pathwise.gamification.leveling import LevelState, apply_xp
from pathwise.gamification.locks import LearnerLocks
from pathwise.gamification.streaks import STREAK_RESET, STREAK_UNCHANGED, update_streak
from pathwise.gamification.xp_service import (
    ActionKind,
    action_event,
    compute_action_xp,
    get_level_row,
    get_or_create_level,
    increment_event_counter,
    ledger_has_key,
    level_state_of,
    parse_action,
    record_ledger_entry,
    store_level_state,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RewardRequest:
    """One XP-earning action inside a unit of work."""

    action: ActionKind
    params: Mapping[str, Any] = field(default_factory=dict)
    idempotency_key: str | None = None
    source_id: str | None = None


@dataclass
class RewardResult:
    leveled_up: bool
    new_level: int
    levels_gained: int
    rank: str
    xp_gained: int
    bonus_xp: int
    total_xp: int
    current_xp: int
    required_xp: int
    streak_days: int
    streak_event: str
    achievements_unlocked: list[AchievementDefinition] = field(default_factory=list)
    duplicate: bool = False
    reason: str = ""


@dataclass
class GamificationProfile:
    level: int
    current_xp: int
    required_xp: int
    total_xp: int
    rank: str
    streak_days: int
    longest_streak: int
    achievements: list[AchievementProgress]
    in_progress_achievements: list[AchievementProgress]
    new_achievements: list[AchievementProgress]


@dataclass
class UnitOfWork:
    """Session and clock reading shared by everything in one transaction.

    ``events`` collects pub/sub messages; they are published only after
    the transaction commits.
    """

    session: AsyncSession
    now: datetime
    events: list[tuple[str, dict[str, Any]]] = field(default_factory=list)


class GamificationEngine:
    """Applies rewards and owns the unit-of-work boundary."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        redis: object | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session_factory = session_factory
        self.redis = redis
        self.settings = settings or get_settings()
        self.clock = clock
        self.locks = LearnerLocks(
            redis,
            timeout=self.settings.lock_timeout_seconds,
            blocking_timeout=self.settings.lock_blocking_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def _backoff_seconds(self, attempt: int) -> float:
        base = self.settings.retry_backoff_ms / 1000
        return base * 2 ** (attempt - 1) + random.uniform(0, base)  # noqa: S311

    async def _run_once(self, learner_id: int, work: Callable[[UnitOfWork], Awaitable[T]]) -> T:
        async with self.locks.hold(learner_id):
            async with self.session_factory() as session:
                async with session.begin():
                    uow = UnitOfWork(session=session, now=self.clock())
                    result = await asyncio.wait_for(work(uow), timeout=self.settings.store_timeout_seconds)
        await publish_events(self.redis, uow.events)
        return result

    async def run_unit_of_work(self, learner_id: int, work: Callable[[UnitOfWork], Awaitable[T]]) -> T:
        """Run ``work`` atomically for one learner.

        Optimistic-version conflicts and unique-key races are retried with
        exponential backoff; store outages and timeouts roll everything back
        and surface as ``StorageUnavailableError``.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._run_once(learner_id, work)
            except (StaleDataError, IntegrityError) as e:
                if attempt > self.settings.max_write_retries:
                    logger.warning(
                        "Giving up on learner %s after %d conflicting attempts", learner_id, attempt
                    )
                    raise ConcurrentModificationError(
                        "Learner state changed concurrently; retry the action"
                    ) from e
                delay = self._backoff_seconds(attempt)
                logger.info(
                    "Write conflict for learner %s (attempt %d), retrying in %.3fs", learner_id, attempt, delay
                )
                await asyncio.sleep(delay)
            except (OperationalError, InterfaceError) as e:
                logger.error("Progress store failure for learner %s: %s", learner_id, e)
                raise StorageUnavailableError() from e
            except asyncio.TimeoutError as e:
                logger.error("Progress store timed out for learner %s", learner_id)
                raise StorageUnavailableError("Progress store timed out; no changes were applied") from e

    # ------------------------------------------------------------------
    # Rewards
    # ------------------------------------------------------------------

    async def reward_action(
        self,
        learner_id: int,
        action: str | ActionKind,
        params: Mapping[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> RewardResult:
        """Award XP for one action and return the consolidated result."""
        kind = parse_action(action)
        params = dict(params or {})
        # Reject bad input before touching the store
        compute_action_xp(kind, params)

        key = f"action:{learner_id}:{idempotency_key}" if idempotency_key else None
        request = RewardRequest(action=kind, params=params, idempotency_key=key)

        async def work(uow: UnitOfWork) -> RewardResult:
            return await self.apply_rewards(uow, learner_id, [request])

        return await self.run_unit_of_work(learner_id, work)

    async def apply_rewards(
        self,
        uow: UnitOfWork,
        learner_id: int,
        requests: Sequence[RewardRequest],
    ) -> RewardResult:
        """Apply ``requests`` inside an open unit of work.

        All requests share one streak update and one achievement fixed
        point. A request whose idempotency key is already in the ledger is
        skipped; when every request is skipped nothing changes at all.
        """
        db = uow.session
        now = uow.now

        if await db.get(Learner, learner_id) is None:
            raise LearnerNotFoundError(f"Learner {learner_id} not found")

        row = await get_or_create_level(db, learner_id)
        start = level_state_of(row)
        state = start
        xp_gained = 0
        reasons: list[str] = []
        applied = 0

        for request in requests:
            if request.idempotency_key and await ledger_has_key(db, request.idempotency_key):
                logger.debug("Duplicate reward %s for learner %s", request.idempotency_key, learner_id)
                continue
            xp, reason = compute_action_xp(request.action, request.params)
            record_ledger_entry(
                db, learner_id, xp, request.action.value, request.source_id, reason, request.idempotency_key, now
            )
            state = apply_xp(state, xp).state
            xp_gained += xp
            reasons.append(reason)
            applied += 1

            event = action_event(request.action, request.params)
            if event:
                await increment_event_counter(db, learner_id, event, now)

        if requests and applied == 0:
            return self._result(row, start, state, 0, 0, STREAK_UNCHANGED, [], duplicate=True)

        streak = update_streak(row.streak_days, row.last_activity_date, now)
        if streak.event == STREAK_RESET:
            logger.info("Streak reset for learner %s (was %d days)", learner_id, row.streak_days)
        row.streak_days = streak.streak_days
        row.last_activity_date = streak.last_activity_date
        row.longest_streak = max(row.longest_streak, streak.streak_days)
        if streak.event != STREAK_UNCHANGED:
            uow.events.append((CHANNEL_STREAK_UPDATE, {
                "learner_id": learner_id,
                "streak_days": streak.streak_days,
                "event": streak.event,
            }))

        store_level_state(row, state, now)
        state, bonus_xp, unlocked = await self._evaluate_to_fixed_point(uow, row, state)

        if state.level > start.level:
            logger.info("Learner %s leveled up %d -> %d (%s)", learner_id, start.level, state.level, state.rank)
            uow.events.append((CHANNEL_LEVEL_UP, {
                "learner_id": learner_id,
                "old_level": start.level,
                "new_level": state.level,
                "rank": state.rank,
            }))

        return self._result(
            row, start, state, xp_gained, bonus_xp, streak.event, unlocked, reason="; ".join(reasons)
        )

    async def _evaluate_to_fixed_point(
        self,
        uow: UnitOfWork,
        row: LearnerLevel,
        state: LevelState,
    ) -> tuple[LevelState, int, list[AchievementDefinition]]:
        db = uow.session
        learner_id = row.learner_id

        definitions = list((await db.execute(
            select(AchievementDefinition).order_by(AchievementDefinition.sort_order, AchievementDefinition.id)
        )).scalars())
        progress_rows = {
            p.achievement_id: p
            for p in (await db.execute(
                select(AchievementProgress).where(AchievementProgress.learner_id == learner_id)
            )).scalars().unique()
        }

        bonus_xp = 0
        unlocked: list[AchievementDefinition] = []

        for _ in range(len(definitions) + 1):
            await db.flush()
            snapshot = await build_activity_snapshot(db, row, self.settings.quiz_sample_size)
            completed_ids = {a_id for a_id, p in progress_rows.items() if p.is_completed}
            previous = {a_id: p.progress for a_id, p in progress_rows.items()}

            newly_completed: list[AchievementDefinition] = []
            for ev in evaluate(definitions, snapshot, completed_ids, previous):
                progress_row = progress_rows.get(ev.definition.id)
                if progress_row is None:
                    if ev.progress <= 0:
                        continue
                    progress_row = AchievementProgress(
                        learner_id=learner_id,
                        achievement_id=ev.definition.id,
                        progress=0.0,
                        is_completed=False,
                        is_viewed=False,
                    )
                    db.add(progress_row)
                    progress_rows[ev.definition.id] = progress_row

                if ev.just_completed:
                    progress_row.progress = 100.0
                    progress_row.is_completed = True
                    progress_row.unlocked_at = uow.now
                    progress_row.updated_at = uow.now
                    newly_completed.append(ev.definition)
                elif ev.progress != progress_row.progress:
                    progress_row.progress = ev.progress
                    progress_row.updated_at = uow.now

            if not newly_completed:
                break

            for definition in newly_completed:
                key = f"achievement:{definition.id}:{learner_id}"
                if await ledger_has_key(db, key):
                    continue
                record_ledger_entry(
                    db, learner_id, definition.points, "achievement", str(definition.id),
                    f"Achievement unlocked: {definition.title}", key, uow.now,
                )
                state = apply_xp(state, definition.points).state
                bonus_xp += definition.points
                unlocked.append(definition)
                logger.info("Learner %s unlocked achievement %s", learner_id, definition.slug)
                uow.events.append((CHANNEL_ACHIEVEMENT_UNLOCKED, {
                    "learner_id": learner_id,
                    "achievement_id": definition.id,
                    "slug": definition.slug,
                    "title": definition.title,
                    "rarity": definition.rarity,
                    "points": definition.points,
                }))
            store_level_state(row, state, uow.now)

        return state, bonus_xp, unlocked

    @staticmethod
    def _result(
        row: LearnerLevel,
        start: LevelState,
        state: LevelState,
        xp_gained: int,
        bonus_xp: int,
        streak_event: str,
        unlocked: list[AchievementDefinition],
        duplicate: bool = False,
        reason: str = "",
    ) -> RewardResult:
        return RewardResult(
            leveled_up=state.level > start.level,
            new_level=state.level,
            levels_gained=state.level - start.level,
            rank=state.rank,
            xp_gained=xp_gained,
            bonus_xp=bonus_xp,
            total_xp=state.total_xp,
            current_xp=state.current_xp,
            required_xp=state.required_xp,
            streak_days=row.streak_days,
            streak_event=streak_event,
            achievements_unlocked=unlocked,
            duplicate=duplicate,
            reason=reason,
        )

    # ------------------------------------------------------------------
    # Read model and acknowledgments
    # ------------------------------------------------------------------

    async def get_user_gamification_data(self, learner_id: int) -> GamificationProfile:
        async with self.session_factory() as db:
            if await db.get(Learner, learner_id) is None:
                raise LearnerNotFoundError(f"Learner {learner_id} not found")

            row = await get_level_row(db, learner_id)
            state = level_state_of(row) if row is not None else LevelState()

            result = await db.execute(
                select(AchievementProgress)
                .where(AchievementProgress.learner_id == learner_id)
                .order_by(AchievementProgress.achievement_id)
            )
            progress = list(result.scalars().unique())

        completed = [p for p in progress if p.is_completed]
        return GamificationProfile(
            level=state.level,
            current_xp=state.current_xp,
            required_xp=state.required_xp,
            total_xp=state.total_xp,
            rank=state.rank,
            streak_days=row.streak_days if row is not None else 0,
            longest_streak=row.longest_streak if row is not None else 0,
            achievements=completed,
            in_progress_achievements=[
                p for p in progress
                if not p.is_completed and p.progress > 0 and not p.achievement.is_hidden
            ],
            new_achievements=[p for p in completed if not p.is_viewed],
        )

    async def mark_achievement_as_viewed(self, learner_id: int, achievement_id: int) -> bool:
        """Acknowledge an achievement. False when the learner has no progress on it."""

        async def work(uow: UnitOfWork) -> bool:
            result = await uow.session.execute(
                select(AchievementProgress).where(
                    AchievementProgress.learner_id == learner_id,
                    AchievementProgress.achievement_id == achievement_id,
                )
            )
            progress = result.scalars().unique().one_or_none()
            if progress is None:
                return False
            if not progress.is_viewed:
                progress.is_viewed = True
                progress.updated_at = uow.now
            return True

        return await self.run_unit_of_work(learner_id, work)

    async def leaderboard(self, limit: int | None = None) -> list[dict[str, Any]]:
        """Top learners by lifetime XP."""
        limit = limit or self.settings.leaderboard_size
        async with self.session_factory() as db:
            result = await db.execute(
                select(LearnerLevel, Learner.display_name)
                .join(Learner, LearnerLevel.learner_id == Learner.id)
                .order_by(LearnerLevel.total_xp.desc(), LearnerLevel.level.desc(), LearnerLevel.learner_id)
                .limit(limit)
            )
            rows = result.all()

        return [
            {
                "position": i + 1,
                "learner_id": level.learner_id,
                "display_name": display_name,
                "level": level.level,
                "rank": level.rank,
                "total_xp": level.total_xp,
            }
            for i, (level, display_name) in enumerate(rows)
        ]


# ---------------------------------------------------------------------------
# Process-wide instance
# ---------------------------------------------------------------------------

_engine: GamificationEngine | None = None


def init_engine(
    session_factory: async_sessionmaker[AsyncSession],
    redis: object | None = None,
    settings: Settings | None = None,
) -> GamificationEngine:
    global _engine  # noqa: PLW0603
    _engine = GamificationEngine(session_factory, redis=redis, settings=settings)
    return _engine


def close_engine() -> None:
    global _engine  # noqa: PLW0603
    _engine = None


def get_engine() -> GamificationEngine:
    """Get the gamification engine (FastAPI dependency)."""
    if _engine is None:
        msg = "Gamification engine not initialized. Call init_engine() first."
        raise RuntimeError(msg)
    return _engine

