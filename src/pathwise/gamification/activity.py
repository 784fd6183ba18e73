"""Activity snapshot assembly: reads a learner's aggregate activity from the store."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pathwise.db.models import (
    LearnerEventCounter,
    LearnerLevel,
    LearnerPathway,
    PathwayModule,
    PathwayResource,
    QuizAttempt,
)
from pathwise.gamification.achievements import ActivitySnapshot
from pathwise.pathways.state_machine import PathwayStatus


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


async def build_activity_snapshot(
    db: AsyncSession,
    level_row: LearnerLevel,
    quiz_sample_size: int = 5,
) -> ActivitySnapshot:
    """Aggregate everything the achievement metrics read, in one pass."""
    learner_id = level_row.learner_id

    completed_modules = await db.scalar(
        select(func.count(PathwayModule.id))
        .join(LearnerPathway, PathwayModule.pathway_id == LearnerPathway.id)
        .where(LearnerPathway.learner_id == learner_id, PathwayModule.completed.is_(True))
    )

    completed_pathways = await db.scalar(
        select(func.count(LearnerPathway.id)).where(
            LearnerPathway.learner_id == learner_id,
            LearnerPathway.status == PathwayStatus.COMPLETED.value,
        )
    )

    completed_resources = await db.scalar(
        select(func.count(PathwayResource.id))
        .join(PathwayModule, PathwayResource.module_id == PathwayModule.id)
        .join(LearnerPathway, PathwayModule.pathway_id == LearnerPathway.id)
        .where(LearnerPathway.learner_id == learner_id, PathwayResource.completed.is_(True))
    )

    # Best N completed attempts
    top_scores = await db.execute(
        select(QuizAttempt.score)
        .where(QuizAttempt.learner_id == learner_id, QuizAttempt.completed.is_(True))
        .order_by(QuizAttempt.score.desc())
        .limit(quiz_sample_size)
    )
    quiz_attempts = await db.scalar(
        select(func.count(QuizAttempt.id)).where(
            QuizAttempt.learner_id == learner_id, QuizAttempt.completed.is_(True)
        )
    )

    # Wall-clock span between start and last access, per pathway
    spans = await db.execute(
        select(LearnerPathway.started_at, LearnerPathway.last_accessed_at).where(
            LearnerPathway.learner_id == learner_id
        )
    )
    hours_spent = 0.0
    for started_at, last_accessed_at in spans:
        if started_at is None or last_accessed_at is None:
            continue
        span = (_as_utc(last_accessed_at) - _as_utc(started_at)).total_seconds()
        hours_spent += max(0.0, span) / 3600

    events = await db.execute(
        select(LearnerEventCounter.event, LearnerEventCounter.count).where(
            LearnerEventCounter.learner_id == learner_id
        )
    )

    return ActivitySnapshot(
        completed_modules=completed_modules or 0,
        completed_pathways=completed_pathways or 0,
        completed_resources=completed_resources or 0,
        quiz_scores=tuple(float(s) for s in top_scores.scalars().all()),
        quiz_attempts=quiz_attempts or 0,
        streak_days=level_row.streak_days,
        hours_spent=hours_spent,
        special_events={event: count for event, count in events},
        level=level_row.level,
        total_xp=level_row.total_xp,
    )
