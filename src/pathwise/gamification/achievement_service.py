"""Achievement catalog: public listing and admin maintenance."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pathwise.db.models import AchievementDefinition, AchievementProgress
from pathwise.exceptions import AchievementNotFoundError, InvalidAchievementError, InvalidCriteriaError
from pathwise.gamification.achievements import parse_criteria

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "slug",
    "title",
    "description",
    "category",
    "icon",
    "rarity",
    "points",
    "criteria_type",
    "threshold",
    "criteria_params",
    "is_hidden",
    "sort_order",
)


async def list_visible_achievements(db: AsyncSession) -> list[AchievementDefinition]:
    """Non-hidden definitions in display order."""
    result = await db.execute(
        select(AchievementDefinition)
        .where(AchievementDefinition.is_hidden.is_(False))
        .order_by(AchievementDefinition.sort_order, AchievementDefinition.id)
    )
    return list(result.scalars().all())


async def get_achievement(db: AsyncSession, achievement_id: int, include_hidden: bool = False) -> AchievementDefinition:
    definition = await db.get(AchievementDefinition, achievement_id)
    if definition is None or (definition.is_hidden and not include_hidden):
        raise AchievementNotFoundError(f"Achievement {achievement_id} not found")
    return definition


async def get_learner_progress(db: AsyncSession, learner_id: int, achievement_id: int) -> AchievementProgress | None:
    result = await db.execute(
        select(AchievementProgress).where(
            AchievementProgress.learner_id == learner_id,
            AchievementProgress.achievement_id == achievement_id,
        )
    )
    return result.scalars().unique().one_or_none()


def _validate(definition: AchievementDefinition) -> None:
    # Admin writes are validated up front; the evaluator still tolerates bad rows
    try:
        parse_criteria(definition)
    except InvalidCriteriaError as e:
        raise InvalidAchievementError(e.detail) from e
    if definition.points < 0:
        raise InvalidAchievementError("points must be non-negative")


async def _commit_unique(db: AsyncSession, slug: str) -> None:
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise InvalidAchievementError(f"Achievement slug {slug!r} already exists") from e


async def create_achievement(db: AsyncSession, data: dict[str, Any]) -> AchievementDefinition:
    now = datetime.now(timezone.utc)
    definition = AchievementDefinition(
        **{k: v for k, v in data.items() if k in EDITABLE_FIELDS},
        created_at=now,
        updated_at=now,
    )
    if definition.criteria_params is None:
        definition.criteria_params = {}
    _validate(definition)

    db.add(definition)
    await _commit_unique(db, definition.slug)
    await db.refresh(definition)
    logger.info("Created achievement %s (%s)", definition.id, definition.slug)
    return definition


async def update_achievement(db: AsyncSession, achievement_id: int, changes: dict[str, Any]) -> AchievementDefinition:
    definition = await get_achievement(db, achievement_id, include_hidden=True)
    for field_name, value in changes.items():
        # Only icon may be cleared
        if field_name in EDITABLE_FIELDS and (value is not None or field_name == "icon"):
            setattr(definition, field_name, value)
    _validate(definition)
    definition.updated_at = datetime.now(timezone.utc)

    await _commit_unique(db, definition.slug)
    await db.refresh(definition)
    logger.info("Updated achievement %s", achievement_id)
    return definition


async def delete_achievement(db: AsyncSession, achievement_id: int) -> None:
    """Delete a definition along with every learner's progress on it."""
    definition = await get_achievement(db, achievement_id, include_hidden=True)
    await db.execute(delete(AchievementProgress).where(AchievementProgress.achievement_id == achievement_id))
    await db.delete(definition)
    await db.commit()
    logger.info("Deleted achievement %s", achievement_id)
