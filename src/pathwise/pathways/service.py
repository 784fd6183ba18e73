"""Pathway progress service.

Mutations run inside the gamification engine's unit of work, so a
resource flag, the module/pathway state it implies and the XP it earns
commit together or not at all. Every reward carries an idempotency key
derived from the pathway entity: un-completing and re-completing a
resource, or resetting and re-passing a quiz, never pays twice for the
same resource, module or pathway.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pathwise.db.models import (
    Learner,
    LearnerPathway,
    PathwayModule,
    PathwayResource,
    QuizAttempt,
)
from pathwise.exceptions import InvalidActionError, LearnerNotFoundError, PathwayNotFoundError
from pathwise.gamification.engine import GamificationEngine, RewardRequest, RewardResult, UnitOfWork
from pathwise.gamification.xp_service import ActionKind
from pathwise.pathways import state_machine
from pathwise.pathways.state_machine import PathwayStatus, PathwayTransition

logger = logging.getLogger(__name__)


@dataclass
class PathwayUpdate:
    pathway: LearnerPathway
    transition: PathwayTransition
    reward: RewardResult | None = None
    attempt: QuizAttempt | None = None


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def _with_modules(stmt: Any) -> Any:
    return stmt.options(
        selectinload(LearnerPathway.modules).selectinload(PathwayModule.resources)
    )


async def load_pathway(db: AsyncSession, learner_id: int, pathway_id: int) -> LearnerPathway:
    """Load a learner's pathway with modules and resources."""
    result = await db.execute(
        _with_modules(select(LearnerPathway)).where(
            LearnerPathway.id == pathway_id,
            LearnerPathway.learner_id == learner_id,
        )
    )
    pathway = result.scalar_one_or_none()
    if pathway is None:
        raise PathwayNotFoundError(f"Pathway {pathway_id} not found")
    return pathway


async def list_pathways(db: AsyncSession, learner_id: int) -> list[LearnerPathway]:
    """All of a learner's pathways, most recently accessed first."""
    result = await db.execute(
        _with_modules(select(LearnerPathway))
        .where(LearnerPathway.learner_id == learner_id)
        .order_by(LearnerPathway.last_accessed_at.desc(), LearnerPathway.id.desc())
    )
    return list(result.scalars().all())


async def list_quiz_attempts(
    db: AsyncSession,
    learner_id: int,
    pathway_id: int,
    module_index: int,
) -> list[QuizAttempt]:
    pathway = await load_pathway(db, learner_id, pathway_id)
    state_machine.find_module(pathway, module_index)
    result = await db.execute(
        select(QuizAttempt)
        .where(
            QuizAttempt.learner_id == learner_id,
            QuizAttempt.pathway_id == pathway_id,
            QuizAttempt.module_index == module_index,
        )
        .order_by(QuizAttempt.completed_at.desc(), QuizAttempt.id.desc())
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Enrollment
# ---------------------------------------------------------------------------


async def enroll(
    db: AsyncSession,
    learner_id: int,
    title: str,
    modules: list[dict[str, Any]],
    goal_id: str | None = None,
    default_passing_score: int = 70,
    now: datetime | None = None,
) -> LearnerPathway:
    """Create a pathway in ``not_started`` with only the first module unlocked."""
    if await db.get(Learner, learner_id) is None:
        raise LearnerNotFoundError(f"Learner {learner_id} not found")
    if not modules:
        raise InvalidActionError("A pathway needs at least one module")

    now = now or datetime.now(timezone.utc)
    pathway = LearnerPathway(
        learner_id=learner_id,
        goal_id=goal_id,
        title=title,
        status=PathwayStatus.NOT_STARTED.value,
        progress=0,
        current_module=0,
        started_at=now,
        last_accessed_at=now,
        modules=[
            PathwayModule(
                module_index=index,
                title=spec["title"],
                passing_score=spec.get("passing_score") or default_passing_score,
                completed=False,
                locked=index > 0,
                quiz_completed=False,
                resources=[
                    PathwayResource(resource_id=resource_id, position=position, completed=False)
                    for position, resource_id in enumerate(spec.get("resources") or [])
                ],
            )
            for index, spec in enumerate(modules)
        ],
    )
    db.add(pathway)
    await db.commit()
    logger.info("Learner %s enrolled in pathway %s (%d modules)", learner_id, pathway.id, len(modules))
    return await load_pathway(db, learner_id, pathway.id)


# ---------------------------------------------------------------------------
# Progress mutations
# ---------------------------------------------------------------------------


def _transition_rewards(pathway: LearnerPathway, transition: PathwayTransition) -> list[RewardRequest]:
    rewards: list[RewardRequest] = []
    if transition.module_completed:
        rewards.append(RewardRequest(
            action=ActionKind.COMPLETE_MODULE,
            idempotency_key=f"module:{pathway.id}:{transition.module_index}",
            source_id=f"{pathway.id}:{transition.module_index}",
        ))
    if transition.pathway_completed:
        rewards.append(RewardRequest(
            action=ActionKind.COMPLETE_PATHWAY,
            idempotency_key=f"pathway:{pathway.id}",
            source_id=str(pathway.id),
        ))
        logger.info("Learner %s completed pathway %s", pathway.learner_id, pathway.id)
    return rewards


async def _apply(
    engine: GamificationEngine,
    uow: UnitOfWork,
    pathway: LearnerPathway,
    rewards: list[RewardRequest],
) -> RewardResult | None:
    if not rewards:
        return None
    await uow.session.flush()
    return await engine.apply_rewards(uow, pathway.learner_id, rewards)


async def set_resource_completion(
    engine: GamificationEngine,
    learner_id: int,
    pathway_id: int,
    module_index: int,
    resource_id: str,
    completed: bool,
) -> PathwayUpdate:
    """Set a resource flag; completing it may complete the module and pathway."""

    async def work(uow: UnitOfWork) -> PathwayUpdate:
        pathway = await load_pathway(uow.session, learner_id, pathway_id)
        transition = state_machine.record_resource(pathway, module_index, resource_id, completed, uow.now)

        rewards: list[RewardRequest] = []
        if transition.resource_completed:
            rewards.append(RewardRequest(
                action=ActionKind.COMPLETE_RESOURCE,
                idempotency_key=f"resource:{pathway.id}:{module_index}:{resource_id}",
                source_id=resource_id,
            ))
        rewards += _transition_rewards(pathway, transition)

        reward = await _apply(engine, uow, pathway, rewards)
        return PathwayUpdate(pathway=pathway, transition=transition, reward=reward)

    return await engine.run_unit_of_work(learner_id, work)


async def submit_quiz(
    engine: GamificationEngine,
    learner_id: int,
    pathway_id: int,
    module_index: int,
    score: float,
    total_time_spent: int = 0,
) -> PathwayUpdate:
    """Record a quiz attempt. Every submission earns quiz XP; passing may complete the module."""
    if score < 0 or score > 100:
        raise InvalidActionError("score must be between 0 and 100")
    if total_time_spent < 0:
        raise InvalidActionError("total_time_spent must be non-negative")

    async def work(uow: UnitOfWork) -> PathwayUpdate:
        db = uow.session
        pathway = await load_pathway(db, learner_id, pathway_id)
        transition = state_machine.record_quiz(pathway, module_index, score, uow.now)

        attempt = QuizAttempt(
            learner_id=learner_id,
            pathway_id=pathway_id,
            module_index=module_index,
            score=score,
            total_time_spent=total_time_spent,
            completed=True,
            completed_at=uow.now,
        )
        db.add(attempt)
        await db.flush()

        rewards = [RewardRequest(
            action=ActionKind.COMPLETE_QUIZ,
            params={"score": score},
            idempotency_key=f"quiz-attempt:{attempt.id}",
            source_id=str(attempt.id),
        )]
        rewards += _transition_rewards(pathway, transition)

        reward = await _apply(engine, uow, pathway, rewards)
        return PathwayUpdate(pathway=pathway, transition=transition, reward=reward, attempt=attempt)

    return await engine.run_unit_of_work(learner_id, work)


async def reset_quiz(
    engine: GamificationEngine,
    learner_id: int,
    pathway_id: int,
    module_index: int,
) -> PathwayUpdate:
    """Clear the quiz and its attempts; a completed module reverts to incomplete."""

    async def work(uow: UnitOfWork) -> PathwayUpdate:
        db = uow.session
        pathway = await load_pathway(db, learner_id, pathway_id)
        transition = state_machine.reset_quiz(pathway, module_index, uow.now)
        await db.execute(
            delete(QuizAttempt).where(
                QuizAttempt.pathway_id == pathway_id,
                QuizAttempt.module_index == module_index,
            )
        )
        if transition.module_reverted:
            logger.info("Module %s of pathway %s reverted by quiz reset", module_index, pathway_id)
        return PathwayUpdate(pathway=pathway, transition=transition)

    return await engine.run_unit_of_work(learner_id, work)
