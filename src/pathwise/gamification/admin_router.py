"""Admin endpoints: achievement catalog maintenance and learner registration."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from pathwise.database import get_session
from pathwise.db.models import Learner
from pathwise.dependencies import require_admin
from pathwise.gamification.achievement_service import (
    create_achievement,
    delete_achievement,
    update_achievement,
)
from pathwise.gamification.schemas import (
    AchievementCreateRequest,
    AchievementDefinitionResponse,
    AchievementUpdateRequest,
    LearnerCreateRequest,
    LearnerResponse,
)

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


@router.post("/achievements", response_model=AchievementDefinitionResponse, status_code=201)
async def create_achievement_endpoint(
    body: AchievementCreateRequest,
    db: AsyncSession = Depends(get_session),
):
    definition = await create_achievement(db, body.model_dump(mode="json"))
    return AchievementDefinitionResponse.model_validate(definition)


@router.put("/achievements/{achievement_id}", response_model=AchievementDefinitionResponse)
async def update_achievement_endpoint(
    achievement_id: int,
    body: AchievementUpdateRequest,
    db: AsyncSession = Depends(get_session),
):
    definition = await update_achievement(db, achievement_id, body.model_dump(mode="json", exclude_unset=True))
    return AchievementDefinitionResponse.model_validate(definition)


@router.delete("/achievements/{achievement_id}", status_code=204)
async def delete_achievement_endpoint(
    achievement_id: int,
    db: AsyncSession = Depends(get_session),
):
    await delete_achievement(db, achievement_id)
    return Response(status_code=204)


@router.post("/learners", response_model=LearnerResponse, status_code=201)
async def register_learner(
    body: LearnerCreateRequest,
    db: AsyncSession = Depends(get_session),
):
    """Register a learner known to the upstream identity provider."""
    if body.id is not None and await db.get(Learner, body.id) is not None:
        raise HTTPException(status_code=409, detail="Learner already exists")
    learner = Learner(display_name=body.display_name)
    if body.id is not None:
        learner.id = body.id
    db.add(learner)
    await db.commit()
    await db.refresh(learner)
    return LearnerResponse.model_validate(learner)
