"""Gamification API endpoints: 7 routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pathwise.database import get_session
from pathwise.db.models import AchievementProgress, Learner
from pathwise.dependencies import get_current_learner, get_engine_dep
from pathwise.gamification.achievement_service import (
    get_achievement,
    get_learner_progress,
    list_visible_achievements,
)
from pathwise.gamification.engine import GamificationEngine, RewardResult
from pathwise.gamification.leveling import rank_catalogue
from pathwise.gamification.schemas import (
    AchievementDefinitionResponse,
    AchievementDetailResponse,
    AchievementProgressResponse,
    AllAchievementsResponse,
    AllRanksResponse,
    GamificationProfileResponse,
    LeaderboardEntry,
    LeaderboardResponse,
    RankEntry,
    RewardRequestBody,
    RewardResponse,
    ViewAchievementResponse,
)

router = APIRouter(prefix="/api/v1/gamification", tags=["Gamification"])


def _progress_response(p: AchievementProgress) -> AchievementProgressResponse:
    return AchievementProgressResponse(
        achievement=AchievementDefinitionResponse.model_validate(p.achievement),
        progress=p.progress,
        is_completed=p.is_completed,
        unlocked_at=p.unlocked_at,
        is_viewed=p.is_viewed,
    )


def reward_response(result: RewardResult) -> RewardResponse:
    return RewardResponse(
        leveled_up=result.leveled_up,
        new_level=result.new_level,
        levels_gained=result.levels_gained,
        rank=result.rank,
        xp_gained=result.xp_gained,
        bonus_xp=result.bonus_xp,
        total_xp=result.total_xp,
        current_xp=result.current_xp,
        required_xp=result.required_xp,
        streak_days=result.streak_days,
        streak_event=result.streak_event,
        achievements_unlocked=[
            AchievementDefinitionResponse.model_validate(a) for a in result.achievements_unlocked
        ],
        duplicate=result.duplicate,
        reason=result.reason,
    )


# ── Public endpoints ──


@router.get("/achievements", response_model=AllAchievementsResponse)
async def list_achievements(db: AsyncSession = Depends(get_session)):
    """Get all non-hidden achievement definitions."""
    definitions = await list_visible_achievements(db)
    return AllAchievementsResponse(
        achievements=[AchievementDefinitionResponse.model_validate(d) for d in definitions]
    )


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    limit: int | None = Query(default=None, ge=1, le=100),
    engine: GamificationEngine = Depends(get_engine_dep),
):
    """Top learners by lifetime XP."""
    entries = await engine.leaderboard(limit)
    return LeaderboardResponse(entries=[LeaderboardEntry(**e) for e in entries])


@router.get("/ranks", response_model=AllRanksResponse)
async def list_ranks():
    """Get all rank tiers with their minimum level."""
    return AllRanksResponse(ranks=[RankEntry(**r) for r in rank_catalogue()])


# ── Learner endpoints ──


@router.get("/profile", response_model=GamificationProfileResponse)
async def get_profile(
    learner: Learner = Depends(get_current_learner),
    engine: GamificationEngine = Depends(get_engine_dep),
):
    """Level, XP, streak and achievements for the calling learner."""
    profile = await engine.get_user_gamification_data(learner.id)
    return GamificationProfileResponse(
        level=profile.level,
        current_xp=profile.current_xp,
        required_xp=profile.required_xp,
        total_xp=profile.total_xp,
        rank=profile.rank,
        streak_days=profile.streak_days,
        longest_streak=profile.longest_streak,
        achievements=[_progress_response(p) for p in profile.achievements],
        in_progress_achievements=[_progress_response(p) for p in profile.in_progress_achievements],
        new_achievements=[_progress_response(p) for p in profile.new_achievements],
    )


@router.post("/reward", response_model=RewardResponse)
async def reward(
    body: RewardRequestBody,
    idempotency_key: str | None = Header(default=None),
    learner: Learner = Depends(get_current_learner),
    engine: GamificationEngine = Depends(get_engine_dep),
):
    """Award XP for an action. Re-sending an idempotency key applies nothing."""
    result = await engine.reward_action(
        learner.id,
        body.action,
        body.params,
        idempotency_key=body.idempotency_key or idempotency_key,
    )
    return reward_response(result)


@router.get("/achievements/{achievement_id}", response_model=AchievementDetailResponse)
async def get_achievement_detail(
    achievement_id: int,
    learner: Learner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
):
    """Achievement definition with the caller's progress on it."""
    definition = await get_achievement(db, achievement_id)
    progress = await get_learner_progress(db, learner.id, achievement_id)
    base = AchievementDefinitionResponse.model_validate(definition).model_dump()
    if progress is None:
        return AchievementDetailResponse(**base)
    return AchievementDetailResponse(
        **base,
        progress=progress.progress,
        is_completed=progress.is_completed,
        unlocked_at=progress.unlocked_at,
        is_viewed=progress.is_viewed,
    )


@router.put("/achievements/{achievement_id}/view", response_model=ViewAchievementResponse)
async def view_achievement(
    achievement_id: int,
    learner: Learner = Depends(get_current_learner),
    engine: GamificationEngine = Depends(get_engine_dep),
):
    """Acknowledge an achievement."""
    if not await engine.mark_achievement_as_viewed(learner.id, achievement_id):
        raise HTTPException(status_code=404, detail="Achievement progress not found")
    return ViewAchievementResponse(achievement_id=achievement_id, is_viewed=True)
