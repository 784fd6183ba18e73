"""Pydantic request and response models for gamification endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pathwise.gamification.achievements import CriteriaType
from pathwise.gamification.xp_service import ActionKind

# --- Achievements ---


class AchievementDefinitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    slug: str
    title: str
    description: str
    category: str
    icon: str | None = None
    rarity: str
    points: int
    criteria_type: str
    threshold: float
    criteria_params: dict[str, Any] = {}
    is_hidden: bool = False
    sort_order: int = 0


class AchievementProgressResponse(BaseModel):
    achievement: AchievementDefinitionResponse
    progress: float
    is_completed: bool
    unlocked_at: datetime | None = None
    is_viewed: bool = False


class AchievementDetailResponse(AchievementDefinitionResponse):
    progress: float = 0.0
    is_completed: bool = False
    unlocked_at: datetime | None = None
    is_viewed: bool = False


class AllAchievementsResponse(BaseModel):
    achievements: list[AchievementDefinitionResponse]


class AchievementCreateRequest(BaseModel):
    slug: str = Field(min_length=1, max_length=64)
    title: str = Field(min_length=1, max_length=128)
    description: str
    category: str = Field(max_length=32)
    icon: str | None = None
    rarity: str = Field(default="common", max_length=16)
    points: int = Field(ge=0)
    criteria_type: CriteriaType
    threshold: float = Field(gt=0)
    criteria_params: dict[str, Any] = {}
    is_hidden: bool = False
    sort_order: int = 0


class AchievementUpdateRequest(BaseModel):
    slug: str | None = Field(default=None, min_length=1, max_length=64)
    title: str | None = Field(default=None, min_length=1, max_length=128)
    description: str | None = None
    category: str | None = Field(default=None, max_length=32)
    icon: str | None = None
    rarity: str | None = Field(default=None, max_length=16)
    points: int | None = Field(default=None, ge=0)
    criteria_type: CriteriaType | None = None
    threshold: float | None = Field(default=None, gt=0)
    criteria_params: dict[str, Any] | None = None
    is_hidden: bool | None = None
    sort_order: int | None = None


# --- Profile ---


class GamificationProfileResponse(BaseModel):
    level: int
    current_xp: int
    required_xp: int
    total_xp: int
    rank: str
    streak_days: int
    longest_streak: int
    achievements: list[AchievementProgressResponse]
    in_progress_achievements: list[AchievementProgressResponse]
    new_achievements: list[AchievementProgressResponse]


# --- Rewards ---


class RewardRequestBody(BaseModel):
    action: ActionKind
    params: dict[str, Any] = {}
    idempotency_key: str | None = Field(default=None, max_length=128)


class RewardResponse(BaseModel):
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
    achievements_unlocked: list[AchievementDefinitionResponse]
    duplicate: bool = False
    reason: str = ""


class ViewAchievementResponse(BaseModel):
    achievement_id: int
    is_viewed: bool


# --- Leaderboard / ranks ---


class LeaderboardEntry(BaseModel):
    position: int
    learner_id: int
    display_name: str | None = None
    level: int
    rank: str
    total_xp: int


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntry]


class RankEntry(BaseModel):
    rank: str
    min_level: int


class AllRanksResponse(BaseModel):
    ranks: list[RankEntry]


# --- Learners (admin) ---


class LearnerCreateRequest(BaseModel):
    id: int | None = Field(default=None, ge=1)
    display_name: str | None = Field(default=None, max_length=64)


class LearnerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    display_name: str | None = None
