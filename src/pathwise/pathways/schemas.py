"""Pydantic request and response models for pathway endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from pathwise.gamification.schemas import RewardResponse

# --- Requests ---


class ModuleCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    passing_score: int | None = Field(default=None, ge=0, le=100)
    resources: list[str] = []

    @field_validator("resources")
    @classmethod
    def resources_unique(cls, v: list[str]) -> list[str]:
        if len(set(v)) != len(v):
            raise ValueError("resource ids must be unique within a module")
        return v


class PathwayCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    goal_id: str | None = Field(default=None, max_length=64)
    modules: list[ModuleCreate] = Field(min_length=1)


class ResourceCompletionRequest(BaseModel):
    completed: bool = True


class QuizSubmitRequest(BaseModel):
    score: float = Field(ge=0, le=100)
    total_time_spent: int = Field(default=0, ge=0)


# --- Responses ---


class ResourceResponse(BaseModel):
    resource_id: str
    completed: bool
    completed_at: datetime | None = None


class QuizResponse(BaseModel):
    completed: bool
    score: float | None = None
    completed_at: datetime | None = None


class ModuleResponse(BaseModel):
    module_index: int
    title: str
    passing_score: int
    state: str
    completed: bool
    locked: bool
    quiz: QuizResponse
    resources: list[ResourceResponse]


class PathwayResponse(BaseModel):
    id: int
    goal_id: str | None = None
    title: str
    status: str
    progress: int
    current_module: int
    started_at: datetime
    last_accessed_at: datetime
    completed_at: datetime | None = None
    modules: list[ModuleResponse]


class PathwaySummaryResponse(BaseModel):
    id: int
    title: str
    status: str
    progress: int
    current_module: int
    total_modules: int
    completed_modules: int
    last_accessed_at: datetime


class PathwayListResponse(BaseModel):
    pathways: list[PathwaySummaryResponse]
    total: int


class TransitionResponse(BaseModel):
    module_completed: bool = False
    module_reverted: bool = False
    resource_completed: bool = False
    pathway_completed: bool = False
    pathway_reopened: bool = False


class PathwayUpdateResponse(BaseModel):
    pathway: PathwayResponse
    transition: TransitionResponse
    reward: RewardResponse | None = None


class QuizAttemptResponse(BaseModel):
    id: int
    module_index: int
    score: float
    total_time_spent: int
    completed_at: datetime | None = None


class QuizAttemptListResponse(BaseModel):
    attempts: list[QuizAttemptResponse]
