"""Pathway progress API endpoints: 7 routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pathwise.config import Settings, get_settings
from pathwise.database import get_session
from pathwise.db.models import Learner, LearnerPathway, PathwayModule
from pathwise.dependencies import get_current_learner, get_engine_dep
from pathwise.gamification.engine import GamificationEngine
from pathwise.gamification.router import reward_response
from pathwise.pathways import service
from pathwise.pathways.schemas import (
    ModuleResponse,
    PathwayCreateRequest,
    PathwayListResponse,
    PathwayResponse,
    PathwaySummaryResponse,
    PathwayUpdateResponse,
    QuizAttemptListResponse,
    QuizAttemptResponse,
    QuizResponse,
    QuizSubmitRequest,
    ResourceCompletionRequest,
    ResourceResponse,
    TransitionResponse,
)
from pathwise.pathways.state_machine import module_state

router = APIRouter(prefix="/api/v1/pathways", tags=["Pathways"])


def _module_response(m: PathwayModule) -> ModuleResponse:
    return ModuleResponse(
        module_index=m.module_index,
        title=m.title,
        passing_score=m.passing_score,
        state=module_state(m).value,
        completed=m.completed,
        locked=m.locked,
        quiz=QuizResponse(completed=m.quiz_completed, score=m.quiz_score, completed_at=m.quiz_completed_at),
        resources=[
            ResourceResponse(resource_id=r.resource_id, completed=r.completed, completed_at=r.completed_at)
            for r in m.resources
        ],
    )


def _pathway_response(p: LearnerPathway) -> PathwayResponse:
    return PathwayResponse(
        id=p.id,
        goal_id=p.goal_id,
        title=p.title,
        status=p.status,
        progress=p.progress,
        current_module=p.current_module,
        started_at=p.started_at,
        last_accessed_at=p.last_accessed_at,
        completed_at=p.completed_at,
        modules=[_module_response(m) for m in p.modules],
    )


def _update_response(update: service.PathwayUpdate) -> PathwayUpdateResponse:
    t = update.transition
    return PathwayUpdateResponse(
        pathway=_pathway_response(update.pathway),
        transition=TransitionResponse(
            module_completed=t.module_completed,
            module_reverted=t.module_reverted,
            resource_completed=t.resource_completed,
            pathway_completed=t.pathway_completed,
            pathway_reopened=t.pathway_reopened,
        ),
        reward=reward_response(update.reward) if update.reward else None,
    )


@router.post("", response_model=PathwayResponse, status_code=201)
async def enroll(
    body: PathwayCreateRequest,
    learner: Learner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
    engine: GamificationEngine = Depends(get_engine_dep),
    settings: Settings = Depends(get_settings),
):
    """Enroll the caller in a new pathway."""
    pathway = await service.enroll(
        db,
        learner.id,
        body.title,
        [m.model_dump() for m in body.modules],
        goal_id=body.goal_id,
        default_passing_score=settings.passing_score,
        now=engine.clock(),
    )
    return _pathway_response(pathway)


@router.get("", response_model=PathwayListResponse)
async def list_pathways(
    learner: Learner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
):
    """Dashboard summary of the caller's pathways."""
    pathways = await service.list_pathways(db, learner.id)
    return PathwayListResponse(
        pathways=[
            PathwaySummaryResponse(
                id=p.id,
                title=p.title,
                status=p.status,
                progress=p.progress,
                current_module=p.current_module,
                total_modules=len(p.modules),
                completed_modules=sum(1 for m in p.modules if m.completed),
                last_accessed_at=p.last_accessed_at,
            )
            for p in pathways
        ],
        total=len(pathways),
    )


@router.get("/{pathway_id}", response_model=PathwayResponse)
async def get_pathway(
    pathway_id: int,
    learner: Learner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
):
    pathway = await service.load_pathway(db, learner.id, pathway_id)
    return _pathway_response(pathway)


@router.put("/{pathway_id}/modules/{module_index}/resources/{resource_id}", response_model=PathwayUpdateResponse)
async def set_resource_completion(
    pathway_id: int,
    module_index: int,
    resource_id: str,
    body: ResourceCompletionRequest,
    learner: Learner = Depends(get_current_learner),
    engine: GamificationEngine = Depends(get_engine_dep),
):
    """Mark a resource completed (or not) and re-derive module progress."""
    update = await service.set_resource_completion(
        engine, learner.id, pathway_id, module_index, resource_id, body.completed
    )
    return _update_response(update)


@router.post("/{pathway_id}/modules/{module_index}/quiz/submit", response_model=PathwayUpdateResponse)
async def submit_quiz(
    pathway_id: int,
    module_index: int,
    body: QuizSubmitRequest,
    learner: Learner = Depends(get_current_learner),
    engine: GamificationEngine = Depends(get_engine_dep),
):
    update = await service.submit_quiz(
        engine, learner.id, pathway_id, module_index, body.score, body.total_time_spent
    )
    return _update_response(update)


@router.post("/{pathway_id}/modules/{module_index}/quiz/reset", response_model=PathwayUpdateResponse)
async def reset_quiz(
    pathway_id: int,
    module_index: int,
    learner: Learner = Depends(get_current_learner),
    engine: GamificationEngine = Depends(get_engine_dep),
):
    """Clear the module's quiz so the learner can retake it."""
    update = await service.reset_quiz(engine, learner.id, pathway_id, module_index)
    return _update_response(update)


@router.get("/{pathway_id}/modules/{module_index}/quiz/attempts", response_model=QuizAttemptListResponse)
async def list_quiz_attempts(
    pathway_id: int,
    module_index: int,
    learner: Learner = Depends(get_current_learner),
    db: AsyncSession = Depends(get_session),
):
    attempts = await service.list_quiz_attempts(db, learner.id, pathway_id, module_index)
    return QuizAttemptListResponse(
        attempts=[
            QuizAttemptResponse(
                id=a.id,
                module_index=a.module_index,
                score=a.score,
                total_time_spent=a.total_time_spent,
                completed_at=a.completed_at,
            )
            for a in attempts
        ]
    )
