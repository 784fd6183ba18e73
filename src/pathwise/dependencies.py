"""Shared FastAPI dependencies."""

from __future__ import annotations

import hmac

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from pathwise.config import Settings, get_settings
from pathwise.database import get_session
from pathwise.db.models import Learner
from pathwise.exceptions import LearnerNotFoundError
from pathwise.gamification.engine import GamificationEngine
from pathwise.gamification.engine import get_engine as _get_engine


def get_engine_dep() -> GamificationEngine:
    """Gamification engine as a FastAPI dependency."""
    return _get_engine()


async def get_current_learner(
    x_learner_id: str | None = Header(default=None),
    db: AsyncSession = Depends(get_session),
) -> Learner:
    """
    Resolve the caller from the ``X-Learner-Id`` header.

    Authentication happens upstream; this only trusts the forwarded id.
    Raises 401 without the header and 404 for unknown learners.
    """
    if not x_learner_id:
        raise HTTPException(status_code=401, detail="Missing X-Learner-Id header")
    try:
        learner_id = int(x_learner_id)
    except ValueError as e:
        raise HTTPException(status_code=401, detail="Invalid X-Learner-Id header") from e

    learner = await db.get(Learner, learner_id)
    if learner is None:
        raise LearnerNotFoundError(f"Learner {learner_id} not found")
    return learner


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Guard the admin surface with the shared ``X-Admin-Token`` secret."""
    if not settings.admin_token:
        raise HTTPException(status_code=403, detail="Admin API disabled")
    if not x_admin_token or not hmac.compare_digest(x_admin_token, settings.admin_token):
        raise HTTPException(status_code=403, detail="Invalid admin token")
