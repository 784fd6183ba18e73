"""ORM models for learners, level state, achievements and pathway progress.

The schema is created by the Alembic migrations in ``alembic/versions``;
tests build it directly from ``Base.metadata``.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pathwise.db.base import Base, BigIntId, JSONType

# ---------------------------------------------------------------------------
# Learners
# ---------------------------------------------------------------------------


class Learner(Base):
    """A learner known to the engine. Identity and auth live upstream."""

    __tablename__ = "learners"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    display_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    level_state: Mapped[LearnerLevel | None] = relationship("LearnerLevel", back_populates="learner", uselist=False)


# ---------------------------------------------------------------------------
# Level state
# ---------------------------------------------------------------------------


class LearnerLevel(Base):
    """Denormalized level, XP and streak state, single row per learner.

    ``version`` is an optimistic-concurrency counter: a flush against a row
    that another transaction has already bumped raises ``StaleDataError``.
    """

    __tablename__ = "learner_levels"

    learner_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("learners.id", ondelete="CASCADE"), primary_key=True
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    current_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    required_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    total_xp: Mapped[int] = mapped_column(BigIntId, nullable=False, default=0)
    rank: Mapped[str] = mapped_column(String(32), nullable=False, default="Novice")
    streak_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_activity_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    learner: Mapped[Learner] = relationship("Learner", back_populates="level_state")

    __mapper_args__ = {"version_id_col": version}  # noqa: RUF012


class XPLedger(Base):
    """Immutable XP transaction log with idempotency key."""

    __tablename__ = "xp_ledger"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    learner_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("learners.id", ondelete="CASCADE"), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    source_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    description: Mapped[str | None] = mapped_column(String(256), nullable=True)
    idempotency_key: Mapped[str | None] = mapped_column(String(256), unique=True, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class LearnerEventCounter(Base):
    """Caller-reported special-event counts (first login, mentoring sessions...)."""

    __tablename__ = "learner_event_counters"

    learner_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("learners.id", ondelete="CASCADE"), primary_key=True
    )
    event: Mapped[str] = mapped_column(String(64), primary_key=True)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------


class AchievementDefinition(Base):
    """Achievement catalog entry, read-only to the engine."""

    __tablename__ = "achievement_definitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    icon: Mapped[str | None] = mapped_column(String(64), nullable=True)
    rarity: Mapped[str] = mapped_column(String(16), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    criteria_type: Mapped[str] = mapped_column(String(32), nullable=False)
    threshold: Mapped[float] = mapped_column(Float, nullable=False)
    criteria_params: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    is_hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class AchievementProgress(Base):
    """Per-learner progress on one achievement: UNIQUE(learner_id, achievement_id)."""

    __tablename__ = "achievement_progress"
    __table_args__ = (
        UniqueConstraint("learner_id", "achievement_id", name="uq_achievement_progress_learner_achievement"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    learner_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("learners.id", ondelete="CASCADE"), nullable=False)
    achievement_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("achievement_definitions.id", ondelete="CASCADE"), nullable=False
    )
    progress: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    unlocked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_viewed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    achievement: Mapped[AchievementDefinition] = relationship("AchievementDefinition", lazy="joined")

    __mapper_args__ = {"version_id_col": version}  # noqa: RUF012


# ---------------------------------------------------------------------------
# Pathways
# ---------------------------------------------------------------------------


class LearnerPathway(Base):
    """A learner's copy of a learning plan: ordered modules with progress flags."""

    __tablename__ = "learner_pathways"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    learner_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("learners.id", ondelete="CASCADE"), nullable=False)
    goal_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="not_started")
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_module: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_accessed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    modules: Mapped[list[PathwayModule]] = relationship(
        "PathwayModule",
        back_populates="pathway",
        order_by="PathwayModule.module_index",
        cascade="all, delete-orphan",
    )


class PathwayModule(Base):
    """Module progress entry: resource flags plus the quiz sub-record."""

    __tablename__ = "pathway_modules"
    __table_args__ = (
        UniqueConstraint("pathway_id", "module_index", name="uq_pathway_modules_pathway_index"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    pathway_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("learner_pathways.id", ondelete="CASCADE"), nullable=False
    )
    module_index: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    passing_score: Mapped[int] = mapped_column(Integer, nullable=False, default=70)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    quiz_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    quiz_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    quiz_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    pathway: Mapped[LearnerPathway] = relationship("LearnerPathway", back_populates="modules")
    resources: Mapped[list[PathwayResource]] = relationship(
        "PathwayResource",
        back_populates="module",
        order_by="PathwayResource.position",
        cascade="all, delete-orphan",
    )


class PathwayResource(Base):
    """Resource completion flag within a module."""

    __tablename__ = "pathway_resources"
    __table_args__ = (
        UniqueConstraint("module_id", "resource_id", name="uq_pathway_resources_module_resource"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    module_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("pathway_modules.id", ondelete="CASCADE"), nullable=False
    )
    resource_id: Mapped[str] = mapped_column(String(128), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    module: Mapped[PathwayModule] = relationship("PathwayModule", back_populates="resources")


class QuizAttempt(Base):
    """One submitted quiz attempt; feeds the quiz-score achievement metric."""

    __tablename__ = "quiz_attempts"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    learner_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("learners.id", ondelete="CASCADE"), nullable=False)
    pathway_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("learner_pathways.id", ondelete="CASCADE"), nullable=False
    )
    module_index: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    total_time_spent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
