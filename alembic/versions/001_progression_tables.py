"""Progression tables.

Creates learners, learner_levels, xp_ledger, learner_event_counters,
achievement_definitions, achievement_progress, learner_pathways,
pathway_modules, pathway_resources and quiz_attempts.

Revision ID: 001_progression_tables
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_progression_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Learners ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS learners (
            id BIGSERIAL PRIMARY KEY,
            display_name VARCHAR(64),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Level state ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS learner_levels (
            learner_id BIGINT PRIMARY KEY REFERENCES learners(id) ON DELETE CASCADE,
            level INTEGER NOT NULL DEFAULT 1 CHECK (level >= 1),
            current_xp INTEGER NOT NULL DEFAULT 0 CHECK (current_xp >= 0),
            required_xp INTEGER NOT NULL DEFAULT 100 CHECK (required_xp >= 1),
            total_xp BIGINT NOT NULL DEFAULT 0 CHECK (total_xp >= 0),
            rank VARCHAR(32) NOT NULL DEFAULT 'Novice',
            streak_days INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_activity_date DATE,
            version INTEGER NOT NULL DEFAULT 1,
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_learner_levels_total_xp
        ON learner_levels(total_xp DESC)
    """)

    # --- XP Ledger ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS xp_ledger (
            id BIGSERIAL PRIMARY KEY,
            learner_id BIGINT NOT NULL REFERENCES learners(id) ON DELETE CASCADE,
            amount INTEGER NOT NULL,
            source VARCHAR(32) NOT NULL,
            source_id VARCHAR(128),
            description VARCHAR(256),
            idempotency_key VARCHAR(256) UNIQUE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_xp_ledger_learner
        ON xp_ledger(learner_id, created_at DESC)
    """)

    # --- Special-event counters ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS learner_event_counters (
            learner_id BIGINT NOT NULL REFERENCES learners(id) ON DELETE CASCADE,
            event VARCHAR(64) NOT NULL,
            count INTEGER NOT NULL DEFAULT 0,
            updated_at TIMESTAMPTZ,
            PRIMARY KEY (learner_id, event)
        )
    """)

    # --- Achievement definitions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievement_definitions (
            id SERIAL PRIMARY KEY,
            slug VARCHAR(64) UNIQUE NOT NULL,
            title VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            category VARCHAR(32) NOT NULL,
            icon VARCHAR(64),
            rarity VARCHAR(16) NOT NULL,
            points INTEGER NOT NULL CHECK (points >= 0),
            criteria_type VARCHAR(32) NOT NULL,
            threshold DOUBLE PRECISION NOT NULL,
            criteria_params JSONB NOT NULL DEFAULT '{}',
            is_hidden BOOLEAN NOT NULL DEFAULT false,
            sort_order INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_achievement_defs_category
        ON achievement_definitions(category)
    """)

    # --- Achievement progress ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievement_progress (
            id BIGSERIAL PRIMARY KEY,
            learner_id BIGINT NOT NULL REFERENCES learners(id) ON DELETE CASCADE,
            achievement_id INTEGER NOT NULL REFERENCES achievement_definitions(id) ON DELETE CASCADE,
            progress DOUBLE PRECISION NOT NULL DEFAULT 0 CHECK (progress >= 0 AND progress <= 100),
            is_completed BOOLEAN NOT NULL DEFAULT false,
            unlocked_at TIMESTAMPTZ,
            is_viewed BOOLEAN NOT NULL DEFAULT false,
            version INTEGER NOT NULL DEFAULT 1,
            updated_at TIMESTAMPTZ,
            CONSTRAINT uq_achievement_progress_learner_achievement UNIQUE (learner_id, achievement_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_achievement_progress_learner
        ON achievement_progress(learner_id)
    """)

    # --- Pathways ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS learner_pathways (
            id BIGSERIAL PRIMARY KEY,
            learner_id BIGINT NOT NULL REFERENCES learners(id) ON DELETE CASCADE,
            goal_id VARCHAR(64),
            title VARCHAR(200) NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'not_started'
                CHECK (status IN ('not_started', 'active', 'completed')),
            progress INTEGER NOT NULL DEFAULT 0 CHECK (progress >= 0 AND progress <= 100),
            current_module INTEGER NOT NULL DEFAULT 0,
            started_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            last_accessed_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            completed_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_learner_pathways_learner
        ON learner_pathways(learner_id, last_accessed_at DESC)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS pathway_modules (
            id BIGSERIAL PRIMARY KEY,
            pathway_id BIGINT NOT NULL REFERENCES learner_pathways(id) ON DELETE CASCADE,
            module_index INTEGER NOT NULL,
            title VARCHAR(200) NOT NULL,
            passing_score INTEGER NOT NULL DEFAULT 70,
            completed BOOLEAN NOT NULL DEFAULT false,
            locked BOOLEAN NOT NULL DEFAULT true,
            quiz_completed BOOLEAN NOT NULL DEFAULT false,
            quiz_score DOUBLE PRECISION,
            quiz_completed_at TIMESTAMPTZ,
            CONSTRAINT uq_pathway_modules_pathway_index UNIQUE (pathway_id, module_index)
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS pathway_resources (
            id BIGSERIAL PRIMARY KEY,
            module_id BIGINT NOT NULL REFERENCES pathway_modules(id) ON DELETE CASCADE,
            resource_id VARCHAR(128) NOT NULL,
            position INTEGER NOT NULL DEFAULT 0,
            completed BOOLEAN NOT NULL DEFAULT false,
            completed_at TIMESTAMPTZ,
            CONSTRAINT uq_pathway_resources_module_resource UNIQUE (module_id, resource_id)
        )
    """)

    # --- Quiz attempts ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS quiz_attempts (
            id BIGSERIAL PRIMARY KEY,
            learner_id BIGINT NOT NULL REFERENCES learners(id) ON DELETE CASCADE,
            pathway_id BIGINT NOT NULL REFERENCES learner_pathways(id) ON DELETE CASCADE,
            module_index INTEGER NOT NULL,
            score DOUBLE PRECISION NOT NULL CHECK (score >= 0 AND score <= 100),
            total_time_spent INTEGER NOT NULL DEFAULT 0,
            completed BOOLEAN NOT NULL DEFAULT true,
            completed_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_quiz_attempts_learner_score
        ON quiz_attempts(learner_id, score DESC)
    """)


def downgrade() -> None:
    for table in (
        "quiz_attempts",
        "pathway_resources",
        "pathway_modules",
        "learner_pathways",
        "achievement_progress",
        "achievement_definitions",
        "learner_event_counters",
        "xp_ledger",
        "learner_levels",
        "learners",
    ):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
