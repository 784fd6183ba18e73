"""Achievement seed data: the default catalog installed on startup."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pathwise.db.models import AchievementDefinition

logger = logging.getLogger(__name__)

ACHIEVEMENT_SEED_DATA: list[dict] = [
    # Resources
    {
        "slug": "first_step",
        "title": "First Step",
        "description": "Complete your first learning resource",
        "category": "learning",
        "icon": "BookOpen",
        "rarity": "common",
        "points": 10,
        "criteria_type": "resources_completed",
        "threshold": 1,
    },
    {
        "slug": "avid_reader",
        "title": "Avid Reader",
        "description": "Complete 10 learning resources",
        "category": "learning",
        "icon": "BookOpen",
        "rarity": "common",
        "points": 25,
        "criteria_type": "resources_completed",
        "threshold": 10,
    },
    {
        "slug": "knowledge_seeker",
        "title": "Knowledge Seeker",
        "description": "Complete 50 learning resources",
        "category": "learning",
        "icon": "BookOpen",
        "rarity": "uncommon",
        "points": 100,
        "criteria_type": "resources_completed",
        "threshold": 50,
    },
    {
        "slug": "scholar",
        "title": "Scholar",
        "description": "Complete 100 learning resources",
        "category": "learning",
        "icon": "BookOpen",
        "rarity": "rare",
        "points": 250,
        "criteria_type": "resources_completed",
        "threshold": 100,
    },
    # Modules
    {
        "slug": "first_module",
        "title": "Module Complete",
        "description": "Complete your first learning module",
        "category": "learning",
        "icon": "Layers",
        "rarity": "common",
        "points": 25,
        "criteria_type": "complete_modules",
        "threshold": 1,
    },
    {
        "slug": "module_explorer",
        "title": "Module Explorer",
        "description": "Complete 5 learning modules",
        "category": "learning",
        "icon": "Layers",
        "rarity": "uncommon",
        "points": 75,
        "criteria_type": "complete_modules",
        "threshold": 5,
    },
    {
        "slug": "module_master",
        "title": "Module Master",
        "description": "Complete 20 learning modules",
        "category": "learning",
        "icon": "Layers",
        "rarity": "rare",
        "points": 200,
        "criteria_type": "complete_modules",
        "threshold": 20,
    },
    # Pathways
    {
        "slug": "pathfinder",
        "title": "Pathfinder",
        "description": "Complete your first learning pathway",
        "category": "learning",
        "icon": "Map",
        "rarity": "uncommon",
        "points": 100,
        "criteria_type": "complete_pathways",
        "threshold": 1,
    },
    {
        "slug": "trailblazer",
        "title": "Trailblazer",
        "description": "Complete 3 different learning pathways",
        "category": "learning",
        "icon": "Map",
        "rarity": "rare",
        "points": 300,
        "criteria_type": "complete_pathways",
        "threshold": 3,
    },
    {
        "slug": "cartographer",
        "title": "Cartographer",
        "description": "Complete 5 different learning pathways",
        "category": "learning",
        "icon": "Map",
        "rarity": "epic",
        "points": 500,
        "criteria_type": "complete_pathways",
        "threshold": 5,
    },
    # Quizzes
    {
        "slug": "first_quiz",
        "title": "First Quiz",
        "description": "Complete your first quiz",
        "category": "learning",
        "icon": "CheckSquare",
        "rarity": "common",
        "points": 15,
        "criteria_type": "quiz_score",
        "threshold": 1,
    },
    {
        "slug": "quiz_master",
        "title": "Quiz Master",
        "description": "Score a perfect 100% on a quiz",
        "category": "learning",
        "icon": "Award",
        "rarity": "uncommon",
        "points": 50,
        "criteria_type": "quiz_score",
        "threshold": 100,
        "criteria_params": {"min_quiz_count": 1},
    },
    {
        "slug": "quiz_expert",
        "title": "Quiz Expert",
        "description": "Average 90% over 10 quizzes",
        "category": "learning",
        "icon": "Award",
        "rarity": "rare",
        "points": 150,
        "criteria_type": "quiz_score",
        "threshold": 90,
        "criteria_params": {"min_quiz_count": 10},
    },
    # Engagement
    {
        "slug": "first_login",
        "title": "Welcome Aboard",
        "description": "Log in for the first time",
        "category": "engagement",
        "icon": "LogIn",
        "rarity": "common",
        "points": 5,
        "criteria_type": "special_event",
        "threshold": 1,
        "criteria_params": {"event": "daily_login"},
    },
    {
        "slug": "streak_3",
        "title": "Warming Up",
        "description": "Stay active 3 days in a row",
        "category": "engagement",
        "icon": "Calendar",
        "rarity": "common",
        "points": 15,
        "criteria_type": "streak_days",
        "threshold": 3,
    },
    {
        "slug": "streak_7",
        "title": "Week Warrior",
        "description": "Stay active 7 days in a row",
        "category": "engagement",
        "icon": "Calendar",
        "rarity": "uncommon",
        "points": 50,
        "criteria_type": "streak_days",
        "threshold": 7,
    },
    {
        "slug": "streak_30",
        "title": "Monthly Devotion",
        "description": "Stay active 30 days in a row",
        "category": "engagement",
        "icon": "Calendar",
        "rarity": "rare",
        "points": 200,
        "criteria_type": "streak_days",
        "threshold": 30,
    },
    {
        "slug": "streak_100",
        "title": "Unstoppable",
        "description": "Stay active 100 days in a row",
        "category": "engagement",
        "icon": "Calendar",
        "rarity": "legendary",
        "points": 500,
        "criteria_type": "streak_days",
        "threshold": 100,
    },
    {
        "slug": "hour_1",
        "title": "Getting Started",
        "description": "Spend 1 hour on your pathways",
        "category": "engagement",
        "icon": "Clock",
        "rarity": "common",
        "points": 10,
        "criteria_type": "time_spent",
        "threshold": 1,
    },
    {
        "slug": "hour_10",
        "title": "Dedicated",
        "description": "Spend 10 hours on your pathways",
        "category": "engagement",
        "icon": "Clock",
        "rarity": "uncommon",
        "points": 50,
        "criteria_type": "time_spent",
        "threshold": 10,
    },
    {
        "slug": "hour_50",
        "title": "Committed",
        "description": "Spend 50 hours on your pathways",
        "category": "engagement",
        "icon": "Clock",
        "rarity": "rare",
        "points": 150,
        "criteria_type": "time_spent",
        "threshold": 50,
    },
    {
        "slug": "hour_100",
        "title": "Lifelong Learner",
        "description": "Spend 100 hours on your pathways",
        "category": "engagement",
        "icon": "Clock",
        "rarity": "epic",
        "points": 300,
        "criteria_type": "time_spent",
        "threshold": 100,
    },
    # Progression
    {
        "slug": "level_5",
        "title": "Apprentice",
        "description": "Reach level 5",
        "category": "progression",
        "icon": "TrendingUp",
        "rarity": "uncommon",
        "points": 50,
        "criteria_type": "level",
        "threshold": 5,
    },
    {
        "slug": "level_10",
        "title": "Student of the Craft",
        "description": "Reach level 10",
        "category": "progression",
        "icon": "TrendingUp",
        "rarity": "rare",
        "points": 150,
        "criteria_type": "level",
        "threshold": 10,
    },
    {
        "slug": "xp_1000",
        "title": "Thousand Club",
        "description": "Earn 1,000 XP in total",
        "category": "progression",
        "icon": "Zap",
        "rarity": "uncommon",
        "points": 50,
        "criteria_type": "total_xp",
        "threshold": 1000,
    },
    # Special
    {
        "slug": "ai_pioneer",
        "title": "AI Pioneer",
        "description": "Be among the first 100 learners on the platform",
        "category": "special",
        "icon": "Star",
        "rarity": "legendary",
        "points": 100,
        "criteria_type": "special_event",
        "threshold": 1,
    },
    {
        "slug": "budding_mentor",
        "title": "Budding Mentor",
        "description": "Help 5 other learners on the forum",
        "category": "special",
        "icon": "Users",
        "rarity": "rare",
        "points": 100,
        "criteria_type": "special_event",
        "threshold": 5,
        "criteria_params": {"event": "forum_help"},
        "is_hidden": True,
    },
]


async def seed_achievements(db: AsyncSession) -> int:
    """Insert or update all seed achievements by slug. Returns count written."""
    now = datetime.now(timezone.utc)
    result = await db.execute(select(AchievementDefinition))
    existing = {a.slug: a for a in result.scalars()}

    count = 0
    for sort_order, data in enumerate(ACHIEVEMENT_SEED_DATA, start=1):
        values = {
            "criteria_params": {},
            "is_hidden": False,
            **data,
            "sort_order": sort_order,
        }
        definition = existing.get(data["slug"])
        if definition is None:
            db.add(AchievementDefinition(**values, created_at=now, updated_at=now))
        else:
            for field_name, value in values.items():
                setattr(definition, field_name, value)
            definition.updated_at = now
        count += 1

    await db.commit()
    logger.info("Seeded %d achievements", count)
    return count
