"""Level curve, rank tiers and XP application.

Each level costs 50% more XP than the previous one:
``required_xp(level) = floor(100 * 1.5 ** (level - 1))``.
XP carries over between levels, so ``current_xp`` is always the XP accrued
toward the *next* level and ``total_xp`` is the lifetime sum.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

BASE_REQUIRED_XP = 100

# Highest threshold first; the first match wins.
RANK_THRESHOLDS: list[dict] = [
    {"min_level": 50, "rank": "Visionary"},
    {"min_level": 40, "rank": "Grand Master"},
    {"min_level": 30, "rank": "Master"},
    {"min_level": 20, "rank": "Expert"},
    {"min_level": 15, "rank": "Researcher"},
    {"min_level": 10, "rank": "Student"},
    {"min_level": 5, "rank": "Apprentice"},
    {"min_level": 1, "rank": "Novice"},
]

RANKS: list[str] = [t["rank"] for t in reversed(RANK_THRESHOLDS)]


@dataclass(frozen=True)
class LevelState:
    level: int = 1
    current_xp: int = 0
    required_xp: int = BASE_REQUIRED_XP
    total_xp: int = 0
    rank: str = "Novice"


@dataclass(frozen=True)
class LevelUpResult:
    state: LevelState
    leveled_up: bool
    levels_gained: int


def required_xp_for_level(level: int) -> int:
    """XP needed to complete ``level``.

    Integer arithmetic keeps the curve exact at high levels:
    100 * 1.5^(n) == 100 * 3^n / 2^n.
    """
    if level < 1:
        raise ValueError(f"level must be >= 1, got {level}")
    n = level - 1
    return (BASE_REQUIRED_XP * 3**n) // 2**n


def compute_rank(level: int) -> str:
    """Map a level to its rank tier."""
    for tier in RANK_THRESHOLDS:
        if level >= tier["min_level"]:
            return tier["rank"]
    return RANK_THRESHOLDS[-1]["rank"]


def apply_xp(state: LevelState, delta: int) -> LevelUpResult:
    """Add ``delta`` XP and resolve every level-up it pays for.

    A single large award can cross several levels, hence the loop.
    A zero delta returns the state unchanged (rank re-derived).
    """
    if delta < 0:
        raise ValueError(f"XP delta must be non-negative, got {delta}")

    level = state.level
    current_xp = state.current_xp + delta
    required_xp = state.required_xp
    levels_gained = 0

    while current_xp >= required_xp:
        current_xp -= required_xp
        level += 1
        required_xp = required_xp_for_level(level)
        levels_gained += 1

    new_state = replace(
        state,
        level=level,
        current_xp=current_xp,
        required_xp=required_xp,
        total_xp=state.total_xp + delta,
        rank=compute_rank(level),
    )
    return LevelUpResult(state=new_state, leveled_up=levels_gained > 0, levels_gained=levels_gained)


def rank_catalogue() -> list[dict]:
    """Rank tiers in ascending order, for display."""
    return [
        {"rank": t["rank"], "min_level": t["min_level"]}
        for t in reversed(RANK_THRESHOLDS)
    ]
