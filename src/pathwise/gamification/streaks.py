"""Daily streak tracking.

Streaks count consecutive calendar days (UTC) with recorded activity.
Both dates are reduced to their day before comparing, so the time of day
never matters.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone

STREAK_STARTED = "started"
STREAK_EXTENDED = "extended"
STREAK_RESET = "reset"
STREAK_UNCHANGED = "unchanged"


@dataclass(frozen=True)
class StreakUpdate:
    streak_days: int
    last_activity_date: date
    event: str


def to_day(value: date | datetime) -> date:
    """Strip the time of day. Aware datetimes are converted to UTC first."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def days_between(earlier: date | datetime, later: date | datetime) -> int:
    """Absolute whole-day distance between two days."""
    return abs((to_day(later) - to_day(earlier)).days)


def update_streak(
    streak_days: int,
    last_activity: date | datetime | None,
    now: date | datetime,
) -> StreakUpdate:
    """Compute the streak after activity at ``now``.

    - same day: unchanged (repeat activity is idempotent)
    - next day: +1
    - any larger gap: restart at 1
    - no previous activity: start at 1
    """
    today = to_day(now)

    if last_activity is None:
        return StreakUpdate(streak_days=1, last_activity_date=today, event=STREAK_STARTED)

    diff_days = days_between(last_activity, today)

    if diff_days == 0:
        return StreakUpdate(streak_days=streak_days, last_activity_date=today, event=STREAK_UNCHANGED)
    if diff_days == 1:
        return StreakUpdate(streak_days=streak_days + 1, last_activity_date=today, event=STREAK_EXTENDED)
    return StreakUpdate(streak_days=1, last_activity_date=today, event=STREAK_RESET)
