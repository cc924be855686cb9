"""Daily login streak: a counter that cycles back to 0 after a full week."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from taskkash.config import get_settings
from taskkash.db.models import User

logger = logging.getLogger(__name__)


def to_utc_date(dt: datetime | date) -> date:
    """Normalize a datetime to its UTC calendar day. Dates pass through."""
    if isinstance(dt, datetime):
        if dt.tzinfo is None:
            return dt.date()
        return dt.astimezone(timezone.utc).date()
    return dt


def next_streak(
    last_streak_date: date | None,
    daily_streak: int,
    today: date,
    cycle_length: int = 7,
) -> tuple[int, date]:
    """Compute the streak after a login on ``today``.

    - same day as the last streak date: unchanged
    - exactly one day later: +1
    - any other gap, or no previous date: reset to 1
    - reaching ``cycle_length`` wraps to 0
    """
    if last_streak_date == today:
        return daily_streak, today

    if last_streak_date is not None and today - last_streak_date == timedelta(days=1):
        streak = daily_streak + 1
    else:
        streak = 1

    if streak >= cycle_length:
        streak = 0
    return streak, today


async def update_daily_streak(db: AsyncSession, user: User, now: datetime | None = None) -> int:
    """Apply today's login to the user's streak. Returns the new streak value."""
    if now is None:
        now = datetime.now(timezone.utc)
    settings = get_settings()

    streak, streak_date = next_streak(
        user.last_streak_date,
        user.daily_streak,
        to_utc_date(now),
        cycle_length=settings.streak_cycle_length,
    )
    if streak_date != user.last_streak_date or streak != user.daily_streak:
        user.daily_streak = streak
        user.last_streak_date = streak_date
        await db.flush()
        logger.info("Daily streak for user %s is now %s", user.id, streak)
    return streak
