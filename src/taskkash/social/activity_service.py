"""User activity recording, the personal feed and the admin-wide feed."""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from taskkash.db.base import utcnow
from taskkash.db.models import Activity

TASK_STARTED = "task_started"
TASK_SUBMITTED = "task_submitted"
TASK_APPROVED = "task_approved"
TASK_REJECTED = "task_rejected"
WELCOME_BONUS = "welcome_bonus"
DAILY_LOGIN = "daily_login"
WITHDRAWAL_REQUESTED = "withdrawal_requested"
WITHDRAWAL_PROCESSED = "withdrawal_processed"
PROFILE_UPDATED = "profile_updated"

ACTIVITY_TYPES = frozenset({
    TASK_STARTED,
    TASK_SUBMITTED,
    TASK_APPROVED,
    TASK_REJECTED,
    WELCOME_BONUS,
    DAILY_LOGIN,
    WITHDRAWAL_REQUESTED,
    WITHDRAWAL_PROCESSED,
    PROFILE_UPDATED,
})


async def record_activity(
    db: AsyncSession,
    user_id: int,
    activity_type: str,
    title: str,
    description: str | None = None,
    task_id: int | None = None,
    metadata: dict[str, Any] | None = None,
) -> Activity:
    """Record a user activity for the feed."""
    if activity_type not in ACTIVITY_TYPES:
        msg = f"Invalid activity type: {activity_type}"
        raise ValueError(msg)

    activity = Activity(
        user_id=user_id,
        activity_type=activity_type,
        title=title,
        description=description,
        task_id=task_id,
        activity_metadata=metadata or {},
        created_at=utcnow(),
    )
    db.add(activity)
    await db.flush()
    return activity


async def has_activity(db: AsyncSession, user_id: int, task_id: int, activity_type: str) -> bool:
    """Check whether the user already has an activity of this type for the task."""
    result = await db.execute(
        select(Activity.id)
        .where(
            Activity.user_id == user_id,
            Activity.task_id == task_id,
            Activity.activity_type == activity_type,
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def get_activity_feed(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    per_page: int = 20,
    activity_type: str | None = None,
) -> tuple[list[Activity], int]:
    """Get the user's personal activity feed (paginated, most recent first)."""
    offset = (page - 1) * per_page
    filters = [Activity.user_id == user_id]
    if activity_type is not None:
        filters.append(Activity.activity_type == activity_type)

    total_result = await db.execute(select(func.count()).select_from(Activity).where(*filters))
    total = total_result.scalar_one()

    result = await db.execute(
        select(Activity)
        .where(*filters)
        .order_by(Activity.created_at.desc(), Activity.id.desc())
        .offset(offset)
        .limit(per_page)
    )
    activities = list(result.scalars().all())
    return activities, total


async def get_recent_activities(
    db: AsyncSession,
    page: int = 1,
    per_page: int = 5,
) -> tuple[list[Activity], int]:
    """Platform-wide activity, most recent first, with each author loaded."""
    offset = (page - 1) * per_page
    total_result = await db.execute(select(func.count()).select_from(Activity))
    total = total_result.scalar_one()

    result = await db.execute(
        select(Activity)
        .options(selectinload(Activity.user))
        .order_by(Activity.created_at.desc(), Activity.id.desc())
        .offset(offset)
        .limit(per_page)
    )
    return list(result.scalars().all()), total
