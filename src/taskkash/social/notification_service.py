"""User and admin notifications.

Notifications are a side channel, never authoritative state. The ``notify_*``
helpers run after the primary change has been committed, each in its own
session; a failure is logged and dropped so it can never roll back or fail
the request that triggered it.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskkash.database import session_scope
from taskkash.db.base import utcnow
from taskkash.db.models import AdminNotification, Notification

logger = logging.getLogger(__name__)

VALID_TYPES = {
    "welcome_bonus",
    "points_earned",
    "submission_received",
    "task_approved",
    "task_rejected",
    "withdrawal_requested",
    "withdrawal_approved",
    "withdrawal_rejected",
    "profile_updated",
    "system",
}

VALID_ADMIN_TYPES = {"task_submission", "new_user", "withdrawal_request", "system"}


# ---------------------------------------------------------------------------
# User notifications
# ---------------------------------------------------------------------------


async def create_notification(
    db: AsyncSession,
    user_id: int,
    type_: str,
    title: str,
    message: str | None = None,
    action_url: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> Notification:
    """Persist a notification for one user."""
    if type_ not in VALID_TYPES:
        raise ValueError(f"Invalid notification type: {type_}. Must be one of {sorted(VALID_TYPES)}")

    notification = Notification(
        user_id=user_id,
        type=type_,
        title=title,
        message=message,
        action_url=action_url,
        notification_metadata=metadata or {},
        created_at=utcnow(),
    )
    db.add(notification)
    await db.flush()
    return notification


async def get_notifications(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    per_page: int = 20,
    unread_only: bool = False,
) -> tuple[list[Notification], int]:
    """Get user's notifications (paginated, most recent first)."""
    offset = (page - 1) * per_page
    filters = [Notification.user_id == user_id]
    if unread_only:
        filters.append(Notification.read.is_(False))

    total_result = await db.execute(select(func.count()).select_from(Notification).where(*filters))
    total = total_result.scalar_one()

    result = await db.execute(
        select(Notification)
        .where(*filters)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def mark_as_read(db: AsyncSession, user_id: int, notification_id: int) -> bool:
    """Mark a single notification as read. Returns True if found."""
    result = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .values(read=True)
    )
    await db.flush()
    return result.rowcount > 0


async def mark_all_as_read(db: AsyncSession, user_id: int) -> int:
    """Mark all unread notifications as read. Returns count updated."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
        .values(read=True)
    )
    await db.flush()
    return result.rowcount


async def get_unread_count(db: AsyncSession, user_id: int) -> int:
    """Get count of unread notifications."""
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
    )
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Admin notifications
# ---------------------------------------------------------------------------


async def create_admin_notification(
    db: AsyncSession,
    type_: str,
    title: str,
    message: str | None = None,
    reference_id: int | None = None,
    reference_type: str | None = None,
) -> AdminNotification:
    """Persist a notification for the admin team."""
    if type_ not in VALID_ADMIN_TYPES:
        raise ValueError(f"Invalid admin notification type: {type_}")

    notification = AdminNotification(
        type=type_,
        title=title,
        message=message,
        reference_id=reference_id,
        reference_type=reference_type,
        created_at=utcnow(),
    )
    db.add(notification)
    await db.flush()
    return notification


async def get_admin_notifications(
    db: AsyncSession,
    page: int = 1,
    per_page: int = 20,
    unread_only: bool = False,
) -> tuple[list[AdminNotification], int, int]:
    """Admin notifications (paginated) plus the overall unread count."""
    offset = (page - 1) * per_page
    filters = [AdminNotification.read.is_(False)] if unread_only else []

    total_result = await db.execute(select(func.count()).select_from(AdminNotification).where(*filters))
    total = total_result.scalar_one()

    unread_result = await db.execute(
        select(func.count()).select_from(AdminNotification).where(AdminNotification.read.is_(False))
    )
    unread = unread_result.scalar_one()

    result = await db.execute(
        select(AdminNotification)
        .where(*filters)
        .order_by(AdminNotification.created_at.desc(), AdminNotification.id.desc())
        .offset(offset)
        .limit(per_page)
    )
    return list(result.scalars().all()), total, unread


async def mark_admin_notifications_read(db: AsyncSession, ids: list[int] | None = None) -> int:
    """Mark the given admin notifications (or all of them) as read."""
    stmt = update(AdminNotification).where(AdminNotification.read.is_(False))
    if ids:
        stmt = stmt.where(AdminNotification.id.in_(ids))
    result = await db.execute(stmt.values(read=True))
    await db.flush()
    return result.rowcount


# ---------------------------------------------------------------------------
# Best-effort delivery
# ---------------------------------------------------------------------------


async def deliver_best_effort(
    event: str,
    send: Callable[[AsyncSession], Awaitable[object]],
) -> bool:
    """Run ``send`` in its own session and commit. Returns False on failure."""
    try:
        async with session_scope() as db:
            await send(db)
            await db.commit()
    except Exception:
        logger.warning("Side effect %s failed", event, exc_info=True)
        return False
    return True


async def notify_user(
    user_id: int,
    type_: str,
    title: str,
    message: str | None = None,
    action_url: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> bool:
    """Best-effort user notification."""

    async def _send(db: AsyncSession) -> None:
        await create_notification(db, user_id, type_, title, message, action_url, metadata)

    return await deliver_best_effort(f"notify_user:{type_}", _send)


async def notify_admins(
    type_: str,
    title: str,
    message: str | None = None,
    reference_id: int | None = None,
    reference_type: str | None = None,
) -> bool:
    """Best-effort admin notification."""

    async def _send(db: AsyncSession) -> None:
        await create_admin_notification(db, type_, title, message, reference_id, reference_type)

    return await deliver_best_effort(f"notify_admins:{type_}", _send)
