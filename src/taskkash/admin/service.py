"""Admin console queries and user moderation."""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskkash.auth.service import get_user_by_id
from taskkash.db.models import Task, User
from taskkash.errors import NotFoundError
from taskkash.ledger.service import total_rewards_issued
from taskkash.tasks.service import count_pending_submissions
from taskkash.withdrawals.service import count_pending_withdrawals

logger = structlog.get_logger()

USER_ROLES = ("user", "admin")
USER_STATUSES = ("active", "suspended")


async def get_metrics(db: AsyncSession) -> dict[str, Any]:
    """Platform-wide counters for the admin dashboard."""
    user_counts = await db.execute(
        select(
            func.count(User.id),
            func.count(User.id).filter(User.status == "active"),
            func.coalesce(func.sum(User.tasks_completed), 0),
        )
    )
    total_users, active_users, tasks_completed = user_counts.one()

    task_counts = await db.execute(
        select(
            func.count(Task.id),
            func.count(Task.id).filter(Task.status == "active"),
        )
    )
    total_tasks, active_tasks = task_counts.one()

    return {
        "total_users": total_users,
        "active_users": active_users,
        "total_tasks": total_tasks,
        "active_tasks": active_tasks,
        "total_tasks_completed": int(tasks_completed),
        "pending_reviews": await count_pending_submissions(db),
        "pending_withdrawals": await count_pending_withdrawals(db),
        "rewards_issued": await total_rewards_issued(db),
    }


async def list_users(
    db: AsyncSession,
    page: int = 1,
    per_page: int = 20,
    search: str | None = None,
    role: str | None = None,
    status: str | None = None,
) -> tuple[list[User], int]:
    """Users (paginated, newest first), matched by name/email/username."""
    offset = (page - 1) * per_page
    filters = []
    if search:
        pattern = f"%{search.strip()}%"
        filters.append(
            or_(User.name.ilike(pattern), User.email.ilike(pattern), User.username.ilike(pattern))
        )
    if role is not None:
        filters.append(User.role == role)
    if status is not None:
        filters.append(User.status == status)

    total_result = await db.execute(select(func.count()).select_from(User).where(*filters))
    total = total_result.scalar_one()

    result = await db.execute(
        select(User)
        .where(*filters)
        .order_by(User.created_at.desc(), User.id.desc())
        .offset(offset)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def _get_target(db: AsyncSession, admin: User, user_id: int, what: str) -> User:
    if user_id == admin.id:
        msg = f"You cannot change your own {what}"
        raise ValueError(msg)
    user = await get_user_by_id(db, user_id)
    if user is None:
        msg = "User not found"
        raise NotFoundError(msg)
    return user


async def set_user_role(db: AsyncSession, admin: User, user_id: int, role: str) -> User:
    """
    Promote or demote a user.

    Raises:
        ValueError: Unknown role, or an admin changing their own role.
        NotFoundError: Unknown user.
    """
    if role not in USER_ROLES:
        msg = f"Invalid role: {role}"
        raise ValueError(msg)
    user = await _get_target(db, admin, user_id, "role")
    user.role = role
    await db.flush()
    logger.info("user_role_changed", user_id=user_id, role=role, admin_id=admin.id)
    return user


async def set_user_status(db: AsyncSession, admin: User, user_id: int, status: str) -> User:
    """
    Suspend or reactivate a user. Suspended users cannot log in or call the API.

    Raises:
        ValueError: Unknown status, or an admin changing their own status.
        NotFoundError: Unknown user.
    """
    if status not in USER_STATUSES:
        msg = f"Invalid status: {status}"
        raise ValueError(msg)
    user = await _get_target(db, admin, user_id, "status")
    user.status = status
    await db.flush()
    logger.info("user_status_changed", user_id=user_id, status=status, admin_id=admin.id)
    return user
