"""Points leaderboard and level labels."""

from __future__ import annotations

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskkash.db.models import User

# (minimum points, label), highest first
LEVEL_THRESHOLDS: list[tuple[int, str]] = [
    (15_000, "Expert"),
    (8_000, "Advanced"),
    (3_000, "Intermediate"),
    (0, "Beginner"),
]


def compute_level(task_points: int) -> str:
    """Level label for a points balance."""
    for threshold, label in LEVEL_THRESHOLDS:
        if task_points >= threshold:
            return label
    return LEVEL_THRESHOLDS[-1][1]


def _ranking_order() -> tuple:
    return (User.task_points.desc(), User.tasks_completed.desc(), User.created_at.asc(), User.id.asc())


async def get_top_users(db: AsyncSession, limit: int = 10) -> list[User]:
    """Active users ordered by points, then completed tasks, then seniority."""
    result = await db.execute(
        select(User).where(User.status == "active").order_by(*_ranking_order()).limit(limit)
    )
    return list(result.scalars().all())


async def get_user_rank(db: AsyncSession, user: User) -> int:
    """1-based position of ``user`` in the leaderboard ordering."""
    ahead = or_(
        User.task_points > user.task_points,
        and_(User.task_points == user.task_points, User.tasks_completed > user.tasks_completed),
        and_(
            User.task_points == user.task_points,
            User.tasks_completed == user.tasks_completed,
            or_(
                User.created_at < user.created_at,
                and_(User.created_at == user.created_at, User.id < user.id),
            ),
        ),
    )
    result = await db.execute(
        select(func.count()).select_from(User).where(User.status == "active", ahead)
    )
    return result.scalar_one() + 1
