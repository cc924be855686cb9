"""User profile router: all /api/v1/users/* endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from taskkash.auth.dependencies import get_current_user
from taskkash.auth.schemas import UserResponse, user_response
from taskkash.config import get_settings
from taskkash.database import get_session
from taskkash.db.models import User
from taskkash.errors import ConflictError
from taskkash.gamification.leaderboard_service import compute_level, get_top_users, get_user_rank
from taskkash.social.notification_service import notify_user
from taskkash.users.schemas import (
    LeaderboardEntry,
    LeaderboardResponse,
    ProfileUpdateRequest,
    StreakResponse,
)
from taskkash.users.service import update_profile

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@router.get("/me", response_model=UserResponse)
async def get_profile(
    user: User = Depends(get_current_user),
) -> UserResponse:
    """Get own full profile."""
    return user_response(user)


@router.patch("/me", response_model=UserResponse)
async def update_my_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    """Update name, username, avatar or social links."""
    try:
        changed = await update_profile(
            db,
            user,
            name=body.name,
            username=body.username,
            avatar_url=body.avatar_url,
            social_links=body.social_links,
        )
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    await db.commit()

    if changed:
        await notify_user(
            user.id,
            "profile_updated",
            "Profile Updated",
            "Your profile changes have been saved.",
            action_url="/dashboard/profile",
            metadata={"fields": changed},
        )
    return user_response(user)


@router.get("/me/streak", response_model=StreakResponse)
async def get_my_streak(
    user: User = Depends(get_current_user),
) -> StreakResponse:
    """Current daily login streak."""
    today = datetime.now(timezone.utc).date()
    return StreakResponse(
        daily_streak=user.daily_streak,
        last_streak_date=user.last_streak_date,
        cycle_length=get_settings().streak_cycle_length,
        logged_in_today=user.last_streak_date == today,
    )


# ---------------------------------------------------------------------------
# Leaderboard
# ---------------------------------------------------------------------------


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> LeaderboardResponse:
    """Top earners plus the caller's own position."""
    top = await get_top_users(db, limit)
    entries = [
        LeaderboardEntry(
            rank=i,
            user_id=u.id,
            name=u.name,
            username=u.username,
            avatar_url=u.avatar_url,
            task_points=u.task_points,
            tasks_completed=u.tasks_completed,
            level=compute_level(u.task_points),
        )
        for i, u in enumerate(top, start=1)
    ]
    my_rank = await get_user_rank(db, user)
    return LeaderboardResponse(entries=entries, my_rank=my_rank, my_level=compute_level(user.task_points))
