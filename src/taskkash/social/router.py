"""Activity feed endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from taskkash.auth.dependencies import get_current_user
from taskkash.database import get_session
from taskkash.db.models import User
from taskkash.social.activity_service import ACTIVITY_TYPES, get_activity_feed
from taskkash.social.schemas import ActivityFeedResponse, ActivityResponse

router = APIRouter(prefix="/api/v1", tags=["Activity"])


@router.get("/activities", response_model=ActivityFeedResponse)
async def activity_feed(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    type: str | None = Query(None),  # noqa: A002
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """The caller's activity feed (paginated, newest first)."""
    if type is not None and type not in ACTIVITY_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown activity type: {type}")

    activities, total = await get_activity_feed(db, user.id, page, per_page, activity_type=type)
    return ActivityFeedResponse(
        activities=[
            ActivityResponse(
                id=a.id,
                type=a.activity_type,
                title=a.title,
                description=a.description,
                task_id=a.task_id,
                metadata=a.activity_metadata or {},
                created_at=a.created_at,
            )
            for a in activities
        ],
        total=total,
        page=page,
        per_page=per_page,
    )
