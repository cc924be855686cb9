"""User profile business logic."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from taskkash.db.models import User
from taskkash.errors import ConflictError
from taskkash.social import activity_service

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def update_profile(
    db: AsyncSession,
    user: User,
    name: str | None = None,
    username: str | None = None,
    avatar_url: str | None = None,
    social_links: dict[str, Any] | None = None,
) -> list[str]:
    """
    Update profile fields and record a ``profile_updated`` activity.

    Returns:
        Names of the fields that actually changed (empty when nothing did).

    Raises:
        ConflictError: If the username is already taken (case-insensitive).
    """
    changed: list[str] = []

    if username is not None and username != user.username:
        result = await db.execute(
            select(User.id)
            .where(func.lower(User.username) == username.lower())
            .where(User.id != user.id)
        )
        if result.first() is not None:
            msg = "Username already taken"
            raise ConflictError(msg)
        user.username = username
        changed.append("username")

    if name is not None and name != user.name:
        user.name = name
        changed.append("name")
    if avatar_url is not None and avatar_url != user.avatar_url:
        user.avatar_url = avatar_url or None
        changed.append("avatar_url")
    if social_links is not None and social_links != (user.social_links or {}):
        user.social_links = social_links
        changed.append("social_links")

    if not changed:
        return changed

    try:
        await db.flush()
    except IntegrityError as e:
        # Lost a race on the unique username index
        msg = "Username already taken"
        raise ConflictError(msg) from e

    await activity_service.record_activity(
        db,
        user.id,
        activity_service.PROFILE_UPDATED,
        title="Profile Updated",
        description=f"Updated {', '.join(changed)}",
        metadata={"fields": changed},
    )
    logger.info("profile_updated", user_id=user.id, fields=changed)
    return changed
