"""
Authentication business logic.

Handles user creation, login hooks, account lockout, and password flows.
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select, update

from taskkash.auth.password import (
    check_needs_rehash,
    hash_password,
    validate_password_strength,
    verify_password,
)
from taskkash.config import get_settings
from taskkash.db.base import as_utc, utcnow
from taskkash.db.models import PasswordResetToken, User
from taskkash.errors import ConflictError
from taskkash.gamification.streak_service import update_daily_streak
from taskkash.ledger.service import DailyBonusAlreadyClaimedError, claim_daily_login_bonus

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


async def register_user(db: AsyncSession, name: str, email: str, password: str) -> User:
    """
    Register a new user with email + password.

    Raises:
        ConflictError: If the email is already registered.
        PasswordStrengthError: If the password is too weak.
    """
    validate_password_strength(password)

    existing = await get_user_by_email(db, email)
    if existing is not None:
        msg = "Email already registered"
        raise ConflictError(msg)

    user = User(
        name=name.strip(),
        email=email.lower().strip(),
        password_hash=hash_password(password),
        role="user",
        status="active",
        task_points=0,
        tasks_completed=0,
        daily_streak=0,
        welcome_bonus_granted=False,
        social_links={},
        created_at=utcnow(),
    )
    db.add(user)
    await db.flush()
    logger.info("user_created", user_id=user.id, email=user.email)
    return user


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


async def authenticate_user(
    db: AsyncSession,
    redis: Redis,
    email: str,
    password: str,
) -> User:
    """
    Authenticate a user with email + password.

    Raises:
        ValueError: If credentials are invalid.
        PermissionError: If the account is locked or suspended.
    """
    user = await get_user_by_email(db, email)
    if user is None:
        msg = "Invalid email or password"
        raise ValueError(msg)

    if await check_account_lockout(redis, user.id):
        msg = "Account temporarily locked. Try again later."
        raise PermissionError(msg)

    if user.is_suspended:
        msg = "Account is suspended"
        raise PermissionError(msg)

    if not verify_password(password, user.password_hash):
        await increment_failed_login(redis, user.id)
        msg = "Invalid email or password"
        raise ValueError(msg)

    await clear_failed_login(redis, user.id)

    user.last_login = utcnow()
    user.login_count = (user.login_count or 0) + 1

    if check_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        logger.info("password_rehashed", user_id=user.id)

    await db.flush()
    return user


async def run_login_hooks(db: AsyncSession, user: User, now: datetime | None = None) -> dict[str, object]:
    """
    Update the daily streak and claim the daily login bonus after a login.

    Each hook commits on its own and any failure is logged and rolled back;
    a login never fails because of them.
    """
    settings = get_settings()
    outcome: dict[str, object] = {"daily_streak": None, "daily_bonus_awarded": False}
    user_id = user.id

    try:
        outcome["daily_streak"] = await update_daily_streak(db, user, now)
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("streak_update_failed", user_id=user_id)

    if settings.daily_bonus_on_login:
        try:
            await claim_daily_login_bonus(db, user_id, now)
            await db.commit()
            outcome["daily_bonus_awarded"] = True
        except DailyBonusAlreadyClaimedError:
            await db.rollback()
        except Exception:
            await db.rollback()
            logger.exception("daily_bonus_failed", user_id=user_id)

    return outcome


# ---------------------------------------------------------------------------
# Account lockout
# ---------------------------------------------------------------------------


async def check_account_lockout(redis: Redis, user_id: int) -> bool:
    """Check if the account is locked due to too many failed login attempts."""
    settings = get_settings()
    count_str = await redis.get(f"login_attempts:{user_id}")
    if count_str is None:
        return False
    return int(count_str) >= settings.account_lockout_threshold


async def increment_failed_login(redis: Redis, user_id: int) -> int:
    """Increment failed login counter. Returns the new count."""
    settings = get_settings()
    key = f"login_attempts:{user_id}"
    count = await redis.incr(key)
    if count == 1:
        await redis.expire(key, settings.account_lockout_duration_minutes * 60)
    return int(count)


async def clear_failed_login(redis: Redis, user_id: int) -> None:
    """Clear the failed login counter after a successful login."""
    await redis.delete(f"login_attempts:{user_id}")


# ---------------------------------------------------------------------------
# Password change
# ---------------------------------------------------------------------------


async def check_password_change_rate_limit(redis: Redis, user_id: int) -> None:
    """
    Count a password change attempt against the per-user hourly budget.

    The counter lives in Redis with a TTL, so the limit is shared by every
    API instance and survives restarts.

    Raises:
        PermissionError: If the budget for the current window is spent.
    """
    settings = get_settings()
    key = f"password_change_attempts:{user_id}"
    count = await redis.incr(key)
    if count == 1:
        await redis.expire(key, settings.password_change_window_seconds)
    if count > settings.password_change_max_attempts:
        msg = "Too many password change attempts. Please try again later."
        raise PermissionError(msg)


async def change_password(
    db: AsyncSession,
    redis: Redis,
    user: User,
    current_password: str,
    new_password: str,
    confirm_password: str,
) -> None:
    """
    Change a user's password after re-checking the current one.

    Raises:
        PermissionError: If the rate limit is exceeded.
        ValueError: If the confirmation differs, the current password is
            wrong, the new password equals the current one, or is too weak.
    """
    await check_password_change_rate_limit(redis, user.id)

    if new_password != confirm_password:
        msg = "New passwords do not match"
        raise ValueError(msg)
    if not verify_password(current_password, user.password_hash):
        msg = "Current password is incorrect"
        raise ValueError(msg)
    if current_password == new_password:
        msg = "New password must be different from current password"
        raise ValueError(msg)
    validate_password_strength(new_password)

    user.password_hash = hash_password(new_password)
    await db.flush()
    logger.info("password_changed", user_id=user.id)


# ---------------------------------------------------------------------------
# Password reset tokens
# ---------------------------------------------------------------------------


def _hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode()).hexdigest()


async def create_reset_token(
    db: AsyncSession,
    user_id: int,
    ip_address: str | None = None,
) -> str:
    """
    Create a password reset token.

    Returns the raw token to send to the user. Only its hash is stored, and
    any earlier unused token for the user is invalidated.
    """
    settings = get_settings()
    raw_token = secrets.token_urlsafe(48)
    now = datetime.now(timezone.utc)

    await db.execute(
        update(PasswordResetToken)
        .where(PasswordResetToken.user_id == user_id)
        .where(PasswordResetToken.used_at.is_(None))
        .values(used_at=now)
    )

    token = PasswordResetToken(
        user_id=user_id,
        token_hash=_hash_token(raw_token),
        created_at=now,
        expires_at=now + timedelta(minutes=settings.password_reset_token_ttl_minutes),
        ip_address=ip_address,
    )
    db.add(token)
    await db.flush()
    return raw_token


async def verify_reset_token(db: AsyncSession, raw_token: str) -> int:
    """
    Verify a password reset token and mark it used.

    Returns the user_id if valid.

    Raises:
        ValueError: If token is invalid, expired, or already used.
    """
    result = await db.execute(
        select(PasswordResetToken).where(PasswordResetToken.token_hash == _hash_token(raw_token))
    )
    token = result.scalar_one_or_none()

    if token is None:
        msg = "Invalid or expired reset token"
        raise ValueError(msg)
    if token.used_at is not None:
        msg = "Token has already been used"
        raise ValueError(msg)
    if as_utc(token.expires_at) < datetime.now(timezone.utc):
        msg = "Reset token has expired"
        raise ValueError(msg)

    token.used_at = datetime.now(timezone.utc)
    await db.flush()
    return token.user_id


async def reset_password(db: AsyncSession, raw_token: str, new_password: str) -> User:
    """Consume a reset token and set the new password."""
    validate_password_strength(new_password)
    user_id = await verify_reset_token(db, raw_token)
    user = await get_user_by_id(db, user_id)
    if user is None:
        msg = "Invalid or expired reset token"
        raise ValueError(msg)
    user.password_hash = hash_password(new_password)
    await db.flush()
    logger.info("password_reset", user_id=user_id)
    return user
