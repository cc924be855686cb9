"""Authentication router: all /api/v1/auth/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from taskkash.auth.dependencies import get_current_user
from taskkash.auth.jwt import create_access_token
from taskkash.auth.schemas import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    UserResponse,
    user_response,
)
from taskkash.auth.service import (
    authenticate_user,
    change_password,
    create_reset_token,
    get_user_by_email,
    register_user,
    reset_password,
    run_login_hooks,
)
from taskkash.config import get_settings
from taskkash.database import get_session
from taskkash.db.models import User
from taskkash.email.service import get_email_service
from taskkash.errors import ConflictError
from taskkash.ledger.service import grant_welcome_bonus
from taskkash.redis_client import get_optional_redis, get_redis
from taskkash.social.notification_service import notify_admins, notify_user

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])

FORGOT_PASSWORD_MESSAGE = "If an account exists with this email, you will receive a password reset link."


def _token_response(user: User, daily_bonus_awarded: bool = False) -> TokenResponse:
    settings = get_settings()
    return TokenResponse(
        access_token=create_access_token(user.id, user.role),
        token_type="bearer",
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        user=user_response(user),
        daily_bonus_awarded=daily_bonus_awarded,
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Register with name + email + password."""
    try:
        user = await register_user(db, name=body.name, email=body.email, password=body.password)
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()

    settings = get_settings()
    user_id, name, email = user.id, user.name, user.email

    try:
        await grant_welcome_bonus(db, user_id)
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("welcome_bonus_failed", user_id=user_id)
    else:
        await notify_user(
            user_id,
            "welcome_bonus",
            "Welcome to TaskKash!",
            f"You received {settings.welcome_bonus_points} TP as a welcome bonus.",
        )

    await notify_admins(
        "new_user",
        "New user registered",
        f"{name} ({email}) just joined TaskKash.",
        reference_id=user_id,
        reference_type="user",
    )

    try:
        email_service = get_email_service(get_optional_redis())
        await email_service.send_template(
            to=email,
            template_name="welcome",
            context={
                "name": name,
                "dashboard_url": f"{settings.frontend_base_url}/dashboard",
                "welcome_bonus": settings.welcome_bonus_points,
            },
        )
    except Exception:
        logger.exception("welcome_email_failed", user_id=user_id)

    await db.refresh(user)
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_session),
    redis: Redis = Depends(get_redis),
) -> TokenResponse:
    """Login with email + password. Updates the streak and claims the daily bonus."""
    try:
        user = await authenticate_user(db, redis, body.email, body.password)
    except ValueError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    except PermissionError as e:
        detail = str(e)
        if "locked" in detail.lower():
            raise HTTPException(status_code=429, detail=detail) from e
        raise HTTPException(status_code=403, detail=detail) from e
    await db.commit()

    outcome = await run_login_hooks(db, user)
    await db.refresh(user)
    return _token_response(user, daily_bonus_awarded=bool(outcome["daily_bonus_awarded"]))


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)) -> UserResponse:
    """Return the authenticated user."""
    return user_response(user)


@router.post("/forgot-password")
async def forgot_password(
    body: ForgotPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Request password reset email. Always returns 200 with the same message."""
    user = await get_user_by_email(db, body.email)

    if user is not None:
        try:
            raw_token = await create_reset_token(
                db,
                user.id,
                ip_address=request.client.host if request.client else None,
            )
            await db.commit()
            settings = get_settings()
            email_service = get_email_service(get_optional_redis())
            await email_service.send_template(
                to=user.email,
                template_name="password_reset",
                context={
                    "reset_url": f"{settings.frontend_base_url}/reset-password?token={raw_token}",
                    "expires_minutes": settings.password_reset_token_ttl_minutes,
                },
            )
        except Exception:
            logger.exception("password_reset_email_failed", email=body.email)

    return {"message": FORGOT_PASSWORD_MESSAGE}


@router.post("/reset-password")
async def reset_password_endpoint(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Reset password with a valid token."""
    try:
        await reset_password(db, body.token, body.new_password)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return {"status": "password_reset_complete"}


@router.post("/change-password")
async def change_password_endpoint(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: Redis = Depends(get_redis),
) -> dict[str, str]:
    """Change password. Limited to a few attempts per hour per user."""
    try:
        await change_password(
            db,
            redis,
            user,
            current_password=body.current_password,
            new_password=body.new_password,
            confirm_password=body.confirm_password,
        )
    except PermissionError as e:
        raise HTTPException(status_code=429, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()

    try:
        email_service = get_email_service(get_optional_redis())
        await email_service.send_template(
            to=user.email,
            template_name="password_changed",
            context={"name": user.name},
        )
    except Exception:
        logger.exception("password_changed_email_failed", user_id=user.id)

    return {"status": "password_changed"}
