"""Request/response schemas for authentication endpoints."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, EmailStr, Field, field_validator


def _normalize_email(v: str) -> str:
    return v.lower().strip()


class RegisterRequest(BaseModel):
    """Email registration request."""

    name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return _normalize_email(v)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            msg = "Name is required"
            raise ValueError(msg)
        return v


class LoginRequest(BaseModel):
    """Login with email + password."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return _normalize_email(v)


class ForgotPasswordRequest(BaseModel):
    """Request a password reset email."""

    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return _normalize_email(v)


class ResetPasswordRequest(BaseModel):
    """Reset password with a valid token."""

    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1, max_length=128)


class ChangePasswordRequest(BaseModel):
    """Change password (requires current password and confirmation)."""

    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=1, max_length=128)
    confirm_password: str = Field(..., min_length=1, max_length=128)


class UserResponse(BaseModel):
    """Full user profile response."""

    id: int
    name: str
    email: str
    username: str | None = None
    avatar_url: str | None = None
    social_links: dict[str, Any] = Field(default_factory=dict)
    role: str
    status: str
    task_points: int = 0
    tasks_completed: int = 0
    daily_streak: int = 0
    last_streak_date: date | None = None
    welcome_bonus_granted: bool = False
    created_at: datetime | None = None
    last_login: datetime | None = None

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    """Token response returned after successful auth."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse
    daily_bonus_awarded: bool = False


def user_response(user: Any) -> UserResponse:
    """Build a UserResponse from a User model."""
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        username=user.username,
        avatar_url=user.avatar_url,
        social_links=user.social_links or {},
        role=user.role,
        status=user.status,
        task_points=user.task_points,
        tasks_completed=user.tasks_completed,
        daily_streak=user.daily_streak,
        last_streak_date=user.last_streak_date,
        welcome_bonus_granted=user.welcome_bonus_granted,
        created_at=user.created_at,
        last_login=user.last_login,
    )
