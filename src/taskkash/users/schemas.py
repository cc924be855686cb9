"""Request/response schemas for profile, streak and leaderboard endpoints."""

from __future__ import annotations

import re
from datetime import date

from pydantic import BaseModel, Field, field_validator

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")
MAX_SOCIAL_LINKS = 10


class ProfileUpdateRequest(BaseModel):
    """Partial profile update. Omitted fields are left unchanged."""

    name: str | None = Field(None, min_length=1, max_length=50)
    username: str | None = Field(None, min_length=3, max_length=20)
    avatar_url: str | None = Field(None, max_length=2048)
    social_links: dict[str, str] | None = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v:
            msg = "Name cannot be blank"
            raise ValueError(msg)
        return v

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not USERNAME_PATTERN.match(v):
            msg = "Username may only contain letters, numbers and underscores"
            raise ValueError(msg)
        return v

    @field_validator("avatar_url")
    @classmethod
    def check_avatar(cls, v: str | None) -> str | None:
        if v and not v.startswith(("http://", "https://")):
            msg = "Avatar URL must start with http:// or https://"
            raise ValueError(msg)
        return v

    @field_validator("social_links")
    @classmethod
    def check_links(cls, v: dict[str, str] | None) -> dict[str, str] | None:
        if v is None:
            return None
        if len(v) > MAX_SOCIAL_LINKS:
            msg = f"At most {MAX_SOCIAL_LINKS} social links are allowed"
            raise ValueError(msg)
        cleaned: dict[str, str] = {}
        for platform, url in v.items():
            platform = platform.strip().lower()
            url = url.strip()
            if not platform or len(platform) > 32:
                msg = "Invalid social platform name"
                raise ValueError(msg)
            if not url:
                continue
            if not url.startswith(("http://", "https://")):
                msg = f"Link for {platform} must start with http:// or https://"
                raise ValueError(msg)
            cleaned[platform] = url
        return cleaned


class StreakResponse(BaseModel):
    daily_streak: int
    last_streak_date: date | None = None
    cycle_length: int
    logged_in_today: bool


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: int
    name: str
    username: str | None = None
    avatar_url: str | None = None
    task_points: int
    tasks_completed: int
    level: str


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntry]
    my_rank: int
    my_level: str
