"""Pydantic schemas for activity feed and notification endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


# --- Notifications ---


class NotificationResponse(BaseModel):
    id: int
    type: str
    title: str
    message: str | None = None
    action_url: str | None = None
    read: bool
    metadata: dict[str, Any] = {}
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    total: int
    page: int
    per_page: int


class UnreadCountResponse(BaseModel):
    unread_count: int


class AdminNotificationResponse(BaseModel):
    id: int
    type: str
    title: str
    message: str | None = None
    reference_id: int | None = None
    reference_type: str | None = None
    read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class AdminNotificationListResponse(BaseModel):
    notifications: list[AdminNotificationResponse]
    total: int
    unread_count: int
    page: int
    per_page: int


class MarkAdminNotificationsRequest(BaseModel):
    """Ids to mark as read; omit to mark everything read."""

    ids: list[int] | None = Field(None, max_length=500)


# --- Activity ---


class ActivityResponse(BaseModel):
    id: int
    type: str
    title: str
    description: str | None = None
    task_id: int | None = None
    metadata: dict[str, Any] = {}
    created_at: datetime


class ActivityFeedResponse(BaseModel):
    activities: list[ActivityResponse]
    total: int
    page: int
    per_page: int


class ActivityUser(BaseModel):
    id: int
    name: str
    username: str | None = None
    email: str
    avatar_url: str | None = None


class AdminActivityResponse(ActivityResponse):
    user: ActivityUser


class AdminActivityListResponse(BaseModel):
    activities: list[AdminActivityResponse]
    total: int
    page: int
    per_page: int
    total_pages: int
