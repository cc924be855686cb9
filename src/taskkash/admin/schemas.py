"""Schemas for the admin console endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from taskkash.auth.schemas import UserResponse


class MetricsResponse(BaseModel):
    total_users: int
    active_users: int
    total_tasks: int
    active_tasks: int
    total_tasks_completed: int
    pending_reviews: int
    pending_withdrawals: int
    rewards_issued: int


class UserListResponse(BaseModel):
    users: list[UserResponse]
    total: int
    page: int
    per_page: int


class RoleUpdateRequest(BaseModel):
    role: Literal["user", "admin"]


class StatusUpdateRequest(BaseModel):
    status: Literal["active", "suspended"]


class PointsUpdateRequest(BaseModel):
    points: int = Field(..., ge=0, le=100_000_000)


class PointsUpdateResponse(BaseModel):
    user_id: int
    task_points: int
    delta: int


class BulkActionResponse(BaseModel):
    success: bool = True
    action: str
    affected: int
