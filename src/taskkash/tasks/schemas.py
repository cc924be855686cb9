"""Request/response schemas for tasks and submissions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

TaskCategory = Literal["social", "content", "commerce"]
TaskStatus = Literal["active", "expired", "disabled"]


def _check_url(v: str | None) -> str | None:
    if v is None:
        return None
    v = v.strip()
    if not v:
        return None
    if not v.startswith(("http://", "https://")):
        msg = "URL must start with http:// or https://"
        raise ValueError(msg)
    return v


def _check_future(v: datetime | None) -> datetime | None:
    if v is None:
        return None
    if v.tzinfo is None:
        v = v.replace(tzinfo=timezone.utc)
    v = v.astimezone(timezone.utc)
    if v <= datetime.now(timezone.utc):
        msg = "Deadline must be in the future"
        raise ValueError(msg)
    return v


# ---------------------------------------------------------------------------
# Tasks (admin)
# ---------------------------------------------------------------------------


class TaskCreateRequest(BaseModel):
    title: str = Field(..., min_length=3, max_length=100)
    description: str = Field(..., min_length=10, max_length=500)
    instructions: str = Field(..., min_length=10, max_length=1000)
    category: TaskCategory
    reward_points: int = Field(..., ge=0, le=10_000)
    validation_type: str = Field(..., min_length=1, max_length=100)
    task_link: str | None = None
    alternate_url: str | None = None
    deadline: datetime | None = None
    status: TaskStatus = "active"

    @field_validator("task_link", "alternate_url")
    @classmethod
    def check_links(cls, v: str | None) -> str | None:
        return _check_url(v)

    @field_validator("deadline")
    @classmethod
    def check_deadline(cls, v: datetime | None) -> datetime | None:
        return _check_future(v)

    @model_validator(mode="after")
    def require_link(self) -> TaskCreateRequest:
        if not self.task_link and not self.alternate_url:
            msg = "Either a task link or an alternate URL is required"
            raise ValueError(msg)
        return self


_NON_NULLABLE_UPDATE_FIELDS = (
    "title",
    "description",
    "instructions",
    "category",
    "reward_points",
    "validation_type",
    "status",
)

class TaskUpdateRequest(BaseModel):
    """Partial update; only fields that are sent are changed."""

    title: str | None = Field(None, min_length=3, max_length=100)
    description: str | None = Field(None, min_length=10, max_length=500)
    instructions: str | None = Field(None, min_length=10, max_length=1000)
    category: TaskCategory | None = None
    reward_points: int | None = Field(None, ge=0, le=10_000)
    validation_type: str | None = Field(None, min_length=1, max_length=100)
    task_link: str | None = None
    alternate_url: str | None = None
    deadline: datetime | None = None
    status: TaskStatus | None = None

    @field_validator("task_link", "alternate_url")
    @classmethod
    def check_links(cls, v: str | None) -> str | None:
        return _check_url(v)

    @field_validator("deadline")
    @classmethod
    def check_deadline(cls, v: datetime | None) -> datetime | None:
        return _check_future(v)

    @model_validator(mode="after")
    def check_required_not_null(self) -> TaskUpdateRequest:
        # Only the optional columns may be cleared with an explicit null
        for field in _NON_NULLABLE_UPDATE_FIELDS:
            if field in self.model_fields_set and getattr(self, field) is None:
                msg = f"{field} cannot be null"
                raise ValueError(msg)
        return self


class BulkTaskActionRequest(BaseModel):
    ids: list[int] = Field(..., min_length=1, max_length=100)
    action: Literal["activate", "disable", "delete"]


class TaskResponse(BaseModel):
    id: int
    title: str
    description: str
    instructions: str
    category: str
    reward_points: int
    validation_type: str
    task_link: str | None = None
    alternate_url: str | None = None
    deadline: datetime | None = None
    status: str
    created_at: datetime | None = None
    user_status: str | None = None

    model_config = {"from_attributes": True}


class TaskListResponse(BaseModel):
    tasks: list[TaskResponse]
    total: int


# ---------------------------------------------------------------------------
# Submissions
# ---------------------------------------------------------------------------


class SubmitProofRequest(BaseModel):
    task_id: int
    proof_urls: list[str] = Field(default_factory=list, max_length=5)
    proof_link: str | None = None
    notes: str | None = Field(None, max_length=1000)

    @field_validator("proof_link")
    @classmethod
    def check_proof_link(cls, v: str | None) -> str | None:
        return _check_url(v)

    @field_validator("proof_urls")
    @classmethod
    def check_proof_urls(cls, v: list[str]) -> list[str]:
        return [url for url in (_check_url(u) for u in v) if url]

    @model_validator(mode="after")
    def require_proof(self) -> SubmitProofRequest:
        if not self.proof_urls and not self.proof_link:
            msg = "Provide at least one proof URL or a proof link"
            raise ValueError(msg)
        return self


class SubmitProofResponse(BaseModel):
    success: bool = True
    message: str = "Task submitted successfully! Awaiting admin review."
    submission_id: int
    task_title: str
    reward_points: int


class ReviewSubmissionRequest(BaseModel):
    status: Literal["approved", "rejected"]
    rejection_reason: str | None = Field(None, max_length=500)


class ReviewSubmissionResponse(BaseModel):
    success: bool = True
    message: str
    awarded_points: int
    new_status: str


class SubmissionResponse(BaseModel):
    id: int
    user_id: int
    task_id: int
    task_title: str | None = None
    user_name: str | None = None
    user_email: str | None = None
    status: str
    proof_urls: list[str] = Field(default_factory=list)
    proof_link: str | None = None
    notes: str | None = None
    submitted_at: datetime
    reviewed_at: datetime | None = None
    reviewed_by: int | None = None
    rejection_reason: str | None = None
    awarded_points: int | None = None


class SubmissionListResponse(BaseModel):
    submissions: list[SubmissionResponse]
    total: int
    page: int
    per_page: int


class StartTaskResponse(BaseModel):
    success: bool = True
    message: str
    task_id: int
