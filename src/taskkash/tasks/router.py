"""Task endpoints for regular users (/api/v1/tasks)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from taskkash.auth.dependencies import get_current_user
from taskkash.database import get_session
from taskkash.db.models import Submission, User
from taskkash.errors import ConflictError, NotFoundError
from taskkash.social.notification_service import notify_admins, notify_user
from taskkash.tasks import service as tasks
from taskkash.tasks.schemas import (
    StartTaskResponse,
    SubmissionListResponse,
    SubmissionResponse,
    SubmitProofRequest,
    SubmitProofResponse,
    TaskListResponse,
    TaskResponse,
)

router = APIRouter(prefix="/api/v1/tasks", tags=["Tasks"])


def submission_response(submission: Submission, include_user: bool = False) -> SubmissionResponse:
    """Build a SubmissionResponse; relationships must already be loaded."""
    data = SubmissionResponse(
        id=submission.id,
        user_id=submission.user_id,
        task_id=submission.task_id,
        task_title=submission.task.title if submission.task else None,
        status=submission.status,
        proof_urls=submission.proof_urls or [],
        proof_link=submission.proof_link,
        notes=submission.notes,
        submitted_at=submission.submitted_at,
        reviewed_at=submission.reviewed_at,
        reviewed_by=submission.reviewed_by,
        rejection_reason=submission.rejection_reason,
        awarded_points=submission.awarded_points,
    )
    if include_user and submission.user is not None:
        data.user_name = submission.user.name
        data.user_email = submission.user.email
    return data


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    category: str | None = Query(None, pattern="^(social|content|commerce)$"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> TaskListResponse:
    """Open tasks with the caller's progress on each."""
    rows = await tasks.list_open_tasks(db, user.id, category=category)
    items = []
    for task, state in rows:
        item = TaskResponse.model_validate(task)
        item.user_status = state
        items.append(item)
    return TaskListResponse(tasks=items, total=len(items))


@router.get("/submissions/mine", response_model=SubmissionListResponse)
async def my_submissions(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    status: str | None = Query(None, pattern="^(pending|approved|rejected)$"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> SubmissionListResponse:
    """The caller's submissions (paginated)."""
    submissions, total = await tasks.list_submissions(db, page, per_page, status=status, user_id=user.id)
    return SubmissionListResponse(
        submissions=[submission_response(s) for s in submissions],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post("/submissions", response_model=SubmitProofResponse, status_code=201)
async def submit_proof(
    body: SubmitProofRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> SubmitProofResponse:
    """Submit proof of completion for review."""
    try:
        submission, task = await tasks.submit_task(
            db,
            user.id,
            body.task_id,
            proof_urls=body.proof_urls,
            proof_link=body.proof_link,
            notes=body.notes,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()

    response = SubmitProofResponse(
        submission_id=submission.id,
        task_title=task.title,
        reward_points=task.reward_points,
    )
    await notify_user(
        user.id,
        "submission_received",
        "Submission Received",
        f'Your submission for "{task.title}" is pending review.',
        action_url="/dashboard/tasks",
        metadata={"submission_id": submission.id, "task_id": task.id},
    )
    await notify_admins(
        "task_submission",
        "New task submission",
        f'{user.name} submitted "{task.title}" for review.',
        reference_id=submission.id,
        reference_type="submission",
    )
    return response


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> TaskResponse:
    """A single task with the caller's progress."""
    try:
        task = await tasks.get_task(db, task_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    if task.status == "disabled" and not user.is_admin:
        raise HTTPException(status_code=404, detail="Task not found")

    states = await tasks.get_user_task_states(db, user.id, [task.id])
    item = TaskResponse.model_validate(task)
    item.user_status = states[task.id]
    return item


@router.post("/{task_id}/start", response_model=StartTaskResponse)
async def start_task(
    task_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> StartTaskResponse:
    """Mark a task as started."""
    try:
        task = await tasks.start_task(db, user.id, task_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return StartTaskResponse(message=f"Started {task.title}", task_id=task.id)
