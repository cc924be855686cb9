"""Task catalogue and the per-user task lifecycle.

Per user, a task moves ``available -> started -> submitted -> approved|rejected``.
"started" is derived from a ``task_started`` activity and the later states
from the user's most recent submission. Only admins move a submission out of
``pending``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from taskkash.db.base import as_utc, utcnow
from taskkash.db.models import Activity, Submission, Task
from taskkash.errors import ConflictError, NotFoundError
from taskkash.ledger import service as ledger
from taskkash.social import activity_service

logger = structlog.get_logger()

TASK_CATEGORIES = ("social", "content", "commerce")
TASK_STATUSES = ("active", "expired", "disabled")

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"

# Per-user task states
AVAILABLE = "available"
STARTED = "started"
SUBMITTED = "submitted"

DEFAULT_REJECTION_REASON = "Your submission was not approved"


class TaskNotFoundError(NotFoundError):
    """Raised when a task id does not exist."""


class SubmissionNotFoundError(NotFoundError):
    """Raised when a submission id does not exist."""


def derive_task_state(started: bool, latest_submission_status: str | None) -> str:
    """Per-user state of a task from its activity and latest submission."""
    if latest_submission_status == PENDING:
        return SUBMITTED
    if latest_submission_status in (APPROVED, REJECTED):
        return latest_submission_status
    return STARTED if started else AVAILABLE


def is_open(task: Task, now: datetime | None = None) -> bool:
    """Whether the task currently accepts work: active and not past its deadline."""
    if task.status != "active":
        return False
    if task.deadline is None:
        return True
    if now is None:
        now = datetime.now(timezone.utc)
    return as_utc(task.deadline) > now


# ---------------------------------------------------------------------------
# Task queries
# ---------------------------------------------------------------------------


async def get_task(db: AsyncSession, task_id: int) -> Task:
    task = await db.get(Task, task_id)
    if task is None:
        msg = "Task not found"
        raise TaskNotFoundError(msg)
    return task


async def list_open_tasks(
    db: AsyncSession,
    user_id: int,
    category: str | None = None,
    now: datetime | None = None,
) -> list[tuple[Task, str]]:
    """Active tasks without a passed deadline, each with the user's state."""
    if now is None:
        now = datetime.now(timezone.utc)

    stmt = select(Task).where(
        Task.status == "active",
        or_(Task.deadline.is_(None), Task.deadline > now),
    )
    if category is not None:
        stmt = stmt.where(Task.category == category)
    result = await db.execute(stmt.order_by(Task.created_at.desc(), Task.id.desc()))
    tasks = list(result.scalars().all())
    if not tasks:
        return []

    states = await get_user_task_states(db, user_id, [t.id for t in tasks])
    return [(task, states[task.id]) for task in tasks]


async def get_user_task_states(db: AsyncSession, user_id: int, task_ids: list[int]) -> dict[int, str]:
    """Map task id -> derived per-user state."""
    started_result = await db.execute(
        select(Activity.task_id).where(
            Activity.user_id == user_id,
            Activity.activity_type == activity_service.TASK_STARTED,
            Activity.task_id.in_(task_ids),
        )
    )
    started = set(started_result.scalars().all())

    # Ascending order, so the last row seen per task is the latest attempt
    submissions_result = await db.execute(
        select(Submission.task_id, Submission.status)
        .where(Submission.user_id == user_id, Submission.task_id.in_(task_ids))
        .order_by(Submission.submitted_at.asc(), Submission.id.asc())
    )
    latest: dict[int, str] = {}
    for task_id, status in submissions_result.all():
        latest[task_id] = status

    return {task_id: derive_task_state(task_id in started, latest.get(task_id)) for task_id in task_ids}


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


async def start_task(db: AsyncSession, user_id: int, task_id: int) -> Task:
    """
    Mark a task as started for the user.

    Raises:
        TaskNotFoundError: Unknown task.
        ValueError: Task closed, or already started.
    """
    task = await get_task(db, task_id)
    if not is_open(task):
        msg = "This task is no longer available"
        raise ValueError(msg)
    if await activity_service.has_activity(db, user_id, task_id, activity_service.TASK_STARTED):
        msg = "You have already started this task"
        raise ValueError(msg)

    await activity_service.record_activity(
        db,
        user_id,
        activity_service.TASK_STARTED,
        title=f"Task Started: {task.title}",
        description="You started working on this task",
        task_id=task.id,
        metadata={"reward_points": task.reward_points},
    )
    logger.info("task_started", user_id=user_id, task_id=task_id)
    return task


async def _open_attempts(db: AsyncSession, user_id: int, task_id: int) -> set[str]:
    """Statuses of the user's pending or approved submissions for a task."""
    result = await db.execute(
        select(Submission.status).where(
            Submission.user_id == user_id,
            Submission.task_id == task_id,
            Submission.status.in_((PENDING, APPROVED)),
        )
    )
    return set(result.scalars().all())


async def submit_task(
    db: AsyncSession,
    user_id: int,
    task_id: int,
    proof_urls: list[str] | None = None,
    proof_link: str | None = None,
    notes: str | None = None,
) -> tuple[Submission, Task]:
    """
    Create a pending submission with the user's proof.

    A new attempt is allowed after a rejection. It is refused while another
    attempt is pending and once one has been approved.

    Raises:
        TaskNotFoundError: Unknown task.
        ConflictError: A pending or approved submission already exists.
        ValueError: Task closed.
    """
    task = await get_task(db, task_id)
    if not is_open(task):
        msg = "This task is no longer accepting submissions"
        raise ValueError(msg)

    existing = await _open_attempts(db, user_id, task_id)
    if PENDING in existing:
        msg = "You already have a pending submission for this task"
        raise ConflictError(msg)
    if APPROVED in existing:
        msg = "You have already completed this task"
        raise ConflictError(msg)

    submission = Submission(
        user_id=user_id,
        task_id=task_id,
        status=PENDING,
        proof_urls=list(proof_urls or []),
        proof_link=proof_link,
        notes=notes,
        submitted_at=utcnow(),
    )
    db.add(submission)
    try:
        await db.flush()
    except IntegrityError as e:
        # Lost a race against a concurrent submit; the partial unique index held
        msg = "You already have a pending submission for this task"
        raise ConflictError(msg) from e

    await activity_service.record_activity(
        db,
        user_id,
        activity_service.TASK_SUBMITTED,
        title=f"Task Submitted: {task.title}",
        description="Your submission is pending review",
        task_id=task.id,
        metadata={"submission_id": submission.id},
    )
    logger.info("task_submitted", user_id=user_id, task_id=task_id, submission_id=submission.id)
    return submission, task


async def review_submission(
    db: AsyncSession,
    submission_id: int,
    reviewer_id: int,
    status: str,
    rejection_reason: str | None = None,
) -> tuple[Submission, Task]:
    """
    Approve or reject a pending submission.

    Approval credits the task reward through the ledger and bumps
    ``tasks_completed`` in the same database transaction as the status change.

    Raises:
        SubmissionNotFoundError: Unknown submission.
        ConflictError: The submission is no longer pending.
        ValueError: Invalid target status.
    """
    if status not in (APPROVED, REJECTED):
        msg = "Status must be 'approved' or 'rejected'"
        raise ValueError(msg)

    result = await db.execute(
        select(Submission)
        .where(Submission.id == submission_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    submission = result.scalar_one_or_none()
    if submission is None:
        msg = "Submission not found"
        raise SubmissionNotFoundError(msg)
    if submission.status != PENDING:
        msg = "Submission has already been reviewed"
        raise ConflictError(msg)

    task = await get_task(db, submission.task_id)
    submission.status = status
    submission.reviewed_at = utcnow()
    submission.reviewed_by = reviewer_id

    if status == APPROVED:
        user = await ledger.lock_user(db, submission.user_id)
        reward = task.reward_points
        if reward > 0:
            await ledger.apply_transaction(
                db,
                user,
                reward,
                ledger.TASK_APPROVED,
                f"Task Approved: {task.title}",
                reference_type="submission",
                reference_id=submission.id,
            )
        user.tasks_completed = user.tasks_completed + 1
        submission.awarded_points = reward
        await activity_service.record_activity(
            db,
            submission.user_id,
            activity_service.TASK_APPROVED,
            title=f"Task Approved: {task.title}",
            description=f"You earned {reward} TP!",
            task_id=task.id,
            metadata={"submission_id": submission.id, "points": reward},
        )
    else:
        submission.rejection_reason = rejection_reason or DEFAULT_REJECTION_REASON
        await activity_service.record_activity(
            db,
            submission.user_id,
            activity_service.TASK_REJECTED,
            title=f"Task Rejected: {task.title}",
            description=submission.rejection_reason,
            task_id=task.id,
            metadata={"submission_id": submission.id},
        )

    await db.flush()
    logger.info(
        "submission_reviewed",
        submission_id=submission.id,
        status=status,
        reviewer_id=reviewer_id,
        awarded_points=submission.awarded_points,
    )
    return submission, task


# ---------------------------------------------------------------------------
# Submission queries
# ---------------------------------------------------------------------------


async def list_submissions(
    db: AsyncSession,
    page: int = 1,
    per_page: int = 20,
    status: str | None = None,
    user_id: int | None = None,
) -> tuple[list[Submission], int]:
    """Submissions with their task and user loaded, newest first."""
    offset = (page - 1) * per_page
    filters = []
    if status is not None:
        filters.append(Submission.status == status)
    if user_id is not None:
        filters.append(Submission.user_id == user_id)

    total_result = await db.execute(select(func.count()).select_from(Submission).where(*filters))
    total = total_result.scalar_one()

    result = await db.execute(
        select(Submission)
        .where(*filters)
        .options(selectinload(Submission.task), selectinload(Submission.user))
        .order_by(Submission.submitted_at.desc(), Submission.id.desc())
        .offset(offset)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def count_pending_submissions(db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count()).select_from(Submission).where(Submission.status == PENDING)
    )
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Admin task management
# ---------------------------------------------------------------------------


async def list_tasks(
    db: AsyncSession,
    status: str | None = None,
    category: str | None = None,
) -> list[Task]:
    """All tasks for the admin view, newest first."""
    stmt = select(Task)
    if status is not None:
        stmt = stmt.where(Task.status == status)
    if category is not None:
        stmt = stmt.where(Task.category == category)
    result = await db.execute(stmt.order_by(Task.created_at.desc(), Task.id.desc()))
    return list(result.scalars().all())


async def create_task(db: AsyncSession, data: dict[str, Any], created_by: int | None = None) -> Task:
    task = Task(**data, created_by=created_by, created_at=utcnow())
    db.add(task)
    await db.flush()
    logger.info("task_created", task_id=task.id, created_by=created_by)
    return task


async def update_task(db: AsyncSession, task_id: int, changes: dict[str, Any]) -> Task:
    """Apply a partial update. A task must keep at least one link."""
    task = await get_task(db, task_id)
    for field, value in changes.items():
        setattr(task, field, value)
    if not task.task_link and not task.alternate_url:
        msg = "Either a task link or an alternate URL is required"
        raise ValueError(msg)
    await db.flush()
    logger.info("task_updated", task_id=task_id, fields=sorted(changes))
    return task


async def delete_task(db: AsyncSession, task_id: int) -> None:
    task = await get_task(db, task_id)
    await db.execute(delete(Submission).where(Submission.task_id == task_id))
    await db.delete(task)
    await db.flush()
    logger.info("task_deleted", task_id=task_id)


async def bulk_task_action(db: AsyncSession, ids: list[int], action: str) -> int:
    """Activate, disable or delete several tasks. Returns the number affected."""
    if action == "delete":
        await db.execute(delete(Submission).where(Submission.task_id.in_(ids)))
        result = await db.execute(delete(Task).where(Task.id.in_(ids)))
    elif action in ("activate", "disable"):
        new_status = "active" if action == "activate" else "disabled"
        result = await db.execute(
            update(Task).where(Task.id.in_(ids)).values(status=new_status, updated_at=utcnow())
        )
    else:
        msg = f"Unknown bulk action: {action}"
        raise ValueError(msg)
    await db.flush()
    logger.info("tasks_bulk_action", action=action, count=result.rowcount)
    return result.rowcount


async def expire_overdue_tasks(db: AsyncSession, now: datetime | None = None) -> int:
    """Flip active tasks whose deadline has passed to 'expired'."""
    if now is None:
        now = datetime.now(timezone.utc)
    result = await db.execute(
        update(Task)
        .where(Task.status == "active", Task.deadline.is_not(None), Task.deadline <= now)
        .values(status="expired", updated_at=now)
    )
    await db.flush()
    return result.rowcount
