"""Admin console router: all /api/v1/admin/* endpoints.

Every route requires an authenticated user with role='admin'.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from taskkash.admin import service as admin_service
from taskkash.admin.schemas import (
    BulkActionResponse,
    MetricsResponse,
    PointsUpdateRequest,
    PointsUpdateResponse,
    RoleUpdateRequest,
    StatusUpdateRequest,
    UserListResponse,
)
from taskkash.auth.dependencies import get_current_admin
from taskkash.auth.schemas import UserResponse, user_response
from taskkash.auth.service import get_user_by_id
from taskkash.database import get_session
from taskkash.db.models import User
from taskkash.errors import ConflictError, NotFoundError
from taskkash.ledger import service as ledger
from taskkash.ledger.schemas import LedgerCheckResponse
from taskkash.social import activity_service
from taskkash.social.notification_service import (
    get_admin_notifications,
    mark_admin_notifications_read,
    notify_user,
)
from taskkash.social.schemas import (
    ActivityUser,
    AdminActivityListResponse,
    AdminActivityResponse,
    AdminNotificationListResponse,
    AdminNotificationResponse,
    MarkAdminNotificationsRequest,
)
from taskkash.tasks import service as tasks
from taskkash.tasks.router import submission_response
from taskkash.tasks.schemas import (
    BulkTaskActionRequest,
    ReviewSubmissionRequest,
    ReviewSubmissionResponse,
    SubmissionListResponse,
    TaskCreateRequest,
    TaskListResponse,
    TaskResponse,
    TaskUpdateRequest,
)
from taskkash.withdrawals import service as withdrawals
from taskkash.withdrawals.schemas import (
    ReviewWithdrawalRequest,
    WithdrawalListResponse,
    WithdrawalResponse,
)

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])

_STATUS_PATTERN = "^(pending|approved|rejected)$"


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


@router.get("/metrics", response_model=MetricsResponse)
async def metrics(
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> MetricsResponse:
    """Platform counters."""
    return MetricsResponse(**await admin_service.get_metrics(db))


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.get("/users", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    search: str | None = Query(None, max_length=100),
    role: str | None = Query(None, pattern="^(user|admin)$"),
    status: str | None = Query(None, pattern="^(active|suspended)$"),
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> UserListResponse:
    users, total = await admin_service.list_users(db, page, per_page, search=search, role=role, status=status)
    return UserListResponse(users=[user_response(u) for u in users], total=total, page=page, per_page=per_page)


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    """Full profile of one user, including balance and social links."""
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user_response(user)


@router.patch("/users/{user_id}/role", response_model=UserResponse)
async def update_role(
    user_id: int,
    body: RoleUpdateRequest,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    try:
        user = await admin_service.set_user_role(db, admin, user_id, body.role)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return user_response(user)


@router.patch("/users/{user_id}/status", response_model=UserResponse)
async def update_status(
    user_id: int,
    body: StatusUpdateRequest,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    try:
        user = await admin_service.set_user_status(db, admin, user_id, body.status)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return user_response(user)


@router.patch("/users/{user_id}/points", response_model=PointsUpdateResponse)
async def update_points(
    user_id: int,
    body: PointsUpdateRequest,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> PointsUpdateResponse:
    """Set a balance; the difference is booked as an admin adjustment."""
    try:
        transaction = await ledger.set_balance(db, user_id, body.points, admin.id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()

    delta = transaction.amount if transaction is not None else 0
    if delta:
        await notify_user(
            user_id,
            "points_earned" if delta > 0 else "system",
            "Balance Adjusted",
            f"An administrator adjusted your balance by {delta:+d} TP.",
            action_url="/dashboard/wallet",
            metadata={"delta": delta},
        )
    return PointsUpdateResponse(user_id=user_id, task_points=body.points, delta=delta)


@router.get("/users/{user_id}/ledger-check", response_model=LedgerCheckResponse)
async def ledger_check(
    user_id: int,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> LedgerCheckResponse:
    """Compare the stored balance with the sum of the user's ledger."""
    try:
        result = await ledger.reconcile_balance(db, user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return LedgerCheckResponse(**result)


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------


@router.get("/activities", response_model=AdminActivityListResponse)
async def list_activities(
    page: int = Query(1, ge=1),
    limit: int = Query(5, ge=1, le=20),
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> AdminActivityListResponse:
    """Recent activity across all users."""
    activities, total = await activity_service.get_recent_activities(db, page=page, per_page=limit)
    return AdminActivityListResponse(
        activities=[
            AdminActivityResponse(
                id=a.id,
                type=a.activity_type,
                title=a.title,
                description=a.description,
                task_id=a.task_id,
                metadata=a.activity_metadata or {},
                created_at=a.created_at,
                user=ActivityUser(
                    id=a.user.id,
                    name=a.user.name,
                    username=a.user.username,
                    email=a.user.email,
                    avatar_url=a.user.avatar_url,
                ),
            )
            for a in activities
        ],
        total=total,
        page=page,
        per_page=limit,
        total_pages=(total + limit - 1) // limit,
    )


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


@router.get("/tasks", response_model=TaskListResponse)
async def list_tasks(
    status: str | None = Query(None, pattern="^(active|expired|disabled)$"),
    category: str | None = Query(None, pattern="^(social|content|commerce)$"),
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> TaskListResponse:
    items = await tasks.list_tasks(db, status=status, category=category)
    return TaskListResponse(tasks=[TaskResponse.model_validate(t) for t in items], total=len(items))


@router.post("/tasks", response_model=TaskResponse, status_code=201)
async def create_task(
    body: TaskCreateRequest,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> TaskResponse:
    task = await tasks.create_task(db, body.model_dump(), created_by=admin.id)
    await db.commit()
    return TaskResponse.model_validate(task)


@router.post("/tasks/bulk", response_model=BulkActionResponse)
async def bulk_action(
    body: BulkTaskActionRequest,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> BulkActionResponse:
    """Activate, disable or delete several tasks at once."""
    try:
        affected = await tasks.bulk_task_action(db, body.ids, body.action)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return BulkActionResponse(action=body.action, affected=affected)


@router.post("/tasks/expire", response_model=BulkActionResponse)
async def expire_tasks(
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> BulkActionResponse:
    """Move every active task whose deadline has passed to 'expired'."""
    affected = await tasks.expire_overdue_tasks(db)
    await db.commit()
    return BulkActionResponse(action="expire", affected=affected)


@router.patch("/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    body: TaskUpdateRequest,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> TaskResponse:
    try:
        task = await tasks.update_task(db, task_id, body.model_dump(exclude_unset=True))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return TaskResponse.model_validate(task)


@router.delete("/tasks/{task_id}", status_code=204)
async def delete_task(
    task_id: int,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> Response:
    try:
        await tasks.delete_task(db, task_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Submissions
# ---------------------------------------------------------------------------


@router.get("/submissions", response_model=SubmissionListResponse)
async def list_submissions(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    status: str | None = Query(None, pattern=_STATUS_PATTERN),
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> SubmissionListResponse:
    submissions, total = await tasks.list_submissions(db, page, per_page, status=status)
    return SubmissionListResponse(
        submissions=[submission_response(s, include_user=True) for s in submissions],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.put("/submissions/{submission_id}", response_model=ReviewSubmissionResponse)
async def review_submission(
    submission_id: int,
    body: ReviewSubmissionRequest,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> ReviewSubmissionResponse:
    """Approve (credits the reward) or reject a pending submission."""
    try:
        submission, task = await tasks.review_submission(
            db, submission_id, admin.id, body.status, body.rejection_reason
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()

    awarded = submission.awarded_points or 0
    if submission.status == tasks.APPROVED:
        await notify_user(
            submission.user_id,
            "task_approved",
            "Task Approved!",
            f'Your submission for "{task.title}" was approved. You earned {awarded} TP!',
            action_url="/dashboard/wallet",
            metadata={"submission_id": submission.id, "task_id": task.id, "points": awarded},
        )
        message = f"Submission approved. {awarded} TP awarded."
    else:
        await notify_user(
            submission.user_id,
            "task_rejected",
            "Task Rejected",
            f'Your submission for "{task.title}" was rejected: {submission.rejection_reason}',
            action_url="/dashboard/tasks",
            metadata={"submission_id": submission.id, "task_id": task.id},
        )
        message = "Submission rejected."

    return ReviewSubmissionResponse(message=message, awarded_points=awarded, new_status=submission.status)


# ---------------------------------------------------------------------------
# Withdrawals
# ---------------------------------------------------------------------------


@router.get("/withdrawals", response_model=WithdrawalListResponse)
async def list_withdrawals(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    status: str | None = Query(None, pattern=_STATUS_PATTERN),
    user_id: int | None = Query(None),
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> WithdrawalListResponse:
    items, total = await withdrawals.list_withdrawals(db, page, per_page, status=status, user_id=user_id)
    return WithdrawalListResponse(
        withdrawals=[WithdrawalResponse.model_validate(w) for w in items],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.put("/withdrawals/{withdrawal_id}", response_model=WithdrawalResponse)
async def review_withdrawal(
    withdrawal_id: int,
    body: ReviewWithdrawalRequest,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> WithdrawalResponse:
    """Approve or reject a pending withdrawal. Rejection refunds the points."""
    try:
        withdrawal = await withdrawals.review_withdrawal(
            db, withdrawal_id, admin.id, body.status, body.admin_note
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()

    if withdrawal.status == withdrawals.APPROVED:
        title = "Withdrawal Approved"
        message = f"Your withdrawal of {withdrawal.amount} TP (${withdrawal.converted_amount}) has been approved."
    else:
        title = "Withdrawal Rejected"
        message = f"Your withdrawal of {withdrawal.amount} TP was rejected and the points were refunded."
        if withdrawal.admin_note:
            message = f"{message} Note: {withdrawal.admin_note}"
    await notify_user(
        withdrawal.user_id,
        f"withdrawal_{withdrawal.status}",
        title,
        message,
        action_url="/dashboard/wallet",
        metadata={"withdrawal_id": withdrawal.id, "amount": withdrawal.amount},
    )
    return WithdrawalResponse.model_validate(withdrawal)


# ---------------------------------------------------------------------------
# Admin notifications
# ---------------------------------------------------------------------------


@router.get("/notifications", response_model=AdminNotificationListResponse)
async def list_admin_notifications(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False),
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> AdminNotificationListResponse:
    items, total, unread = await get_admin_notifications(db, page, per_page, unread_only=unread_only)
    return AdminNotificationListResponse(
        notifications=[AdminNotificationResponse.model_validate(n) for n in items],
        total=total,
        unread_count=unread,
        page=page,
        per_page=per_page,
    )


@router.post("/notifications/read")
async def read_admin_notifications(
    body: MarkAdminNotificationsRequest,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Mark the given notifications (or all of them) as read."""
    count = await mark_admin_notifications_read(db, body.ids)
    await db.commit()
    return {"detail": f"Marked {count} notifications as read"}
