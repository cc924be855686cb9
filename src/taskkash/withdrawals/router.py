"""Withdrawal endpoints for regular users (/api/v1/withdrawals)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from taskkash.auth.dependencies import get_current_user
from taskkash.database import get_session
from taskkash.db.models import User
from taskkash.social.notification_service import notify_admins
from taskkash.withdrawals import service as withdrawals
from taskkash.withdrawals.schemas import (
    WithdrawalCreatedResponse,
    WithdrawalListResponse,
    WithdrawalRequest,
    WithdrawalResponse,
)

router = APIRouter(prefix="/api/v1/withdrawals", tags=["Withdrawals"])


@router.post("", response_model=WithdrawalCreatedResponse, status_code=201)
async def create_withdrawal(
    body: WithdrawalRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> WithdrawalCreatedResponse:
    """Request a withdrawal. The amount is debited immediately."""
    details = body.model_dump(exclude={"amount", "withdrawal_type"})
    try:
        withdrawal, new_balance = await withdrawals.request_withdrawal(
            db, user.id, body.amount, body.withdrawal_type, details
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()

    response = WithdrawalCreatedResponse(
        message="Withdrawal request submitted successfully",
        withdrawal=WithdrawalResponse.model_validate(withdrawal),
        new_balance=new_balance,
        processing_time=withdrawals.processing_time(withdrawal.withdrawal_type),
    )
    await notify_admins(
        "withdrawal_request",
        "New withdrawal request",
        f"{user.name} requested {withdrawal.amount} TP via {withdrawals.METHOD_LABELS[withdrawal.withdrawal_type]}.",
        reference_id=withdrawal.id,
        reference_type="withdrawal",
    )
    return response


@router.get("", response_model=WithdrawalListResponse)
async def list_my_withdrawals(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    status: str | None = Query(None, pattern="^(pending|approved|rejected)$"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> WithdrawalListResponse:
    """The caller's withdrawals (paginated)."""
    items, total = await withdrawals.list_withdrawals(db, page, per_page, status=status, user_id=user.id)
    return WithdrawalListResponse(
        withdrawals=[WithdrawalResponse.model_validate(w) for w in items],
        total=total,
        page=page,
        per_page=per_page,
    )
