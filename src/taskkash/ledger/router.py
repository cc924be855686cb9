"""Points ledger endpoints: balance, history and the daily bonus."""

from __future__ import annotations

import math

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from taskkash.auth.dependencies import get_current_user
from taskkash.database import get_session
from taskkash.db.models import User
from taskkash.ledger import service as ledger
from taskkash.ledger.schemas import (
    BalanceResponse,
    DailyBonusResponse,
    TransactionListResponse,
    TransactionResponse,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/ledger", tags=["Ledger"])


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> BalanceResponse:
    """Current balance. Grants the welcome bonus if registration could not."""
    if not user.welcome_bonus_granted:
        try:
            if await ledger.grant_welcome_bonus(db, user.id) is not None:
                await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("welcome_bonus_failed", user_id=user.id)
        await db.refresh(user)

    return BalanceResponse(
        task_points=user.task_points,
        tasks_completed=user.tasks_completed,
        welcome_bonus_granted=user.welcome_bonus_granted,
        daily_bonus_claimed_today=ledger.has_claimed_daily_bonus(user.last_login_bonus_on),
        daily_streak=user.daily_streak,
    )


@router.get("/transactions", response_model=TransactionListResponse)
async def list_transactions(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    type: str | None = Query(None),  # noqa: A002
    sort: str = Query("desc", pattern="^(asc|desc)$"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> TransactionListResponse:
    """List the user's ledger entries (paginated)."""
    if type is not None and type not in ledger.TRANSACTION_TYPES:
        raise HTTPException(status_code=400, detail=f"Invalid transaction type: {type}")
    transactions, total = await ledger.list_transactions(db, user.id, page, per_page, type, sort)
    return TransactionListResponse(
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
        total=total,
        page=page,
        per_page=per_page,
        total_pages=math.ceil(total / per_page) if total else 0,
    )


@router.post("/daily-bonus", response_model=DailyBonusResponse)
async def claim_daily_bonus(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> DailyBonusResponse:
    """Claim today's login bonus (once per UTC day)."""
    try:
        transaction = await ledger.claim_daily_login_bonus(db, user.id)
    except ledger.DailyBonusAlreadyClaimedError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()

    return DailyBonusResponse(
        points_awarded=transaction.amount,
        new_balance=user.task_points,
        message=f"You earned {transaction.amount} TP! Come back tomorrow for more.",
    )
