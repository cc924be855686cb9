"""Response schemas for the points ledger."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class TransactionResponse(BaseModel):
    id: int
    amount: int
    type: str
    description: str
    reference_type: str | None = None
    reference_id: int | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse]
    total: int
    page: int
    per_page: int
    total_pages: int


class BalanceResponse(BaseModel):
    task_points: int
    tasks_completed: int
    welcome_bonus_granted: bool
    daily_bonus_claimed_today: bool
    daily_streak: int


class DailyBonusResponse(BaseModel):
    success: bool = True
    points_awarded: int
    new_balance: int
    message: str


class LedgerCheckResponse(BaseModel):
    user_id: int
    balance: int
    ledger_total: int
    drift: int
    consistent: bool
