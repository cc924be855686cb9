"""Request/response schemas for withdrawals."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class WithdrawalRequest(BaseModel):
    """Cash-out request. Method-specific fields are checked by the service."""

    amount: int = Field(..., gt=0)
    withdrawal_type: Literal["bank", "crypto"]
    bank_name: str | None = Field(None, max_length=100)
    account_name: str | None = Field(None, max_length=100)
    account_number: str | None = Field(None, max_length=34)
    network: str | None = Field(None, max_length=16)
    wallet_address: str | None = Field(None, max_length=128)

    @field_validator("bank_name", "account_name", "account_number", "network", "wallet_address")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


class ReviewWithdrawalRequest(BaseModel):
    status: Literal["approved", "rejected"]
    admin_note: str | None = Field(None, max_length=500)


class WithdrawalResponse(BaseModel):
    id: int
    user_id: int
    amount: int
    converted_amount: Decimal
    withdrawal_type: str
    status: str
    bank_name: str | None = None
    account_name: str | None = None
    account_number: str | None = None
    network: str | None = None
    wallet_address: str | None = None
    admin_note: str | None = None
    processed_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class WithdrawalCreatedResponse(BaseModel):
    success: bool = True
    message: str
    withdrawal: WithdrawalResponse
    new_balance: int
    processing_time: str


class WithdrawalListResponse(BaseModel):
    withdrawals: list[WithdrawalResponse]
    total: int
    page: int
    per_page: int
