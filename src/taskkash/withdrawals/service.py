"""Withdrawal processor.

Funds leave the balance when the request is made; there is no hold. A
rejected request is refunded with a compensating ledger entry, an approved
one needs no further balance change.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskkash.config import get_settings
from taskkash.db.base import utcnow
from taskkash.db.models import Withdrawal
from taskkash.errors import ConflictError, NotFoundError
from taskkash.ledger import service as ledger
from taskkash.social import activity_service

logger = structlog.get_logger()

BANK = "bank"
CRYPTO = "crypto"
CRYPTO_NETWORKS = ("TRC20", "ERC20")
MIN_WALLET_ADDRESS_LENGTH = 10

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"

METHOD_LABELS = {BANK: "Bank Transfer", CRYPTO: "USDT"}


class WithdrawalNotFoundError(NotFoundError):
    """Raised when a withdrawal id does not exist."""


def convert_points(amount: int, rate: Decimal | None = None) -> Decimal:
    """TP -> USD at the fixed platform rate, rounded to 4 places."""
    if rate is None:
        rate = get_settings().points_to_usd_rate
    return (Decimal(amount) * rate).quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)


def processing_time(withdrawal_type: str) -> str:
    settings = get_settings()
    return settings.bank_processing_time if withdrawal_type == BANK else settings.crypto_processing_time


def validate_withdrawal(
    amount: int,
    withdrawal_type: str,
    details: dict[str, Any],
) -> dict[str, Any]:
    """
    Check amount and method details. Returns the columns to store for the method.

    Raises:
        ValueError: With a user-facing message on the first failed rule.
    """
    settings = get_settings()
    if amount < settings.min_withdrawal_points:
        msg = f"Minimum withdrawal amount is {settings.min_withdrawal_points} TP"
        raise ValueError(msg)

    if withdrawal_type == BANK:
        bank_name = details.get("bank_name")
        account_name = details.get("account_name")
        account_number = details.get("account_number")
        if not (bank_name and account_name and account_number):
            msg = "Bank name, account name, and account number are required for bank transfer"
            raise ValueError(msg)
        return {"bank_name": bank_name, "account_name": account_name, "account_number": account_number}

    if withdrawal_type == CRYPTO:
        network = details.get("network")
        wallet_address = details.get("wallet_address")
        if not (network and wallet_address):
            msg = "Network and wallet address are required for USDT withdrawal"
            raise ValueError(msg)
        network = network.upper()
        if network not in CRYPTO_NETWORKS:
            msg = "Invalid crypto network"
            raise ValueError(msg)
        if len(wallet_address) < MIN_WALLET_ADDRESS_LENGTH:
            msg = "Invalid wallet address"
            raise ValueError(msg)
        return {"network": network, "wallet_address": wallet_address}

    msg = "Invalid withdrawal type"
    raise ValueError(msg)


async def request_withdrawal(
    db: AsyncSession,
    user_id: int,
    amount: int,
    withdrawal_type: str,
    details: dict[str, Any],
) -> tuple[Withdrawal, int]:
    """
    Create a pending withdrawal and debit the balance.

    The balance check, debit, ledger entry and withdrawal row share one
    database transaction under the user row lock.

    Returns:
        (withdrawal, new_balance)

    Raises:
        ValueError: Invalid amount/details.
        InsufficientBalanceError: Balance below ``amount``.
    """
    method_fields = validate_withdrawal(amount, withdrawal_type, details)

    user = await ledger.lock_user(db, user_id)
    if user.task_points < amount:
        msg = "Insufficient balance"
        raise ledger.InsufficientBalanceError(msg)

    withdrawal = Withdrawal(
        user_id=user_id,
        amount=amount,
        converted_amount=convert_points(amount),
        withdrawal_type=withdrawal_type,
        status=PENDING,
        created_at=utcnow(),
        **method_fields,
    )
    db.add(withdrawal)
    await db.flush()

    await ledger.apply_transaction(
        db,
        user,
        -amount,
        ledger.WITHDRAWAL,
        f"Withdrawal: {amount} TP via {METHOD_LABELS[withdrawal_type]}",
        reference_type="withdrawal",
        reference_id=withdrawal.id,
    )
    await activity_service.record_activity(
        db,
        user_id,
        activity_service.WITHDRAWAL_REQUESTED,
        title="Withdrawal Requested",
        description=f"{amount} TP (${withdrawal.converted_amount}) via {METHOD_LABELS[withdrawal_type]}",
        metadata={"withdrawal_id": withdrawal.id, "amount": amount},
    )
    logger.info(
        "withdrawal_requested",
        user_id=user_id,
        withdrawal_id=withdrawal.id,
        amount=amount,
        withdrawal_type=withdrawal_type,
    )
    return withdrawal, user.task_points


async def review_withdrawal(
    db: AsyncSession,
    withdrawal_id: int,
    reviewer_id: int,
    status: str,
    admin_note: str | None = None,
) -> Withdrawal:
    """
    Approve or reject a pending withdrawal. Rejection refunds the full amount.

    Raises:
        WithdrawalNotFoundError: Unknown withdrawal.
        ConflictError: The withdrawal is no longer pending.
    """
    if status not in (APPROVED, REJECTED):
        msg = "Status must be 'approved' or 'rejected'"
        raise ValueError(msg)

    result = await db.execute(
        select(Withdrawal)
        .where(Withdrawal.id == withdrawal_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    withdrawal = result.scalar_one_or_none()
    if withdrawal is None:
        msg = "Withdrawal not found"
        raise WithdrawalNotFoundError(msg)
    if withdrawal.status != PENDING:
        msg = "Withdrawal already processed"
        raise ConflictError(msg)

    withdrawal.status = status
    withdrawal.admin_note = admin_note
    withdrawal.processed_at = utcnow()
    withdrawal.processed_by = reviewer_id

    if status == REJECTED:
        await ledger.create_transaction(
            db,
            withdrawal.user_id,
            withdrawal.amount,
            ledger.WITHDRAWAL_REFUND,
            f"Withdrawal Refund: {withdrawal.amount} TP (Rejected withdrawal)",
            reference_type="withdrawal",
            reference_id=withdrawal.id,
        )

    await activity_service.record_activity(
        db,
        withdrawal.user_id,
        activity_service.WITHDRAWAL_PROCESSED,
        title=f"Withdrawal {status.capitalize()}",
        description=admin_note,
        metadata={"withdrawal_id": withdrawal.id, "amount": withdrawal.amount, "status": status},
    )
    await db.flush()
    logger.info("withdrawal_reviewed", withdrawal_id=withdrawal.id, status=status, reviewer_id=reviewer_id)
    return withdrawal


async def list_withdrawals(
    db: AsyncSession,
    page: int = 1,
    per_page: int = 20,
    status: str | None = None,
    user_id: int | None = None,
) -> tuple[list[Withdrawal], int]:
    """Withdrawals (paginated, newest first), optionally for one user."""
    offset = (page - 1) * per_page
    filters = []
    if status is not None:
        filters.append(Withdrawal.status == status)
    if user_id is not None:
        filters.append(Withdrawal.user_id == user_id)

    total_result = await db.execute(select(func.count()).select_from(Withdrawal).where(*filters))
    total = total_result.scalar_one()

    result = await db.execute(
        select(Withdrawal)
        .where(*filters)
        .order_by(Withdrawal.created_at.desc(), Withdrawal.id.desc())
        .offset(offset)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def count_pending_withdrawals(db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count()).select_from(Withdrawal).where(Withdrawal.status == PENDING)
    )
    return result.scalar_one()
