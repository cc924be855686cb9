"""Points ledger.

Every balance change is an append-only ``Transaction`` row plus the matching
delta on ``users.task_points``. Both writes happen on the same session, so they
commit or roll back together. The user row is locked (``SELECT ... FOR UPDATE``)
before any balance read that guards a write.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, select

from taskkash.config import get_settings
from taskkash.db.models import Transaction, User
from taskkash.errors import NotFoundError
from taskkash.social import activity_service

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

WELCOME_BONUS = "welcome_bonus"
DAILY_LOGIN = "daily_login"
TASK_APPROVED = "task_approved"
WITHDRAWAL = "withdrawal"
WITHDRAWAL_REFUND = "withdrawal_refund"
ADMIN_ADJUSTMENT = "admin_adjustment"

TRANSACTION_TYPES = frozenset({
    WELCOME_BONUS,
    DAILY_LOGIN,
    TASK_APPROVED,
    WITHDRAWAL,
    WITHDRAWAL_REFUND,
    ADMIN_ADJUSTMENT,
})

# Types counted as "rewards issued" in admin metrics
REWARD_TYPES = (WELCOME_BONUS, DAILY_LOGIN, TASK_APPROVED)


class InsufficientBalanceError(ValueError):
    """Raised when a debit would take the balance below zero."""


class DailyBonusAlreadyClaimedError(ValueError):
    """Raised when the daily login bonus was already claimed this UTC day."""


def utc_today(now: datetime | None = None) -> date:
    """The current UTC calendar day."""
    if now is None:
        now = datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).date()


def has_claimed_daily_bonus(last_login_bonus_on: date | None, now: datetime | None = None) -> bool:
    """True when the bonus day marker is today (or later, under clock skew)."""
    return last_login_bonus_on is not None and last_login_bonus_on >= utc_today(now)


# ---------------------------------------------------------------------------
# Core write path
# ---------------------------------------------------------------------------


async def lock_user(db: AsyncSession, user_id: int) -> User:
    """Load the user row with a write lock and fresh column values."""
    user = await db.get(User, user_id, with_for_update=True, populate_existing=True)
    if user is None:
        msg = "User not found"
        raise NotFoundError(msg)
    return user


async def apply_transaction(
    db: AsyncSession,
    user: User,
    amount: int,
    type_: str,
    description: str,
    *,
    reference_type: str | None = None,
    reference_id: int | None = None,
) -> Transaction:
    """Append a ledger row and move the balance of an already-locked user."""
    if type_ not in TRANSACTION_TYPES:
        msg = f"Invalid transaction type: {type_}"
        raise ValueError(msg)
    if amount == 0:
        msg = "Transaction amount must be non-zero"
        raise ValueError(msg)
    if user.task_points + amount < 0:
        msg = "Insufficient balance"
        raise InsufficientBalanceError(msg)

    user.task_points = user.task_points + amount
    transaction = Transaction(
        user_id=user.id,
        amount=amount,
        type=type_,
        description=description,
        reference_type=reference_type,
        reference_id=reference_id,
    )
    db.add(transaction)
    await db.flush()
    logger.info(
        "ledger_transaction",
        user_id=user.id,
        amount=amount,
        type=type_,
        balance=user.task_points,
    )
    return transaction


async def create_transaction(
    db: AsyncSession,
    user_id: int,
    amount: int,
    type_: str,
    description: str,
    *,
    reference_type: str | None = None,
    reference_id: int | None = None,
) -> Transaction:
    """
    Record a signed ledger entry and apply it to the user's balance.

    Raises:
        NotFoundError: If the user does not exist.
        InsufficientBalanceError: If a debit exceeds the current balance.
        ValueError: On an unknown type or a zero amount.
    """
    user = await lock_user(db, user_id)
    return await apply_transaction(
        db,
        user,
        amount,
        type_,
        description,
        reference_type=reference_type,
        reference_id=reference_id,
    )


# ---------------------------------------------------------------------------
# Bonuses
# ---------------------------------------------------------------------------


async def grant_welcome_bonus(db: AsyncSession, user_id: int) -> Transaction | None:
    """
    Grant the one-time welcome bonus.

    Safe to call from several paths (registration, balance read): the flag is
    flipped under the row lock, so at most one call credits the bonus.
    Returns None when it was already granted.
    """
    settings = get_settings()
    user = await lock_user(db, user_id)
    if user.welcome_bonus_granted:
        return None

    user.welcome_bonus_granted = True
    transaction = await apply_transaction(
        db,
        user,
        settings.welcome_bonus_points,
        WELCOME_BONUS,
        "Welcome Bonus - Thanks for joining TaskKash!",
    )
    await activity_service.record_activity(
        db,
        user_id,
        activity_service.WELCOME_BONUS,
        title="Welcome Bonus",
        description=f"You received {settings.welcome_bonus_points} TP for joining TaskKash!",
        metadata={"points": settings.welcome_bonus_points},
    )
    return transaction


async def claim_daily_login_bonus(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> Transaction:
    """
    Credit the daily login bonus, at most once per UTC calendar day.

    Raises:
        DailyBonusAlreadyClaimedError: If it was already claimed today.
    """
    settings = get_settings()
    user = await lock_user(db, user_id)
    if has_claimed_daily_bonus(user.last_login_bonus_on, now):
        msg = "Daily login bonus already claimed today"
        raise DailyBonusAlreadyClaimedError(msg)

    user.last_login_bonus_on = utc_today(now)
    transaction = await apply_transaction(
        db,
        user,
        settings.daily_login_bonus_points,
        DAILY_LOGIN,
        "Daily Login Bonus - Come back tomorrow for more!",
    )
    await activity_service.record_activity(
        db,
        user_id,
        activity_service.DAILY_LOGIN,
        title="Daily Login Bonus",
        description=f"You earned {settings.daily_login_bonus_points} TP for logging in today",
        metadata={"points": settings.daily_login_bonus_points},
    )
    return transaction


# ---------------------------------------------------------------------------
# Admin adjustments
# ---------------------------------------------------------------------------


async def set_balance(db: AsyncSession, user_id: int, points: int, admin_id: int) -> Transaction | None:
    """
    Set a user's balance to an absolute value via an ``admin_adjustment`` entry.

    Returns None when the balance already equals ``points``.
    """
    if points < 0:
        msg = "Points cannot be negative"
        raise ValueError(msg)

    user = await lock_user(db, user_id)
    delta = points - user.task_points
    if delta == 0:
        return None

    sign = "+" if delta > 0 else ""
    return await apply_transaction(
        db,
        user,
        delta,
        ADMIN_ADJUSTMENT,
        f"Admin adjustment: {sign}{delta} TP",
        reference_type="admin",
        reference_id=admin_id,
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_balance(db: AsyncSession, user_id: int) -> int:
    """Current stored balance."""
    result = await db.execute(select(User.task_points).where(User.id == user_id))
    balance = result.scalar_one_or_none()
    if balance is None:
        msg = "User not found"
        raise NotFoundError(msg)
    return balance


async def list_transactions(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    per_page: int = 20,
    type_: str | None = None,
    sort: str = "desc",
) -> tuple[list[Transaction], int]:
    """Get the user's ledger entries (paginated)."""
    offset = (page - 1) * per_page
    filters = [Transaction.user_id == user_id]
    if type_ is not None:
        filters.append(Transaction.type == type_)

    total_result = await db.execute(select(func.count()).select_from(Transaction).where(*filters))
    total = total_result.scalar_one()

    if sort == "asc":
        order = (Transaction.created_at.asc(), Transaction.id.asc())
    else:
        order = (Transaction.created_at.desc(), Transaction.id.desc())

    result = await db.execute(
        select(Transaction).where(*filters).order_by(*order).offset(offset).limit(per_page)
    )
    return list(result.scalars().all()), total


async def reconcile_balance(db: AsyncSession, user_id: int) -> dict[str, Any]:
    """Compare the stored balance with the sum of the user's ledger entries."""
    balance = await get_balance(db, user_id)
    result = await db.execute(
        select(func.coalesce(func.sum(Transaction.amount), 0)).where(Transaction.user_id == user_id)
    )
    ledger_total = int(result.scalar_one())
    drift = balance - ledger_total
    if drift:
        logger.warning("ledger_drift_detected", user_id=user_id, balance=balance, ledger_total=ledger_total)
    return {
        "user_id": user_id,
        "balance": balance,
        "ledger_total": ledger_total,
        "drift": drift,
        "consistent": drift == 0,
    }


async def total_rewards_issued(db: AsyncSession) -> int:
    """Sum of all reward-type credits across users."""
    result = await db.execute(
        select(func.coalesce(func.sum(Transaction.amount), 0)).where(
            Transaction.type.in_(REWARD_TYPES),
            Transaction.amount > 0,
        )
    )
    return int(result.scalar_one())
