"""
Payment registration and month allocation.

A payment is spread over monthly fees starting at the CURRENT calendar
month (wall clock, not the payment date), oldest first, for at most
HORIZON_MONTHS months. Months already covered get no row. Whatever is
left after the horizon stays unallocated.

The payment row and all of its allocation rows are written in one
transaction, under the player's lock.
"""

from __future__ import annotations

from datetime import date
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from academy.billing.calendar import iter_months, monthly_fee, needed_for_month
from academy.billing.locks import PLAYER_LOCKS, PlayerLocks
from academy.common.errors import PaymentValidationError, StorageError, TransactionFailed
from academy.common.logger import get_logger
from academy.persistence.models import MAX_AMOUNT, Allocation, Payment, Player
from academy.persistence.repositories import EntityKind, repository
from academy.persistence.upsert import insert_or_ignore

logger = get_logger(__name__)


# ------------------------------------------------------------
# Validation
# ------------------------------------------------------------

def _validate_amount(amount) -> int:
    # bool is an int subclass; True is not a payment
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise PaymentValidationError("amount must be a whole number")
    if amount <= 0:
        raise PaymentValidationError("amount must be positive")
    if amount > MAX_AMOUNT:
        raise PaymentValidationError("amount is too large")
    return amount


def _validate_date(paid_on) -> date:
    if not isinstance(paid_on, date):
        raise PaymentValidationError("payment date is required")
    return paid_on


# ------------------------------------------------------------
# Allocation
# ------------------------------------------------------------

def allocated_total(db: Session, payment_id: int) -> int:
    stmt = select(func.coalesce(func.sum(Allocation.amount_applied), 0)).where(
        Allocation.payment_id == payment_id
    )
    return int(db.scalar(stmt))


def allocations_for(db: Session, payment_id: int) -> List[Allocation]:
    stmt = (
        select(Allocation)
        .where(Allocation.payment_id == payment_id)
        .order_by(Allocation.year, Allocation.month)
    )
    return list(db.scalars(stmt))


def allocate_payment(
    db: Session,
    payment: Payment,
    today: Optional[date] = None,
) -> List[Allocation]:
    """
    Spend the unallocated part of `payment` across months.

    Safe to re-run: only the amount not yet allocated is spent, and a
    (payment, year, month) row that already exists is left untouched.
    Does not commit.
    """
    today = today or date.today()
    fee = monthly_fee(db)

    remaining = payment.amount - allocated_total(db, payment.id)

    for year, month in iter_months(today):
        if remaining <= 0:
            break

        need = needed_for_month(db, payment.player_id, year, month, fee)
        if need <= 0:
            continue

        to_apply = min(remaining, need)

        written = insert_or_ignore(
            db,
            Allocation,
            {
                "payment_id": payment.id,
                "year": year,
                "month": month,
                "amount_applied": to_apply,
            },
            conflict_on=["payment_id", "year", "month"],
        )
        if not written:
            logger.info(
                f"[billing] payment={payment.id} already allocated to {year}-{month:02d}, skipping"
            )
            continue

        remaining -= to_apply

    if remaining > 0:
        logger.warning(
            f"[billing] payment={payment.id} left {remaining} unallocated beyond the horizon"
        )

    return allocations_for(db, payment.id)


# ------------------------------------------------------------
# Registration
# ------------------------------------------------------------

def register_payment(
    db: Session,
    player_id: int,
    amount: int,
    paid_on: date,
    method: Optional[str] = None,
    notes: Optional[str] = None,
    today: Optional[date] = None,
    locks: PlayerLocks = PLAYER_LOCKS,
) -> Payment:
    """
    Persist a payment and allocate it, atomically.

    The player lookup runs before the lock is taken, so a rejected
    registration leaves nothing behind in the lock registry.

    Raises:
        PaymentValidationError: bad amount/date or unknown player; nothing written
        TransactionFailed: the store failed; nothing written
    """
    amount = _validate_amount(amount)
    paid_on = _validate_date(paid_on)

    try:
        if db.get(Player, player_id) is None:
            raise PaymentValidationError(f"player {player_id} not found")

        with locks.hold(player_id):
            payment = repository(EntityKind.PAYMENT).add(
                db,
                player_id=player_id,
                amount=amount,
                paid_on=paid_on,
                method=method,
                notes=notes,
            )
            allocations = allocate_payment(db, payment, today=today)
            db.commit()

    except (SQLAlchemyError, StorageError) as e:
        logger.warning(f"[billing] payment registration failed (rollback): {e}")
        db.rollback()
        raise TransactionFailed(str(e)) from e

    logger.info(
        f"[billing] payment={payment.id} player={player_id} amount={amount} "
        f"months={len(allocations)}"
    )
    return payment
