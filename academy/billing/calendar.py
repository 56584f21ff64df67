"""
Fee calendar: month arithmetic plus "how much is still owed for a month".

One flat monthly fee applies to every player and every month, read from
the settings row at call time. There is no fee history: changing the fee
changes what every month (past or future) is measured against.
"""

from __future__ import annotations

from datetime import date
from typing import Dict, Iterator, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from academy.persistence.models import Allocation, Payment, Setting
from academy.seed.loader import default_settings

HORIZON_MONTHS = 24
DUE_DAY = 5

YearMonth = Tuple[int, int]


# ---------------------------------------------------------------------
# Month arithmetic
# ---------------------------------------------------------------------

def month_start(day: date) -> date:
    return day.replace(day=1)


def add_months(day: date, months: int) -> date:
    """First day of the month `months` after the month of `day`."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def iter_months(start: date, horizon: int = HORIZON_MONTHS) -> Iterator[YearMonth]:
    first = month_start(start)
    for i in range(horizon):
        m = add_months(first, i)
        yield m.year, m.month


def due_date(year: int, month: int) -> date:
    return date(year, month, DUE_DAY)


# ---------------------------------------------------------------------
# Configuration provider
# ---------------------------------------------------------------------

def monthly_fee(db: Session) -> int:
    setting = db.get(Setting, 1)
    if setting is None:
        return int(default_settings()["monthly_fee"])
    return int(setting.monthly_fee)


# ---------------------------------------------------------------------
# Applied amounts
# ---------------------------------------------------------------------

def applied_for_month(db: Session, player_id: int, year: int, month: int) -> int:
    stmt = (
        select(func.coalesce(func.sum(Allocation.amount_applied), 0))
        .select_from(Allocation)
        .join(Payment, Allocation.payment_id == Payment.id)
        .where(
            Payment.player_id == player_id,
            Allocation.year == year,
            Allocation.month == month,
        )
    )
    return int(db.scalar(stmt))


def applied_by_month(db: Session, player_id: int) -> Dict[YearMonth, int]:
    """All of a player's allocations, summed per (year, month)."""
    stmt = (
        select(
            Allocation.year,
            Allocation.month,
            func.sum(Allocation.amount_applied),
        )
        .select_from(Allocation)
        .join(Payment, Allocation.payment_id == Payment.id)
        .where(Payment.player_id == player_id)
        .group_by(Allocation.year, Allocation.month)
    )
    return {(y, m): int(total) for y, m, total in db.execute(stmt)}


def needed_for_month(
    db: Session,
    player_id: int,
    year: int,
    month: int,
    fee: Optional[int] = None,
) -> int:
    """
    fee - already applied for (player, year, month).

    Zero or negative when the month is covered; callers clamp.
    """
    if fee is None:
        fee = monthly_fee(db)
    return fee - applied_for_month(db, player_id, year, month)
