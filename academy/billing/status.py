from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from academy.billing.calendar import applied_by_month, due_date, iter_months, monthly_fee
from academy.persistence.models import Payment, Player

PAID = "paid"
PARTIAL = "partial"
DEBT = "debt"
UNKNOWN = "unknown"


@dataclass
class PlayerStatus:
    player_id: int
    status: str
    paid_this_month: int
    debt: int
    fee: int
    next_due_date: Optional[date]
    last_payment_date: Optional[date]


def classify(paid: int, fee: int) -> str:
    if paid >= fee:
        return PAID
    if paid > 0:
        return PARTIAL
    return DEBT


def _last_payment_date(db: Session, player_id: int) -> Optional[date]:
    return db.scalar(
        select(func.max(Payment.paid_on)).where(Payment.player_id == player_id)
    )


def get_player_status(
    db: Session,
    player_id: int,
    today: Optional[date] = None,
) -> PlayerStatus:
    """
    Current-month standing of one player.

    Never raises for a missing player: the result carries status
    "unknown" with zero amounts instead.
    """
    today = today or date.today()
    fee = monthly_fee(db)

    if db.get(Player, player_id) is None:
        return PlayerStatus(
            player_id=player_id,
            status=UNKNOWN,
            paid_this_month=0,
            debt=0,
            fee=fee,
            next_due_date=None,
            last_payment_date=None,
        )

    applied = applied_by_month(db, player_id)
    paid = applied.get((today.year, today.month), 0)

    next_due = None
    for year, month in iter_months(today):
        if applied.get((year, month), 0) < fee:
            next_due = due_date(year, month)
            break

    return PlayerStatus(
        player_id=player_id,
        status=classify(paid, fee),
        paid_this_month=paid,
        debt=max(0, fee - paid),
        fee=fee,
        next_due_date=next_due,
        last_payment_date=_last_payment_date(db, player_id),
    )


def list_alerts(db: Session, today: Optional[date] = None) -> List[dict]:
    """Every player not fully paid for the current month, oldest first."""
    today = today or date.today()

    alerts = []
    for player in db.scalars(select(Player).order_by(Player.id)):
        st = get_player_status(db, player.id, today=today)
        if st.status == PAID:
            continue

        alerts.append({
            "player_id": player.id,
            "player_name": f"{player.first_names} {player.last_names}",
            "status": st.status,
            "debt": st.debt,
            "next_due_date": st.next_due_date,
        })

    return alerts
