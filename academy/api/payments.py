from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from academy.billing.allocation import allocations_for, register_payment
from academy.common.errors import PaymentValidationError, TransactionFailed
from academy.persistence.session import get_db
from academy.persistence.models import Allocation, Payment
from academy.persistence.repositories import EntityKind, repository

router = APIRouter(prefix="/api/payments", tags=["payments"])
payments = repository(EntityKind.PAYMENT)


class PaymentCreate(BaseModel):
    player_id: int
    # range checks live in the billing layer so every caller gets them
    amount: int
    paid_on: date
    method: Optional[str] = Field(None, max_length=40)
    notes: Optional[str] = Field(None, max_length=500)


def _payment_out(p: Payment) -> dict:
    return {
        "id": p.id,
        "player_id": p.player_id,
        "amount": p.amount,
        "paid_on": p.paid_on,
        "method": p.method,
        "notes": p.notes,
        "registered_at": p.registered_at,
    }


def _allocation_out(a: Allocation) -> dict:
    return {
        "year": a.year,
        "month": a.month,
        "amount_applied": a.amount_applied,
    }


@router.get("")
def list_payments(player_id: Optional[int] = None, db: Session = Depends(get_db)):
    filters = {} if player_id is None else {"player_id": player_id}
    return [_payment_out(p) for p in payments.list(db, **filters)]


@router.post("", status_code=201)
def create_payment(payload: PaymentCreate, db: Session = Depends(get_db)):
    try:
        payment = register_payment(
            db,
            player_id=payload.player_id,
            amount=payload.amount,
            paid_on=payload.paid_on,
            method=payload.method,
            notes=payload.notes,
        )
    except PaymentValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransactionFailed:
        raise HTTPException(status_code=503, detail="Payment could not be stored")

    return {
        **_payment_out(payment),
        "allocations": [_allocation_out(a) for a in allocations_for(db, payment.id)],
    }


@router.get("/{payment_id}/allocations")
def list_allocations(payment_id: int, db: Session = Depends(get_db)):
    if payments.get(db, payment_id) is None:
        raise HTTPException(status_code=404, detail="Payment not found")
    return [_allocation_out(a) for a in allocations_for(db, payment_id)]


@router.delete("/{payment_id}")
def delete_payment(payment_id: int, db: Session = Depends(get_db)):
    """
    Allocation rows stay behind, detached from any player; the months
    they covered read as unpaid again.
    """
    if not payments.delete(db, payment_id):
        raise HTTPException(status_code=404, detail="Payment not found")
    db.commit()
    return {"success": True}
