from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from academy.persistence.session import get_db
from academy.persistence.models import MAX_AMOUNT, Expense
from academy.persistence.repositories import EntityKind, repository

router = APIRouter(prefix="/api/expenses", tags=["expenses"])
expenses = repository(EntityKind.EXPENSE)


class ExpenseIn(BaseModel):
    concept: str = Field(..., min_length=1, max_length=120)
    amount: int = Field(..., gt=0, le=MAX_AMOUNT)
    spent_on: date
    category: Optional[str] = Field(None, max_length=60)
    notes: Optional[str] = Field(None, max_length=500)


def _expense_out(e: Expense) -> dict:
    return {
        "id": e.id,
        "concept": e.concept,
        "amount": e.amount,
        "spent_on": e.spent_on,
        "category": e.category,
        "notes": e.notes,
    }


@router.get("")
def list_expenses(db: Session = Depends(get_db)):
    return [_expense_out(e) for e in expenses.list(db)]


@router.post("", status_code=201)
def create_expense(payload: ExpenseIn, db: Session = Depends(get_db)):
    expense = expenses.add(db, **payload.model_dump())
    db.commit()
    return {"id": expense.id}


@router.put("/{expense_id}")
def update_expense(expense_id: int, payload: ExpenseIn, db: Session = Depends(get_db)):
    if expenses.update(db, expense_id, payload.model_dump()) is None:
        raise HTTPException(status_code=404, detail="Expense not found")
    db.commit()
    return {"success": True}


@router.delete("/{expense_id}")
def delete_expense(expense_id: int, db: Session = Depends(get_db)):
    if not expenses.delete(db, expense_id):
        raise HTTPException(status_code=404, detail="Expense not found")
    db.commit()
    return {"success": True}
