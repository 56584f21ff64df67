"""
Typed repositories, one per entity kind.

Storage only: no billing rules, no HTTP. Callers own the transaction
(commit / rollback); repositories flush so generated ids are visible.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from academy.persistence.models import (
    Base,
    Player,
    Payment,
    Expense,
    InventoryItem,
    Attendance,
)

T = TypeVar("T", bound=Base)


class EntityKind(str, Enum):
    PLAYER = "player"
    PAYMENT = "payment"
    EXPENSE = "expense"
    INVENTORY_ITEM = "inventory_item"
    ATTENDANCE = "attendance"


class Repository(Generic[T]):
    def __init__(self, model: Type[T], order_by: Sequence[Any] = ()):
        self.model = model
        self.order_by = tuple(order_by)

    def list(self, db: Session, **filters: Any) -> List[T]:
        stmt = select(self.model).filter_by(**filters).order_by(*self.order_by)
        return list(db.scalars(stmt))

    def get(self, db: Session, obj_id: int) -> Optional[T]:
        return db.get(self.model, obj_id)

    def add(self, db: Session, **values: Any) -> T:
        obj = self.model(**values)
        db.add(obj)
        db.flush()
        return obj

    def update(self, db: Session, obj_id: int, values: Dict[str, Any]) -> Optional[T]:
        obj = self.get(db, obj_id)
        if obj is None:
            return None

        for key, value in values.items():
            setattr(obj, key, value)

        db.flush()
        return obj

    def delete(self, db: Session, obj_id: int) -> bool:
        obj = self.get(db, obj_id)
        if obj is None:
            return False

        db.delete(obj)
        db.flush()
        return True


REPOSITORIES: Dict[EntityKind, Repository] = {
    EntityKind.PLAYER: Repository(Player, order_by=[Player.id.desc()]),
    EntityKind.PAYMENT: Repository(Payment, order_by=[Payment.paid_on.desc(), Payment.id.desc()]),
    EntityKind.EXPENSE: Repository(Expense, order_by=[Expense.spent_on.desc(), Expense.id.desc()]),
    EntityKind.INVENTORY_ITEM: Repository(InventoryItem, order_by=[InventoryItem.id]),
    EntityKind.ATTENDANCE: Repository(Attendance, order_by=[Attendance.day.desc(), Attendance.player_id]),
}


def repository(kind: EntityKind) -> Repository:
    return REPOSITORIES[kind]
