from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from academy.persistence.session import get_db
from academy.persistence.models import InventoryItem, InventoryMovement, Player
from academy.persistence.repositories import EntityKind, repository
from academy.common.logger import get_logger

router = APIRouter(prefix="/api/inventory", tags=["inventory"])
items = repository(EntityKind.INVENTORY_ITEM)

logger = get_logger(__name__)


# ---------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------

class ItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    category: Optional[str] = Field(None, max_length=60)
    stock: int = Field(0, ge=0)
    min_stock: int = Field(0, ge=0)


class StockUpdate(BaseModel):
    stock: int = Field(..., ge=0)


class MovementCreate(BaseModel):
    kind: Literal["in", "out"]
    quantity: int = Field(..., gt=0)
    player_id: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=500)


def _item_out(item: InventoryItem) -> dict:
    return {
        "id": item.id,
        "name": item.name,
        "category": item.category,
        "stock": item.stock,
        "min_stock": item.min_stock,
        "low_stock": item.low_stock,
    }


# ---------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------

@router.get("")
def list_items(db: Session = Depends(get_db)):
    return [_item_out(i) for i in items.list(db)]


@router.post("", status_code=201)
def create_item(payload: ItemCreate, db: Session = Depends(get_db)):
    item = items.add(db, **payload.model_dump())
    db.commit()
    return {"id": item.id}


@router.put("/{item_id}")
def set_stock(item_id: int, payload: StockUpdate, db: Session = Depends(get_db)):
    if items.update(db, item_id, {"stock": payload.stock}) is None:
        raise HTTPException(status_code=404, detail="Item not found")
    db.commit()
    return {"success": True}


# ---------------------------------------------------------------------
# Movements
# ---------------------------------------------------------------------

@router.get("/{item_id}/movements")
def list_movements(item_id: int, db: Session = Depends(get_db)):
    if items.get(db, item_id) is None:
        raise HTTPException(status_code=404, detail="Item not found")

    rows = db.scalars(
        select(InventoryMovement)
        .where(InventoryMovement.item_id == item_id)
        .order_by(InventoryMovement.id.desc())
    )
    return [
        {
            "id": m.id,
            "kind": m.kind,
            "quantity": m.quantity,
            "player_id": m.player_id,
            "notes": m.notes,
            "created_at": m.created_at,
        }
        for m in rows
    ]


@router.post("/{item_id}/movements", status_code=201)
def record_movement(item_id: int, payload: MovementCreate, db: Session = Depends(get_db)):
    """
    Log a stock entry or exit and apply it to the item.

    The stock change is one guarded UPDATE, so concurrent exits cannot
    take stock below zero.
    """
    if items.get(db, item_id) is None:
        raise HTTPException(status_code=404, detail="Item not found")

    if payload.player_id is not None and db.get(Player, payload.player_id) is None:
        raise HTTPException(status_code=404, detail="Player not found")

    delta = payload.quantity if payload.kind == "in" else -payload.quantity

    result = db.execute(
        update(InventoryItem)
        .where(
            InventoryItem.id == item_id,
            InventoryItem.stock + delta >= 0,
        )
        .values(stock=InventoryItem.stock + delta)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise HTTPException(status_code=400, detail="Not enough stock")

    movement = InventoryMovement(item_id=item_id, **payload.model_dump())
    db.add(movement)
    db.commit()

    item = items.get(db, item_id)
    if item.low_stock:
        logger.warning(f"[inventory] item={item_id} low on stock ({item.stock})")

    return {"id": movement.id, "stock": item.stock}
