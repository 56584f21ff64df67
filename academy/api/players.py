"""
Player roster endpoints.

- Guardians are linked by phone (insert-or-fetch), never duplicated
- Category follows age unless the caller picks one
- Birth date is fixed once the player exists
"""

from dataclasses import asdict
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from academy.billing.status import get_player_status
from academy.persistence.session import get_db
from academy.persistence.models import Category, Player
from academy.persistence.guardians import link_guardian
from academy.persistence.repositories import EntityKind, repository
from academy.roster.categories import derive_category_id
from academy.common.logger import get_logger

router = APIRouter(prefix="/api/players", tags=["players"])
players = repository(EntityKind.PLAYER)

logger = get_logger(__name__)


# ---------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------

class PlayerCreate(BaseModel):
    first_names: str = Field(..., min_length=1, max_length=80)
    last_names: str = Field(..., min_length=1, max_length=80)
    birth_date: date
    phone: Optional[str] = Field(None, max_length=30)
    blood_type: Optional[str] = Field(None, pattern="^(A|B|AB|O)[+-]$")
    category_id: Optional[int] = None
    guardian_name: Optional[str] = Field(None, max_length=80)
    guardian_phone: Optional[str] = Field(None, max_length=30)


class PlayerUpdate(BaseModel):
    first_names: Optional[str] = Field(None, min_length=1, max_length=80)
    last_names: Optional[str] = Field(None, min_length=1, max_length=80)
    birth_date: Optional[date] = None
    phone: Optional[str] = Field(None, max_length=30)
    blood_type: Optional[str] = Field(None, pattern="^(A|B|AB|O)[+-]$")
    category_id: Optional[int] = None
    guardian_name: Optional[str] = Field(None, max_length=80)
    guardian_phone: Optional[str] = Field(None, max_length=30)


def _player_out(p: Player) -> dict:
    return {
        "id": p.id,
        "first_names": p.first_names,
        "last_names": p.last_names,
        "birth_date": p.birth_date,
        "blood_type": p.blood_type,
        "phone": p.phone,
        "guardian_id": p.guardian_id,
        "category_id": p.category_id,
        "registered_at": p.registered_at,
    }


def _require_category(db: Session, category_id: Optional[int]) -> None:
    if category_id is not None and db.get(Category, category_id) is None:
        raise HTTPException(status_code=404, detail="Category not found")


# ---------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------

@router.get("")
def list_players(db: Session = Depends(get_db)):
    return [_player_out(p) for p in players.list(db)]


@router.post("", status_code=201)
def create_player(payload: PlayerCreate, db: Session = Depends(get_db)):
    _require_category(db, payload.category_id)
    guardian_id = link_guardian(db, None, payload.guardian_name, payload.guardian_phone)

    category_id = payload.category_id
    if category_id is None:
        category_id = derive_category_id(db, payload.birth_date)

    player = players.add(
        db,
        first_names=payload.first_names.strip(),
        last_names=payload.last_names.strip(),
        birth_date=payload.birth_date,
        phone=payload.phone,
        blood_type=payload.blood_type or "O+",
        category_id=category_id,
        guardian_id=guardian_id,
    )
    db.commit()

    logger.info(f"[roster] created player id={player.id}")
    return {"id": player.id}


@router.get("/{player_id}")
def get_player(player_id: int, db: Session = Depends(get_db)):
    player = players.get(db, player_id)
    if not player:
        raise HTTPException(status_code=404, detail="Player not found")
    return _player_out(player)


@router.put("/{player_id}")
def update_player(player_id: int, payload: PlayerUpdate, db: Session = Depends(get_db)):
    player = players.get(db, player_id)
    if not player:
        raise HTTPException(status_code=404, detail="Player not found")

    fields = payload.model_dump(exclude_unset=True)

    if "birth_date" in fields and fields["birth_date"] != player.birth_date:
        raise HTTPException(status_code=422, detail="birth_date cannot be changed")
    fields.pop("birth_date", None)

    # NOT NULL columns: an explicit null is not "leave unchanged"
    for name in ("first_names", "last_names"):
        if name in fields and fields[name] is None:
            raise HTTPException(status_code=422, detail=f"{name} cannot be null")

    _require_category(db, fields.get("category_id"))

    guardian_name = fields.pop("guardian_name", None)
    guardian_phone = fields.pop("guardian_phone", None)
    fields["guardian_id"] = link_guardian(db, player.guardian_id, guardian_name, guardian_phone)

    if fields.get("category_id") is None and player.category_id is None:
        fields["category_id"] = derive_category_id(db, player.birth_date)

    players.update(db, player_id, fields)
    db.commit()

    return {"success": True}


@router.delete("/{player_id}")
def delete_player(player_id: int, db: Session = Depends(get_db)):
    try:
        deleted = players.delete(db, player_id)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=409,
            detail="Player has payments, attendance or inventory records",
        )

    if not deleted:
        raise HTTPException(status_code=404, detail="Player not found")
    return {"success": True}


@router.post("/recategorize")
def recategorize_players(db: Session = Depends(get_db)):
    """Re-derive every player's category from today's age (new season)."""
    changed = 0
    for player in db.scalars(select(Player)):
        category_id = derive_category_id(db, player.birth_date)
        if category_id != player.category_id:
            player.category_id = category_id
            changed += 1

    db.commit()
    logger.info(f"[roster] recategorized {changed} players")
    return {"updated": changed}


@router.get("/{player_id}/status")
def player_status(player_id: int, db: Session = Depends(get_db)):
    return asdict(get_player_status(db, player_id))
