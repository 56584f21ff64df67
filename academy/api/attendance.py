from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from academy.persistence.session import get_db
from academy.persistence.models import Attendance
from academy.persistence.repositories import EntityKind, repository
from academy.persistence.upsert import insert_or_update

router = APIRouter(prefix="/api/attendance", tags=["attendance"])
attendance = repository(EntityKind.ATTENDANCE)


class AttendanceIn(BaseModel):
    player_id: int
    day: date
    state: Literal["P", "A"]


@router.get("")
def list_attendance(day: Optional[date] = None, db: Session = Depends(get_db)):
    filters = {} if day is None else {"day": day}
    return [
        {"id": a.id, "player_id": a.player_id, "day": a.day, "state": a.state}
        for a in attendance.list(db, **filters)
    ]


@router.post("")
def save_attendance(records: List[AttendanceIn], db: Session = Depends(get_db)):
    """
    Bulk save a roll call. A second save for the same player and day
    replaces the state. All records land or none do.
    """
    try:
        for rec in records:
            insert_or_update(
                db,
                Attendance,
                rec.model_dump(),
                conflict_on=["player_id", "day"],
                update_columns=["state"],
            )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Attendance references an unknown player")

    return {"success": True, "saved": len(records)}
