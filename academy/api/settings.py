from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from academy.persistence.session import get_db
from academy.persistence.models import MAX_AMOUNT, Setting, Category
from academy.persistence.bootstrap import init_db
from academy.seed.loader import default_settings

router = APIRouter(prefix="/api", tags=["settings"])


class SettingsUpdate(BaseModel):
    academy_name: Optional[str] = Field(None, max_length=120)
    monthly_fee: int = Field(..., gt=0, le=MAX_AMOUNT)
    currency: str = Field("COP", min_length=3, max_length=3)
    contact_phone: Optional[str] = Field(None, max_length=30)


def _settings_out(setting: Setting) -> dict:
    return {
        "academy_name": setting.academy_name,
        "monthly_fee": setting.monthly_fee,
        "currency": setting.currency,
        "contact_phone": setting.contact_phone,
    }


@router.get("/settings")
def get_settings(db: Session = Depends(get_db)):
    setting = db.get(Setting, 1)
    if setting is None:
        return default_settings()
    return _settings_out(setting)


@router.post("/settings")
def update_settings(payload: SettingsUpdate, db: Session = Depends(get_db)):
    """
    Takes effect immediately for every month, including past ones:
    fees are not historized.
    """
    setting = db.get(Setting, 1)
    if setting is None:
        setting = Setting(id=1, monthly_fee=payload.monthly_fee)
        db.add(setting)

    setting.academy_name = payload.academy_name
    setting.monthly_fee = payload.monthly_fee
    setting.currency = payload.currency.upper()
    setting.contact_phone = payload.contact_phone
    db.commit()

    return {"success": True, **_settings_out(setting)}


@router.get("/categories")
def list_categories(db: Session = Depends(get_db)):
    cats = db.scalars(select(Category).order_by(Category.min_age))
    return [
        {"id": c.id, "name": c.name, "min_age": c.min_age, "max_age": c.max_age}
        for c in cats
    ]


@router.get("/setup")
def setup(db: Session = Depends(get_db)):
    init_db(bind=db.get_bind())
    return {"message": "Database initialized"}
