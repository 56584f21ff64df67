from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from academy.persistence.models import Category


def age_on(birth_date: date, today: date) -> int:
    """Completed years; the birthday itself counts."""
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def category_for_age(categories: Iterable[Category], age: int) -> Optional[Category]:
    # overlapping ranges: lowest min_age wins
    for cat in sorted(categories, key=lambda c: c.min_age):
        if cat.min_age <= age <= cat.max_age:
            return cat
    return None


def derive_category_id(
    db: Session,
    birth_date: date,
    today: Optional[date] = None,
) -> Optional[int]:
    today = today or date.today()
    cat = category_for_age(db.scalars(select(Category)), age_on(birth_date, today))
    return cat.id if cat else None
