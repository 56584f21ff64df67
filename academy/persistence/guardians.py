from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from academy.persistence.models import Guardian
from academy.persistence.upsert import insert_or_ignore
from academy.common.logger import get_logger

logger = get_logger(__name__)


def resolve_guardian(db: Session, name: str, phone: str) -> Guardian:
    """
    mkdir -p semantics for Guardian, keyed by phone.

    One conditional insert, then a read: two registrations racing on
    the same phone both end up linked to the same row. When the phone
    is already known the stored name wins.
    """
    phone = phone.strip()

    created = insert_or_ignore(
        db,
        Guardian,
        {"name": name.strip(), "phone": phone},
        conflict_on=["phone"],
    )

    guardian = db.scalars(select(Guardian).where(Guardian.phone == phone)).one()

    if created:
        logger.info(f"[roster] created guardian id={guardian.id}")

    return guardian


def link_guardian(
    db: Session,
    current_id: Optional[int],
    name: Optional[str],
    phone: Optional[str],
) -> Optional[int]:
    """
    Guardian id a player should point to after an edit.

    - no name/phone supplied: keep the current link
    - phone resolves to the current guardian: refresh its name
    - otherwise: link to the guardian owning that phone
    """
    if not (name and phone):
        return current_id

    guardian = resolve_guardian(db, name, phone)

    if guardian.id == current_id and guardian.name != name.strip():
        guardian.name = name.strip()
        db.flush()

    return guardian.id
