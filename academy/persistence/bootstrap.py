from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from academy.persistence.session import engine as default_engine
from academy.persistence.models import Base, Setting, Category, InventoryItem
from academy.seed.loader import load_yaml
from academy.common.logger import get_logger

logger = get_logger(__name__)


def init_db(bind: Optional[Engine] = None):
    bind = bind or default_engine

    logger.info("Creating DB tables if missing")
    Base.metadata.create_all(bind=bind)

    with Session(bind) as db:
        seed_defaults(db)
        db.commit()


def seed_defaults(db: Session):
    """
    Fill empty configuration tables from defaults.yaml.
    Tables that already hold rows are left alone.
    """
    defaults = load_yaml("defaults.yaml")

    if db.get(Setting, 1) is None:
        db.add(Setting(id=1, **defaults["settings"]))
        logger.info("[bootstrap] seeded system settings")

    if db.query(Category).first() is None:
        for row in defaults["categories"]:
            db.add(Category(**row))
        logger.info(f"[bootstrap] seeded {len(defaults['categories'])} categories")

    if db.query(InventoryItem).first() is None:
        for row in defaults["inventory"]:
            db.add(InventoryItem(**row))
        logger.info(f"[bootstrap] seeded {len(defaults['inventory'])} inventory items")

    db.flush()
