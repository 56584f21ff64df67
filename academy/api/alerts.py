from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from academy.billing.status import list_alerts
from academy.persistence.session import get_db

router = APIRouter(prefix="/api", tags=["alerts"])


@router.get("/alerts")
def alerts(db: Session = Depends(get_db)):
    """Players not fully paid for the current month."""
    items = list_alerts(db)
    return {"count": len(items), "items": items}
