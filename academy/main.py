import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from academy.common.config import STATIC_DIR
from academy.common.logger import get_logger
from academy.persistence.bootstrap import init_db

# Routers
from academy.api.settings import router as settings_router
from academy.api.players import router as players_router
from academy.api.payments import router as payments_router
from academy.api.expenses import router as expenses_router
from academy.api.inventory import router as inventory_router
from academy.api.attendance import router as attendance_router
from academy.api.alerts import router as alerts_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


# ------------------------------------------------------------
# App Init
# ------------------------------------------------------------
app = FastAPI(title="Academy Manager", lifespan=lifespan)

app.include_router(settings_router)
app.include_router(players_router)
app.include_router(payments_router)
app.include_router(expenses_router)
app.include_router(inventory_router)
app.include_router(attendance_router)
app.include_router(alerts_router)


@app.get("/api/health")
def health():
    return {"status": "ok", "message": "Academy API running"}


# ------------------------------------------------------------
# Serve Front End
# ------------------------------------------------------------
# Mounted last so /api routes win.
if STATIC_DIR and os.path.isdir(STATIC_DIR):
    app.mount("/", StaticFiles(directory=STATIC_DIR, html=True), name="frontend")
    logger.info(f"Mounted front end directory: {STATIC_DIR}")
elif STATIC_DIR:
    logger.warning(f"Front end directory not found: {STATIC_DIR}")
