from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from academy.common.config import DATABASE_URL


def make_engine(url: str, **kwargs) -> Engine:
    """
    Build an engine for `url`.

    SQLite needs two adjustments:
    - connections are shared with FastAPI's threadpool
    - foreign keys are off unless asked for, per connection
    """
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        kwargs["connect_args"] = connect_args

    eng = create_engine(url, echo=False, pool_pre_ping=True, **kwargs)

    if eng.dialect.name == "sqlite":
        event.listen(eng, "connect", _enable_sqlite_foreign_keys)

    return eng


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


engine = make_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
)


def get_db():
    """
    FastAPI dependency for database sessions.

    Yields a database session and ensures it's closed after use.

    Usage:
        @router.get("/api/jugadores")
        def list_players(db: Session = Depends(get_db)):
            return db.query(Player).all()
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
