from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from academy.main import app
from academy.persistence.bootstrap import seed_defaults
from academy.persistence.models import Base, Player
from academy.persistence.session import get_db, make_engine

FEE = 50000
TODAY = date(2026, 3, 15)


@pytest.fixture
def engine():
    eng = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=eng)

    with Session(eng) as db:
        seed_defaults(db)
        db.commit()

    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(session_factory):
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_player(db_session):
    def _make(first_names="Juan", last_names="Pérez", birth_date=date(2014, 6, 1)):
        player = Player(first_names=first_names, last_names=last_names, birth_date=birth_date)
        db_session.add(player)
        db_session.commit()
        return player.id

    return _make
