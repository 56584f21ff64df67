import threading
import time
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import date

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from academy.billing import allocation as allocation_module
from academy.billing.allocation import allocate_payment, allocations_for, register_payment
from academy.billing.locks import PlayerLocks
from academy.common.errors import PaymentValidationError, TransactionFailed
from academy.persistence.bootstrap import seed_defaults
from academy.persistence.models import Allocation, Base, Payment, Player
from academy.persistence.session import make_engine

FEE = 50000
TODAY = date(2026, 3, 15)


def _rows(db, payment_id):
    return [(a.year, a.month, a.amount_applied) for a in allocations_for(db, payment_id)]


def _count(db, model):
    return db.scalar(select(func.count()).select_from(model))


# ------------------------------------------------------------
# Scenarios
# ------------------------------------------------------------

def test_full_fee_covers_current_month(db_session, make_player):
    player_id = make_player()
    payment = register_payment(db_session, player_id, FEE, TODAY, "cash", None, today=TODAY)

    assert _rows(db_session, payment.id) == [(2026, 3, FEE)]


def test_partial_payment_stays_in_current_month(db_session, make_player):
    player_id = make_player()
    payment = register_payment(db_session, player_id, 30000, TODAY, today=TODAY)

    assert _rows(db_session, payment.id) == [(2026, 3, 30000)]


def test_lump_payment_starts_at_current_month_not_past_debt(db_session, make_player):
    # January and February were never paid; allocation still starts in March
    player_id = make_player()
    payment = register_payment(db_session, player_id, 90000, TODAY, today=TODAY)

    assert _rows(db_session, payment.id) == [(2026, 3, FEE), (2026, 4, 40000)]


def test_allocation_ignores_payment_date(db_session, make_player):
    player_id = make_player()
    payment = register_payment(db_session, player_id, FEE, date(2025, 7, 1), today=TODAY)

    assert _rows(db_session, payment.id) == [(2026, 3, FEE)]


@pytest.mark.parametrize("amount", [0, -100, True, 100.5, "50000", None, 2**63])
def test_invalid_amount_writes_nothing(db_session, make_player, amount):
    player_id = make_player()

    with pytest.raises(PaymentValidationError):
        register_payment(db_session, player_id, amount, TODAY, today=TODAY)

    assert _count(db_session, Payment) == 0
    assert _count(db_session, Allocation) == 0


def test_missing_player_is_validation_error(db_session):
    with pytest.raises(PaymentValidationError):
        register_payment(db_session, 999, FEE, TODAY, today=TODAY)

    assert _count(db_session, Payment) == 0


def test_missing_date_is_validation_error(db_session, make_player):
    player_id = make_player()
    with pytest.raises(PaymentValidationError):
        register_payment(db_session, player_id, FEE, None, today=TODAY)


# ------------------------------------------------------------
# Properties
# ------------------------------------------------------------

def test_covered_months_are_skipped(db_session, make_player):
    player_id = make_player()
    register_payment(db_session, player_id, 70000, TODAY, today=TODAY)
    second = register_payment(db_session, player_id, 60000, TODAY, today=TODAY)

    # March full, April had 20000 -> needs 30000, rest goes to May
    assert _rows(db_session, second.id) == [(2026, 4, 30000), (2026, 5, 30000)]


def test_allocations_sum_to_amount_within_horizon(db_session, make_player):
    player_id = make_player()
    for amount in (12345, 50000, 99999, 7):
        payment = register_payment(db_session, player_id, amount, TODAY, today=TODAY)
        assert sum(r[2] for r in _rows(db_session, payment.id)) == amount


def test_no_month_ever_exceeds_fee(db_session, make_player):
    player_id = make_player()
    for amount in (30000, 45000, 80000, 10000, 125000):
        register_payment(db_session, player_id, amount, TODAY, today=TODAY)

    per_month = defaultdict(int)
    for a in db_session.scalars(select(Allocation)):
        per_month[(a.year, a.month)] += a.amount_applied

    assert per_month
    assert all(total <= FEE for total in per_month.values())


def test_residual_beyond_horizon_is_left_unallocated(db_session, make_player):
    player_id = make_player()
    payment = register_payment(db_session, player_id, FEE * 24 + 1234, TODAY, today=TODAY)

    rows = _rows(db_session, payment.id)
    assert len(rows) == 24
    assert rows[-1][:2] == (2028, 2)
    assert sum(r[2] for r in rows) == FEE * 24


def test_rerun_on_allocated_payment_adds_nothing(db_session, make_player):
    player_id = make_player()
    payment = register_payment(db_session, player_id, 90000, TODAY, today=TODAY)
    before = _rows(db_session, payment.id)

    allocate_payment(db_session, payment, today=TODAY)
    db_session.commit()

    assert _rows(db_session, payment.id) == before
    assert _count(db_session, Allocation) == 2


def test_rerun_skips_existing_month_row(db_session, make_player):
    player_id = make_player()
    payment = Payment(player_id=player_id, amount=FEE, paid_on=TODAY)
    db_session.add(payment)
    db_session.flush()
    db_session.add(Allocation(payment_id=payment.id, year=2026, month=3, amount_applied=10000))
    db_session.commit()

    allocate_payment(db_session, payment, today=TODAY)
    db_session.commit()

    assert _rows(db_session, payment.id) == [(2026, 3, 10000), (2026, 4, 40000)]


# ------------------------------------------------------------
# Failure + locking
# ------------------------------------------------------------

def _disk_error(*args, **kwargs):
    raise OperationalError("SELECT", {}, Exception("disk I/O error"))


def test_storage_failure_rolls_back_payment(db_session, make_player, monkeypatch):
    player_id = make_player()
    monkeypatch.setattr(allocation_module, "insert_or_ignore", _disk_error)

    with pytest.raises(TransactionFailed):
        register_payment(db_session, player_id, FEE, TODAY, today=TODAY)

    assert _count(db_session, Payment) == 0
    assert _count(db_session, Allocation) == 0


def test_storage_failure_during_player_lookup(db_session, make_player, monkeypatch):
    player_id = make_player()
    locks = PlayerLocks()
    monkeypatch.setattr(db_session, "get", _disk_error)

    with pytest.raises(TransactionFailed):
        register_payment(db_session, player_id, FEE, TODAY, today=TODAY, locks=locks)

    monkeypatch.undo()
    assert _count(db_session, Payment) == 0
    assert len(locks) == 0


class _RecordingLocks(PlayerLocks):
    def __init__(self):
        super().__init__()
        self.held = []

    @contextmanager
    def hold(self, player_id):
        with super().hold(player_id):
            self.held.append((player_id, self.locked(player_id)))
            yield


def test_registration_holds_player_lock(db_session, make_player):
    player_id = make_player()
    locks = _RecordingLocks()

    register_payment(db_session, player_id, FEE, TODAY, today=TODAY, locks=locks)

    assert locks.held == [(player_id, True)]
    assert not locks.locked(player_id)
    assert len(locks) == 0


def test_rejected_registrations_leave_no_locks(db_session):
    locks = _RecordingLocks()

    for player_id in range(1000, 1500):
        with pytest.raises(PaymentValidationError):
            register_payment(db_session, player_id, FEE, TODAY, today=TODAY, locks=locks)

    assert locks.held == []
    assert len(locks) == 0


def test_locks_are_per_player():
    locks = PlayerLocks()

    with locks.hold(1):
        assert locks.locked(1)
        assert not locks.locked(2)
        with locks.hold(2):
            assert len(locks) == 2

    assert len(locks) == 0


def test_waiting_holder_keeps_lock_entry():
    locks = PlayerLocks()
    entered = threading.Event()
    order = []

    def _second():
        entered.set()
        with locks.hold(1):
            order.append("second")

    with locks.hold(1):
        worker = threading.Thread(target=_second)
        worker.start()
        entered.wait(timeout=5)
        time.sleep(0.05)
        order.append("first")

    worker.join(timeout=5)
    assert order == ["first", "second"]
    assert len(locks) == 0


# ------------------------------------------------------------
# Concurrent registrations (file-backed store, one session per thread)
# ------------------------------------------------------------

@pytest.fixture
def file_session_factory(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'academy.db'}")
    Base.metadata.create_all(bind=eng)

    with Session(eng) as db:
        seed_defaults(db)
        db.commit()

    yield sessionmaker(bind=eng, autoflush=False, autocommit=False)
    eng.dispose()


def test_concurrent_registrations_for_one_player(file_session_factory):
    with file_session_factory() as db:
        player = Player(first_names="Juan", last_names="Pérez", birth_date=date(2014, 6, 1))
        db.add(player)
        db.commit()
        player_id = player.id

    locks = PlayerLocks()
    start = threading.Barrier(8)

    def _register():
        with file_session_factory() as db:
            start.wait(timeout=10)
            return register_payment(db, player_id, 30000, TODAY, today=TODAY, locks=locks).id

    with ThreadPoolExecutor(max_workers=8) as pool:
        payment_ids = list(pool.map(lambda _: _register(), range(8)))

    assert len(set(payment_ids)) == 8
    assert len(locks) == 0

    with file_session_factory() as db:
        per_month = defaultdict(int)
        for a in db.scalars(select(Allocation)):
            per_month[(a.year, a.month)] += a.amount_applied

    assert all(total <= FEE for total in per_month.values())
    assert sum(per_month.values()) == 240000
    assert per_month == {
        (2026, 3): FEE,
        (2026, 4): FEE,
        (2026, 5): FEE,
        (2026, 6): FEE,
        (2026, 7): 40000,
    }
