import threading
from datetime import date, timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from app.core.exceptions import ConflictError, InsufficientBalanceError
from app.database import Base, build_engine
from app.models.leave_balance import LeaveBalance
from app.models.leave_request import LeaveRequest, LeaveStatus
from app.services.leave_service import LeaveService
from app.services.user_service import UserService


@pytest.fixture
def file_sessionmaker(tmp_path):
    """A file-backed database so each thread gets its own connection."""
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def test_concurrent_approvals_deduct_once(file_sessionmaker):
    start = date(2025, 6, 2)
    with file_sessionmaker() as db:
        user = UserService(db).register("Carol", "carol@example.com", "Password123!")
        db.query(LeaveBalance).filter(LeaveBalance.user_id == user.id).update({"annual": 5})
        db.commit()
        service = LeaveService(db)
        # 3 + 3 days against a balance of 5: only one can fit
        leave_ids = [
            service.submit(user.id, "annual", start, start + timedelta(days=2), "First half").id,
            service.submit(user.id, "annual", start + timedelta(days=7), start + timedelta(days=9), "Second half").id,
        ]
        user_id = user.id

    barrier = threading.Barrier(len(leave_ids))
    outcomes = {}

    def approve(leave_id):
        with file_sessionmaker() as db:
            barrier.wait()
            try:
                LeaveService(db).approve(leave_id)
                outcomes[leave_id] = "approved"
            except (InsufficientBalanceError, ConflictError) as exc:
                outcomes[leave_id] = exc

    threads = [threading.Thread(target=approve, args=(leave_id,)) for leave_id in leave_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert len(outcomes) == 2
    successes = [lid for lid, outcome in outcomes.items() if outcome == "approved"]
    failures = [outcome for outcome in outcomes.values() if outcome != "approved"]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], (InsufficientBalanceError, ConflictError))

    with file_sessionmaker() as db:
        ledger = db.query(LeaveBalance).filter(LeaveBalance.user_id == user_id).one()
        assert ledger.annual == 2
        statuses = {l.id: l.status for l in db.query(LeaveRequest).all()}
        assert statuses[successes[0]] == LeaveStatus.APPROVED.value
        assert list(statuses.values()).count(LeaveStatus.PENDING.value) == 1
