import pytest
from datetime import date, timedelta

from app.core.config import settings
from app.core.exceptions import (
    AccessDeniedError,
    ConflictError,
    InsufficientBalanceError,
    InvalidTransitionError,
    NotFoundError,
)
from app.models.audit_log import AuditLog
from app.models.leave_balance import LeaveBalance
from app.models.leave_request import LeaveRequest, LeaveStatus
from app.services.balance_service import BalanceService
from app.services.leave_service import LeaveService

START = date(2025, 3, 3)


def _submit(db_session, user, category="annual", days=1, reason="Family trip"):
    return LeaveService(db_session).submit(
        user_id=user.id,
        category=category,
        start_date=START,
        end_date=START + timedelta(days=days - 1),
        reason=reason,
    )


def _ledger(db_session, user):
    db_session.expire_all()
    return db_session.query(LeaveBalance).filter(LeaveBalance.user_id == user.id).one()


def test_submit_creates_pending_request(db_session, employee):
    leave = _submit(db_session, employee, days=3)

    assert leave.status == LeaveStatus.PENDING.value
    assert leave.user_id == employee.id
    assert [l.id for l in LeaveService(db_session).get_for_user(employee.id)] == [leave.id]


def test_submit_does_not_touch_ledger(db_session, employee):
    _submit(db_session, employee, days=5)
    assert _ledger(db_session, employee).annual == 20


@pytest.mark.parametrize(
    "kwargs",
    [
        {"category": "vacation"},
        {"start_date": START, "end_date": START - timedelta(days=1)},
        {"reason": "   "},
        {"reason": ""},
    ],
)
def test_submit_rejects_invalid_input(db_session, employee, kwargs):
    params = {
        "user_id": employee.id,
        "category": "annual",
        "start_date": START,
        "end_date": START,
        "reason": "Doctor appointment",
    }
    params.update(kwargs)
    with pytest.raises(InvalidTransitionError):
        LeaveService(db_session).submit(**params)
    assert db_session.query(LeaveRequest).count() == 0


def test_day_count_is_inclusive(db_session, employee):
    assert _submit(db_session, employee, days=1).days == 1
    leave = LeaveRequest(start_date=date(2025, 1, 30), end_date=date(2025, 2, 2))
    assert leave.days == 4


def test_get_for_user_only_returns_own_requests(db_session, employee, other_employee):
    mine = _submit(db_session, employee)
    _submit(db_session, other_employee)

    assert [l.id for l in LeaveService(db_session).get_for_user(employee.id)] == [mine.id]


def test_get_all_attaches_owner(db_session, employee, other_employee):
    _submit(db_session, employee)
    _submit(db_session, other_employee)

    leaves = LeaveService(db_session).get_all()
    assert [l.user.email for l in leaves] == ["alice@example.com", "bob@example.com"]


def test_approve_exact_balance_then_insufficient(db_session, employee, set_balance):
    set_balance(employee, annual=5)
    service = LeaveService(db_session)
    too_long = _submit(db_session, employee, days=6)
    exact = _submit(db_session, employee, days=5)

    with pytest.raises(InsufficientBalanceError) as exc_info:
        service.approve(too_long.id)
    assert exc_info.value.details == {"category": "annual", "available": 5, "requested": 6}
    assert _ledger(db_session, employee).annual == 5
    assert db_session.get(LeaveRequest, too_long.id).status == LeaveStatus.PENDING.value

    approved = service.approve(exact.id)
    assert approved.status == LeaveStatus.APPROVED.value
    assert _ledger(db_session, employee).annual == 0


def test_approve_deducts_only_matching_category(db_session, employee):
    leave = _submit(db_session, employee, category="sick", days=2)
    LeaveService(db_session).approve(leave.id)

    assert BalanceService(db_session).get_balance(employee.id) == {
        "annual": 20,
        "casual": 12,
        "sick": 8,
        "unpaid": 9999,
    }


def test_unpaid_approval_never_touches_ledger(db_session, employee):
    before = _ledger(db_session, employee)
    version, unpaid = before.version, before.unpaid
    leave = _submit(db_session, employee, category="unpaid", days=30)

    LeaveService(db_session).approve(leave.id)

    after = _ledger(db_session, employee)
    assert (after.version, after.unpaid) == (version, unpaid)


def test_unpaid_approval_works_without_ledger(db_session, employee):
    leave = _submit(db_session, employee, category="unpaid", days=3)
    db_session.query(LeaveBalance).delete()
    db_session.commit()

    assert LeaveService(db_session).approve(leave.id).status == LeaveStatus.APPROVED.value


def test_paid_approval_without_ledger_is_not_found(db_session, employee):
    leave = _submit(db_session, employee, days=2)
    db_session.query(LeaveBalance).delete()
    db_session.commit()

    with pytest.raises(NotFoundError):
        LeaveService(db_session).approve(leave.id)
    assert db_session.get(LeaveRequest, leave.id).status == LeaveStatus.PENDING.value


def test_reapproving_does_not_deduct_twice(db_session, employee):
    service = LeaveService(db_session)
    leave = _submit(db_session, employee, days=3)

    service.approve(leave.id)
    again = service.approve(leave.id)

    assert again.status == LeaveStatus.APPROVED.value
    assert _ledger(db_session, employee).annual == 17


def test_rejecting_approved_request_keeps_deduction(db_session, employee):
    service = LeaveService(db_session)
    leave = _submit(db_session, employee, days=4)
    service.approve(leave.id)

    rejected = service.reject(leave.id)

    assert rejected.status == LeaveStatus.REJECTED.value
    assert _ledger(db_session, employee).annual == 16


def test_reject_pending_request(db_session, employee):
    leave = _submit(db_session, employee, days=2)
    service = LeaveService(db_session)

    assert service.reject(leave.id).status == LeaveStatus.REJECTED.value
    # Re-rejecting is a no-op
    assert service.reject(leave.id).status == LeaveStatus.REJECTED.value
    assert _ledger(db_session, employee).annual == 20


def test_rejected_request_cannot_be_approved(db_session, employee):
    service = LeaveService(db_session)
    leave = _submit(db_session, employee, days=2)
    service.reject(leave.id)

    with pytest.raises(InvalidTransitionError):
        service.approve(leave.id)
    assert _ledger(db_session, employee).annual == 20


@pytest.mark.parametrize("target", ["pending", "cancelled"])
def test_transition_rejects_unknown_targets(db_session, employee, target):
    leave = _submit(db_session, employee)
    with pytest.raises(InvalidTransitionError):
        LeaveService(db_session).transition(leave.id, target)


def test_transition_missing_leave(db_session):
    with pytest.raises(NotFoundError):
        LeaveService(db_session).transition(999, LeaveStatus.APPROVED)


def test_conflict_after_retries_exhausted(db_session, employee, monkeypatch):
    calls = []

    def always_lose(self, ledger, category, days):
        calls.append(days)
        return False

    monkeypatch.setattr(BalanceService, "try_deduct", always_lose)
    leave = _submit(db_session, employee, days=2)

    with pytest.raises(ConflictError):
        LeaveService(db_session).approve(leave.id)

    assert len(calls) == settings.ledger_max_retries
    assert db_session.get(LeaveRequest, leave.id).status == LeaveStatus.PENDING.value
    assert _ledger(db_session, employee).annual == 20


def test_stale_ledger_version_is_detected(db_session, employee):
    ledger = _ledger(db_session, employee)
    stale_version = ledger.version
    balances = BalanceService(db_session)

    assert balances.try_deduct(ledger, "annual", 1) is True
    db_session.commit()

    ledger.version = stale_version  # pretend we never saw the first write
    assert balances.try_deduct(ledger, "annual", 1) is False
    db_session.rollback()
    assert _ledger(db_session, employee).annual == 19


def test_remove_by_non_owner_is_forbidden(db_session, employee, other_employee):
    leave = _submit(db_session, employee)

    with pytest.raises(AccessDeniedError):
        LeaveService(db_session).remove(leave.id, requester_id=other_employee.id)
    assert db_session.get(LeaveRequest, leave.id) is not None


def test_remove_approved_leave_keeps_ledger(db_session, employee):
    service = LeaveService(db_session)
    leave = _submit(db_session, employee, days=3)
    service.approve(leave.id)

    service.remove(leave.id, requester_id=employee.id)

    assert db_session.get(LeaveRequest, leave.id) is None
    assert _ledger(db_session, employee).annual == 17


def test_remove_missing_leave(db_session, employee):
    with pytest.raises(NotFoundError):
        LeaveService(db_session).remove(42, requester_id=employee.id)


def test_lifecycle_is_audited(db_session, employee, admin_user):
    service = LeaveService(db_session)
    leave = _submit(db_session, employee, days=2)
    service.approve(leave.id, actor_id=admin_user.id)
    service.reject(leave.id, actor_id=admin_user.id)

    entries = db_session.query(AuditLog).filter(AuditLog.entity_id == leave.id).order_by(AuditLog.id).all()
    assert [e.action for e in entries] == ["submit_leave", "approve_leave", "reject_leave"]
    assert entries[1].user_id == admin_user.id
    assert entries[1].before_state == {"status": "pending"}
    assert entries[1].details["balance_after"] == 18


def test_get_balance_defaults_and_missing(db_session, employee):
    balances = BalanceService(db_session)
    assert balances.get_balance(employee.id) == {"annual": 20, "casual": 12, "sick": 10, "unpaid": 9999}

    with pytest.raises(NotFoundError):
        balances.get_balance(12345)
