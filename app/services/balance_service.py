from typing import Dict

from sqlalchemy import update

from app.core.exceptions import NotFoundError
from app.models.leave_balance import LeaveBalance
from app.models.leave_request import LeaveCategory
from app.services.base import BaseService


class BalanceService(BaseService):
    """
    Per-user leave ledger.
    Ledgers are created once at registration and only ever decremented,
    through ``try_deduct``.
    """

    def create_ledger(self, user_id: int) -> LeaveBalance:
        """Add the default ledger for a new user. The caller commits."""
        ledger = LeaveBalance(user_id=user_id)
        self.db.add(ledger)
        self.db.flush()
        return ledger

    def get_ledger(self, user_id: int) -> LeaveBalance:
        ledger = (
            self.db.query(LeaveBalance)
            .filter(LeaveBalance.user_id == user_id)
            .populate_existing()
            .first()
        )
        if not ledger:
            raise NotFoundError("Leave balance record not found for user", details={"user_id": user_id})
        return ledger

    def get_balance(self, user_id: int) -> Dict[str, int]:
        return self.get_ledger(user_id).as_dict()

    def try_deduct(self, ledger: LeaveBalance, category, days: int) -> bool:
        """
        Compare-and-swap deduction of ``days`` from ``category``.

        Succeeds only if the stored row still carries the version we read and
        still covers ``days``. Returns False when another writer got there
        first; the caller is expected to roll back and retry.
        """
        column = LeaveCategory(category).value
        current = getattr(LeaveBalance, column)
        result = self.db.execute(
            update(LeaveBalance)
            .where(
                LeaveBalance.id == ledger.id,
                LeaveBalance.version == ledger.version,
                current >= days,
            )
            .values({column: current - days, "version": LeaveBalance.version + 1})
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
