"""
Leave lifecycle: submission, approval/rejection and deletion of leave
requests, kept consistent with each user's balance ledger.

State machine::

    pending --approve--> approved --reject--> rejected
    pending --reject---> rejected

Re-applying the status a request already has is a no-op. A rejected request
cannot be approved. Neither rejecting an approved request nor deleting one
gives the deducted days back.

Approval of a paid category deducts the inclusive day span from the ledger in
the same transaction that flips the status. Both writes are conditional
updates (status must still be what we read, ledger version must still be what
we read), so concurrent approvals against one ledger cannot both deduct from
the same balance. A lost race rolls back and retries up to
``settings.ledger_max_retries`` times before surfacing ``ConflictError``.
"""
from datetime import date
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload

from app.core.config import settings
from app.core.exceptions import (
    AccessDeniedError,
    ConflictError,
    InsufficientBalanceError,
    InvalidTransitionError,
    NotFoundError,
)
from app.models.leave_request import LeaveCategory, LeaveRequest, LeaveStatus
from app.services.audit import AuditService
from app.services.balance_service import BalanceService
from app.services.base import BaseService


class LeaveService(BaseService):

    def __init__(self, db: Session):
        super().__init__(db)
        self.balances = BalanceService(db)
        self.audit = AuditService(db)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    def submit(
        self,
        user_id: int,
        category,
        start_date: date,
        end_date: date,
        reason: str,
    ) -> LeaveRequest:
        try:
            category = LeaveCategory(category)
        except ValueError:
            raise InvalidTransitionError(
                f"Invalid leave category '{category}'",
                details={"allowed": [c.value for c in LeaveCategory]},
            )
        if start_date > end_date:
            raise InvalidTransitionError("Start date must be on or before end date")
        if not reason or not reason.strip():
            raise InvalidTransitionError("A reason is required")

        leave = LeaveRequest(
            user_id=user_id,
            category=category.value,
            start_date=start_date,
            end_date=end_date,
            reason=reason.strip(),
            status=LeaveStatus.PENDING.value,
        )
        self.db.add(leave)
        try:
            self.db.flush()
            self.audit.log(
                action="submit_leave",
                entity_type="leave_request",
                entity_id=leave.id,
                user_id=user_id,
                details={"category": category.value, "days": leave.days},
                after_state={"status": LeaveStatus.PENDING.value},
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(leave)
        self._logger.info(f"Leave {leave.id} submitted by user {user_id} ({category.value}, {leave.days} days)")
        return leave

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------
    def transition(self, leave_id: int, target_status, actor_id: Optional[int] = None) -> LeaveRequest:
        """
        Move a leave request to ``approved`` or ``rejected``.

        Raises NotFoundError, InvalidTransitionError, InsufficientBalanceError
        or ConflictError. Nothing is persisted when an error is raised.
        """
        try:
            target = LeaveStatus(target_status)
        except ValueError:
            raise InvalidTransitionError(f"Unknown leave status '{target_status}'")
        if target == LeaveStatus.PENDING:
            raise InvalidTransitionError("A leave request cannot be moved back to pending")

        max_attempts = max(1, settings.ledger_max_retries)
        for attempt in range(1, max_attempts + 1):
            leave = self._get_leave(leave_id)
            previous = LeaveStatus(leave.status)

            if previous == target:
                # Idempotent re-apply; approval side effects never fire twice
                return leave
            if previous == LeaveStatus.REJECTED:
                raise InvalidTransitionError(
                    "Leave request has already been rejected",
                    details={"status": previous.value, "target": target.value},
                )

            try:
                applied = self._apply(leave, previous, target, actor_id)
                if applied:
                    self.db.commit()
            except Exception:
                self.db.rollback()
                raise

            if applied:
                self.db.refresh(leave)
                self._logger.info(
                    f"Leave {leave.id} {previous.value} -> {target.value}",
                    extra={"leave_id": leave.id, "actor_id": actor_id, "attempt": attempt},
                )
                return leave

            self.db.rollback()
            self._logger.warning(
                f"Concurrent update on leave {leave_id}, attempt {attempt}/{max_attempts}",
                extra={"leave_id": leave_id},
            )

        raise ConflictError(f"Leave request {leave_id} is being updated concurrently, please retry")

    def approve(self, leave_id: int, actor_id: Optional[int] = None) -> LeaveRequest:
        return self.transition(leave_id, LeaveStatus.APPROVED, actor_id)

    def reject(self, leave_id: int, actor_id: Optional[int] = None) -> LeaveRequest:
        return self.transition(leave_id, LeaveStatus.REJECTED, actor_id)

    def _apply(self, leave: LeaveRequest, previous: LeaveStatus, target: LeaveStatus, actor_id: Optional[int]) -> bool:
        """Stage the status change (and deduction); False means a concurrent writer won."""
        if not self._claim_status(leave.id, previous, target):
            return False

        days = leave.days
        details = {"category": leave.category, "days": days}
        if target == LeaveStatus.APPROVED and leave.category != LeaveCategory.UNPAID.value:
            ledger = self.balances.get_ledger(leave.user_id)
            available = ledger.balance_for(leave.category)
            if available < days:
                raise InsufficientBalanceError(leave.category, available, days)
            if not self.balances.try_deduct(ledger, leave.category, days):
                return False
            details["balance_after"] = available - days

        self.audit.log(
            action="approve_leave" if target == LeaveStatus.APPROVED else "reject_leave",
            entity_type="leave_request",
            entity_id=leave.id,
            user_id=actor_id,
            details=details,
            before_state={"status": previous.value},
            after_state={"status": target.value},
        )
        return True

    def _claim_status(self, leave_id: int, expected: LeaveStatus, target: LeaveStatus) -> bool:
        result = self.db.execute(
            update(LeaveRequest)
            .where(LeaveRequest.id == leave_id, LeaveRequest.status == expected.value)
            .values(status=target.value)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_for_user(self, user_id: int) -> List[LeaveRequest]:
        return (
            self.db.query(LeaveRequest)
            .filter(LeaveRequest.user_id == user_id)
            .order_by(LeaveRequest.id)
            .all()
        )

    def get_all(self) -> List[LeaveRequest]:
        """Every leave request with its owner loaded, for reviewers."""
        return (
            self.db.query(LeaveRequest)
            .options(joinedload(LeaveRequest.user))
            .order_by(LeaveRequest.id)
            .all()
        )

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------
    def remove(self, leave_id: int, requester_id: int) -> None:
        """
        Delete a leave request on behalf of its owner.
        Days already deducted for an approved request are not restored.
        """
        leave = self._get_leave(leave_id)
        if leave.user_id != requester_id:
            raise AccessDeniedError("Unauthorized to delete this leave")

        try:
            self.audit.log(
                action="delete_leave",
                entity_type="leave_request",
                entity_id=leave.id,
                user_id=requester_id,
                details={"category": leave.category, "days": leave.days},
                before_state={"status": leave.status},
            )
            self.db.delete(leave)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self._logger.info(f"Leave {leave_id} deleted by user {requester_id}")

    def _get_leave(self, leave_id: int) -> LeaveRequest:
        leave = self.db.get(LeaveRequest, leave_id, populate_existing=True)
        if not leave:
            raise NotFoundError("Leave application not found", details={"leave_id": leave_id})
        return leave
