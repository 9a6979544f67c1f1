# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import user, leave_request, leave_balance, audit_log

# Explicit class exports for cleaner imports
from .user import User, UserRole, UserSession
from .leave_request import LeaveRequest, LeaveStatus, LeaveCategory
from .leave_balance import LeaveBalance
from .audit_log import AuditLog

__all__ = [
    "User",
    "UserRole",
    "UserSession",
    "LeaveRequest",
    "LeaveStatus",
    "LeaveCategory",
    "LeaveBalance",
    "AuditLog",
]
