from typing import Any, Dict, Optional

class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)

class NotFoundError(AppException):
    def __init__(self, message: str = "Resource not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND",
            details=details
        )

class AuthenticationError(AppException):
    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTH_FAILED"
        )

class AccessDeniedError(AppException):
    """Custom permission error. Named AccessDeniedError to avoid shadowing Python's built-in PermissionError."""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message=message,
            status_code=403,
            error_code="PERMISSION_DENIED"
        )

class InvalidTransitionError(AppException):
    """Illegal status route, or a submission with a bad category, date range or reason."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=400,
            error_code="INVALID_TRANSITION",
            details=details
        )

class InsufficientBalanceError(AppException):
    def __init__(self, category: str, available: int, requested: int):
        super().__init__(
            message=f"Insufficient {category} leave balance",
            status_code=400,
            error_code="INSUFFICIENT_BALANCE",
            details={"category": category, "available": available, "requested": requested}
        )

class ConflictError(AppException):
    def __init__(self, message: str = "Concurrent update detected, please retry", error_code: str = "CONFLICT"):
        super().__init__(
            message=message,
            status_code=409,
            error_code=error_code
        )

class UserExistsError(ConflictError):
    def __init__(self, message: str = "User with email already exists"):
        super().__init__(message=message, error_code="USER_EXISTS")
