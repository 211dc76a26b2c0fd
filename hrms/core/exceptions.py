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

class InvalidStateError(AppException):
    """Benign conflict: the target already reached the requested state."""
    def __init__(self, message: str, error_code: str = "INVALID_STATE", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=409,
            error_code=error_code,
            details=details
        )

class AlreadyDecidedError(InvalidStateError):
    def __init__(self, request_id: int, status: str):
        super().__init__(
            message="Already decided",
            error_code="ALREADY_DECIDED",
            details={"request_id": request_id, "status": status}
        )

class ValidationError(AppException):
    """Domain-level input rejection, raised before any database write."""
    def __init__(self, message: str, error_code: str = "VALIDATION_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=400,
            error_code=error_code,
            details=details
        )

class InvalidPeriodError(ValidationError):
    def __init__(self, year: Any, month: Any):
        super().__init__(
            message=f"Invalid payroll period: year={year}, month={month}",
            error_code="INVALID_PERIOD",
            details={"year": year, "month": month}
        )

class TransactionFailure(AppException):
    def __init__(self, message: str = "The operation failed and no changes were applied."):
        super().__init__(
            message=message,
            status_code=500,
            error_code="TRANSACTION_FAILED"
        )

class AccessDeniedError(AppException):
    """Custom permission error. Named AccessDeniedError to avoid shadowing Python's built-in PermissionError."""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message=message,
            status_code=403,
            error_code="PERMISSION_DENIED"
        )

class AuthenticationError(AppException):
    def __init__(self, message: str = "Missing actor context"):
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTH_FAILED"
        )
