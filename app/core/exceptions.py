# ================================
# CUSTOM EXCEPTIONS (core/exceptions.py)
# ================================

from typing import Any, Dict, List, Optional

class AppException(Exception):
    """Base exception for application errors"""

    def __init__(self, detail: str, status_code: int = 400, error_code: str = None):
        self.detail = detail
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(detail)

class InvalidInputError(AppException):
    """Input that a calculation refuses to run on"""

    def __init__(self, detail: str, error_code: str = "INVALID_INPUT"):
        super().__init__(detail, 400, error_code)

class NotFoundError(AppException):
    """Requested record does not exist"""

    def __init__(self, detail: str, error_code: str = "NOT_FOUND"):
        super().__init__(detail, 404, error_code)

class ValidationMismatchError(AppException):
    """Client-submitted total disagrees with the server-side computation"""

    def __init__(self, expected_total: int, provided_total: int, difference: int):
        self.expected_total = expected_total
        self.provided_total = provided_total
        self.difference = difference
        super().__init__(
            f"Submitted total {provided_total} does not match expected total {expected_total}",
            422,
            "TOTAL_MISMATCH"
        )

class BookingConflictError(AppException):
    """Requested time slot overlaps an existing booking"""

    def __init__(self, conflicting_bookings: List[Dict[str, Any]]):
        self.conflicting_bookings = conflicting_bookings
        super().__init__(
            "The requested time slot overlaps an existing booking",
            409,
            "BOOKING_CONFLICT"
        )

class InvalidTransitionError(AppException):
    """Status change not allowed from the current status"""

    def __init__(self, from_status: Optional[str], to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Cannot change status from '{from_status}' to '{to_status}'",
            409,
            "INVALID_STATUS_TRANSITION"
        )

class PaymentProcessorError(AppException):
    """Payment processor rejected or failed the request"""

    def __init__(self, detail: str, error_code: str = "PAYMENT_PROCESSOR_ERROR"):
        super().__init__(detail, 502, error_code)

class AuthenticationError(AppException):
    """Caller identity missing or malformed"""

    def __init__(self, detail: str = "Authentication failed", error_code: str = "AUTH_FAILED"):
        super().__init__(detail, 401, error_code)

class AuthorizationError(AppException):
    """Caller is identified but may not perform the action"""

    def __init__(self, detail: str = "Access denied", error_code: str = "ACCESS_DENIED"):
        super().__init__(detail, 403, error_code)
