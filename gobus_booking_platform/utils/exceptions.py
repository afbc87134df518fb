"""
Platform errors.

Every error carries a stable ``ErrorCode`` that the HTTP layer maps to a
status code, plus optional details, suggestions and a retry hint.
"""

from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


class ErrorCode(str, Enum):
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    CONSISTENCY_ERROR = "CONSISTENCY_ERROR"
    SEAT_CONFLICT = "SEAT_CONFLICT"
    INVALID_BOOKING_STATE = "INVALID_BOOKING_STATE"

    TRANSIENT_INFRASTRUCTURE = "TRANSIENT_INFRASTRUCTURE"
    EMAIL_SERVICE_ERROR = "EMAIL_SERVICE_ERROR"


class GoBusError(Exception):
    """Base class for errors the API reports to clients."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
        retry_after: Optional[int] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.suggestions = suggestions or []
        self.retry_after = retry_after

    def to_dict(self) -> Dict[str, Any]:
        """Body of the ``error`` member in API error responses. Empty fields are left out."""
        body: Dict[str, Any] = {"error_code": self.error_code.value, "message": self.message}
        optional = {
            "details": self.details,
            "suggestions": self.suggestions,
            "retry_after": self.retry_after,
        }
        body.update({key: value for key, value in optional.items() if value})
        return body


class ValidationError(GoBusError):
    """Malformed or out-of-range input, optionally with messages per field."""

    def __init__(self, message: str, field_errors: Optional[Dict[str, List[str]]] = None, **kwargs):
        details = dict(kwargs.pop("details", None) or {})
        if field_errors:
            details["field_errors"] = field_errors
        super().__init__(message, error_code=ErrorCode.VALIDATION_ERROR, details=details, **kwargs)
        self.field_errors = field_errors or {}


class SeatCapacityError(ValidationError):
    """Seat numbers beyond the capacity of the bus."""

    def __init__(self, seats: Iterable[int], capacity: int, **kwargs):
        self.seats = sorted(seats)
        self.capacity = capacity
        listed = ",".join(map(str, self.seats))
        super().__init__(
            f"Invalid seat numbers: {listed}",
            field_errors={"seat_numbers": [f"Seats above capacity {capacity}: {listed}"]},
            details={"seats": self.seats, "capacity": capacity},
            suggestions=[f"Choose seats between 1 and {capacity}"],
            **kwargs
        )


class NotFoundError(GoBusError):
    """A referenced record does not exist. Subclasses name the kind of record."""

    resource_type: Optional[str] = None

    def __init__(self, resource_id: Any, message: Optional[str] = None, **kwargs):
        label = (self.resource_type or "Resource").capitalize()
        details = {"resource_type": self.resource_type, "resource_id": str(resource_id)}
        super().__init__(
            message or f"{label} {resource_id} not found",
            error_code=ErrorCode.NOT_FOUND,
            details=details if self.resource_type else None,
            **kwargs
        )


class BusNotFoundError(NotFoundError):
    resource_type = "bus"


class RouteNotFoundError(NotFoundError):
    resource_type = "route"


class UserNotFoundError(NotFoundError):
    resource_type = "user"


class BookingNotFoundError(NotFoundError):
    resource_type = "booking"


class AuthenticationError(GoBusError):
    def __init__(self, message: str = "Authentication failed", **kwargs):
        super().__init__(message, error_code=ErrorCode.UNAUTHORIZED, **kwargs)


class AuthorizationError(GoBusError):
    def __init__(self, message: str = "Access denied", required_permission: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.FORBIDDEN,
            details={"required_permission": required_permission} if required_permission else None,
            **kwargs
        )


class ConsistencyError(GoBusError):
    """The route named in a request is not operated by the named bus."""

    def __init__(self, route_id: str, bus_id: str, **kwargs):
        super().__init__(
            "Route does not belong to bus",
            error_code=ErrorCode.CONSISTENCY_ERROR,
            details={"route_id": str(route_id), "bus_id": str(bus_id)},
            suggestions=["Pick a route operated by this bus"],
            **kwargs
        )


class SeatConflictError(GoBusError):
    """
    Requested seats are held by an active booking for the same bus and date.

    ``seats`` is the sorted intersection, which clients use to offer alternatives.
    """

    def __init__(self, seats: Iterable[int], **kwargs):
        self.seats = sorted(seats)
        super().__init__(
            "Seats already booked",
            error_code=ErrorCode.SEAT_CONFLICT,
            details={"seats": self.seats},
            suggestions=["Choose different seats", "Refresh seat availability"],
            **kwargs
        )


class InvalidBookingStateError(GoBusError):
    """A lifecycle operation is not allowed from the booking's current state."""

    def __init__(self, booking_id: str, current_state: str, required_state: str, **kwargs):
        super().__init__(
            f"Booking {booking_id} is {current_state}, expected {required_state}",
            error_code=ErrorCode.INVALID_BOOKING_STATE,
            details={
                "booking_id": str(booking_id),
                "current_state": current_state,
                "required_state": required_state,
            },
            **kwargs
        )


class TransientInfrastructureError(GoBusError):
    """Storage failure that may succeed when retried: contention, deadlock, dropped connection."""

    def __init__(self, message: str, retry_after: int = 1, **kwargs):
        super().__init__(message, error_code=ErrorCode.TRANSIENT_INFRASTRUCTURE, retry_after=retry_after, **kwargs)


class TransactionUnsupportedError(TransientInfrastructureError):
    """The storage deployment cannot run multi-statement transactions."""

    def __init__(self, message: str = "Transactions are not supported by the storage deployment", **kwargs):
        super().__init__(message, **kwargs)


class ReferenceCollisionError(TransientInfrastructureError):
    """A freshly generated booking reference is already taken."""

    def __init__(self, reference: str, **kwargs):
        super().__init__(f"Booking reference {reference} already exists", details={"reference": reference}, **kwargs)
        self.reference = reference


class ServerError(GoBusError):
    """
    Opaque failure returned to clients.

    ``retryable`` marks failures worth retrying, such as an exhausted
    contention budget. The HTTP layer answers those with 503.
    """

    def __init__(self, message: str = "Server error", retryable: bool = False, **kwargs):
        kwargs.setdefault("retry_after", 1 if retryable else None)
        super().__init__(
            message,
            error_code=ErrorCode.INTERNAL_ERROR,
            suggestions=["Please try again"] if retryable else None,
            **kwargs
        )
        self.retryable = retryable


class EmailServiceError(GoBusError):
    def __init__(self, message: str, **kwargs):
        super().__init__(f"email service error: {message}", error_code=ErrorCode.EMAIL_SERVICE_ERROR, **kwargs)
