"""
Domain Exceptions

Error taxonomy shared by the booking, billing and room use cases. The API
layer maps each class to an HTTP status; the domain never imports HTTP.
"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base class for all business-rule failures"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class InvalidArgumentError(DomainError):
    """Malformed, missing or out-of-range input"""


class NotFoundError(DomainError):
    """Room, booking or guest does not exist"""


class ConflictError(DomainError):
    """Operation collides with existing state"""


class DoubleBookingError(ConflictError):
    """Requested dates overlap an active booking for the same room"""

    def __init__(self, room_id, conflicting_booking_number: str):
        super().__init__(
            "Room is already booked for selected dates",
            details={
                "room_id": str(room_id),
                "conflicting_booking": conflicting_booking_number,
            },
        )


class InvalidTransitionError(ConflictError):
    """Booking status does not allow the requested action"""

    def __init__(self, action: str, status: str):
        super().__init__(
            f"Cannot {action} booking with status {status}",
            details={"action": action, "status": status},
        )


class CapacityExceededError(DomainError):
    """Guest count is above the room's capacity"""


class UnauthorizedError(DomainError):
    """Missing or invalid credentials"""


class ForbiddenError(DomainError):
    """Authenticated actor lacks the required role"""
