"""Domain Enums"""
from enum import Enum


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


# Statuses that still occupy calendar availability
ACTIVE_BOOKING_STATUSES = frozenset({
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.CHECKED_IN,
})

TERMINAL_BOOKING_STATUSES = frozenset({
    BookingStatus.CHECKED_OUT,
    BookingStatus.CANCELLED,
    BookingStatus.NO_SHOW,
})


class BookingAction(str, Enum):
    CONFIRM = "CONFIRM"
    REVERT_TO_PENDING = "REVERT_TO_PENDING"
    CHECK_IN = "CHECK_IN"
    CHECK_OUT = "CHECK_OUT"
    CANCEL = "CANCEL"
    MARK_NO_SHOW = "MARK_NO_SHOW"


class BookingChannel(str, Enum):
    GUEST_SELF_SERVICE = "GUEST_SELF_SERVICE"
    STAFF = "STAFF"


class RoomStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    MAINTENANCE = "MAINTENANCE"
    CLEANING = "CLEANING"
    OUT_OF_ORDER = "OUT_OF_ORDER"


class RoomType(str, Enum):
    STANDARD = "STANDARD"
    DELUXE = "DELUXE"
    SUITE = "SUITE"
    PRESIDENTIAL = "PRESIDENTIAL"
    FAMILY = "FAMILY"


class Amenity(str, Enum):
    WIFI = "WIFI"
    TV = "TV"
    AC = "AC"
    MINI_BAR = "MINI_BAR"
    BALCONY = "BALCONY"
    OCEAN_VIEW = "OCEAN_VIEW"
    CITY_VIEW = "CITY_VIEW"
    JACUZZI = "JACUZZI"
    KITCHEN = "KITCHEN"
    LIVING_ROOM = "LIVING_ROOM"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CARD = "CARD"
    UPI = "UPI"
    ONLINE = "ONLINE"


class LedgerEntryKind(str, Enum):
    PAYMENT = "PAYMENT"
    REFUND = "REFUND"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    REFUNDED = "REFUNDED"


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    RECEPTIONIST = "RECEPTIONIST"
    HOUSEKEEPING = "HOUSEKEEPING"
    GUEST = "GUEST"


STAFF_ROLES = frozenset({
    UserRole.ADMIN,
    UserRole.MANAGER,
    UserRole.RECEPTIONIST,
    UserRole.HOUSEKEEPING,
})
