"""Domain Entities - Aggregates"""
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from datetime import datetime, date
from typing import Optional, List, Dict, Any, NamedTuple
from decimal import Decimal, InvalidOperation

from domain.enums import (
    BookingStatus, BookingAction, BookingChannel, RoomStatus, RoomType, Amenity,
    PaymentMethod, LedgerEntryKind, PaymentStatus, ACTIVE_BOOKING_STATUSES,
)
from domain.exceptions import (
    InvalidArgumentError, ConflictError, CapacityExceededError, InvalidTransitionError,
)
from domain.value_objects import DateRange, ServiceCharge, quantize_money


# action -> (allowed source statuses, target status, room status side effect)
BOOKING_TRANSITIONS: Dict[BookingAction, tuple] = {
    BookingAction.CONFIRM: (
        {BookingStatus.PENDING}, BookingStatus.CONFIRMED, None
    ),
    BookingAction.REVERT_TO_PENDING: (
        {BookingStatus.CONFIRMED}, BookingStatus.PENDING, None
    ),
    BookingAction.CHECK_IN: (
        {BookingStatus.CONFIRMED}, BookingStatus.CHECKED_IN, RoomStatus.OCCUPIED
    ),
    BookingAction.CHECK_OUT: (
        {BookingStatus.CHECKED_IN}, BookingStatus.CHECKED_OUT, RoomStatus.CLEANING
    ),
    BookingAction.CANCEL: (
        {BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN},
        BookingStatus.CANCELLED,
        RoomStatus.AVAILABLE,
    ),
    BookingAction.MARK_NO_SHOW: (
        {BookingStatus.PENDING, BookingStatus.CONFIRMED}, BookingStatus.NO_SHOW, RoomStatus.AVAILABLE
    ),
}

ROOM_MUTABLE_FIELDS = frozenset({
    "room_number", "room_type", "floor", "capacity", "price_per_night",
    "amenities", "description", "is_active", "last_cleaned", "next_maintenance",
})

# Room status a terminal booking leaves behind
ROOM_STATUS_AFTER = {
    BookingStatus.CHECKED_IN: RoomStatus.OCCUPIED,
    BookingStatus.CHECKED_OUT: RoomStatus.CLEANING,
    BookingStatus.CANCELLED: RoomStatus.AVAILABLE,
    BookingStatus.NO_SHOW: RoomStatus.AVAILABLE,
}


class TransitionOutcome(NamedTuple):
    """Booking state change and the room mutation that must accompany it"""
    booking: "Booking"
    previous_status: BookingStatus
    room_status: Optional[RoomStatus]


class Room(BaseModel):
    """Room Aggregate Root Entity"""

    # Identity
    room_id: UUID = Field(default_factory=uuid4)
    room_number: str = Field(min_length=1)

    # Descriptive
    room_type: RoomType = RoomType.STANDARD
    floor: int = 1
    capacity: int = Field(ge=1, le=10)
    price_per_night: Decimal = Field(ge=0)
    amenities: List[Amenity] = []
    description: Optional[str] = None

    # Operational
    status: RoomStatus = RoomStatus.AVAILABLE
    is_active: bool = True
    last_cleaned: Optional[datetime] = None
    next_maintenance: Optional[date] = None

    # Metadata
    created_at: datetime = Field(default_factory=datetime.utcnow)
    modified_at: datetime = Field(default_factory=datetime.utcnow)
    version: int = 1

    class Config:
        from_attributes = True

    def update(self, patch: Dict[str, Any]) -> None:
        """Apply a partial update, validating the result as a whole"""
        unknown = set(patch) - ROOM_MUTABLE_FIELDS
        if unknown:
            raise InvalidArgumentError(f"Unknown room fields: {', '.join(sorted(unknown))}")

        candidate = self.model_dump()
        candidate.update(patch)
        try:
            validated = Room(**candidate)
        except ValueError as e:
            raise InvalidArgumentError(f"Invalid room data: {e}")

        for field in patch:
            setattr(self, field, getattr(validated, field))
        self._touch()

    def set_status(self, status: RoomStatus) -> None:
        if not isinstance(status, RoomStatus):
            try:
                status = RoomStatus(status)
            except ValueError:
                raise InvalidArgumentError(f"Invalid room status: {status}")

        if status == RoomStatus.AVAILABLE and self.status == RoomStatus.CLEANING:
            self.last_cleaned = datetime.utcnow()
        self.status = status
        self._touch()

    def can_accommodate(self, guests: int) -> bool:
        return guests <= self.capacity

    def is_listed_available(self) -> bool:
        return self.is_active and self.status == RoomStatus.AVAILABLE

    def _touch(self) -> None:
        self.modified_at = datetime.utcnow()
        self.version += 1


class Booking(BaseModel):
    """Booking Aggregate Root Entity"""

    # Identity
    booking_id: UUID = Field(default_factory=uuid4)
    booking_number: str

    # References to other aggregates
    guest_id: UUID
    room_id: UUID

    # Stay
    date_range: DateRange
    number_of_guests: int = Field(ge=1)

    # Pricing snapshot taken at creation
    nightly_rate: Decimal = Field(ge=0)
    total_amount: Decimal = Field(ge=0)
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=1)

    # Status
    status: BookingStatus = BookingStatus.PENDING
    # Display/override cache only; the ledger is authoritative
    payment_status: PaymentStatus = PaymentStatus.PENDING
    channel: BookingChannel = BookingChannel.STAFF

    # Collections
    additional_services: List[ServiceCharge] = []
    special_requests: str = ""
    notes: Optional[str] = None

    # Metadata
    created_at: datetime = Field(default_factory=datetime.utcnow)
    modified_at: datetime = Field(default_factory=datetime.utcnow)
    created_by: Optional[UUID] = None
    version: int = 1

    class Config:
        from_attributes = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        booking_number: str,
        guest_id: UUID,
        room: Room,
        date_range: DateRange,
        number_of_guests: int,
        channel: BookingChannel,
        created_by: Optional[UUID] = None,
        services: Optional[List[ServiceCharge]] = None,
        special_requests: str = "",
        tax_rate: Optional[Decimal] = None,
    ) -> "Booking":
        """Create new booking priced from the room's current nightly rate"""
        Booking.validate_guest_count(room, number_of_guests)
        rate = Booking.validate_tax_rate(tax_rate)

        initial_status = (
            BookingStatus.PENDING
            if channel == BookingChannel.GUEST_SELF_SERVICE
            else BookingStatus.CONFIRMED
        )

        return Booking(
            booking_number=booking_number,
            guest_id=guest_id,
            room_id=room.room_id,
            date_range=date_range,
            number_of_guests=number_of_guests,
            nightly_rate=room.price_per_night,
            total_amount=Booking.price_stay(date_range, room.price_per_night),
            tax_rate=rate,
            status=initial_status,
            channel=channel,
            additional_services=list(services or []),
            special_requests=special_requests,
            created_by=created_by,
        )

    @staticmethod
    def price_stay(date_range: DateRange, nightly_rate: Decimal) -> Decimal:
        return quantize_money(date_range.nights() * nightly_rate)

    # ==================== STATE TRANSITION METHODS ====================
    def apply_transition(self, action: BookingAction, note: Optional[str] = None) -> TransitionOutcome:
        """Move to the next status; guard is checked before anything changes"""
        allowed_from, target, room_status = BOOKING_TRANSITIONS[action]
        if self.status not in allowed_from:
            raise InvalidTransitionError(action.value.lower().replace("_", " "), self.status.value)

        previous = self.status
        self.status = target
        if note:
            self.notes = note
        self._touch()
        return TransitionOutcome(self, previous, room_status)

    def confirm(self) -> TransitionOutcome:
        return self.apply_transition(BookingAction.CONFIRM)

    def check_in(self, notes: Optional[str] = None) -> TransitionOutcome:
        return self.apply_transition(BookingAction.CHECK_IN, notes)

    def check_out(self, notes: Optional[str] = None) -> TransitionOutcome:
        return self.apply_transition(BookingAction.CHECK_OUT, notes)

    def cancel(self, reason: Optional[str] = None) -> TransitionOutcome:
        return self.apply_transition(BookingAction.CANCEL, reason)

    def mark_no_show(self) -> TransitionOutcome:
        return self.apply_transition(BookingAction.MARK_NO_SHOW)

    # ==================== MODIFICATION METHODS ====================
    def add_service(self, name: str, unit_price: Decimal, quantity: int = 1) -> ServiceCharge:
        """Append an ancillary service; only while the stay is still open"""
        if not self.is_active():
            raise ConflictError(
                f"Cannot add services to booking with status {self.status.value}"
            )
        try:
            service = ServiceCharge(name=name, unit_price=unit_price, quantity=quantity)
        except ValueError as e:
            raise InvalidArgumentError(f"Invalid service: {e}")

        self.additional_services.append(service)
        self._touch()
        return service

    def reschedule(self, date_range: DateRange) -> None:
        """Move the stay, re-pricing from the rate snapshot"""
        self.date_range = date_range
        self.total_amount = Booking.price_stay(date_range, self.nightly_rate)
        self._touch()

    def change_guest_count(self, room: Room, number_of_guests: int) -> None:
        Booking.validate_guest_count(room, number_of_guests)
        self.number_of_guests = number_of_guests
        self._touch()

    def annotate(self, notes: Optional[str] = None, special_requests: Optional[str] = None) -> None:
        if notes is not None:
            self.notes = notes
        if special_requests is not None:
            self.special_requests = special_requests
        self._touch()

    def set_tax_rate(self, tax_rate) -> None:
        """None falls back to the hotel-wide tax percent on invoices"""
        self.tax_rate = Booking.validate_tax_rate(tax_rate)
        self._touch()

    def override_payment_status(self, status: PaymentStatus) -> None:
        """Manual correction; does not consult the ledger"""
        self.payment_status = status
        self._touch()

    # ==================== QUERY METHODS ====================
    def is_active(self) -> bool:
        return self.status in ACTIVE_BOOKING_STATUSES

    def get_nights(self) -> int:
        return self.date_range.nights()

    def services_total(self) -> Decimal:
        return sum((s.line_total for s in self.additional_services), Decimal("0"))

    def charge_total(self) -> Decimal:
        """Room nights plus ancillary services, before tax"""
        return quantize_money(self.total_amount + self.services_total())

    # ==================== VALIDATION ====================
    @staticmethod
    def validate_guest_count(room: Room, number_of_guests: int) -> None:
        if number_of_guests < 1:
            raise InvalidArgumentError("Number of guests must be at least 1")
        if not room.can_accommodate(number_of_guests):
            raise CapacityExceededError(
                f"Room capacity is {room.capacity}",
                details={"capacity": room.capacity, "requested": number_of_guests},
            )

    @staticmethod
    def validate_tax_rate(tax_rate) -> Optional[Decimal]:
        """Flat booking-level rate as a fraction, 0 to 1"""
        if tax_rate is None:
            return None
        try:
            rate = Decimal(str(tax_rate))
        except (InvalidOperation, ValueError):
            raise InvalidArgumentError("Tax rate must be a number")
        if not rate.is_finite() or not Decimal("0") <= rate <= Decimal("1"):
            raise InvalidArgumentError("Tax rate must be between 0 and 1")
        return rate

    # ==================== PRIVATE METHODS ====================
    def _touch(self) -> None:
        self.modified_at = datetime.utcnow()
        self.version += 1


class LedgerEntry(BaseModel):
    """Immutable payment or refund recorded against one booking"""

    entry_id: UUID = Field(default_factory=uuid4)
    booking_id: UUID
    amount: Decimal = Field(ge=0)
    method: PaymentMethod
    kind: LedgerEntryKind = LedgerEntryKind.PAYMENT
    note: Optional[str] = None
    recorded_by: Optional[UUID] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        frozen = True
        from_attributes = True
