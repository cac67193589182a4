"""Application Services - Business use cases"""
import logging
from collections import defaultdict
from uuid import UUID
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Dict, Any, Tuple

from domain.repositories import RoomRepository, BookingRepository, GuestDirectory
from domain.entities import Room, Booking, ROOM_STATUS_AFTER
from domain.enums import (
    BookingStatus, BookingAction, BookingChannel, RoomStatus, RoomType, Amenity,
    PaymentStatus, ACTIVE_BOOKING_STATUSES,
)
from domain.exceptions import (
    InvalidArgumentError, NotFoundError, ConflictError, DoubleBookingError, ForbiddenError,
)
from domain.value_objects import Actor, DateRange, ServiceCharge, quantize_money
from infrastructure.locking import RoomLockRegistry

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def ensure_can_access(actor: Actor, booking: Booking) -> None:
    """Staff see every booking; guests only their own"""
    if not actor.is_staff() and booking.guest_id != actor.user_id:
        raise ForbiddenError("You can only access your own bookings")


def paginate(items: list, page: int, limit: int) -> Tuple[list, int]:
    if page < 1:
        raise InvalidArgumentError("Page must be at least 1")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise InvalidArgumentError(f"Limit must be between 1 and {MAX_PAGE_SIZE}")
    start = (page - 1) * limit
    return items[start:start + limit], len(items)


class AvailabilityChecker:
    """Overlap detection against active bookings of one room"""

    def __init__(self, booking_repo: BookingRepository):
        self.booking_repo = booking_repo

    async def find_conflict(
        self,
        room_id: UUID,
        date_range: DateRange,
        exclude_booking_id: Optional[UUID] = None,
    ) -> Optional[Booking]:
        """Return the first active booking overlapping [check_in, check_out)"""
        return await self.booking_repo.find_overlapping(
            room_id, date_range, ACTIVE_BOOKING_STATUSES, exclude_booking_id
        )

    async def is_available(self, room_id: UUID, date_range: DateRange) -> bool:
        return await self.find_conflict(room_id, date_range) is None


class RoomService:
    """Service for Room Registry use cases"""

    def __init__(
        self,
        repository: RoomRepository,
        booking_repo: BookingRepository,
        availability: Optional[AvailabilityChecker] = None,
    ):
        self.repository = repository
        self.booking_repo = booking_repo
        self.availability = availability or AvailabilityChecker(booking_repo)

    async def create_room(
        self,
        actor: Actor,
        room_number: str,
        capacity: int,
        price_per_night: Decimal,
        room_type: RoomType = RoomType.STANDARD,
        floor: int = 1,
        amenities: Optional[List[Amenity]] = None,
        description: Optional[str] = None,
    ) -> Room:
        """Register a room; room numbers are unique"""
        if await self.repository.find_by_number(room_number):
            raise ConflictError("Room number already exists", details={"room_number": room_number})

        try:
            room = Room(
                room_number=room_number,
                capacity=capacity,
                price_per_night=price_per_night,
                room_type=room_type,
                floor=floor,
                amenities=amenities or [],
                description=description,
                status=RoomStatus.AVAILABLE,
            )
        except ValueError as e:
            raise InvalidArgumentError(f"Invalid room data: {e}")

        await self.repository.save(room)
        logger.info("Room %s created by %s", room.room_number, actor.user_id)
        return room

    async def get_room(self, room_id: UUID) -> Optional[Room]:
        """Get room by ID"""
        return await self.repository.find_by_id(room_id)

    async def require_room(self, room_id: UUID) -> Room:
        room = await self.repository.find_by_id(room_id)
        if not room:
            raise NotFoundError("Room not found")
        return room

    async def update_room(self, room_id: UUID, patch: Dict[str, Any], actor: Actor) -> Room:
        """Partial update; a changed room number must stay unique"""
        room = await self.require_room(room_id)

        new_number = patch.get("room_number")
        if new_number and new_number != room.room_number:
            existing = await self.repository.find_by_number(new_number)
            if existing and existing.room_id != room.room_id:
                raise ConflictError("Room number already exists", details={"room_number": new_number})

        new_capacity = patch.get("capacity")
        if new_capacity is not None and new_capacity < room.capacity:
            # Capacity is fixed under any active booking that needs it
            blocking = [
                b for b in await self.booking_repo.find_by_room(room_id)
                if b.is_active() and b.number_of_guests > new_capacity
            ]
            if blocking:
                logger.warning(
                    "Capacity change of room %s to %s rejected: %d active booking(s) need more",
                    room.room_number, new_capacity, len(blocking),
                )
                raise ConflictError(
                    "Room capacity is below the guest count of an active booking",
                    details={
                        "capacity": new_capacity,
                        "bookings": [b.booking_number for b in blocking],
                    },
                )

        room.update(patch)
        await self.repository.update(room)
        logger.info("Room %s updated by %s: %s", room.room_number, actor.user_id, sorted(patch))
        return room

    async def set_status(self, room_id: UUID, status, actor: Actor) -> Room:
        """Housekeeping/operational status change"""
        room = await self.require_room(room_id)
        room.set_status(status)
        await self.repository.update(room)
        logger.info("Room %s status set to %s by %s", room.room_number, room.status.value, actor.user_id)
        return room

    async def delete_room(self, room_id: UUID, actor: Actor) -> bool:
        """Delete room; refused while it has an active booking"""
        room = await self.require_room(room_id)
        active = [b for b in await self.booking_repo.find_by_room(room_id) if b.is_active()]
        if active:
            raise ConflictError(
                "Room has active bookings",
                details={"bookings": [b.booking_number for b in active]},
            )
        deleted = await self.repository.delete(room_id)
        logger.info("Room %s deleted by %s", room.room_number, actor.user_id)
        return deleted

    async def list_rooms(
        self,
        status: Optional[RoomStatus] = None,
        room_type: Optional[RoomType] = None,
        floor: Optional[int] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Room], int]:
        """Filtered, paginated room listing sorted by room number"""
        rooms = await self.repository.find_all()
        if status:
            rooms = [r for r in rooms if r.status == status]
        if room_type:
            rooms = [r for r in rooms if r.room_type == room_type]
        if floor is not None:
            rooms = [r for r in rooms if r.floor == floor]
        if min_price is not None:
            rooms = [r for r in rooms if r.price_per_night >= min_price]
        if max_price is not None:
            rooms = [r for r in rooms if r.price_per_night <= max_price]
        if search:
            needle = search.lower()
            rooms = [
                r for r in rooms
                if needle in r.room_number.lower() or needle in (r.description or "").lower()
            ]
        rooms.sort(key=lambda r: r.room_number)
        return paginate(rooms, page, limit)

    async def find_available(
        self,
        min_guests: int = 1,
        room_type: Optional[RoomType] = None,
        date_range: Optional[DateRange] = None,
    ) -> List[Room]:
        """Rooms listed Available with enough capacity and, for a date range, no overlapping booking"""
        if min_guests < 1:
            raise InvalidArgumentError("Guests must be at least 1")

        candidates = [
            r for r in await self.repository.find_all()
            if r.is_listed_available() and r.capacity >= min_guests
        ]
        if room_type:
            candidates = [r for r in candidates if r.room_type == room_type]

        if date_range:
            free = []
            for room in candidates:
                if await self.availability.is_available(room.room_id, date_range):
                    free.append(room)
            candidates = free

        return sorted(candidates, key=lambda r: (r.price_per_night, r.room_number))

    async def room_statistics(self) -> Dict[str, Any]:
        rooms = await self.repository.find_all()
        by_status = {s: 0 for s in RoomStatus}
        for room in rooms:
            by_status[room.status] += 1

        by_type: Dict[RoomType, List[Decimal]] = defaultdict(list)
        for room in rooms:
            by_type[room.room_type].append(room.price_per_night)

        return {
            "overall": {
                "total_rooms": len(rooms),
                "available_rooms": by_status[RoomStatus.AVAILABLE],
                "occupied_rooms": by_status[RoomStatus.OCCUPIED],
                "maintenance_rooms": by_status[RoomStatus.MAINTENANCE],
                "cleaning_rooms": by_status[RoomStatus.CLEANING],
                "out_of_order_rooms": by_status[RoomStatus.OUT_OF_ORDER],
            },
            "by_type": [
                {
                    "room_type": room_type.value,
                    "count": len(prices),
                    "average_price": quantize_money(sum(prices, Decimal("0")) / len(prices)),
                }
                for room_type, prices in sorted(by_type.items(), key=lambda kv: kv[0].value)
            ],
        }


class BookingService:
    """Service for Booking Lifecycle use cases"""

    def __init__(
        self,
        repository: BookingRepository,
        room_repo: RoomRepository,
        guest_directory: GuestDirectory,
        room_locks: Optional[RoomLockRegistry] = None,
        availability: Optional[AvailabilityChecker] = None,
    ):
        self.repository = repository
        self.room_repo = room_repo
        self.guest_directory = guest_directory
        self.room_locks = room_locks or RoomLockRegistry()
        self.availability = availability or AvailabilityChecker(repository)

    # ==================== CREATION ====================
    async def create_booking(
        self,
        actor: Actor,
        room_id: UUID,
        check_in: date,
        check_out: date,
        number_of_guests: int,
        guest_id: Optional[UUID] = None,
        channel: BookingChannel = BookingChannel.STAFF,
        services: Optional[List[dict]] = None,
        special_requests: str = "",
        tax_rate: Optional[Decimal] = None,
    ) -> Booking:
        """Create booking; overlap check and insert run under the room lock"""
        guest_id = guest_id or actor.user_id
        date_range = self._validate_request(room_id, check_in, check_out, number_of_guests)
        service_charges = self._parse_services(services or [])
        rate = Booking.validate_tax_rate(tax_rate)

        if not await self.guest_directory.find_by_id(guest_id):
            raise NotFoundError("Guest not found")

        async with self.room_locks.hold(room_id):
            room = await self.room_repo.find_by_id(room_id)
            if not room or not room.is_active:
                raise NotFoundError("Room not found or inactive")

            # Raises CapacityExceededError before anything is allocated
            Booking.validate_guest_count(room, number_of_guests)

            conflict = await self.availability.find_conflict(room_id, date_range)
            if conflict:
                logger.warning(
                    "Booking rejected: room %s already booked by %s",
                    room.room_number, conflict.booking_number,
                )
                raise DoubleBookingError(room_id, conflict.booking_number)

            booking = Booking.create(
                booking_number=await self.repository.next_booking_number(),
                guest_id=guest_id,
                room=room,
                date_range=date_range,
                number_of_guests=number_of_guests,
                channel=channel,
                created_by=actor.user_id,
                services=service_charges,
                special_requests=special_requests,
                tax_rate=rate,
            )
            await self.repository.save(booking)

        logger.info(
            "Booking %s created for room %s (%s -> %s, %s nights, total %s) by %s",
            booking.booking_number, room.room_number, check_in, check_out,
            booking.get_nights(), booking.total_amount, actor.user_id,
        )
        return booking

    async def guest_book(
        self,
        actor: Actor,
        room_id: UUID,
        check_in: date,
        check_out: date,
        number_of_guests: int,
        special_requests: str = "",
    ) -> Booking:
        """Self-service path: the actor is the guest and the booking starts Pending"""
        return await self.create_booking(
            actor=actor,
            room_id=room_id,
            check_in=check_in,
            check_out=check_out,
            number_of_guests=number_of_guests,
            guest_id=actor.user_id,
            channel=BookingChannel.GUEST_SELF_SERVICE,
            special_requests=special_requests,
        )

    # ==================== QUERIES ====================
    async def get_booking(self, booking_id: UUID) -> Optional[Booking]:
        """Get booking by ID"""
        return await self.repository.find_by_id(booking_id)

    async def get_booking_for(self, booking_id: UUID, actor: Actor) -> Booking:
        booking = await self.require_booking(booking_id)
        ensure_can_access(actor, booking)
        return booking

    async def require_booking(self, booking_id: UUID) -> Booking:
        booking = await self.repository.find_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    async def list_bookings(
        self,
        actor: Actor,
        status: Optional[BookingStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        guest_id: Optional[UUID] = None,
        room_id: Optional[UUID] = None,
        check_in_from: Optional[date] = None,
        check_out_to: Optional[date] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Booking], int]:
        """Newest first; guests only ever see their own bookings.

        payment_status filters on the stored value shown in booking responses,
        which staff may override. Ledger-derived balances live in list_billing.
        """
        if not actor.is_staff():
            guest_id = actor.user_id

        bookings = await self.repository.find_all()
        if status:
            bookings = [b for b in bookings if b.status == status]
        if payment_status:
            bookings = [b for b in bookings if b.payment_status == payment_status]
        if guest_id:
            bookings = [b for b in bookings if b.guest_id == guest_id]
        if room_id:
            bookings = [b for b in bookings if b.room_id == room_id]
        if check_in_from:
            bookings = [b for b in bookings if b.date_range.check_in >= check_in_from]
        if check_out_to:
            bookings = [b for b in bookings if b.date_range.check_out <= check_out_to]

        bookings.sort(key=lambda b: b.created_at, reverse=True)
        return paginate(bookings, page, limit)

    # ==================== STATE TRANSITIONS ====================
    async def confirm_booking(self, booking_id: UUID, actor: Actor) -> Booking:
        return await self._transition(booking_id, BookingAction.CONFIRM, actor)

    async def revert_to_pending(self, booking_id: UUID, actor: Actor) -> Booking:
        return await self._transition(booking_id, BookingAction.REVERT_TO_PENDING, actor)

    async def check_in_guest(self, booking_id: UUID, actor: Actor, notes: Optional[str] = None) -> Booking:
        return await self._transition(booking_id, BookingAction.CHECK_IN, actor, notes)

    async def check_out_guest(self, booking_id: UUID, actor: Actor, notes: Optional[str] = None) -> Booking:
        return await self._transition(booking_id, BookingAction.CHECK_OUT, actor, notes)

    async def cancel_booking(self, booking_id: UUID, actor: Actor, reason: Optional[str] = None) -> Booking:
        booking = await self.require_booking(booking_id)
        ensure_can_access(actor, booking)
        if not actor.is_staff() and booking.status == BookingStatus.CHECKED_IN:
            raise ForbiddenError("Checked-in bookings can only be cancelled at the front desk")
        return await self._transition(booking_id, BookingAction.CANCEL, actor, reason)

    async def mark_no_show(self, booking_id: UUID, actor: Actor) -> Booking:
        return await self._transition(booking_id, BookingAction.MARK_NO_SHOW, actor)

    async def _transition(
        self,
        booking_id: UUID,
        action: BookingAction,
        actor: Actor,
        note: Optional[str] = None,
    ) -> Booking:
        """Apply booking status and room side effect as one unit under the room lock"""
        booking = await self.require_booking(booking_id)

        async with self.room_locks.hold(booking.room_id):
            booking = await self.require_booking(booking_id)
            outcome = booking.apply_transition(action, note)
            # Booking status is the source of truth and is written first
            await self.repository.update(booking)
            await self._apply_room_status(booking, outcome.room_status)

        logger.info(
            "Booking %s: %s -> %s by %s",
            booking.booking_number, outcome.previous_status.value, booking.status.value, actor.user_id,
        )
        return booking

    async def _apply_room_status(self, booking: Booking, room_status: Optional[RoomStatus]) -> None:
        if room_status is None:
            return

        room = await self.room_repo.find_by_id(booking.room_id)
        if room is None:
            logger.warning(
                "Room %s of booking %s no longer exists; status %s not applied",
                booking.room_id, booking.booking_number, room_status.value,
            )
            return

        if room_status == RoomStatus.AVAILABLE and not await self._is_released_by(booking, room):
            logger.info(
                "Room %s kept %s after booking %s became %s",
                room.room_number, room.status.value, booking.booking_number, booking.status.value,
            )
            return

        try:
            room.set_status(room_status)
            await self.room_repo.update(room)
        except Exception:
            # Booking already committed; reconcile_room_statuses repairs the room later
            logger.exception(
                "Room %s status update to %s failed after booking %s changed",
                room.room_number, room_status.value, booking.booking_number,
                extra={"booking_id": booking.booking_id, "room_id": room.room_id},
            )

    async def _is_released_by(self, booking: Booking, room: Room) -> bool:
        """Cancel and no-show free only a room they occupy that no other guest holds"""
        if room.status != RoomStatus.OCCUPIED:
            return False
        for other in await self.repository.find_by_room(room.room_id):
            if other.booking_id != booking.booking_id and other.status == BookingStatus.CHECKED_IN:
                return False
        return True

    # ==================== MODIFICATION ====================
    async def add_service(
        self,
        booking_id: UUID,
        actor: Actor,
        name: str,
        unit_price: Decimal,
        quantity: int = 1,
    ) -> Booking:
        """Append an ancillary service before checkout"""
        booking = await self.require_booking(booking_id)
        async with self.room_locks.hold(booking.room_id):
            booking = await self.require_booking(booking_id)
            booking.add_service(name, unit_price, quantity)
            await self.repository.update(booking)

        logger.info(
            "Service '%s' x%s added to booking %s by %s",
            name, quantity, booking.booking_number, actor.user_id,
        )
        return booking

    async def update_booking(
        self,
        booking_id: UUID,
        actor: Actor,
        check_in: Optional[date] = None,
        check_out: Optional[date] = None,
        number_of_guests: Optional[int] = None,
        notes: Optional[str] = None,
        special_requests: Optional[str] = None,
        tax_rate: Optional[Decimal] = None,
    ) -> Booking:
        """Administrative override of dates, occupancy, tax rate and notes"""
        booking = await self.require_booking(booking_id)

        async with self.room_locks.hold(booking.room_id):
            booking = await self.require_booking(booking_id)

            new_range = None
            if check_in is not None or check_out is not None:
                new_range = self._build_date_range(
                    check_in or booking.date_range.check_in,
                    check_out or booking.date_range.check_out,
                )
                if booking.is_active():
                    conflict = await self.availability.find_conflict(
                        booking.room_id, new_range, exclude_booking_id=booking.booking_id
                    )
                    if conflict:
                        raise DoubleBookingError(booking.room_id, conflict.booking_number)

            if number_of_guests is not None:
                room = await self.room_repo.find_by_id(booking.room_id)
                if not room:
                    raise NotFoundError("Room not found")
                booking.change_guest_count(room, number_of_guests)

            if new_range:
                booking.reschedule(new_range)
            if tax_rate is not None:
                booking.set_tax_rate(tax_rate)
            booking.annotate(notes=notes, special_requests=special_requests)
            await self.repository.update(booking)

        logger.info("Booking %s updated by %s", booking.booking_number, actor.user_id)
        return booking

    async def delete_booking(self, booking_id: UUID, actor: Actor) -> bool:
        """Hard delete. Room status is left as is; run reconciliation if needed."""
        booking = await self.require_booking(booking_id)
        deleted = await self.repository.delete(booking_id)
        logger.info(
            "Booking %s (%s) deleted by %s; room status not restored",
            booking.booking_number, booking.status.value, actor.user_id,
        )
        return deleted

    # ==================== STATISTICS ====================
    async def booking_statistics(self, period_days: int = 30, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Counts and revenue for bookings created in the trailing window"""
        if period_days < 1:
            raise InvalidArgumentError("Period must be at least 1 day")

        now = now or datetime.utcnow()
        start = now - timedelta(days=period_days)
        bookings = [b for b in await self.repository.find_all() if b.created_at >= start]

        revenue = sum((b.total_amount for b in bookings), Decimal("0"))
        counts = {s: 0 for s in BookingStatus}
        daily: Dict[date, Dict[str, Any]] = {}
        for b in bookings:
            counts[b.status] += 1
            day = daily.setdefault(b.created_at.date(), {"count": 0, "revenue": Decimal("0")})
            day["count"] += 1
            day["revenue"] += b.total_amount

        return {
            "period_days": period_days,
            "overall": {
                "total_bookings": len(bookings),
                "pending_bookings": counts[BookingStatus.PENDING],
                "confirmed_bookings": counts[BookingStatus.CONFIRMED],
                "checked_in_bookings": counts[BookingStatus.CHECKED_IN],
                "checked_out_bookings": counts[BookingStatus.CHECKED_OUT],
                "cancelled_bookings": counts[BookingStatus.CANCELLED],
                "no_show_bookings": counts[BookingStatus.NO_SHOW],
                "total_revenue": quantize_money(revenue),
                "average_booking_value": (
                    quantize_money(revenue / len(bookings)) if bookings else Decimal("0.00")
                ),
            },
            "daily_bookings": [
                {"date": day, "count": v["count"], "revenue": quantize_money(v["revenue"])}
                for day, v in sorted(daily.items())
            ],
        }

    # ==================== VALIDATION ====================
    def _validate_request(
        self,
        room_id,
        check_in,
        check_out,
        number_of_guests,
    ) -> DateRange:
        if not isinstance(room_id, UUID):
            raise InvalidArgumentError("Room is required")
        if not isinstance(number_of_guests, int) or isinstance(number_of_guests, bool) or number_of_guests < 1:
            raise InvalidArgumentError("Number of guests must be a valid number")
        return self._build_date_range(check_in, check_out)

    @staticmethod
    def _build_date_range(check_in, check_out) -> DateRange:
        if not isinstance(check_in, date) or not isinstance(check_out, date):
            raise InvalidArgumentError("Invalid check-in or check-out date")
        if isinstance(check_in, datetime):
            check_in = check_in.date()
        if isinstance(check_out, datetime):
            check_out = check_out.date()
        if check_out <= check_in:
            raise InvalidArgumentError("Check-out date must be after check-in date")
        return DateRange(check_in=check_in, check_out=check_out)

    @staticmethod
    def _parse_services(services: List[dict]) -> List[ServiceCharge]:
        parsed = []
        for s in services:
            try:
                parsed.append(ServiceCharge(
                    name=s.get("name", ""),
                    unit_price=s.get("unit_price", s.get("price")),
                    quantity=s.get("quantity", 1),
                ))
            except (ValueError, TypeError, AttributeError) as e:
                raise InvalidArgumentError(f"Invalid service: {e}")
        return parsed


class ReconciliationService:
    """Repairs room statuses that disagree with the bookings of record"""

    def __init__(
        self,
        room_repo: RoomRepository,
        booking_repo: BookingRepository,
        room_locks: Optional[RoomLockRegistry] = None,
    ):
        self.room_repo = room_repo
        self.booking_repo = booking_repo
        self.room_locks = room_locks or RoomLockRegistry()

    @staticmethod
    def expected_status(room: Room, bookings: List[Booking]) -> Optional[RoomStatus]:
        """Status the room should have, or None when it is consistent"""
        if any(b.status == BookingStatus.CHECKED_IN for b in bookings):
            return None if room.status == RoomStatus.OCCUPIED else RoomStatus.OCCUPIED

        if room.status != RoomStatus.OCCUPIED:
            return None

        finished = [b for b in bookings if b.status in ROOM_STATUS_AFTER]
        if not finished:
            return RoomStatus.AVAILABLE
        latest = max(finished, key=lambda b: b.modified_at)
        return ROOM_STATUS_AFTER[latest.status]

    async def reconcile_room_statuses(self, actor: Optional[Actor] = None) -> List[Dict[str, Any]]:
        repairs = []
        for room in await self.room_repo.find_all():
            async with self.room_locks.hold(room.room_id):
                bookings = await self.booking_repo.find_by_room(room.room_id)
                target = self.expected_status(room, bookings)
                if target is None:
                    continue

                previous = room.status
                room.set_status(target)
                await self.room_repo.update(room)

            repairs.append({
                "room_id": room.room_id,
                "room_number": room.room_number,
                "previous_status": previous,
                "new_status": target,
            })
            logger.warning(
                "Reconciled room %s: %s -> %s", room.room_number, previous.value, target.value
            )

        logger.info(
            "Room reconciliation finished with %d repair(s)%s",
            len(repairs), f" by {actor.user_id}" if actor else "",
        )
        return repairs
