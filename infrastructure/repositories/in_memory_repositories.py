"""In-Memory Repository Implementations"""
import itertools
from typing import Optional, List, Dict, Iterable
from uuid import UUID

from domain.repositories import (
    RoomRepository, BookingRepository, LedgerRepository, SettingsRepository, GuestDirectory,
)
from domain.entities import Room, Booking, LedgerEntry
from domain.enums import BookingStatus
from domain.value_objects import DateRange, GuestProfile, HotelSettings


class InMemoryRoomRepository(RoomRepository):
    """In-memory implementation of RoomRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Room] = {}

    async def save(self, room: Room) -> Room:
        """Save room to memory"""
        self._storage[room.room_id] = room
        return room

    async def find_by_id(self, room_id: UUID) -> Optional[Room]:
        """Find room by ID"""
        return self._storage.get(room_id)

    async def find_by_number(self, room_number: str) -> Optional[Room]:
        """Find room by room number"""
        for room in self._storage.values():
            if room.room_number == room_number:
                return room
        return None

    async def find_all(self) -> List[Room]:
        """Find all rooms"""
        return list(self._storage.values())

    async def update(self, room: Room) -> Room:
        """Update room"""
        if room.room_id in self._storage:
            self._storage[room.room_id] = room
            return room
        raise ValueError("Room not found")

    async def delete(self, room_id: UUID) -> bool:
        """Delete room"""
        if room_id in self._storage:
            del self._storage[room_id]
            return True
        return False


class InMemoryBookingRepository(BookingRepository):
    """In-memory implementation of BookingRepository"""

    def __init__(self, number_prefix: str = "LS", number_width: int = 6):
        self._storage: Dict[UUID, Booking] = {}
        self._sequence = itertools.count(1)
        self._number_prefix = number_prefix
        self._number_width = number_width

    async def save(self, booking: Booking) -> Booking:
        """Save booking to memory"""
        self._storage[booking.booking_id] = booking
        return booking

    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Find booking by ID"""
        return self._storage.get(booking_id)

    async def find_by_number(self, booking_number: str) -> Optional[Booking]:
        """Find booking by booking number"""
        for booking in self._storage.values():
            if booking.booking_number == booking_number:
                return booking
        return None

    async def find_by_room(self, room_id: UUID) -> List[Booking]:
        """Find bookings for a room"""
        return [b for b in self._storage.values() if b.room_id == room_id]

    async def find_overlapping(
        self,
        room_id: UUID,
        date_range: DateRange,
        statuses: Iterable[BookingStatus],
        exclude_booking_id: Optional[UUID] = None,
    ) -> Optional[Booking]:
        """Half-open overlap: existing.check_in < check_out and existing.check_out > check_in"""
        statuses = set(statuses)
        for booking in self._storage.values():
            if booking.room_id != room_id or booking.booking_id == exclude_booking_id:
                continue
            if booking.status in statuses and booking.date_range.overlaps(date_range):
                return booking
        return None

    async def find_all(self) -> List[Booking]:
        """Find all bookings"""
        return list(self._storage.values())

    async def update(self, booking: Booking) -> Booking:
        """Update booking"""
        if booking.booking_id in self._storage:
            self._storage[booking.booking_id] = booking
            return booking
        raise ValueError("Booking not found")

    async def delete(self, booking_id: UUID) -> bool:
        """Delete booking"""
        if booking_id in self._storage:
            del self._storage[booking_id]
            return True
        return False

    async def next_booking_number(self) -> str:
        """Next value of the sequence; never reused, even after deletes"""
        return f"{self._number_prefix}{next(self._sequence):0{self._number_width}d}"


class InMemoryLedgerRepository(LedgerRepository):
    """In-memory append-only ledger"""

    def __init__(self):
        self._entries: Dict[UUID, List[LedgerEntry]] = {}

    async def append(self, entry: LedgerEntry) -> LedgerEntry:
        """Append entry to the booking's ledger"""
        self._entries.setdefault(entry.booking_id, []).append(entry)
        return entry

    async def find_by_booking(self, booking_id: UUID) -> List[LedgerEntry]:
        """Snapshot copy so callers never see a list that grows under them"""
        return list(self._entries.get(booking_id, []))


class InMemorySettingsRepository(SettingsRepository):
    """In-memory hotel settings record"""

    def __init__(self, initial: Optional[HotelSettings] = None):
        self._settings = initial or HotelSettings()

    async def get(self) -> HotelSettings:
        return self._settings.model_copy()

    async def update(self, settings: HotelSettings) -> HotelSettings:
        self._settings = settings
        return self._settings.model_copy()


class InMemoryGuestDirectory(GuestDirectory):
    """Guest profiles keyed by user id"""

    def __init__(self, profiles: Optional[Iterable[GuestProfile]] = None):
        self._profiles: Dict[UUID, GuestProfile] = {p.guest_id: p for p in profiles or []}

    @classmethod
    def from_users(cls, users: Dict[str, dict]) -> "InMemoryGuestDirectory":
        """Build from the user store's records"""
        return cls(
            GuestProfile(
                guest_id=UUID(str(u["user_id"])),
                name=u.get("full_name") or u["username"],
                email=u.get("email") or "",
            )
            for u in users.values()
        )

    def register(self, profile: GuestProfile) -> None:
        self._profiles[profile.guest_id] = profile

    async def find_by_id(self, guest_id: UUID) -> Optional[GuestProfile]:
        return self._profiles.get(guest_id)
