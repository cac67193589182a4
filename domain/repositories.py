"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from typing import Optional, List, Iterable
from uuid import UUID

from domain.entities import Room, Booking, LedgerEntry
from domain.enums import BookingStatus
from domain.value_objects import DateRange, GuestProfile, HotelSettings


class RoomRepository(ABC):
    """Repository interface for Room Aggregate"""

    @abstractmethod
    async def save(self, room: Room) -> Room:
        """Save room"""
        pass

    @abstractmethod
    async def find_by_id(self, room_id: UUID) -> Optional[Room]:
        """Find room by ID"""
        pass

    @abstractmethod
    async def find_by_number(self, room_number: str) -> Optional[Room]:
        """Find room by its unique room number"""
        pass

    @abstractmethod
    async def find_all(self) -> List[Room]:
        """Find all rooms"""
        pass

    @abstractmethod
    async def update(self, room: Room) -> Room:
        """Update room"""
        pass

    @abstractmethod
    async def delete(self, room_id: UUID) -> bool:
        """Delete room"""
        pass


class BookingRepository(ABC):
    """Repository interface for Booking Aggregate"""

    @abstractmethod
    async def save(self, booking: Booking) -> Booking:
        """Save booking"""
        pass

    @abstractmethod
    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Find booking by ID"""
        pass

    @abstractmethod
    async def find_by_number(self, booking_number: str) -> Optional[Booking]:
        """Find booking by booking number"""
        pass

    @abstractmethod
    async def find_by_room(self, room_id: UUID) -> List[Booking]:
        """Find bookings for a room"""
        pass

    @abstractmethod
    async def find_overlapping(
        self,
        room_id: UUID,
        date_range: DateRange,
        statuses: Iterable[BookingStatus],
        exclude_booking_id: Optional[UUID] = None,
    ) -> Optional[Booking]:
        """Find the first booking for the room whose stay overlaps date_range"""
        pass

    @abstractmethod
    async def find_all(self) -> List[Booking]:
        """Find all bookings"""
        pass

    @abstractmethod
    async def update(self, booking: Booking) -> Booking:
        """Update booking"""
        pass

    @abstractmethod
    async def delete(self, booking_id: UUID) -> bool:
        """Delete booking"""
        pass

    @abstractmethod
    async def next_booking_number(self) -> str:
        """Allocate the next number from the strictly increasing sequence"""
        pass


class LedgerRepository(ABC):
    """Append-only store of payment and refund entries"""

    @abstractmethod
    async def append(self, entry: LedgerEntry) -> LedgerEntry:
        """Append entry"""
        pass

    @abstractmethod
    async def find_by_booking(self, booking_id: UUID) -> List[LedgerEntry]:
        """Entries for a booking in creation order"""
        pass


class SettingsRepository(ABC):
    """Hotel settings collaborator"""

    @abstractmethod
    async def get(self) -> HotelSettings:
        pass

    @abstractmethod
    async def update(self, settings: HotelSettings) -> HotelSettings:
        pass


class GuestDirectory(ABC):
    """Identity collaborator resolving guest ids to profiles"""

    @abstractmethod
    async def find_by_id(self, guest_id: UUID) -> Optional[GuestProfile]:
        pass
