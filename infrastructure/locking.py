"""Per-room mutual exclusion for check-then-act sequences."""
import asyncio
from contextlib import asynccontextmanager
from typing import Dict
from uuid import UUID


class RoomLockRegistry:
    """Hands out one asyncio.Lock per room id"""

    def __init__(self):
        self._locks: Dict[UUID, asyncio.Lock] = {}

    def _lock_for(self, room_id: UUID) -> asyncio.Lock:
        # No await between lookup and insert, so this is atomic on the loop
        lock = self._locks.get(room_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[room_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, room_id: UUID):
        async with self._lock_for(room_id):
            yield

    def is_held(self, room_id: UUID) -> bool:
        lock = self._locks.get(room_id)
        return lock is not None and lock.locked()
