import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict
import uuid

from app.utils.errors import LockContentionError
from app.utils.logging import get_logger

logger = get_logger()


class ClassLockRegistry:
    """
    One exclusive lock per class id, created on first use.

    A lock is dropped once nobody holds or waits for it, so the registry only
    ever contains classes with an enrollment in flight. Different classes never
    share a lock.
    """

    def __init__(self):
        self._locks: Dict[uuid.UUID, asyncio.Lock] = {}
        self._users: Dict[uuid.UUID, int] = {}

    def __contains__(self, class_id: uuid.UUID) -> bool:
        return class_id in self._locks

    def is_locked(self, class_id: uuid.UUID) -> bool:
        lock = self._locks.get(class_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, class_id: uuid.UUID, timeout: float) -> AsyncIterator[None]:
        """
        Hold the class lock for the duration of the block.

        Raises:
            LockContentionError: if the lock is not acquired within ``timeout`` seconds
        """
        lock = self._locks.setdefault(class_id, asyncio.Lock())
        self._users[class_id] = self._users.get(class_id, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    f"Enrollment lock for class {class_id} not acquired within {timeout:g}s"
                )
                raise LockContentionError(str(class_id), timeout)

            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[class_id] -= 1
            if self._users[class_id] == 0:
                del self._users[class_id]
                del self._locks[class_id]


# Shared by every executor in this process
class_lock_registry = ClassLockRegistry()
