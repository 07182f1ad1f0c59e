import asyncio
from contextlib import asynccontextmanager
from weakref import WeakValueDictionary
from core.logger import logger

class LockManager:
    """Per-session asyncio locks shared by every service instance in the process."""
    _instance = None
    _locks: "WeakValueDictionary[str, asyncio.Lock]" = WeakValueDictionary()

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(LockManager, cls).__new__(cls)
        return cls._instance

    def get_lock(self, key: str) -> asyncio.Lock:
        """Return the lock for a session, creating it on first use."""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, key: str):
        # The strong reference held here keeps the lock alive while in use;
        # idle locks are dropped from the weak registry automatically.
        lock = self.get_lock(key)
        async with lock:
            logger.debug("Session lock acquired", key=key)
            yield

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

lock_manager = LockManager()
