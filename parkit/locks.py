import asyncio
from contextlib import asynccontextmanager


class KeyedLock:
    """One asyncio.Lock per key, created on demand.

    An entry lives only while someone holds or waits on it, so the registry
    stays bounded by the number of in-flight operations.
    """

    def __init__(self, name: str):
        self.name = name
        self._locks = {}
        self._refs = {}

    @asynccontextmanager
    async def hold(self, key):
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._refs[key] = self._refs.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._refs[key] -= 1
            if not self._refs[key]:
                del self._refs[key]
                del self._locks[key]

    def __len__(self):
        return len(self._locks)


plate_locks = KeyedLock("plate")
lot_locks = KeyedLock("lot")
