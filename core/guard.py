import asyncio
import contextlib
from typing import AsyncIterator


class SingleFlight:
    """At most one AI round-trip at a time; callers that find it taken are turned away."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @contextlib.asynccontextmanager
    async def try_acquire(self) -> AsyncIterator[bool]:
        if self._lock.locked():
            yield False
            return
        await self._lock.acquire()
        try:
            yield True
        finally:
            self._lock.release()
