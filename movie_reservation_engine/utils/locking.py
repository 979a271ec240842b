"""
Locks serializing showtime writes per screen.

Three layers cooperate: an in-process asyncio lock per key, a Redis lock
shared between processes when Redis is connected, and (on PostgreSQL) a
transaction-scoped advisory lock taken by the caller inside its transaction.
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable

from ..config import get_settings
from ..redis_client import LockKeyBuilder, distributed_lock, get_redis

logger = logging.getLogger(__name__)


class KeyedAsyncLock:
    """A registry of asyncio locks, one per key, created on demand."""

    def __init__(self):
        # asyncio primitives are bound to a loop, so keep one registry per loop
        self._registries: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, Dict[Hashable, list]]" = (
            weakref.WeakKeyDictionary()
        )

    def _registry(self) -> Dict[Hashable, list]:
        loop = asyncio.get_running_loop()
        registry = self._registries.get(loop)
        if registry is None:
            registry = {}
            self._registries[loop] = registry
        return registry

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        registry = self._registry()
        entry = registry.get(key)
        if entry is None:
            # [lock, number of tasks using it]
            entry = [asyncio.Lock(), 0]
            registry[key] = entry
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0 and registry.get(key) is entry:
                del registry[key]

    def active_keys(self) -> int:
        return len(self._registry())


_screen_locks = KeyedAsyncLock()


@asynccontextmanager
async def screen_schedule_lock(screen_id) -> AsyncIterator[None]:
    """
    Serialize schedule writes on one screen.

    Hold it across the whole check-then-insert transaction, commit included.
    """
    settings = get_settings()
    key = str(screen_id)

    async with _screen_locks.hold(key):
        if settings.enable_distributed_locks and get_redis().is_connected:
            async with distributed_lock(
                LockKeyBuilder.screen_schedule(key),
                timeout=settings.schedule_lock_timeout_seconds,
            ):
                yield
        else:
            yield
