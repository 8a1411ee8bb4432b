"""Read-through query cache.

The cache is an explicit object owned by whoever builds the query facade;
there is no module-level instance. Concurrent requests for the same key
share one in-flight fetch, and results live for a short TTL. Failed
fetches are never cached.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Hashable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class QueryCache:
    """TTL cache with in-flight request de-duplication."""

    def __init__(
        self,
        ttl_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, tuple[float, Any]] = {}
        self._in_flight: dict[Hashable, asyncio.Future[Any]] = {}

    async def get_or_fetch(
        self,
        key: Hashable,
        fetch: Callable[[], Awaitable[T]],
        ttl_seconds: float | None = None,
    ) -> T:
        entry = self._entries.get(key)
        if entry is not None:
            expires_at, value = entry
            if self._clock() < expires_at:
                return value
            del self._entries[key]

        pending = self._in_flight.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._in_flight[key] = future
        try:
            value = await fetch()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so a failure nobody else awaited is not reported.
            future.exception()
            raise
        else:
            ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
            self._entries[key] = (self._clock() + ttl, value)
            future.set_result(value)
            return value
        finally:
            self._in_flight.pop(key, None)

    def invalidate(self, key: Hashable | None = None) -> None:
        """Drop one entry, or every entry when ``key`` is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)

    async def close(self) -> None:
        self._entries.clear()
        for future in self._in_flight.values():
            future.cancel()
        self._in_flight.clear()
        logger.debug("Query cache closed")

    async def __aenter__(self) -> "QueryCache":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


class NullCache:
    """Cache that never stores anything; every call fetches."""

    async def get_or_fetch(
        self,
        key: Hashable,
        fetch: Callable[[], Awaitable[T]],
        ttl_seconds: float | None = None,
    ) -> T:
        return await fetch()

    def invalidate(self, key: Hashable | None = None) -> None:
        return None

    async def close(self) -> None:
        return None

    async def __aenter__(self) -> "NullCache":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
