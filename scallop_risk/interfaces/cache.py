"""Cache protocol: read-through cache injected into fetchers and feeds."""
from typing import Awaitable, Callable, Hashable, Protocol, TypeVar

T = TypeVar("T")


class Cache(Protocol):
    async def get_or_fetch(
        self,
        key: Hashable,
        fetch: Callable[[], Awaitable[T]],
        ttl_seconds: float | None = None,
    ) -> T: ...

    def invalidate(self, key: Hashable | None = None) -> None: ...

    async def close(self) -> None: ...
