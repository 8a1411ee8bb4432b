"""Best-effort concurrent fan-out shared by the query services."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Hashable, Iterable, TypeVar

from ..errors import InvariantViolation, RequiredObjectNotFound

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")

# Failures that must abort the whole query instead of dropping one branch.
TERMINAL_ERRORS = (RequiredObjectNotFound, InvariantViolation)


async def gather_best_effort(
    what: str,
    tasks: Iterable[tuple[K, Awaitable[T]]],
) -> tuple[dict[K, T], list[K]]:
    """Run ``tasks`` concurrently and split results from failed keys.

    Returns ``(results, failed)``. A branch that raises is logged and its
    key listed in ``failed``; terminal errors are re-raised.
    """
    pairs = list(tasks)
    outcomes: list[Any] = await asyncio.gather(
        *(aw for _, aw in pairs), return_exceptions=True
    )

    results: dict[K, T] = {}
    failed: list[K] = []
    for (key, _), outcome in zip(pairs, outcomes):
        if isinstance(outcome, TERMINAL_ERRORS):
            raise outcome
        if isinstance(outcome, asyncio.CancelledError):
            logger.warning("Fetching %s for %s was cancelled", what, key)
            failed.append(key)
        elif isinstance(outcome, Exception):
            logger.warning("Failed to fetch %s for %s: %s", what, key, outcome)
            failed.append(key)
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            results[key] = outcome
    return results, failed
