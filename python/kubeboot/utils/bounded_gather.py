"""
kubeboot/utils/bounded_gather.py

asyncio.gather with a concurrency cap. Used for fan-out across independent
machines, where one machine failing must not cancel the others.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Iterable, List, TypeVar, Union

T = TypeVar("T")
R = TypeVar("R")


async def bounded_gather(
    items: Iterable[T],
    func: Callable[[T], Awaitable[R]],
    *,
    limit: int,
) -> List[Union[R, BaseException]]:
    """
    Run `func(item)` for every item with at most `limit` in flight.

    Returns:
        One entry per item, in input order: the result, or the exception the
        call raised. Exceptions are returned, never raised, so every item runs.
    """
    if limit < 1:
        raise ValueError("limit must be >= 1")
    semaphore = asyncio.Semaphore(limit)

    async def _guarded(item: T) -> R:
        async with semaphore:
            return await func(item)

    return await asyncio.gather(
        *(_guarded(item) for item in items), return_exceptions=True
    )
