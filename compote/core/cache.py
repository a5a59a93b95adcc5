"""Per-run cache of provider fetch results."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Sequence

from loguru import logger


def build_cache_key(alias: str, path: Sequence[str]) -> str:
    """Cache key of a reference: ``alias:seg1/seg2``."""
    return alias + ":" + "/".join(path)


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0


class ResolutionCache:
    """Single-flight cache keyed by ``build_cache_key``.

    The first caller for a key runs the loader; callers arriving while it
    runs await the same future. Successful results stay cached for the
    rest of the run. A failed load is dropped so the error is not served
    to later callers from the cache.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, asyncio.Future] = {}
        self.stats = CacheStats()

    def __contains__(self, key: str) -> bool:
        fut = self._entries.get(key)
        return (
            fut is not None and fut.done() and not fut.cancelled() and fut.exception() is None
        )

    def __len__(self) -> int:
        return sum(1 for k in self._entries if k in self)

    async def get_or_load(self, key: str, loader: Callable[[], Awaitable[Any]]) -> Any:
        fut = self._entries.get(key)
        while fut is not None:
            self.stats.hits += 1
            logger.debug("Cache hit {}", key)
            try:
                # shield: a cancelled waiter must not cancel the shared load
                return await asyncio.shield(fut)
            except asyncio.CancelledError:
                if not fut.cancelled():
                    raise
                # the loading branch was cancelled, not us; load it ourselves
                fut = self._entries.get(key)

        self.stats.misses += 1
        fut = asyncio.get_running_loop().create_future()
        self._entries[key] = fut
        try:
            value = await loader()
        except BaseException as e:
            self._entries.pop(key, None)
            if not fut.done():
                if isinstance(e, asyncio.CancelledError):
                    fut.cancel()
                else:
                    fut.set_exception(e)
                    # waiters may not exist; mark the exception as retrieved
                    fut.exception()
            raise
        fut.set_result(value)
        return value
