"""
Content cache - completed content by fingerprint, plus in-flight productions.

Two maps with different rules:
- Completed entries: immutable GeneratedContent, evicted LRU by capacity and
  optionally by age (TTL).
- In-flight productions: at most one producer task per fingerprint. Every
  caller for that fingerprint awaits the same task through ``asyncio.shield``
  so a cancelled caller detaches without killing the shared work. The
  producer is cancelled only when its last waiter leaves. In-flight entries
  are never evicted.

The decision "join or start" is made synchronously in the event loop, with no
await in between, so no lock is needed and none is held across the producer.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from chuk_mcp_musicgen.errors import CacheProductionFailed
from chuk_mcp_musicgen.models.content import GeneratedContent

logger = logging.getLogger(__name__)

Producer = Callable[[], Awaitable[GeneratedContent]]


@dataclass
class CacheEntry:
    content: GeneratedContent
    stored_at: float
    hits: int = 0


@dataclass
class _Production:
    task: asyncio.Task[GeneratedContent]
    waiters: int = 0
    started_at: float = field(default_factory=time.monotonic)


class ContentCache:
    """LRU/TTL cache of generated content with single-flight production."""

    def __init__(
        self,
        capacity: int = 256,
        ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"Capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self.ttl = ttl
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._ids: dict[str, str] = {}  # content id -> fingerprint
        self._in_flight: dict[str, _Production] = {}
        self._closed = False

        self.hits = 0
        self.misses = 0
        self.joins = 0
        self.evictions = 0
        self.failures = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._entries

    @property
    def closed(self) -> bool:
        return self._closed

    def in_flight(self, fingerprint: str) -> bool:
        return fingerprint in self._in_flight

    def _expired(self, entry: CacheEntry) -> bool:
        return self.ttl is not None and self._clock() - entry.stored_at > self.ttl

    def _drop(self, fingerprint: str) -> None:
        entry = self._entries.pop(fingerprint)
        self._ids.pop(entry.content.id, None)

    def get(self, fingerprint: str) -> GeneratedContent | None:
        """Completed content for a fingerprint, or None (expired entries are dropped)."""
        entry = self._entries.get(fingerprint)
        if entry is None:
            return None
        if self._expired(entry):
            logger.debug(f"Cache entry expired for {fingerprint[:12]}")
            self._drop(fingerprint)
            return None
        self._entries.move_to_end(fingerprint)
        entry.hits += 1
        self.hits += 1
        return entry.content

    def get_by_id(self, content_id: str) -> GeneratedContent | None:
        fingerprint = self._ids.get(content_id)
        return self.get(fingerprint) if fingerprint is not None else None

    def put(self, content: GeneratedContent) -> None:
        """Store completed content, evicting the least recently used entries."""
        if content.fingerprint in self._entries:
            self._drop(content.fingerprint)
        self._entries[content.fingerprint] = CacheEntry(content, self._clock())
        self._ids[content.id] = content.fingerprint
        while len(self._entries) > self.capacity:
            oldest, entry = self._entries.popitem(last=False)
            self._ids.pop(entry.content.id, None)
            self.evictions += 1
            logger.debug(f"Evicted cache entry {oldest[:12]} (hits: {entry.hits})")

    def purge_expired(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        expired = [fp for fp, entry in self._entries.items() if self._expired(entry)]
        for fingerprint in expired:
            self._drop(fingerprint)
        return len(expired)

    async def get_or_create(self, fingerprint: str, producer: Producer) -> GeneratedContent:
        """
        Return cached content, or join or start the single production for it.

        Raises:
            CacheProductionFailed: The shared producer failed; every waiter
                gets the same cause
            RuntimeError: The cache has been closed
        """
        if self._closed:
            raise RuntimeError("Content cache is closed")

        cached = self.get(fingerprint)
        if cached is not None:
            logger.debug(f"Cache hit for {fingerprint[:12]}")
            return cached

        production = self._in_flight.get(fingerprint)
        if production is None:
            self.misses += 1
            logger.debug(f"Cache miss for {fingerprint[:12]}; starting production")
            task = asyncio.ensure_future(producer())
            production = _Production(task)
            self._in_flight[fingerprint] = production
            task.add_done_callback(lambda t: self._on_done(fingerprint, production, t))
        else:
            self.joins += 1
            logger.debug(f"Joining in-flight production for {fingerprint[:12]}")

        production.waiters += 1
        try:
            return await asyncio.shield(production.task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if production.task.cancelled() and current is not None and not current.cancelling():
                # The producer was cancelled (close() or a detached last waiter), not us
                raise CacheProductionFailed(
                    fingerprint, asyncio.CancelledError("production cancelled")
                ) from None
            if production.waiters == 1 and not production.task.done():
                logger.debug(f"Last waiter left; cancelling production for {fingerprint[:12]}")
                production.task.cancel()
            raise
        except Exception as e:
            raise CacheProductionFailed(fingerprint, e) from e
        finally:
            production.waiters -= 1

    def _on_done(
        self, fingerprint: str, production: _Production, task: asyncio.Task[GeneratedContent]
    ) -> None:
        if self._in_flight.get(fingerprint) is production:
            del self._in_flight[fingerprint]
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.failures += 1
            logger.debug(f"Production failed for {fingerprint[:12]}: {error}")
            return
        self.put(task.result())

    async def close(self) -> None:
        """Cancel in-flight productions and refuse new ones."""
        self._closed = True
        tasks = [p.task for p in self._in_flight.values()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._in_flight.clear()
        logger.info(f"Content cache closed ({len(tasks)} productions cancelled)")

    def stats(self) -> dict[str, Any]:
        return {
            "size": len(self._entries),
            "capacity": self.capacity,
            "ttl_seconds": self.ttl,
            "in_flight": len(self._in_flight),
            "hits": self.hits,
            "misses": self.misses,
            "joins": self.joins,
            "evictions": self.evictions,
            "failures": self.failures,
        }
