"""In-memory snapshot cache with TTL refresh and a single-flight guard."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from monitor.aggregate import Snapshot


logger = logging.getLogger(__name__)

SnapshotLoader = Callable[[], Awaitable[Snapshot]]


class SnapshotCache:
    """Owns the current ``Snapshot`` and decides when to rebuild it.

    At most one load runs at a time; callers arriving while it is in flight
    await the same task. The snapshot is swapped in with a single assignment.
    """

    def __init__(
        self,
        loader: SnapshotLoader,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._loader = loader
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._snapshot: Optional[Snapshot] = None
        self._loaded_at: Optional[float] = None
        self._inflight: Optional[asyncio.Task] = None
        self.refresh_count = 0

    @property
    def current(self) -> Optional[Snapshot]:
        return self._snapshot

    @property
    def refreshing(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def is_stale(self) -> bool:
        if self._snapshot is None or self._loaded_at is None:
            return True
        return (self._clock() - self._loaded_at) >= self.ttl_seconds

    async def get(self, force: bool = False) -> Snapshot:
        snapshot = self._snapshot
        if not force and snapshot is not None and not self.is_stale():
            return snapshot
        return await self.refresh()

    async def refresh(self) -> Snapshot:
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._run())
        return await asyncio.shield(self._inflight)

    async def _run(self) -> Snapshot:
        started = self._clock()
        try:
            snapshot = await self._loader()
        except Exception:
            if self._snapshot is None:
                raise
            logger.exception("Snapshot refresh failed; serving previous snapshot")
            return self._snapshot
        self._snapshot, self._loaded_at = snapshot, self._clock()
        self.refresh_count += 1
        logger.info("Snapshot refreshed in %.2fs (refresh #%d)", self._loaded_at - started, self.refresh_count)
        return snapshot

    async def start(self) -> None:
        """Warm the cache; a failed first load leaves it empty."""
        try:
            await self.refresh()
        except Exception:
            logger.exception("Initial snapshot load failed")

    async def close(self) -> None:
        inflight, self._inflight = self._inflight, None
        if inflight is not None and not inflight.done():
            try:
                await inflight
            except Exception:
                logger.exception("In-flight refresh failed during shutdown")
        self._snapshot = None
        self._loaded_at = None
