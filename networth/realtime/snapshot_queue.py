"""
Snapshot queue: feeds store change notifications into the aggregation service.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Awaitable, Callable, Mapping, Optional

from networth.domain.models import AggregateView, PortfolioSnapshot

if TYPE_CHECKING:
    from networth.domain.services.portfolio_aggregator import PortfolioAggregationService

logger = logging.getLogger(__name__)


@dataclass
class SnapshotEvent:
    scope_id: str
    snapshot: PortfolioSnapshot
    target_currency: Optional[str] = None
    ts: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SnapshotQueue:
    def __init__(self, maxsize: int = 100):
        self._queue: asyncio.Queue[SnapshotEvent] = asyncio.Queue(maxsize=maxsize)

    async def publish(self, event: SnapshotEvent) -> None:
        await self._queue.put(event)

    async def get(self) -> SnapshotEvent:
        return await self._queue.get()

    def size(self) -> int:
        return self._queue.qsize()

    async def join(self) -> None:
        await self._queue.join()

    def task_done(self) -> None:
        self._queue.task_done()


SnapshotHandler = Callable[[SnapshotEvent], Awaitable[Optional[AggregateView]]]


def dispatch_handler(services: Mapping[str, "PortfolioAggregationService"]) -> SnapshotHandler:
    """
    Handler that re-aggregates through the scope's PortfolioAggregationService.
    Snapshots for scopes nobody is watching are dropped.
    """

    async def _handle(event: SnapshotEvent) -> Optional[AggregateView]:
        service = services.get(event.scope_id)
        if service is None:
            logger.debug("No subscriber for scope %s; snapshot dropped", event.scope_id)
            return None
        return await service.on_snapshot(event.snapshot, event.target_currency)

    return _handle


class SnapshotWorker:
    def __init__(self, queue: SnapshotQueue, handler: SnapshotHandler):
        self._queue = queue
        self._handler = handler
        self._task: Optional[asyncio.Task] = None
        self._stop = asyncio.Event()
        self.processed = 0

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        self._stop.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                return

    async def _run(self) -> None:
        while not self._stop.is_set():
            event = await self._queue.get()
            try:
                await self._handler(event)
                self.processed += 1
            except Exception:
                # one bad snapshot must not stop the feed
                logger.exception("Snapshot for scope %s failed", event.scope_id)
            finally:
                self._queue.task_done()
