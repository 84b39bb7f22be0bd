"""
Zone fetcher for weathersync.

This module fans zone detail requests out over the worker pool and
collects exactly one outcome, a hydrated zone or an error, per stub.
"""

import asyncio
from typing import Optional, Sequence, Tuple
from weathersync.common.pool import WorkerPool
from weathersync.core.errors import FetchCancelledError, PoolClosedError
from weathersync.core.models import Zone
from weathersync.core.results import FetchResult
from weathersync.observability import metrics
from weathersync.observability.logging_setup import get_logger
from weathersync.ports.remote import WeatherDataPort

log = get_logger("weathersync.fetcher")

Outcome = Tuple[str, Optional[Zone], Optional[BaseException]]

class Fetcher:
    """Concurrent zone hydration through a WorkerPool."""

    def __init__(self, client: WeatherDataPort, pool: WorkerPool):
        self.client = client
        self.pool = pool

    async def fetch_one(self, stub: Zone) -> Zone:
        """Fetches one zone's details and merges them onto the stub."""
        detail = await self.client.get_zone(stub.type, stub.code)
        return stub.with_details(detail)

    def _task(self, stub: Zone, cancel: Optional[asyncio.Event],
              outcomes: "asyncio.Queue[Outcome]"):
        async def run() -> None:
            try:
                if cancel is not None and cancel.is_set():
                    raise FetchCancelledError(f"fetch cancelled (uri={stub.uri})")
                zone = await self.fetch_one(stub)
            except Exception as e:
                outcomes.put_nowait((stub.uri, None, e))
            else:
                outcomes.put_nowait((stub.uri, zone, None))
        return run

    async def fetch_each(self, stubs: Sequence[Zone],
                         cancel: Optional[asyncio.Event] = None) -> FetchResult:
        """
        Hydrates every stub concurrently.

        Tasks that start after ``cancel`` is set fail with
        FetchCancelledError without a network call; requests already in
        flight run to completion and are recorded.

        Args:
            stubs: Zones with at least uri, code and type
            cancel: Optional cancellation signal

        Returns:
            FetchResult with every stub URI in exactly one of zones/fails
        """
        result = FetchResult()
        # unbounded so that a worker never waits on the collector
        outcomes: asyncio.Queue[Outcome] = asyncio.Queue()

        submitted = 0
        for stub in stubs:
            try:
                await self.pool.submit(self._task(stub, cancel, outcomes))
            except PoolClosedError as e:
                result.fails[stub.uri] = e
                continue
            submitted += 1

        for _ in range(submitted):
            uri, zone, error = await outcomes.get()
            if error is not None:
                metrics.zone_fetch_failures.inc()
                log.warning("Zone fetch failed", uri=uri, error=str(error))
                result.fails[uri] = error
            else:
                result.zones[uri] = zone

        log.debug("Zone fetch finished", requested=len(stubs),
                  fetched=len(result.zones), failed=len(result.fails))
        return result
