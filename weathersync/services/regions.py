"""
Region services for weathersync.

This module onboards a region's full zone catalog and later reconciles
the stored catalog against the remote one, applying only the delta.
"""

import asyncio
from typing import Awaitable, Callable, Dict, List, Optional
from weathersync.core.delta import compute_delta
from weathersync.core.errors import SyncError, classify_remote_error
from weathersync.core.models import Region, Zone
from weathersync.core.results import (
    FetchResult, OnboardResult, RegionSyncResult, ZoneFailure, ZoneWrite,
)
from weathersync.observability import metrics
from weathersync.observability.logging_setup import get_logger, with_context
from weathersync.ports.remote import WeatherDataPort
from weathersync.ports.store import ReconciliationStorePort
from .fetcher import Fetcher

log = get_logger("weathersync.regions")

class RegionService:
    """Region onboarding and zone catalog sync."""

    def __init__(self, client: WeatherDataPort, store: ReconciliationStorePort, fetcher: Fetcher):
        self.client = client
        self.store = store
        self.fetcher = fetcher
        # serialises onboard/sync of the same region
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock(self, region_id: str) -> asyncio.Lock:
        return self._locks.setdefault(region_id, asyncio.Lock())

    @staticmethod
    def _normalize_id(region_id: str) -> str:
        region_id = (region_id or "").strip().upper()
        if not region_id:
            raise SyncError("region id is required", kind="rejected")
        return region_id

    async def _read_region(self, region_id: str) -> Optional[Region]:
        try:
            return await self.store.select_region(region_id)
        except Exception as e:
            raise SyncError(f"failed to read region {region_id}", cause=e) from e

    async def _list_catalog(self, region_id: str) -> List[Zone]:
        try:
            stubs = await self.client.get_zone_collection(region_id)
        except Exception as e:
            raise classify_remote_error(e, f"failed to list zones for region {region_id}") from e
        return [s.model_copy(update={"region": region_id}) for s in stubs]

    async def _apply(self, op: str, zone: Zone, write: Callable[[Zone], Awaitable[object]],
                     writes: List[ZoneWrite], fails: List[ZoneFailure]) -> None:
        try:
            await write(zone)
        except Exception as e:
            log.opt(exception=e).warning("Zone write failed", op=op, uri=zone.uri)
            fails.append(ZoneFailure(zone=ZoneWrite.of(zone), op=op, error=e))
            return
        metrics.zone_operations.labels(op=op).inc()
        writes.append(ZoneWrite.of(zone))

    @staticmethod
    def _hydrated(zone: Zone, fetched: FetchResult, region_id: str,
                  fails: List[ZoneFailure]) -> Optional[Zone]:
        hydrated = fetched.zones.get(zone.uri)
        if hydrated is None:
            error = fetched.fails.get(zone.uri) or LookupError(f"zone {zone.uri} was not fetched")
            fails.append(ZoneFailure(zone=ZoneWrite.of(zone), op="fetch", error=error))
            return None
        return hydrated.model_copy(update={"region": region_id})

    async def onboard(self, region_id: str, cancel: Optional[asyncio.Event] = None) -> OnboardResult:
        """
        Persists the full zone catalog of a new region.

        Args:
            region_id: Region (state/area) code, case-insensitive
            cancel: Optional signal stopping zone fetches not yet started

        Returns:
            OnboardResult with the zones written and per-zone failures

        Raises:
            SyncError: conflict when the region exists, rejected/unavailable
                when the remote catalog cannot be listed
        """
        region_id = self._normalize_id(region_id)
        async with self._lock(region_id):
            with with_context(region=region_id), metrics.region_sync_seconds.labels(op="onboard").time():
                return await self._onboard(region_id, cancel)

    async def _onboard(self, region_id: str, cancel: Optional[asyncio.Event]) -> OnboardResult:
        if await self._read_region(region_id) is not None:
            raise SyncError(f"region {region_id} is already onboarded", kind="conflict")

        stubs = await self._list_catalog(region_id)

        try:
            region = await self.store.insert_region(Region(id=region_id, total_zones=len(stubs)))
        except Exception as e:
            raise SyncError(f"failed to create region {region_id}", cause=e) from e

        log.info("Onboarding region", region=region_id, zones=len(stubs))
        fetched = await self.fetcher.fetch_each(stubs, cancel)

        result = OnboardResult(region=region_id, created_at=region.created_at)
        for stub in stubs:
            zone = self._hydrated(stub, fetched, region_id, result.fails)
            if zone is not None:
                await self._apply("insert", zone, self.store.insert_zone, result.writes, result.fails)

        log.info("Region onboarded", region=region_id,
                 written=len(result.writes), failed=len(result.fails))
        return result

    async def sync(self, region_id: str, cancel: Optional[asyncio.Event] = None) -> RegionSyncResult:
        """
        Reconciles a stored region against the remote zone catalog.

        Zones missing from the store are inserted, zones with a strictly
        newer effective date are rewritten, and stored zones gone from
        the catalog are deleted. Each zone is applied on its own.

        Args:
            region_id: Region code, case-insensitive
            cancel: Optional signal stopping zone fetches not yet started

        Returns:
            RegionSyncResult with the applied operations and failures

        Raises:
            SyncError: not_found for an unknown region, rejected/unavailable
                when the remote catalog cannot be listed
        """
        region_id = self._normalize_id(region_id)
        async with self._lock(region_id):
            with with_context(region=region_id), metrics.region_sync_seconds.labels(op="sync").time():
                return await self._sync(region_id, cancel)

    async def _sync(self, region_id: str, cancel: Optional[asyncio.Event]) -> RegionSyncResult:
        region = await self._read_region(region_id)
        if region is None:
            raise SyncError(f"region {region_id} is not onboarded", kind="not_found")

        fresh = await self._list_catalog(region_id)

        try:
            stored = await self.store.select_zones_where_region(region_id)
        except Exception as e:
            raise SyncError(f"failed to read zones of region {region_id}", cause=e) from e

        delta = compute_delta(fresh, stored)
        log.info("Region delta computed", region=region_id, insert=len(delta.insert),
                 update=len(delta.update), delete=len(delta.delete))

        result = RegionSyncResult(region=region_id)
        fetched = await self.fetcher.fetch_each(delta.insert_update(), cancel)

        for stub in delta.insert:
            zone = self._hydrated(stub, fetched, region_id, result.fails)
            if zone is not None:
                await self._apply("insert", zone, self.store.insert_zone, result.inserted, result.fails)

        for stub in delta.update:
            zone = self._hydrated(stub, fetched, region_id, result.fails)
            if zone is not None:
                await self._apply("update", zone, self.store.update_zone, result.updated, result.fails)

        for zone in delta.delete:
            await self._apply("delete", zone, lambda z: self.store.delete_zone(z.id),
                              result.deleted, result.fails)

        try:
            await self.store.update_region(region.model_copy(update={"total_zones": len(fresh)}))
        except Exception as e:
            raise SyncError(f"failed to update region {region_id}", cause=e) from e

        log.info("Region synced", region=region_id, inserted=len(result.inserted),
                 updated=len(result.updated), deleted=len(result.deleted), failed=len(result.fails))
        return result

    async def zone(self, uri: str) -> Zone:
        """Reads a stored zone with its geometry."""
        try:
            zone = await self.store.select_zone(uri)
        except Exception as e:
            raise SyncError(f"failed to read zone {uri}", cause=e) from e
        if zone is None:
            raise SyncError(f"zone {uri} is not stored", kind="not_found")
        return zone
