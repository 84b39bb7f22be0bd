"""
Alert services for weathersync.

This module pulls the active alerts for every onboarded region into the
store, sweeps alerts past their retention, and answers point lookups.
"""

from datetime import datetime, timezone
from typing import Optional
from weathersync.common.geo import validate_coordinates
from weathersync.core.errors import SyncError, classify_remote_error
from weathersync.core.results import AlertLookup, AlertSyncResult, CleanupResult, SyncFailure
from weathersync.observability import metrics
from weathersync.observability.logging_setup import get_logger
from weathersync.ports.remote import WeatherDataPort
from weathersync.ports.store import ReconciliationStorePort

log = get_logger("weathersync.alerts")

class AlertService:
    """Alert sync, retention cleanup and point lookup."""

    def __init__(self, client: WeatherDataPort, store: ReconciliationStorePort):
        self.client = client
        self.store = store

    async def sync(self) -> AlertSyncResult:
        """
        Inserts every active alert not yet stored.

        Alerts already present by ID are skipped. A failure reading or
        inserting one alert is recorded on the result and the batch goes
        on.

        Returns:
            AlertSyncResult with the regions, write count and failures

        Raises:
            SyncError: the regions or the active alerts could not be read
        """
        try:
            regions = await self.store.select_region_ids()
        except Exception as e:
            raise SyncError("failed to read regions", cause=e) from e

        result = AlertSyncResult(regions=regions)
        if not regions:
            log.debug("No regions onboarded, alert sync skipped")
            return result

        try:
            alerts = await self.client.get_active_alerts(*regions)
        except Exception as e:
            raise classify_remote_error(e, "failed to fetch active alerts") from e

        for alert in alerts:
            try:
                existing = await self.store.select_alert(alert.id)
            except Exception as e:
                self._fail(result, alert.id, "select", e)
                continue

            if existing is not None:
                result.skipped += 1
                metrics.alerts_skipped.inc()
                continue

            try:
                await self.store.insert_alert(alert)
            except Exception as e:
                self._fail(result, alert.id, "insert", e)
                continue

            result.total_writes += 1
            metrics.alerts_written.inc()

        log.info("Alert sync finished", regions=len(regions), active=len(alerts),
                 written=result.total_writes, skipped=result.skipped, failed=len(result.fails))
        return result

    @staticmethod
    def _fail(result: AlertSyncResult, alert_id: str, op: str, error: Exception) -> None:
        metrics.alerts_failed.labels(op=op).inc()
        log.opt(exception=error).warning("Alert sync failed", alert_id=alert_id, op=op)
        result.fail(SyncFailure(id=alert_id, op=op, error=error))

    async def cleanup(self, now: Optional[datetime] = None) -> CleanupResult:
        """
        Deletes ended alerts, then expired alerts without an end time.

        A failure of either sweep is recorded; the other still runs.

        Args:
            now: Cutoff, defaults to the current UTC time
        """
        cutoff = now or datetime.now(timezone.utc)
        result = CleanupResult()

        try:
            result.ended = await self.store.delete_ended_alerts(cutoff)
            metrics.alerts_deleted.labels(reason="ended").inc(result.ended)
        except Exception as e:
            log.opt(exception=e).error("Failed to delete ended alerts")
            result.fails.append(e)

        try:
            result.expired = await self.store.delete_expired_alerts(cutoff)
            metrics.alerts_deleted.labels(reason="expired").inc(result.expired)
        except Exception as e:
            log.opt(exception=e).error("Failed to delete expired alerts")
            result.fails.append(e)

        if result.total:
            log.info("Alerts cleaned up", ended=result.ended, expired=result.expired)
        return result

    async def get(self, lon: float, lat: float) -> AlertLookup:
        """
        Alerts covering a point.

        Raises:
            SyncError: rejected when the coordinates are out of range
        """
        if not validate_coordinates(lon, lat):
            raise SyncError(f"invalid coordinates (lon={lon}, lat={lat})", kind="rejected")

        alerts = await self.store.select_alerts_containing(lon, lat)
        return AlertLookup(lon=lon, lat=lat, alerts=alerts)
