"""
HTTP endpoints for weathersync.

This module implements health, readiness, metrics, and info endpoints
for monitoring, plus the thin region and alert endpoints over the
services.
"""

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import Response, JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
import time
from typing import Optional
from weathersync.settings import Settings
from weathersync.core.errors import SyncError
from weathersync.observability import metrics as m
from weathersync.observability.logging_setup import get_logger
from weathersync.services.alerts import AlertService
from weathersync.services.regions import RegionService

log = get_logger("weathersync.http")

def create_app(settings: Settings,
               regions: Optional[RegionService] = None,
               alerts: Optional[AlertService] = None) -> FastAPI:
    """Creates the FastAPI application. Service endpoints are added only
    for the services supplied."""
    app = FastAPI(
        title=settings.observability.service_name,
        version=settings.observability.build_version,
        description="Weather zone and alert reconciliation service"
    )

    start_time = time.time()

    @app.exception_handler(SyncError)
    async def sync_error_handler(request: Request, exc: SyncError):
        status, message = exc.response()
        if status >= 500:
            log.opt(exception=exc).error("Request failed", path=request.url.path, kind=exc.kind)
        else:
            log.info("Request rejected", path=request.url.path, kind=exc.kind, error=str(exc))
        return JSONResponse({"error_msg": message}, status_code=status)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        log.opt(exception=exc).error("Unexpected error", path=request.url.path)
        return JSONResponse({"error_msg": "Something went wrong"}, status_code=500)

    @app.get("/health")
    async def health():
        """Health check endpoint"""
        return JSONResponse({
            "status": "ok",
            "service": settings.observability.service_name,
            "timestamp": time.time()
        })

    @app.get("/ready")
    async def ready():
        """Readiness check endpoint"""
        return JSONResponse({
            "status": "ready",
            "service": settings.observability.service_name,
            "timestamp": time.time()
        })

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint"""
        if not settings.observability.metrics_enabled:
            raise HTTPException(status_code=503, detail="Metrics disabled")

        m.uptime_seconds.set(time.time() - start_time)
        return Response(
            generate_latest(),
            media_type=CONTENT_TYPE_LATEST
        )

    @app.get("/info")
    async def info():
        """Service info endpoint"""
        uptime = time.time() - start_time
        return JSONResponse({
            "service": settings.observability.service_name,
            "version": settings.observability.build_version,
            "build_date": settings.observability.build_date,
            "uptime_seconds": int(uptime),
            "metrics_enabled": settings.observability.metrics_enabled,
            "log_level": settings.observability.log_level,
            "sync_interval_sec": settings.scheduler.interval_sec
        })

    endpoints = {
        "health": "/health",
        "ready": "/ready",
        "metrics": "/metrics",
        "info": "/info",
    }

    if alerts is not None:
        endpoints["alerts"] = "/alerts?lon=&lat="

        @app.get("/alerts")
        async def get_alerts(lon: float = Query(...), lat: float = Query(...)):
            lookup = await alerts.get(lon, lat)
            return {
                "lon": lookup.lon,
                "lat": lookup.lat,
                "alerts": [a.model_dump(mode="json") for a in lookup.alerts],
            }

    if regions is not None:
        endpoints["onboard_region"] = "/regions/{region_id}"
        endpoints["sync_region"] = "/regions/{region_id}/sync"
        endpoints["zone"] = "/zones?uri="

        @app.post("/regions/{region_id}", status_code=201)
        async def onboard_region(region_id: str):
            result = await regions.onboard(region_id)
            return {
                "region": result.region,
                "created_at": result.created_at.isoformat() if result.created_at else None,
                "total_zones": result.total_zones(),
                "written": len(result.writes),
                "fails": [
                    {"uri": f.zone.uri, "op": f.op, "error": str(f.error)} for f in result.fails
                ],
            }

        @app.post("/regions/{region_id}/sync")
        async def sync_region(region_id: str):
            result = await regions.sync(region_id)
            return {
                "region": result.region,
                "inserted": [w.uri for w in result.inserted],
                "updated": [w.uri for w in result.updated],
                "deleted": [w.uri for w in result.deleted],
                "fails": [
                    {"uri": f.zone.uri, "op": f.op, "error": str(f.error)} for f in result.fails
                ],
            }

        @app.get("/zones")
        async def get_zone(uri: str = Query(...)):
            zone = await regions.zone(uri)
            return zone.model_dump(mode="json")

    @app.get("/")
    async def root():
        """Root endpoint"""
        return JSONResponse({
            "service": settings.observability.service_name,
            "version": settings.observability.build_version,
            "endpoints": endpoints
        })

    return app
