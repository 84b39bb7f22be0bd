# weathersync/main.py
import os, asyncio, signal
from typing import Tuple
import uvicorn
from weathersync.settings import Settings
from weathersync.adapters.nws import NWSClient
from weathersync.adapters.storage import SQLiteReconciliationStore
from weathersync.common.pool import WorkerPool
from weathersync.observability.health import create_app
from weathersync.observability.logging_setup import setup_logging, get_logger
from weathersync.orchestrators.scheduler import SyncScheduler
from weathersync.services import AlertService, Fetcher, RegionService

def _b(name, default=False): return os.getenv(name, str(default)).lower() in ("1","true","yes","on")

def build_settings() -> Settings:
    s = Settings()

    # NWS
    s.nws.base_url = os.getenv("NWS_BASE_URL", s.nws.base_url)
    s.nws.user_agent = os.getenv("NWS_USER_AGENT", s.nws.user_agent)
    s.nws.timeout_sec = float(os.getenv("NWS_TIMEOUT_SEC", s.nws.timeout_sec))
    s.nws.max_retries = int(os.getenv("NWS_MAX_RETRIES", s.nws.max_retries))

    # storage
    s.storage.db_path = os.getenv("DB_PATH", s.storage.db_path)

    # worker pool
    s.pool.worker_count = int(os.getenv("POOL_WORKERS", s.pool.worker_count))
    s.pool.queue_capacity = int(os.getenv("POOL_QUEUE_CAPACITY", s.pool.queue_capacity))

    # scheduler
    s.scheduler.enabled = _b("SYNC_ENABLED", s.scheduler.enabled)
    s.scheduler.interval_sec = float(os.getenv("SYNC_INTERVAL_SEC", s.scheduler.interval_sec))

    # observability
    s.observability.metrics_enabled = _b("METRICS_ENABLED", s.observability.metrics_enabled)
    s.observability.http_host = os.getenv("HTTP_HOST", s.observability.http_host)
    s.observability.http_port = int(os.getenv("HTTP_PORT", s.observability.http_port))
    s.observability.log_level = os.getenv("LOG_LEVEL", s.observability.log_level)
    s.observability.log_json = _b("LOG_JSON", s.observability.log_json)
    s.observability.build_version = os.getenv("BUILD_VERSION", s.observability.build_version)

    return s

def start_http(settings: Settings, regions: RegionService,
               alerts: AlertService) -> Tuple[uvicorn.Server, asyncio.Task]:
    app = create_app(settings, regions=regions, alerts=alerts)
    server = uvicorn.Server(
        uvicorn.Config(app, host=settings.observability.http_host,
                       port=settings.observability.http_port, log_level="info")
    )
    return server, asyncio.create_task(server.serve())

async def main():
    s = build_settings()
    setup_logging(s.observability.log_level, serialize=s.observability.log_json)
    log = get_logger("weathersync.main")
    log.info("Settings loaded", db_path=s.storage.db_path, workers=s.pool.worker_count,
             interval_sec=s.scheduler.interval_sec)

    store = SQLiteReconciliationStore(s.storage.db_path); await store.init()

    async with NWSClient(
        base_url=s.nws.base_url,
        user_agent=s.nws.user_agent,
        timeout=s.nws.timeout_sec,
        max_retries=s.nws.max_retries,
    ) as client:
        pool = WorkerPool(s.pool.worker_count, s.pool.queue_capacity)
        pool.start()

        fetcher = Fetcher(client, pool)
        regions = RegionService(client, store, fetcher)
        alerts = AlertService(client, store)

        scheduler = SyncScheduler(alerts, interval_sec=s.scheduler.interval_sec)
        if s.scheduler.enabled:
            scheduler.start()
        else:
            log.warning("Scheduler disabled, alerts sync only on demand")

        server, http_task = start_http(s, regions, alerts)
        log.info("HTTP server started", port=s.observability.http_port)

        stop = asyncio.Future()
        try:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                try: loop.add_signal_handler(sig, lambda: (not stop.done()) and stop.set_result(True))
                except NotImplementedError: pass
        except RuntimeError: pass

        await asyncio.wait([stop, http_task], return_when=asyncio.FIRST_COMPLETED)
        log.info("Shutting down")

        # HTTP stops first, handlers may still be submitting to the pool
        server.should_exit = True
        try:
            await http_task
        except Exception as e:
            log.opt(exception=e).error("HTTP server stopped with an error")
        await scheduler.stop()
        await pool.close()

def run():
    asyncio.run(main())

if __name__ == "__main__":
    run()
