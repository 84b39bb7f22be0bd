"""
Settings unit tests

This module tests the default settings and the environment overlay.
"""

import pytest
import asyncio
from unittest.mock import AsyncMock

from weathersync.main import build_settings, start_http
from weathersync.settings import Settings


class TestSettings:
    """Settings tests"""

    def test_defaults(self):
        """Defaults match production values"""
        s = Settings()

        assert s.nws.base_url == "https://api.weather.gov"
        assert s.nws.timeout_sec == 30.0
        assert s.pool.worker_count == 10
        assert s.pool.queue_capacity == 100
        assert s.scheduler.interval_sec == 10.0

    def test_environment_overlay(self, monkeypatch):
        """Environment variables override the defaults"""
        monkeypatch.setenv("NWS_USER_AGENT", "tester (me@example.com)")
        monkeypatch.setenv("DB_PATH", "/tmp/ws.db")
        monkeypatch.setenv("POOL_WORKERS", "4")
        monkeypatch.setenv("SYNC_INTERVAL_SEC", "2.5")
        monkeypatch.setenv("SYNC_ENABLED", "false")
        monkeypatch.setenv("LOG_JSON", "1")

        s = build_settings()

        assert s.nws.user_agent == "tester (me@example.com)"
        assert s.storage.db_path == "/tmp/ws.db"
        assert s.pool.worker_count == 4
        assert s.scheduler.interval_sec == 2.5
        assert s.scheduler.enabled is False
        assert s.observability.log_json is True


class TestHttpServer:
    """HTTP server lifecycle tests"""

    @pytest.mark.asyncio
    async def test_server_stops_when_asked(self, sample_settings):
        """The server task finishes once should_exit is set"""
        sample_settings.observability.http_host = "127.0.0.1"
        sample_settings.observability.http_port = 0
        server, task = start_http(sample_settings, AsyncMock(), AsyncMock())

        for _ in range(200):
            if server.started:
                break
            await asyncio.sleep(0.01)
        assert server.started

        server.should_exit = True
        await asyncio.wait_for(task, timeout=5)

        assert task.done()
        assert task.exception() is None
