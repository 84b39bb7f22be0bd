"""
Test configuration and fixtures

This module provides the pytest configuration and shared fixtures.
"""

import pytest
import asyncio
import tempfile
import os
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock
from weathersync.settings import Settings
from weathersync.adapters.storage.sqlite_store import SQLiteReconciliationStore
from weathersync.core.models import Alert, Polygon, Region, Zone


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

# 1x1 degree square around (-97.5, 35.5)
SQUARE = [(-98.0, 35.0), (-97.0, 35.0), (-97.0, 36.0), (-98.0, 36.0), (-98.0, 35.0)]
INNER_SQUARE = [(-97.6, 35.4), (-97.4, 35.4), (-97.4, 35.6), (-97.6, 35.6), (-97.6, 35.4)]


def make_zone(code: str, eff_hour: int = 0, region: str = "OK", with_geometry: bool = True, **kw) -> Zone:
    """Zone with a URI built from its code"""
    fields = dict(
        uri=f"https://api.weather.gov/zones/forecast/{code}",
        code=code,
        type="public",
        name=f"Zone {code}",
        effective_date=NOW + timedelta(hours=eff_hour),
        region=region,
        geometry=[Polygon(perimeter=SQUARE)] if with_geometry else [],
    )
    fields.update(kw)
    return Zone(**fields)


def make_alert(alert_id: str, **kw) -> Alert:
    """Active alert expiring one hour after NOW"""
    fields = dict(
        id=alert_id,
        area_desc="Test County",
        expires=NOW + timedelta(hours=1),
        message_type="Alert",
        category="Met",
        severity="Severe",
        certainty="Likely",
        urgency="Immediate",
        event="Tornado Warning",
        description="Take cover",
        response="Shelter",
    )
    fields.update(kw)
    return Alert(**fields)


@pytest.fixture
def temp_db_path():
    """Temporary database file path"""
    with tempfile.NamedTemporaryFile(suffix='.db', delete=False) as f:
        temp_path = f.name
    yield temp_path
    # clean up the database and its WAL files
    for suffix in ("", "-wal", "-shm"):
        if os.path.exists(temp_path + suffix):
            os.unlink(temp_path + suffix)


@pytest.fixture
async def store(temp_db_path):
    """Initialised reconciliation store with region OK"""
    s = SQLiteReconciliationStore(temp_db_path)
    await s.init()
    await s.insert_region(Region(id="OK", total_zones=0))
    return s


@pytest.fixture
def now():
    """Fixed reference time"""
    return NOW


@pytest.fixture
def square():
    """1x1 degree ring around (-97.5, 35.5)"""
    return list(SQUARE)


@pytest.fixture
def inner_square():
    """Ring around (-97.5, 35.5) inside SQUARE"""
    return list(INNER_SQUARE)


@pytest.fixture
def zone_factory():
    """Builds zones, see make_zone"""
    return make_zone


@pytest.fixture
def alert_factory():
    """Builds alerts, see make_alert"""
    return make_alert


@pytest.fixture
def sample_settings():
    """Settings for tests"""
    settings = Settings()
    settings.observability.service_name = "test-service"
    settings.observability.build_version = "1.0.0"
    settings.observability.log_level = "INFO"
    settings.observability.http_port = 8080
    return settings


@pytest.fixture
def mock_client():
    """Remote weather data client"""
    client = AsyncMock()
    client.get_active_alerts.return_value = []
    client.get_zone_collection.return_value = []
    return client


@pytest.fixture
def mock_store():
    """Reconciliation store"""
    return AsyncMock()


# pytest configuration
def pytest_configure(config):
    """pytest configuration"""
    config.addinivalue_line(
        "markers", "slow: slow test marker"
    )
    config.addinivalue_line(
        "markers", "integration: integration test marker"
    )


def pytest_collection_modifyitems(config, items):
    """Adds markers to collected tests"""
    for item in items:
        # asyncio marker for coroutine tests
        if asyncio.iscoroutinefunction(item.function):
            item.add_marker(pytest.mark.asyncio)

        # slow test marker
        if "performance" in item.name or "stress" in item.name:
            item.add_marker(pytest.mark.slow)

        # integration test marker
        if "integration" in item.name:
            item.add_marker(pytest.mark.integration)
