"""
Port interface unit tests

This module checks that the adapters implement every operation of the
ports the services depend on.
"""

import inspect
import pytest

from weathersync.adapters.nws.client import NWSClient
from weathersync.adapters.storage.sqlite_store import SQLiteReconciliationStore
from weathersync.ports.remote import WeatherDataPort
from weathersync.ports.store import ReconciliationStorePort


def _operations(protocol):
    return sorted(
        name for name, member in vars(protocol).items()
        if not name.startswith("_") and inspect.iscoroutinefunction(member)
    )


class TestPorts:
    """Adapter/port conformance"""

    @pytest.mark.parametrize("protocol,adapter", [
        (WeatherDataPort, NWSClient),
        (ReconciliationStorePort, SQLiteReconciliationStore),
    ])
    def test_adapter_implements_port(self, protocol, adapter):
        """Every port operation exists on the adapter as a coroutine"""
        operations = _operations(protocol)

        assert operations
        for name in operations:
            assert inspect.iscoroutinefunction(getattr(adapter, name)), name

    def test_store_port_operations(self):
        """The store port covers zones, alerts and associations"""
        operations = _operations(ReconciliationStorePort)

        for name in ("insert_zone", "update_zone", "delete_zone", "insert_alert",
                     "delete_ended_alerts", "delete_expired_alerts", "select_lonely_alerts"):
            assert name in operations
