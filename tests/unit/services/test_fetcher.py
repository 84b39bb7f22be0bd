"""
Fetcher unit tests

This module tests the fan-out/fan-in zone hydration over a real worker
pool with a mocked remote client.
"""

import pytest
import asyncio

from weathersync.common.pool import WorkerPool
from weathersync.core.errors import FetchCancelledError, PoolClosedError, RemoteStatusError
from weathersync.services.fetcher import Fetcher


def _detail(zone_factory, code, name="Fetched"):
    return zone_factory(code, name=name, region="OK")


class TestFetcher:
    """Fetcher tests"""

    @pytest.fixture
    async def pool(self):
        """Running worker pool"""
        p = WorkerPool(4, 2)
        p.start()
        yield p
        await p.close()

    @pytest.mark.asyncio
    async def test_hydrates_every_stub(self, pool, mock_client, zone_factory):
        """Each stub comes back merged with its details"""
        stubs = [zone_factory(f"OKZ{i:03}", with_geometry=False, name="", id=i) for i in range(10)]
        mock_client.get_zone.side_effect = lambda t, c: _detail(zone_factory, c)

        result = await Fetcher(mock_client, pool).fetch_each(stubs)

        assert result.total() == 10
        assert result.fails == {}
        for stub in stubs:
            zone = result.zones[stub.uri]
            assert zone.name == "Fetched"
            assert zone.id == stub.id
            assert len(zone.geometry) == 1

    @pytest.mark.asyncio
    async def test_failures_recorded_per_stub(self, pool, mock_client, zone_factory):
        """A failed fetch lands in fails, the rest still succeed"""
        stubs = [zone_factory(c, with_geometry=False) for c in ("OKZ001", "OKZ002", "OKZ003")]

        async def get_zone(zone_type, code):
            if code == "OKZ002":
                raise RemoteStatusError(500)
            return _detail(zone_factory, code)
        mock_client.get_zone.side_effect = get_zone

        result = await Fetcher(mock_client, pool).fetch_each(stubs)

        assert set(result.zones) == {stubs[0].uri, stubs[2].uri}
        assert isinstance(result.fails[stubs[1].uri], RemoteStatusError)

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, pool, mock_client, zone_factory):
        """With the signal already set no request is made"""
        stubs = [zone_factory(f"OKZ{i:03}", with_geometry=False) for i in range(5)]
        cancel = asyncio.Event()
        cancel.set()

        result = await Fetcher(mock_client, pool).fetch_each(stubs, cancel)

        assert result.total() == 5
        assert all(isinstance(e, FetchCancelledError) for e in result.fails.values())
        mock_client.get_zone.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_mid_run_still_returns_n(self, mock_client, zone_factory):
        """Cancelling during the run still yields one entry per stub"""
        stubs = [zone_factory(f"OKZ{i:03}", with_geometry=False) for i in range(8)]
        cancel = asyncio.Event()

        async def get_zone(zone_type, code):
            cancel.set()
            await asyncio.sleep(0.01)
            return _detail(zone_factory, code)
        mock_client.get_zone.side_effect = get_zone

        async with WorkerPool(1, 1) as pool:
            result = await Fetcher(mock_client, pool).fetch_each(stubs, cancel)

        assert result.total() == 8
        assert not set(result.zones) & set(result.fails)
        # the in-flight request finished and was kept
        assert len(result.zones) >= 1
        assert len(result.fails) >= 1

    @pytest.mark.asyncio
    async def test_empty_input(self, pool, mock_client):
        """No stubs, no requests"""
        result = await Fetcher(mock_client, pool).fetch_each([])

        assert result.total() == 0

    @pytest.mark.asyncio
    async def test_closed_pool(self, mock_client, zone_factory):
        """Stubs that cannot be submitted are recorded as failures"""
        pool = WorkerPool(1, 1)
        pool.start()
        await pool.close()
        stubs = [zone_factory("OKZ001", with_geometry=False)]

        result = await Fetcher(mock_client, pool).fetch_each(stubs)

        assert isinstance(result.fails[stubs[0].uri], PoolClosedError)

    @pytest.mark.asyncio
    async def test_fetch_one(self, mock_client, zone_factory):
        """fetch_one merges a single stub"""
        stub = zone_factory("OKZ001", with_geometry=False, name="")
        mock_client.get_zone.return_value = _detail(zone_factory, "OKZ001")

        zone = await Fetcher(mock_client, WorkerPool(1, 1)).fetch_one(stub)

        mock_client.get_zone.assert_awaited_once_with("public", "OKZ001")
        assert zone.name == "Fetched"
        assert zone.uri == stub.uri
