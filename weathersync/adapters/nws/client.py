"""
NWS API client for weathersync.

This module provides an aiohttp client for the National Weather Service
API: zone catalogs, zone boundaries and active alerts.
"""

import aiohttp
from typing import Any, Dict, List, Optional
from weathersync.common.retry import retry_with_backoff
from weathersync.core.errors import RemoteStatusError
from weathersync.core.models import Alert, Zone
from weathersync.core.normalize import alert_from_feature, zone_from_feature
from weathersync.observability import metrics
from weathersync.observability.logging_setup import get_logger

log = get_logger("weathersync.nws")

API = "https://api.weather.gov"

class NWSClient:
    """NWS API client"""

    def __init__(self,
                 base_url: str = API,
                 user_agent: str = "",
                 timeout: float = 30.0,
                 max_retries: int = 2,
                 session: Optional[aiohttp.ClientSession] = None):
        """
        Args:
            base_url: API base URL
            user_agent: User-Agent header; the NWS asks callers to identify themselves
            timeout: Total request timeout (seconds)
            max_retries: Total attempts for zone detail requests on 5xx
            session: Existing session to use instead of opening one
        """
        self.base_url = base_url.rstrip('/')
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_retries = max_retries
        self.session = session
        self._owns_session = session is None

    async def __aenter__(self):
        if self.session is None:
            headers = {"Accept": "application/geo+json"}
            if self.user_agent:
                headers["User-Agent"] = self.user_agent
            self.session = aiohttp.ClientSession(
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                connector=aiohttp.TCPConnector(limit=100, limit_per_host=100),
            )
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        if self.session and self._owns_session:
            await self.session.close()
            self.session = None

    async def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """
        GET request returning the decoded JSON body.

        Raises:
            RemoteStatusError: status code other than 200
        """
        if not self.session:
            raise RuntimeError("session is not open, use async with")

        url = f"{self.base_url}{path}"
        async with self.session.get(url, params=params) as response:
            if response.status != 200:
                raise await self._status_error(response)
            return await response.json(content_type=None)

    @staticmethod
    async def _status_error(response: aiohttp.ClientResponse) -> RemoteStatusError:
        # problem+json body: {"status": ..., "detail": ...}
        detail = ""
        try:
            body = await response.json(content_type=None)
            if isinstance(body, dict):
                detail = str(body.get("detail") or body.get("title") or "")
        except (aiohttp.ContentTypeError, ValueError):
            detail = response.reason or ""
        return RemoteStatusError(response.status, detail)

    async def get_zone_collection(self, area: str) -> List[Zone]:
        data = await self._get("/zones", params={"area": area})

        zones = []
        for feature in data.get("features") or []:
            try:
                zones.append(zone_from_feature(feature))
            except ValueError as e:
                raise ValueError(f"failed to parse zone (uri={feature.get('id')}): {e}") from e

        log.info("Zone collection fetched", area=area, count=len(zones))
        return zones

    async def get_zone(self, zone_type: str, zone_code: str) -> Zone:
        async def _request():
            return await self._get(f"/zones/{zone_type}/{zone_code}")

        feature = await retry_with_backoff(
            _request,
            attempts=self.max_retries,
            operation=f"get_zone {zone_type}/{zone_code}",
        )
        return zone_from_feature(feature)

    async def get_active_alerts(self, *areas: str) -> List[Alert]:
        if not areas:
            return []

        data = await self._get("/alerts/active", params={
            "status": "actual",
            "area": ",".join(areas),
        })

        alerts = []
        for feature in data.get("features") or []:
            try:
                alerts.append(alert_from_feature(feature))
            except (KeyError, IndexError, TypeError, ValueError) as e:
                # skipped; the rest of the listing is kept
                metrics.alerts_failed.labels(op="parse").inc()
                log.warning("Skipping unparseable alert", uri=feature.get("id"), error=str(e))

        log.debug("Active alerts fetched", areas=",".join(areas), count=len(alerts))
        return alerts
