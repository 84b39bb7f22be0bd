"""
Remote weather data port interface.

This module defines the protocol for the remote service that publishes
zone catalogs, zone boundaries and active alerts.
"""

from typing import List, Protocol
from weathersync.core.models import Alert, Zone

class WeatherDataPort(Protocol):
    """Remote weather data capability."""

    async def get_zone_collection(self, area: str) -> List[Zone]:
        """
        Lists the zones of an area.

        Args:
            area: Region code (e.g. "IL")

        Returns:
            Zone stubs with uri, code, type, name, effective date and
            region set, and no geometry
        """
        ...

    async def get_zone(self, zone_type: str, zone_code: str) -> Zone:
        """
        Fetches one zone with its geometry.

        Args:
            zone_type: Zone type (e.g. "county", "forecast")
            zone_code: Zone code (e.g. "ILC031")

        Returns:
            Zone with descriptive fields and geometry
        """
        ...

    async def get_active_alerts(self, *areas: str) -> List[Alert]:
        """
        Lists the active alerts for the given areas.

        Returns:
            Alerts; empty when no area is given
        """
        ...
