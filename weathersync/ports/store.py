"""
Reconciliation store port interface.

This module defines the protocol the services use to persist zones,
alerts and their associations.
"""

from datetime import datetime
from typing import Dict, List, Optional, Protocol
from weathersync.core.models import Alert, AlertZone, LonelyAlert, Region, Zone

class ReconciliationStorePort(Protocol):
    """Transactional zone and alert storage."""

    async def init(self) -> None: ...

    async def select_region(self, region_id: str) -> Optional[Region]: ...

    async def select_region_ids(self) -> List[str]: ...

    async def insert_region(self, region: Region) -> Region: ...

    async def update_region(self, region: Region) -> Region: ...

    async def select_zones_where_region(self, region_id: str) -> Dict[str, Zone]: ...

    async def select_zone(self, uri: str) -> Optional[Zone]: ...

    async def insert_zone(self, zone: Zone) -> Zone: ...

    async def update_zone(self, zone: Zone) -> Zone: ...

    async def delete_zone(self, zone_id: int) -> None: ...

    async def select_alert(self, alert_id: str) -> Optional[Alert]: ...

    async def insert_alert(self, alert: Alert) -> Alert: ...

    async def delete_ended_alerts(self, cutoff: datetime) -> int: ...

    async def delete_expired_alerts(self, cutoff: datetime) -> int: ...

    async def select_alerts_containing(self, lon: float, lat: float) -> List[Alert]: ...

    async def select_alert_zones(self, alert_id: str) -> List[AlertZone]: ...

    async def select_lonely_alerts(self, zone_uri: str) -> List[LonelyAlert]: ...
