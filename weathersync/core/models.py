"""
Core domain models for weathersync.

This module defines the zone, alert and association records using
Pydantic v2. Records are frozen; merges and updates build new records
with ``model_copy(update=...)``.
"""

from datetime import datetime
from typing import List, Literal, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field

# (lon, lat)
Point = Tuple[float, float]
Ring = List[Point]

MessageType = Literal["Alert", "Update", "Cancel"]

class Polygon(BaseModel):
    """Outer perimeter with zero or more holes."""
    model_config = ConfigDict(frozen=True)

    perimeter: Ring
    holes: List[Ring] = Field(default_factory=list)

class Zone(BaseModel):
    """A forecast/alert zone.

    ``id``, ``created_at`` and ``updated_at`` are assigned by the store.
    A zone listed in a catalog but not yet hydrated has an empty geometry.
    """
    model_config = ConfigDict(frozen=True)

    uri: str
    code: str
    type: str
    name: str = ""
    effective_date: Optional[datetime] = None
    region: str = ""
    geometry: List[Polygon] = Field(default_factory=list)
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def with_details(self, detail: "Zone") -> "Zone":
        """
        Merges the descriptive fields of a fetched zone onto this stub.

        The identifying fields (uri, code, type) and any store identity of
        this zone are kept as they are.

        Args:
            detail: Zone returned by the remote zone detail call

        Returns:
            New hydrated zone
        """
        return self.model_copy(update={
            "name": detail.name,
            "effective_date": detail.effective_date,
            "region": detail.region or self.region,
            "geometry": list(detail.geometry),
        })

class Region(BaseModel):
    """An onboarded area (state or marine area code)."""
    id: str
    total_zones: int = 0
    written_zones: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class Alert(BaseModel):
    """An active hazard alert.

    ``references`` lists the IDs of older versions this alert supersedes.
    ``affected_zones`` lists zone URIs.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    area_desc: str = ""
    onset: Optional[datetime] = None
    expires: datetime
    ends: Optional[datetime] = None
    message_type: MessageType = "Alert"
    category: str = ""
    severity: str = ""
    certainty: str = ""
    urgency: str = ""
    event: str = ""
    headline: str = ""
    description: str = ""
    instruction: str = ""
    response: str = ""
    boundary: Optional[Polygon] = None
    affected_zones: List[str] = Field(default_factory=list)
    references: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None

class AlertZone(BaseModel):
    alert_id: str
    zone_id: int

class LonelyAlert(BaseModel):
    """Alert association recorded before the zone is onboarded."""
    alert_id: str
    zone_uri: str
