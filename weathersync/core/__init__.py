"""
Core domain models and pure functions for weathersync.

This module contains the domain models, the zone delta engine and the
error taxonomy, all independent of network and storage concerns.
"""

from .models import Alert, AlertZone, LonelyAlert, Point, Polygon, Region, Zone
from .delta import ZoneDelta, compute_delta
from .errors import (
    FetchCancelledError, PersistenceError, PoolClosedError, RemoteStatusError, SyncError,
)

__all__ = [
    "Alert", "AlertZone", "LonelyAlert", "Point", "Polygon", "Region", "Zone",
    "ZoneDelta", "compute_delta",
    "FetchCancelledError", "PersistenceError", "PoolClosedError", "RemoteStatusError", "SyncError",
]
