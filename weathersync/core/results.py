"""
Aggregate results for weathersync batch operations.

A batch never raises because one of its items failed; the failure is
recorded on the result with its cause instead.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional
from .models import Alert, Zone

@dataclass
class FetchResult:
    """Exactly one entry per requested zone URI across both maps."""
    zones: Dict[str, Zone] = field(default_factory=dict)
    fails: Dict[str, BaseException] = field(default_factory=dict)

    def total(self) -> int:
        return len(self.zones) + len(self.fails)

@dataclass
class ZoneWrite:
    uri: str
    code: str
    type: str

    @classmethod
    def of(cls, zone: Zone) -> "ZoneWrite":
        return cls(uri=zone.uri, code=zone.code, type=zone.type)

@dataclass
class ZoneFailure:
    zone: ZoneWrite
    op: str
    error: BaseException

@dataclass
class OnboardResult:
    region: str
    writes: List[ZoneWrite] = field(default_factory=list)
    fails: List[ZoneFailure] = field(default_factory=list)
    created_at: Optional[datetime] = None

    def total_zones(self) -> int:
        return len(self.writes) + len(self.fails)

@dataclass
class RegionSyncResult:
    region: str
    inserted: List[ZoneWrite] = field(default_factory=list)
    updated: List[ZoneWrite] = field(default_factory=list)
    deleted: List[ZoneWrite] = field(default_factory=list)
    fails: List[ZoneFailure] = field(default_factory=list)

    def total_writes(self) -> int:
        return len(self.inserted) + len(self.updated) + len(self.deleted)

@dataclass
class SyncFailure:
    """Failure for one alert: ``op`` is "select" or "insert"."""
    id: str
    op: str
    error: BaseException

@dataclass
class AlertSyncResult:
    regions: List[str] = field(default_factory=list)
    total_writes: int = 0
    skipped: int = 0
    fails: List[SyncFailure] = field(default_factory=list)

    def fail(self, failure: SyncFailure) -> None:
        self.fails.append(failure)

@dataclass
class CleanupResult:
    """Counts already applied stay applied even when a later step fails."""
    ended: int = 0
    expired: int = 0
    fails: List[BaseException] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.ended + self.expired

@dataclass
class AlertLookup:
    """Alerts covering one point."""
    lon: float
    lat: float
    alerts: List[Alert] = field(default_factory=list)

@dataclass
class CycleResult:
    started_at: datetime
    sync: Optional[AlertSyncResult] = None
    sync_error: Optional[BaseException] = None
    cleanup: Optional[CleanupResult] = None
    duration_sec: float = 0.0

    @property
    def ok(self) -> bool:
        return (self.sync_error is None
                and self.sync is not None and not self.sync.fails
                and self.cleanup is not None and not self.cleanup.fails)
