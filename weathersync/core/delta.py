"""
Zone catalog delta computation for weathersync.

Pure functions with no I/O: given the authoritative catalog fetched from
the remote service and the catalog currently persisted, work out which
zones must be inserted, updated or deleted.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping
from .models import Zone

@dataclass
class ZoneDelta:
    """Insert/update/delete plan, disjoint by URI."""
    insert: List[Zone] = field(default_factory=list)
    update: List[Zone] = field(default_factory=list)
    delete: List[Zone] = field(default_factory=list)

    def total_operations(self) -> int:
        return len(self.insert) + len(self.update) + len(self.delete)

    def total_insert_updates(self) -> int:
        return len(self.insert) + len(self.update)

    def insert_update(self) -> List[Zone]:
        """Zones that need fresh geometry before they are persisted."""
        return [*self.insert, *self.update]

    def is_empty(self) -> bool:
        return self.total_operations() == 0

def _is_newer(stored: Zone, fresh: Zone) -> bool:
    if fresh.effective_date is None:
        return False
    if stored.effective_date is None:
        return True
    return stored.effective_date < fresh.effective_date

def compute_delta(fresh: Iterable[Zone], stored: Mapping[str, Zone]) -> ZoneDelta:
    """
    Computes the delta between a fresh catalog and the stored catalog.

    A stored zone is updated only when the fresh effective date is strictly
    newer. An update keeps the stored identity (id, created_at) and takes
    every descriptive field from the fresh zone. Stored zones that no fresh
    zone matches are deleted.

    Args:
        fresh: Authoritative zones, unique by URI
        stored: Persisted zones keyed by URI; not modified

    Returns:
        ZoneDelta
    """
    remaining: Dict[str, Zone] = dict(stored)
    delta = ZoneDelta()

    for f in fresh:
        s = remaining.pop(f.uri, None)
        if s is None:
            delta.insert.append(f)
            continue

        if _is_newer(s, f):
            delta.update.append(s.model_copy(update={
                "code": f.code,
                "type": f.type,
                "name": f.name,
                "effective_date": f.effective_date,
                "region": f.region or s.region,
                "geometry": list(f.geometry),
            }))

    delta.delete.extend(remaining.values())
    return delta
