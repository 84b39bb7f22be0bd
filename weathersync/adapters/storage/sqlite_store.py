"""
SQLite-based reconciliation store for weathersync.

This module persists regions, zones with their geometry, alerts, and the
alert/zone associations. Every multi-row change that must be all or
nothing runs in one transaction; single statement reads and deletes do
not.
"""

import json
import aiosqlite
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, List, Optional, Sequence
from weathersync.common.geo import bounding_box, polygon_contains
from weathersync.core.errors import PersistenceError
from weathersync.core.models import Alert, AlertZone, LonelyAlert, Polygon, Region, Zone
from weathersync.observability.logging_setup import get_logger

log = get_logger("weathersync.store")

# SQLite schema
SCHEMA = """
CREATE TABLE IF NOT EXISTS regions (
    id TEXT PRIMARY KEY,
    total_zones INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS zones (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    uri TEXT NOT NULL UNIQUE,
    code TEXT NOT NULL,
    type TEXT NOT NULL,
    name TEXT NOT NULL,
    effective_date TEXT,
    region TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY(region) REFERENCES regions(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_zones_region ON zones(region);

CREATE TABLE IF NOT EXISTS zone_perimeters (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    zone_id INTEGER NOT NULL,
    boundary TEXT NOT NULL,
    min_lon REAL NOT NULL,
    min_lat REAL NOT NULL,
    max_lon REAL NOT NULL,
    max_lat REAL NOT NULL,
    FOREIGN KEY(zone_id) REFERENCES zones(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_zone_perimeters_zone ON zone_perimeters(zone_id);

CREATE TABLE IF NOT EXISTS zone_holes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    perimeter_id INTEGER NOT NULL,
    boundary TEXT NOT NULL,
    FOREIGN KEY(perimeter_id) REFERENCES zone_perimeters(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_zone_holes_perimeter ON zone_holes(perimeter_id);

CREATE TABLE IF NOT EXISTS alerts (
    id TEXT PRIMARY KEY,
    area_desc TEXT NOT NULL,
    onset TEXT,
    expires TEXT NOT NULL,
    ends TEXT,
    message_type TEXT NOT NULL,
    category TEXT NOT NULL,
    severity TEXT NOT NULL,
    certainty TEXT NOT NULL,
    urgency TEXT NOT NULL,
    event TEXT NOT NULL,
    headline TEXT,
    description TEXT NOT NULL,
    instruction TEXT,
    response TEXT NOT NULL,
    boundary TEXT,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_alerts_ends ON alerts(ends);
CREATE INDEX IF NOT EXISTS idx_alerts_expires ON alerts(expires);

CREATE TABLE IF NOT EXISTS alert_zones (
    alert_id TEXT NOT NULL,
    zone_id INTEGER NOT NULL,
    PRIMARY KEY(alert_id, zone_id),
    FOREIGN KEY(alert_id) REFERENCES alerts(id) ON DELETE CASCADE,
    FOREIGN KEY(zone_id) REFERENCES zones(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS lonely_alerts (
    alert_id TEXT NOT NULL,
    zone_uri TEXT NOT NULL,
    PRIMARY KEY(alert_id, zone_uri),
    FOREIGN KEY(alert_id) REFERENCES alerts(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_lonely_alerts_uri ON lonely_alerts(zone_uri);
"""

# fixed width so that text comparison in SQL orders timestamps
TIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

ALERT_COLUMNS = (
    "id, area_desc, onset, expires, ends, message_type, category, severity, certainty, "
    "urgency, event, headline, description, instruction, response, boundary, created_at"
)

def to_db_time(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime(TIME_FORMAT)

def from_db_time(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.strptime(value, TIME_FORMAT).replace(tzinfo=timezone.utc)

def _now() -> datetime:
    return datetime.now(timezone.utc)

def _ring_json(ring: Sequence) -> str:
    return json.dumps([[p[0], p[1]] for p in ring])

def _ring_from_json(value: str) -> list:
    return [(p[0], p[1]) for p in json.loads(value)]

def _alert_from_row(row) -> Alert:
    return Alert(
        id=row["id"],
        area_desc=row["area_desc"],
        onset=from_db_time(row["onset"]),
        expires=from_db_time(row["expires"]),
        ends=from_db_time(row["ends"]),
        message_type=row["message_type"],
        category=row["category"],
        severity=row["severity"],
        certainty=row["certainty"],
        urgency=row["urgency"],
        event=row["event"],
        headline=row["headline"] or "",
        description=row["description"],
        instruction=row["instruction"] or "",
        response=row["response"],
        boundary=Polygon.model_validate_json(row["boundary"]) if row["boundary"] else None,
        created_at=from_db_time(row["created_at"]),
    )

def _zone_from_row(row) -> Zone:
    return Zone(
        id=row["id"],
        uri=row["uri"],
        code=row["code"],
        type=row["type"],
        name=row["name"],
        effective_date=from_db_time(row["effective_date"]),
        region=row["region"],
        created_at=from_db_time(row["created_at"]),
        updated_at=from_db_time(row["updated_at"]),
    )

class SQLiteReconciliationStore:
    """SQLite reconciliation store"""

    def __init__(self, path: str, busy_timeout_sec: float = 30.0):
        """
        Args:
            path: SQLite database file path
            busy_timeout_sec: How long a write waits for a competing writer
        """
        self.path = path
        self.busy_timeout = busy_timeout_sec
        log.info("Reconciliation store configured", path=path)

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        # isolation_level=None: transactions are opened explicitly in _tx
        async with aiosqlite.connect(self.path, timeout=self.busy_timeout, isolation_level=None) as db:
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys = ON")
            yield db

    @asynccontextmanager
    async def _tx(self, op: str) -> AsyncIterator[aiosqlite.Connection]:
        """
        Runs the block in one transaction.

        Commits when the block completes; on any error rolls back and
        raises PersistenceError.
        """
        async with self._connect() as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                yield db
                await db.execute("COMMIT")
            except Exception as e:
                try:
                    await db.execute("ROLLBACK")
                except aiosqlite.Error as rb_err:
                    log.error("Rollback failed", op=op, error=str(rb_err))
                raise PersistenceError(op, e) from e

    async def init(self) -> None:
        """Creates the schema."""
        async with self._connect() as db:
            await db.execute("PRAGMA journal_mode = WAL")
            await db.executescript(SCHEMA)
        log.info("Reconciliation store schema ready", path=self.path)

    # ---- regions ----

    async def select_region(self, region_id: str) -> Optional[Region]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, total_zones, created_at, updated_at, "
                "(SELECT COUNT(*) FROM zones WHERE region = regions.id) AS written_zones "
                "FROM regions WHERE id = ?",
                (region_id,)
            )
            row = await cursor.fetchone()

        if row is None:
            return None
        return Region(
            id=row["id"],
            total_zones=row["total_zones"],
            written_zones=row["written_zones"],
            created_at=from_db_time(row["created_at"]),
            updated_at=from_db_time(row["updated_at"]),
        )

    async def select_region_ids(self) -> List[str]:
        async with self._connect() as db:
            cursor = await db.execute("SELECT id FROM regions ORDER BY id")
            rows = await cursor.fetchall()
        return [row["id"] for row in rows]

    async def insert_region(self, region: Region) -> Region:
        now = _now()
        try:
            async with self._connect() as db:
                await db.execute(
                    "INSERT INTO regions (id, total_zones, created_at, updated_at) VALUES (?, ?, ?, ?)",
                    (region.id, region.total_zones, to_db_time(now), to_db_time(now))
                )
        except aiosqlite.Error as e:
            raise PersistenceError("insert region", e) from e
        return region.model_copy(update={"created_at": now, "updated_at": now})

    async def update_region(self, region: Region) -> Region:
        """Writes total_zones; updated_at is set to now."""
        now = _now()
        try:
            async with self._connect() as db:
                await db.execute(
                    "UPDATE regions SET total_zones = ?, updated_at = ? WHERE id = ?",
                    (region.total_zones, to_db_time(now), region.id)
                )
        except aiosqlite.Error as e:
            raise PersistenceError("update region", e) from e
        return region.model_copy(update={"updated_at": now})

    # ---- zones ----

    async def select_zones_where_region(self, region_id: str) -> Dict[str, Zone]:
        """
        Reads every zone of a region, keyed by URI.

        Geometry is not loaded.
        """
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, uri, code, type, name, effective_date, region, created_at, updated_at "
                "FROM zones WHERE region = ?",
                (region_id,)
            )
            rows = await cursor.fetchall()
        return {row["uri"]: _zone_from_row(row) for row in rows}

    async def select_zone(self, uri: str) -> Optional[Zone]:
        """Reads one zone with its geometry."""
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, uri, code, type, name, effective_date, region, created_at, updated_at "
                "FROM zones WHERE uri = ?",
                (uri,)
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            zone = _zone_from_row(row)
            geometry = await self._select_geometry(db, zone.id)
        return zone.model_copy(update={"geometry": geometry})

    async def _select_geometry(self, db: aiosqlite.Connection, zone_id: int) -> List[Polygon]:
        cursor = await db.execute(
            "SELECT id, boundary FROM zone_perimeters WHERE zone_id = ? ORDER BY id", (zone_id,))
        perimeters = await cursor.fetchall()

        polygons = []
        for p in perimeters:
            cursor = await db.execute(
                "SELECT boundary FROM zone_holes WHERE perimeter_id = ? ORDER BY id", (p["id"],))
            holes = await cursor.fetchall()
            polygons.append(Polygon(
                perimeter=_ring_from_json(p["boundary"]),
                holes=[_ring_from_json(h["boundary"]) for h in holes],
            ))
        return polygons

    async def _insert_geometry(self, db: aiosqlite.Connection, zone_id: int,
                               geometry: Sequence[Polygon]) -> None:
        for polygon in geometry:
            min_lon, min_lat, max_lon, max_lat = bounding_box(polygon.perimeter)
            cursor = await db.execute(
                "INSERT INTO zone_perimeters (zone_id, boundary, min_lon, min_lat, max_lon, max_lat) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (zone_id, _ring_json(polygon.perimeter), min_lon, min_lat, max_lon, max_lat)
            )
            perimeter_id = cursor.lastrowid
            for hole in polygon.holes:
                await db.execute(
                    "INSERT INTO zone_holes (perimeter_id, boundary) VALUES (?, ?)",
                    (perimeter_id, _ring_json(hole))
                )

    async def _promote_lonely_alerts(self, db: aiosqlite.Connection, zone_uri: str,
                                     zone_id: int) -> int:
        cursor = await db.execute(
            "SELECT alert_id FROM lonely_alerts WHERE zone_uri = ?", (zone_uri,))
        rows = await cursor.fetchall()

        for row in rows:
            await db.execute(
                "INSERT INTO alert_zones (alert_id, zone_id) VALUES (?, ?)",
                (row["alert_id"], zone_id)
            )
            await db.execute(
                "DELETE FROM lonely_alerts WHERE alert_id = ? AND zone_uri = ?",
                (row["alert_id"], zone_uri)
            )
        return len(rows)

    async def insert_zone(self, zone: Zone) -> Zone:
        """
        Writes a new zone with its geometry.

        Lonely alerts waiting on the zone URI become alert zones in the
        same transaction.

        Args:
            zone: Zone to insert; id/created_at/updated_at are ignored

        Returns:
            The zone with id, created_at and updated_at set

        Raises:
            PersistenceError: nothing was written
        """
        now = _now()
        async with self._tx("insert zone") as db:
            cursor = await db.execute(
                "INSERT INTO zones (uri, code, type, name, effective_date, region, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (zone.uri, zone.code, zone.type, zone.name, to_db_time(zone.effective_date),
                 zone.region, to_db_time(now), to_db_time(now))
            )
            zone_id = cursor.lastrowid
            await self._insert_geometry(db, zone_id, zone.geometry)
            promoted = await self._promote_lonely_alerts(db, zone.uri, zone_id)

        if promoted:
            log.info("Lonely alerts promoted", uri=zone.uri, zone_id=zone_id, count=promoted)
        return zone.model_copy(update={"id": zone_id, "created_at": now, "updated_at": now})

    async def update_zone(self, zone: Zone) -> Zone:
        """
        Rewrites a stored zone and replaces its geometry.

        The row update, geometry delete and geometry insert commit together.
        updated_at is set to now.

        Raises:
            PersistenceError: the zone does not exist or a write failed
        """
        if zone.id is None:
            raise PersistenceError("update zone", ValueError(f"zone {zone.uri} has no id"))

        now = _now()
        async with self._tx("update zone") as db:
            cursor = await db.execute(
                "UPDATE zones SET code = ?, type = ?, name = ?, effective_date = ?, region = ?, "
                "updated_at = ? WHERE id = ?",
                (zone.code, zone.type, zone.name, to_db_time(zone.effective_date), zone.region,
                 to_db_time(now), zone.id)
            )
            if cursor.rowcount == 0:
                raise LookupError(f"zone {zone.id} not found")

            # holes cascade with their perimeter
            await db.execute("DELETE FROM zone_perimeters WHERE zone_id = ?", (zone.id,))
            await self._insert_geometry(db, zone.id, zone.geometry)

        return zone.model_copy(update={"updated_at": now})

    async def delete_zone(self, zone_id: int) -> None:
        """Deletes a zone; geometry and alert zones cascade."""
        try:
            async with self._connect() as db:
                await db.execute("DELETE FROM zones WHERE id = ?", (zone_id,))
        except aiosqlite.Error as e:
            raise PersistenceError("delete zone", e) from e

    # ---- alerts ----

    async def select_alert(self, alert_id: str) -> Optional[Alert]:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {ALERT_COLUMNS} FROM alerts WHERE id = ?", (alert_id,))
            row = await cursor.fetchone()
        return _alert_from_row(row) if row else None

    async def _associate_zone(self, db: aiosqlite.Connection, alert_id: str, zone_uri: str) -> bool:
        """Alert zone when the zone is stored, lonely alert otherwise. True for alert zone."""
        cursor = await db.execute("SELECT id FROM zones WHERE uri = ?", (zone_uri,))
        row = await cursor.fetchone()
        if row is not None:
            await db.execute(
                "INSERT INTO alert_zones (alert_id, zone_id) VALUES (?, ?)", (alert_id, row["id"]))
            return True

        await db.execute(
            "INSERT INTO lonely_alerts (alert_id, zone_uri) VALUES (?, ?)", (alert_id, zone_uri))
        return False

    async def insert_alert(self, alert: Alert) -> Alert:
        """
        Writes a new alert, deletes the alerts it references, and maps it
        to its affected zones.

        Affected zones already stored get an alert zone row; the rest get
        a lonely alert row. Everything commits together or not at all.

        Args:
            alert: Alert to insert; created_at is ignored

        Returns:
            The alert with created_at set

        Raises:
            PersistenceError: nothing was written or deleted
        """
        now = _now()
        async with self._tx("insert alert") as db:
            await db.execute(
                f"INSERT INTO alerts ({ALERT_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    alert.id,
                    alert.area_desc,
                    to_db_time(alert.onset),
                    to_db_time(alert.expires),
                    to_db_time(alert.ends),
                    alert.message_type,
                    alert.category,
                    alert.severity,
                    alert.certainty,
                    alert.urgency,
                    alert.event,
                    alert.headline,
                    alert.description,
                    alert.instruction,
                    alert.response,
                    alert.boundary.model_dump_json() if alert.boundary else None,
                    to_db_time(now),
                )
            )

            for ref in alert.references:
                if ref == alert.id:
                    continue
                await db.execute("DELETE FROM alerts WHERE id = ?", (ref,))

            # affected zone lists occasionally repeat a URI
            for uri in dict.fromkeys(alert.affected_zones):
                await self._associate_zone(db, alert.id, uri)

        return alert.model_copy(update={"created_at": now})

    async def delete_ended_alerts(self, cutoff: datetime) -> int:
        """Deletes alerts whose end time is before cutoff."""
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM alerts WHERE ends IS NOT NULL AND ends < ?", (to_db_time(cutoff),))
            return cursor.rowcount

    async def delete_expired_alerts(self, cutoff: datetime) -> int:
        """Deletes alerts without an end time that expired before cutoff."""
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM alerts WHERE ends IS NULL AND expires < ?", (to_db_time(cutoff),))
            return cursor.rowcount

    async def select_alerts_containing(self, lon: float, lat: float) -> List[Alert]:
        """
        Reads the alerts covering a point.

        An alert covers the point when its own boundary contains it, or
        when it is mapped to a zone whose geometry contains it. Cancel
        messages are left out.
        """
        point = (lon, lat)
        found: Dict[str, Alert] = {}

        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {ALERT_COLUMNS} FROM alerts "
                "WHERE message_type != 'Cancel' AND boundary IS NOT NULL"
            )
            for row in await cursor.fetchall():
                alert = _alert_from_row(row)
                if polygon_contains(alert.boundary, point):
                    found.setdefault(alert.id, alert)

            cursor = await db.execute(
                "SELECT DISTINCT p.id, p.boundary, az.alert_id FROM zone_perimeters AS p "
                "JOIN alert_zones AS az ON az.zone_id = p.zone_id "
                "JOIN alerts AS a ON a.id = az.alert_id "
                "WHERE a.message_type != 'Cancel' "
                "AND ? BETWEEN p.min_lon AND p.max_lon AND ? BETWEEN p.min_lat AND p.max_lat",
                (lon, lat)
            )
            candidates = await cursor.fetchall()

            matched = []
            for row in candidates:
                if row["alert_id"] in found:
                    continue
                hcur = await db.execute(
                    "SELECT boundary FROM zone_holes WHERE perimeter_id = ?", (row["id"],))
                holes = [_ring_from_json(h["boundary"]) for h in await hcur.fetchall()]
                polygon = Polygon(perimeter=_ring_from_json(row["boundary"]), holes=holes)
                if polygon_contains(polygon, point):
                    matched.append(row["alert_id"])

            for alert_id in dict.fromkeys(matched):
                if alert_id in found:
                    continue
                cursor = await db.execute(
                    f"SELECT {ALERT_COLUMNS} FROM alerts WHERE id = ?", (alert_id,))
                row = await cursor.fetchone()
                if row is not None:
                    found[alert_id] = _alert_from_row(row)

        return list(found.values())

    # ---- associations ----

    async def select_alert_zones(self, alert_id: str) -> List[AlertZone]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT alert_id, zone_id FROM alert_zones WHERE alert_id = ? ORDER BY zone_id",
                (alert_id,)
            )
            rows = await cursor.fetchall()
        return [AlertZone(alert_id=r["alert_id"], zone_id=r["zone_id"]) for r in rows]

    async def select_lonely_alerts(self, zone_uri: str) -> List[LonelyAlert]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT alert_id, zone_uri FROM lonely_alerts WHERE zone_uri = ? ORDER BY alert_id",
                (zone_uri,)
            )
            rows = await cursor.fetchall()
        return [LonelyAlert(alert_id=r["alert_id"], zone_uri=r["zone_uri"]) for r in rows]
