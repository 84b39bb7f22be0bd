"""
Normalization functions for weathersync.

This module contains pure functions for converting NWS API GeoJSON
features into internal domain models.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pydantic import TypeAdapter
from .models import Alert, Polygon, Zone
from weathersync.observability.logging_setup import get_logger

log = get_logger("weathersync.normalize")

_datetime = TypeAdapter(datetime)

def parse_time(value: Any) -> Optional[datetime]:
    """
    Parses an ISO-8601 timestamp into an aware UTC datetime.

    Naive values are taken to be UTC. Empty values give None.
    """
    if value is None or value == "":
        return None
    dt = _datetime.validate_python(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

def _ring(coords: list) -> list:
    return [(float(p[0]), float(p[1])) for p in coords]

def _polygon(rings: list) -> Optional[Polygon]:
    if not rings:
        return None
    return Polygon(perimeter=_ring(rings[0]), holes=[_ring(r) for r in rings[1:]])

def parse_geometry(geo: Optional[Dict[str, Any]]) -> List[Polygon]:
    """
    Parses a GeoJSON geometry into an ordered list of polygons.

    Args:
        geo: GeoJSON geometry object, or None

    Returns:
        Polygons (a Polygon geometry gives a single item list)

    Raises:
        ValueError: unsupported geometry type
    """
    if not geo:
        return []

    gtype = geo.get("type") or ""
    coords = geo.get("coordinates") or []
    if gtype == "":
        return []
    if gtype == "Polygon":
        p = _polygon(coords)
        return [p] if p else []
    if gtype == "MultiPolygon":
        return [p for p in (_polygon(c) for c in coords) if p]
    raise ValueError(f"unsupported geometry type: {gtype}")

def zone_from_feature(feature: Dict[str, Any]) -> Zone:
    """
    Converts a zone feature (collection item or detail) into a Zone.

    Collection items carry no geometry; the returned zone then has an
    empty geometry list.
    """
    props = feature.get("properties") or {}
    uri = feature.get("id") or props.get("@id") or ""
    if not uri:
        raise ValueError("zone feature has no id")

    return Zone(
        uri=uri,
        code=str(props.get("id") or ""),
        type=str(props.get("type") or ""),
        name=str(props.get("name") or ""),
        effective_date=parse_time(props.get("effectiveDate")),
        region=str(props.get("state") or ""),
        geometry=parse_geometry(feature.get("geometry")),
    )

def alert_from_feature(feature: Dict[str, Any]) -> Alert:
    """Converts an active alert feature into an Alert."""
    props = feature.get("properties") or {}

    polygons = parse_geometry(feature.get("geometry"))
    if len(polygons) > 1:
        log.warning("Alert boundary has several polygons, keeping the first", alert_id=props.get("id"))

    references = []
    for ref in props.get("references") or []:
        ref_id = ref.get("identifier") if isinstance(ref, dict) else ref
        if ref_id:
            references.append(str(ref_id))

    return Alert(
        id=str(props["id"]),
        area_desc=props.get("areaDesc") or "",
        onset=parse_time(props.get("onset")),
        expires=parse_time(props.get("expires")),
        ends=parse_time(props.get("ends")),
        message_type=props.get("messageType") or "Alert",
        category=props.get("category") or "",
        severity=props.get("severity") or "",
        certainty=props.get("certainty") or "",
        urgency=props.get("urgency") or "",
        event=props.get("event") or "",
        headline=props.get("headline") or "",
        description=props.get("description") or "",
        instruction=props.get("instruction") or "",
        response=props.get("response") or "",
        boundary=polygons[0] if polygons else None,
        affected_zones=[str(z) for z in props.get("affectedZones") or []],
        references=references,
    )
