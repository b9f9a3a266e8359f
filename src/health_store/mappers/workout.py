"""Workout and route mapper."""

from collections.abc import Mapping
from typing import Any

import structlog

from ..timestamps import format_timestamp, normalize_timestamp
from .base import RouteRecord, WorkoutRecord

logger = structlog.get_logger(__name__)

# Raw keys that become dedicated columns or a separate route record
_COLUMN_KEYS = {"id", "name", "start", "end", "duration", "route"}


def map_workout(raw: Mapping[str, Any]) -> WorkoutRecord:
    """Map a raw workout to a record keyed by its ``id``.

    ``start`` and ``end`` are normalized; every other field except the route is
    kept unchanged in ``attributes``.
    """
    attributes = {key: value for key, value in raw.items() if key not in _COLUMN_KEYS}
    return WorkoutRecord(
        workout_id=raw.get("id"),
        name=raw.get("name"),
        start=normalize_timestamp(raw.get("start")),
        end=normalize_timestamp(raw.get("end")),
        duration=raw.get("duration"),
        attributes=attributes,
    )


def map_route(raw: Mapping[str, Any]) -> RouteRecord | None:
    """Map the workout's GPS route, or return None when it has no points."""
    route = raw.get("route")
    if not isinstance(route, list) or not route:
        return None

    locations = []
    for location in route:
        if not isinstance(location, Mapping):
            logger.warning(
                "route_location_malformed",
                workout_id=raw.get("id"),
                location_type=type(location).__name__,
            )
            continue
        locations.append(
            {
                **location,
                "timestamp": format_timestamp(normalize_timestamp(location.get("timestamp"))),
            }
        )

    if not locations:
        return None
    return RouteRecord(workout_id=raw.get("id"), locations=locations)
