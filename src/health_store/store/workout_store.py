"""Workout and route persistence."""

import json
import sqlite3
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import structlog

from ..mappers import RouteRecord, WorkoutRecord, map_route, map_workout
from ..metrics import RECORDS_WRITTEN
from ..timestamps import format_timestamp
from .database import HealthDatabase

logger = structlog.get_logger(__name__)

_UPSERT_WORKOUT = """
    INSERT INTO workouts (workout_id, name, start_time, end_time, duration, data)
    VALUES (?, ?, ?, ?, ?, ?)
    ON CONFLICT (workout_id)
    DO UPDATE SET
        name = excluded.name,
        start_time = excluded.start_time,
        end_time = excluded.end_time,
        duration = excluded.duration,
        data = excluded.data
"""

_UPSERT_ROUTE = """
    INSERT INTO routes (workout_id, locations)
    VALUES (?, ?)
    ON CONFLICT (workout_id)
    DO UPDATE SET locations = excluded.locations
"""


@dataclass(frozen=True)
class WorkoutSaveResult:
    """Counts written by one WorkoutStore.save call."""

    workout_count: int
    route_count: int


class WorkoutStore:
    """Upserts workouts and their routes as one all-or-nothing batch."""

    def __init__(self, database: HealthDatabase) -> None:
        self._database = database

    async def save(self, workouts: Sequence[Mapping[str, Any]] | None) -> WorkoutSaveResult:
        """Upsert every workout and route of the call in one transaction.

        Args:
            workouts: Raw workouts from the export; None or empty is a no-op.

        Returns:
            How many workouts and routes were written.

        Raises:
            Exception: Any mapping or store failure; nothing from this call is
                committed in that case.
        """
        if not workouts:
            return WorkoutSaveResult(workout_count=0, route_count=0)

        pairs: list[tuple[WorkoutRecord, RouteRecord | None]] = [
            (map_workout(raw), map_route(raw)) for raw in workouts
        ]

        def do_save(conn: sqlite3.Connection) -> WorkoutSaveResult:
            route_count = 0
            for workout, route in pairs:
                conn.execute(
                    _UPSERT_WORKOUT,
                    (
                        workout.workout_id,
                        workout.name,
                        format_timestamp(workout.start),
                        format_timestamp(workout.end),
                        workout.duration,
                        json.dumps(workout.document()),
                    ),
                )
                if route is not None:
                    conn.execute(_UPSERT_ROUTE, (route.workout_id, json.dumps(route.locations)))
                    route_count += 1
            return WorkoutSaveResult(workout_count=len(pairs), route_count=route_count)

        result = await self._database.run_transaction(do_save, name="workouts")
        RECORDS_WRITTEN.labels(table="workouts").inc(result.workout_count)
        RECORDS_WRITTEN.labels(table="routes").inc(result.route_count)
        logger.debug(
            "workouts_saved",
            workouts=result.workout_count,
            routes=result.route_count,
        )
        return result
