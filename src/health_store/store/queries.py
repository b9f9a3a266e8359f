"""Read-only range queries over stored metrics and workouts."""

import json
import sqlite3
from datetime import datetime
from typing import Any

import structlog

from ..timestamps import format_timestamp, normalize_timestamp
from ..types import HeartRateSample, MetricRow, RoutePoint, WorkoutDetail, WorkoutSummary
from .database import HealthDatabase

logger = structlog.get_logger(__name__)


def _bounds(start: datetime | None, end: datetime | None) -> tuple[str, str] | None:
    # Filtering applies only when both bounds are known
    if start is None or end is None:
        return None
    return format_timestamp(start), format_timestamp(end)


def _summarize(row: sqlite3.Row) -> WorkoutSummary:
    data = json.loads(row["data"])
    duration = row["duration"]
    energy = data.get("activeEnergyBurned")
    calories = energy.get("qty") if isinstance(energy, dict) else None
    return {
        "id": row["workout_id"],
        "workout_type": row["name"],
        "start_time": row["start_time"],
        "end_time": row["end_time"],
        "duration_minutes": duration / 60 if isinstance(duration, int | float) else None,
        "calories_burned": calories,
    }


def _heart_rate_samples(samples: Any, label: str) -> list[HeartRateSample]:
    if not isinstance(samples, list):
        return []
    return [
        {
            "type": label,
            "timestamp": format_timestamp(normalize_timestamp(sample.get("date"))),
            "value": sample.get("Avg", sample.get("avg")),
        }
        for sample in samples
        if isinstance(sample, dict)
    ]


def _route_points(locations: list[dict[str, Any]]) -> list[RoutePoint]:
    return [
        {
            "latitude": location.get("latitude"),
            "longitude": location.get("longitude"),
            "time": format_timestamp(normalize_timestamp(location.get("timestamp"))),
        }
        for location in locations
    ]


class QueryService:
    """Range queries over the metric and workout tables.

    Every call reads the store; nothing is cached.
    """

    def __init__(self, database: HealthDatabase) -> None:
        self._database = database

    async def metrics_in_range(
        self,
        name: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[MetricRow]:
        """Return stored records of one metric name.

        Args:
            name: Metric name as ingested.
            start: Inclusive lower bound on the record date.
            end: Inclusive upper bound on the record date.

        Returns:
            Rows ordered by date; unfiltered unless both bounds are given.
        """
        bounds = _bounds(start, end)

        def do_query(conn: sqlite3.Connection) -> list[MetricRow]:
            query = "SELECT name, source, date, data FROM metrics WHERE name = ?"
            params: list[str] = [name]
            if bounds:
                query += " AND date BETWEEN ? AND ?"
                params.extend(bounds)
            query += " ORDER BY date, source"
            return [
                {
                    "name": row["name"],
                    "source": row["source"],
                    "date": row["date"],
                    "data": json.loads(row["data"]),
                }
                for row in conn.execute(query, params)
            ]

        rows = await self._database.run_query(do_query)
        logger.debug("metrics_fetched", metric_name=name, count=len(rows), filtered=bool(bounds))
        return rows

    async def workouts_in_range(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[WorkoutSummary]:
        """Return workout summaries, newest start first."""
        bounds = _bounds(start, end)

        def do_query(conn: sqlite3.Connection) -> list[WorkoutSummary]:
            query = "SELECT * FROM workouts"
            params: list[str] = []
            if bounds:
                query += " WHERE start_time BETWEEN ? AND ?"
                params.extend(bounds)
            query += " ORDER BY start_time DESC"
            return [_summarize(row) for row in conn.execute(query, params)]

        workouts = await self._database.run_query(do_query)
        logger.debug("workouts_fetched", count=len(workouts), filtered=bool(bounds))
        return workouts

    async def workout_by_id(self, workout_id: str) -> WorkoutDetail | None:
        """Return heart rate samples and route of one workout, or None."""

        def do_query(conn: sqlite3.Connection) -> WorkoutDetail | None:
            workout = conn.execute(
                "SELECT data FROM workouts WHERE workout_id = ?", (workout_id,)
            ).fetchone()
            if workout is None:
                return None
            route = conn.execute(
                "SELECT locations FROM routes WHERE workout_id = ?", (workout_id,)
            ).fetchone()

            data = json.loads(workout["data"])
            locations = json.loads(route["locations"]) if route else []
            return {
                "heartRateData": _heart_rate_samples(data.get("heartRateData"), "Heart Rate"),
                "heartRateRecovery": _heart_rate_samples(
                    data.get("heartRateRecovery"), "Heart Rate Recovery"
                ),
                "route": _route_points(locations),
            }

        detail = await self._database.run_query(do_query)
        if detail is None:
            logger.info("workout_not_found", workout_id=workout_id)
        else:
            logger.debug(
                "workout_fetched",
                workout_id=workout_id,
                locations=len(detail["route"]),
            )
        return detail
