"""Shared type aliases and typed dictionaries."""

from __future__ import annotations

from typing import TypeAlias, TypedDict

JSONValue: TypeAlias = (
    str | int | float | bool | None | list["JSONValue"] | dict[str, "JSONValue"]
)
JSONObject: TypeAlias = dict[str, JSONValue]


class MetricRow(TypedDict):
    """Stored metric row as returned by range queries."""

    name: str
    source: str
    date: str
    data: JSONObject


class WorkoutSummary(TypedDict):
    """Denormalized workout listing entry."""

    id: str
    workout_type: str | None
    start_time: str
    end_time: str
    duration_minutes: float | None
    calories_burned: JSONValue


class HeartRateSample(TypedDict):
    """Heart rate sample relabeled for display."""

    type: str
    timestamp: str
    value: JSONValue


class RoutePoint(TypedDict):
    """GPS point relabeled for display."""

    latitude: JSONValue
    longitude: JSONValue
    time: str


class WorkoutDetail(TypedDict):
    """Heart rate samples and route of one workout."""

    heartRateData: list[HeartRateSample]
    heartRateRecovery: list[HeartRateSample]
    route: list[RoutePoint]
