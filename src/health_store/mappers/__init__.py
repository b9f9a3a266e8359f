"""Mappers from raw Health Auto Export payloads to normalized records."""

from .base import (
    BloodPressureRecord,
    HeartRateRecord,
    MetricKind,
    MetricRecord,
    QuantityRecord,
    RouteRecord,
    SleepAnalysisRecord,
    WorkoutRecord,
)
from .metric import map_metric_batch, metric_kind
from .workout import map_route, map_workout

__all__ = [
    "BloodPressureRecord",
    "HeartRateRecord",
    "MetricKind",
    "MetricRecord",
    "QuantityRecord",
    "RouteRecord",
    "SleepAnalysisRecord",
    "WorkoutRecord",
    "map_metric_batch",
    "map_route",
    "map_workout",
    "metric_kind",
]
