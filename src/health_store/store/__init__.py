"""Persistence for metrics, workouts and routes."""

from .database import DatabaseNotConnectedError, HealthDatabase
from .metric_store import MetricStore
from .queries import QueryService
from .workout_store import WorkoutSaveResult, WorkoutStore

__all__ = [
    "DatabaseNotConnectedError",
    "HealthDatabase",
    "MetricStore",
    "QueryService",
    "WorkoutSaveResult",
    "WorkoutStore",
]
