"""Ingestion dispatcher.

One ingest request carries up to two independent parts::

    {"data": {"metrics": [...], "workouts": [...]}}

Each part present in the request is handed to its store concurrently. Both are
always awaited to completion, each failure is turned into that part's
:class:`IngestOutcome`, and the outcomes are merged into one
:class:`IngestResponse` with a 200/207/500 status.
"""

import asyncio
import json
import math
from collections.abc import Awaitable, Mapping
from typing import Any

import structlog
from fastapi import status
from pydantic import BaseModel

from .metrics import INGEST_OUTCOMES, INGEST_RESPONSES
from .store import MetricStore, WorkoutStore

logger = structlog.get_logger(__name__)

METRICS = "metrics"
WORKOUTS = "workouts"


class IngestEnvelopeError(ValueError):
    """Raised when the ingest body has no ``data`` object at all."""


class IngestOutcome(BaseModel):
    """Result of one ingest subsystem."""

    success: bool
    message: str | None = None
    error: str | None = None


class IngestResponse(BaseModel):
    """Combined result; a missing key means that part was not requested."""

    metrics: IngestOutcome | None = None
    workouts: IngestOutcome | None = None

    def outcomes(self) -> dict[str, IngestOutcome]:
        """Return the outcomes of the parts that were attempted."""
        return {
            key: outcome
            for key, outcome in ((METRICS, self.metrics), (WORKOUTS, self.workouts))
            if outcome is not None
        }

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


def merge_status(response: IngestResponse) -> int:
    """Compute the HTTP status for a combined response.

    200 when every attempted part succeeded (or nothing was attempted), 207
    when only some did, 500 when all of them failed.
    """
    results = [outcome.success for outcome in response.outcomes().values()]
    if all(results):
        return status.HTTP_200_OK
    if any(results):
        return status.HTTP_207_MULTI_STATUS
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-finite number {name} is not valid JSON")


def _finite_float(literal: str) -> float:
    value = float(literal)
    if not math.isfinite(value):
        _reject_constant(literal)
    return value


def load_payload(raw: str | bytes) -> Any:
    """Parse an ingest body, rejecting NaN and Infinity.

    Raises:
        ValueError: If the body is not strict JSON.
    """
    return json.loads(raw, parse_constant=_reject_constant, parse_float=_finite_float)


def envelope_data(payload: Any) -> Mapping[str, Any]:
    """Return the ``data`` object of an ingest body.

    Raises:
        IngestEnvelopeError: If the body or its ``data`` object is missing.
    """
    data = payload.get("data") if isinstance(payload, Mapping) else None
    if not isinstance(data, Mapping):
        raise IngestEnvelopeError("No data provided")
    return data


def _error_message(error: BaseException) -> str:
    return str(error) or type(error).__name__


class IngestDispatcher:
    """Fans one ingest request out to the metric and workout stores."""

    def __init__(self, metric_store: MetricStore, workout_store: WorkoutStore) -> None:
        self._metric_store = metric_store
        self._workout_store = workout_store

    async def ingest_metrics(self, batches: Any) -> IngestOutcome:
        """Save metric batches and report the outcome; never raises."""
        if not batches:
            INGEST_OUTCOMES.labels(subsystem=METRICS, status="empty").inc()
            return IngestOutcome(success=True, message="No metrics data provided")
        try:
            if not isinstance(batches, list):
                raise TypeError("metrics must be a list of metric batches")
            saved = await self._metric_store.save_batches(batches)
        except Exception as e:
            INGEST_OUTCOMES.labels(subsystem=METRICS, status="failed").inc()
            logger.exception("metric_ingest_failed", error=str(e))
            return IngestOutcome(success=False, error=_error_message(e))

        INGEST_OUTCOMES.labels(subsystem=METRICS, status="success").inc()
        logger.info("metrics_ingested", batches=len(batches), records=saved)
        return IngestOutcome(
            success=True,
            message=f"{len(batches)} metrics saved successfully",
        )

    async def ingest_workouts(self, workouts: Any) -> IngestOutcome:
        """Save workouts with their routes and report the outcome; never raises."""
        if not workouts:
            INGEST_OUTCOMES.labels(subsystem=WORKOUTS, status="empty").inc()
            return IngestOutcome(success=True, message="No workout data provided")
        try:
            if not isinstance(workouts, list):
                raise TypeError("workouts must be a list of workouts")
            result = await self._workout_store.save(workouts)
        except Exception as e:
            INGEST_OUTCOMES.labels(subsystem=WORKOUTS, status="failed").inc()
            logger.exception("workout_ingest_failed", error=str(e))
            return IngestOutcome(
                success=False,
                message="Workouts not saved",
                error=_error_message(e),
            )

        INGEST_OUTCOMES.labels(subsystem=WORKOUTS, status="success").inc()
        logger.info(
            "workouts_ingested",
            workouts=result.workout_count,
            routes=result.route_count,
        )
        return IngestOutcome(
            success=True,
            message=(
                f"{result.workout_count} Workouts and {result.route_count} Routes "
                "saved successfully"
            ),
        )

    async def ingest(self, payload: Any) -> tuple[IngestResponse, int]:
        """Ingest one export payload.

        Args:
            payload: Parsed request body, ``{"data": {"metrics"?, "workouts"?}}``.

        Returns:
            The combined response and its HTTP status.

        Raises:
            IngestEnvelopeError: If the body or its ``data`` object is missing.
        """
        data = envelope_data(payload)

        tasks: dict[str, Awaitable[IngestOutcome]] = {}
        if METRICS in data:
            tasks[METRICS] = self.ingest_metrics(data[METRICS])
        if WORKOUTS in data:
            tasks[WORKOUTS] = self.ingest_workouts(data[WORKOUTS])

        results = await asyncio.gather(*tasks.values(), return_exceptions=True)

        outcomes: dict[str, IngestOutcome] = {}
        for key, result in zip(tasks, results, strict=True):
            if isinstance(result, BaseException):
                logger.error("ingest_task_crashed", subsystem=key, error=str(result))
                outcomes[key] = IngestOutcome(success=False, error=_error_message(result))
            else:
                outcomes[key] = result

        response = IngestResponse(**outcomes)
        status_code = merge_status(response)
        INGEST_RESPONSES.labels(status=str(status_code)).inc()
        logger.info(
            "ingest_completed",
            status=status_code,
            subsystems=sorted(outcomes),
        )
        return response, status_code
