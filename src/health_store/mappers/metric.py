"""Metric batch mapper.

Turns one named batch from the Health Auto Export REST payload::

    {"name": "heart_rate", "units": "count/min",
     "data": [{"Min": 60, "Avg": 72, "Max": 110, "date": "...", "source": "..."}]}

into one typed record per measurement. Unknown names fall through to the
generic quantity shape. Values are copied as sent; only dates are normalized.
"""

from collections.abc import Mapping
from typing import Any

import structlog

from ..timestamps import normalize_timestamp
from .base import (
    BloodPressureRecord,
    HeartRateRecord,
    MetricKind,
    MetricRecord,
    QuantityRecord,
    SleepAnalysisRecord,
)

logger = structlog.get_logger(__name__)


def metric_kind(name: Any) -> MetricKind:
    """Return the record shape used for a metric name."""
    match name:
        case MetricKind.BLOOD_PRESSURE.value:
            return MetricKind.BLOOD_PRESSURE
        case MetricKind.HEART_RATE.value:
            return MetricKind.HEART_RATE
        case MetricKind.SLEEP_ANALYSIS.value:
            return MetricKind.SLEEP_ANALYSIS
        case _:
            return MetricKind.QUANTITY


def _first(measurement: Mapping[str, Any], *keys: str) -> Any:
    # The export capitalizes heart rate stats ("Min"); other producers do not
    for key in keys:
        if key in measurement:
            return measurement[key]
    return None


def _common(measurement: Mapping[str, Any], units: Any) -> dict[str, Any]:
    metadata = measurement.get("metadata")
    return {
        "source": measurement.get("source"),
        "date": normalize_timestamp(measurement.get("date")),
        "units": units,
        "metadata": metadata if isinstance(metadata, dict) else None,
    }


def _map_measurement(kind: MetricKind, measurement: Mapping[str, Any], units: Any) -> MetricRecord:
    common = _common(measurement, units)
    match kind:
        case MetricKind.BLOOD_PRESSURE:
            return BloodPressureRecord(
                **common,
                systolic=measurement.get("systolic"),
                diastolic=measurement.get("diastolic"),
            )
        case MetricKind.HEART_RATE:
            return HeartRateRecord(
                **common,
                min=_first(measurement, "Min", "min"),
                avg=_first(measurement, "Avg", "avg"),
                max=_first(measurement, "Max", "max"),
            )
        case MetricKind.SLEEP_ANALYSIS:
            return SleepAnalysisRecord(
                **common,
                in_bed_start=normalize_timestamp(measurement.get("inBedStart")),
                in_bed_end=normalize_timestamp(measurement.get("inBedEnd")),
                sleep_start=normalize_timestamp(measurement.get("sleepStart")),
                sleep_end=normalize_timestamp(measurement.get("sleepEnd")),
                core=measurement.get("core"),
                rem=measurement.get("rem"),
                deep=measurement.get("deep"),
                awake=measurement.get("awake"),
                in_bed=measurement.get("inBed"),
            )
        case _:
            return QuantityRecord(**common, qty=measurement.get("qty"))


def map_metric_batch(batch: Mapping[str, Any]) -> list[MetricRecord]:
    """Map a named batch of raw measurements to typed records.

    Args:
        batch: Raw batch with ``name``, ``units`` and ``data``.

    Returns:
        One record per measurement, in input order.
    """
    name = batch.get("name")
    units = batch.get("units")
    data = batch.get("data")
    if not isinstance(data, list):
        data = []

    kind = metric_kind(name)
    records: list[MetricRecord] = []
    for measurement in data:
        if not isinstance(measurement, Mapping):
            logger.warning(
                "metric_measurement_malformed",
                metric_name=name,
                measurement_type=type(measurement).__name__,
            )
            measurement = {}
        records.append(_map_measurement(kind, measurement, units))

    logger.debug("metric_batch_mapped", metric_name=name, kind=kind.value, count=len(records))
    return records
