"""Normalized record types produced by the mappers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

from ..timestamps import format_timestamp
from ..types import JSONObject


class MetricKind(str, Enum):
    """Metric kinds with a dedicated record shape.

    ``QUANTITY`` is the catch-all for every other metric name.
    """

    BLOOD_PRESSURE = "blood_pressure"
    HEART_RATE = "heart_rate"
    SLEEP_ANALYSIS = "sleep_analysis"
    QUANTITY = "quantity"


@dataclass(frozen=True, kw_only=True)
class MetricRecord:
    """Fields shared by every metric variant."""

    kind: ClassVar[MetricKind]

    source: str | None
    date: datetime
    units: str | None = None
    metadata: dict[str, Any] | None = None

    def payload(self) -> JSONObject:
        """Return the stored document: every field except source and date."""
        document: JSONObject = {"units": self.units}
        document.update(self._variant_payload())
        if self.metadata is not None:
            document["metadata"] = self.metadata
        return document

    def _variant_payload(self) -> JSONObject:
        return {}


@dataclass(frozen=True, kw_only=True)
class QuantityRecord(MetricRecord):
    """Single-value measurement (steps, weight, energy, ...)."""

    kind: ClassVar[MetricKind] = MetricKind.QUANTITY

    qty: Any = None

    def _variant_payload(self) -> JSONObject:
        return {"qty": self.qty}


@dataclass(frozen=True, kw_only=True)
class BloodPressureRecord(MetricRecord):
    kind: ClassVar[MetricKind] = MetricKind.BLOOD_PRESSURE

    systolic: Any = None
    diastolic: Any = None

    def _variant_payload(self) -> JSONObject:
        return {"systolic": self.systolic, "diastolic": self.diastolic}


@dataclass(frozen=True, kw_only=True)
class HeartRateRecord(MetricRecord):
    kind: ClassVar[MetricKind] = MetricKind.HEART_RATE

    min: Any = None
    avg: Any = None
    max: Any = None

    def _variant_payload(self) -> JSONObject:
        return {"min": self.min, "avg": self.avg, "max": self.max}


@dataclass(frozen=True, kw_only=True)
class SleepAnalysisRecord(MetricRecord):
    """Aggregated sleep session; stage durations are in the batch units."""

    kind: ClassVar[MetricKind] = MetricKind.SLEEP_ANALYSIS

    in_bed_start: datetime
    in_bed_end: datetime
    sleep_start: datetime
    sleep_end: datetime
    core: Any = None
    rem: Any = None
    deep: Any = None
    awake: Any = None
    in_bed: Any = None

    def _variant_payload(self) -> JSONObject:
        return {
            "inBedStart": format_timestamp(self.in_bed_start),
            "inBedEnd": format_timestamp(self.in_bed_end),
            "sleepStart": format_timestamp(self.sleep_start),
            "sleepEnd": format_timestamp(self.sleep_end),
            "core": self.core,
            "rem": self.rem,
            "deep": self.deep,
            "awake": self.awake,
            "inBed": self.in_bed,
        }


@dataclass(frozen=True)
class WorkoutRecord:
    """Normalized workout keyed by the caller-supplied workout id."""

    workout_id: Any
    name: Any
    start: datetime
    end: datetime
    duration: Any
    attributes: dict[str, Any] = field(default_factory=dict)

    def document(self) -> JSONObject:
        """Return the optional attributes stored alongside the columns."""
        return dict(self.attributes)


@dataclass(frozen=True)
class RouteRecord:
    """Ordered GPS samples of one workout."""

    workout_id: Any
    locations: list[dict[str, Any]]

    def __post_init__(self) -> None:
        if not self.locations:
            raise ValueError("Locations array must contain at least one point")
