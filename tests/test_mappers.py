"""Tests for metric and workout mappers."""

from datetime import UTC, datetime

import pytest

from health_store.mappers import (
    BloodPressureRecord,
    HeartRateRecord,
    MetricKind,
    QuantityRecord,
    RouteRecord,
    SleepAnalysisRecord,
    map_metric_batch,
    map_route,
    map_workout,
    metric_kind,
)
from health_store.timestamps import EPOCH_FALLBACK


class TestMetricKind:
    """Tests for metric name dispatch."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("blood_pressure", MetricKind.BLOOD_PRESSURE),
            ("heart_rate", MetricKind.HEART_RATE),
            ("sleep_analysis", MetricKind.SLEEP_ANALYSIS),
            ("step_count", MetricKind.QUANTITY),
            ("weight_body_mass", MetricKind.QUANTITY),
            ("", MetricKind.QUANTITY),
            (None, MetricKind.QUANTITY),
        ],
    )
    def test_dispatch(self, name, expected):
        assert metric_kind(name) is expected


class TestMapMetricBatch:
    """Tests for map_metric_batch."""

    def test_heart_rate(self, sample_heart_rate_batch):
        [record] = map_metric_batch(sample_heart_rate_batch)

        assert isinstance(record, HeartRateRecord)
        assert record.kind is MetricKind.HEART_RATE
        assert (record.min, record.avg, record.max) == (60, 72, 110)
        assert record.date == datetime(2024, 1, 1, tzinfo=UTC)
        assert record.source == "watch"
        assert record.units == "count/min"

    def test_heart_rate_lowercase_keys(self):
        batch = {
            "name": "heart_rate",
            "data": [{"min": 55, "avg": 60, "max": 65, "date": "2024-01-01T00:00:00Z"}],
        }
        [record] = map_metric_batch(batch)
        assert (record.min, record.avg, record.max) == (55, 60, 65)

    def test_heart_rate_payload(self, sample_heart_rate_batch):
        [record] = map_metric_batch(sample_heart_rate_batch)
        assert record.payload() == {"units": "count/min", "min": 60, "avg": 72, "max": 110}

    def test_blood_pressure(self):
        batch = {
            "name": "blood_pressure",
            "units": "mmHg",
            "data": [
                {
                    "systolic": 120,
                    "diastolic": 80,
                    "date": "2024-02-01 09:00:00 +0000",
                    "source": "Omron",
                }
            ],
        }
        [record] = map_metric_batch(batch)

        assert isinstance(record, BloodPressureRecord)
        assert record.systolic == 120
        assert record.diastolic == 80
        assert record.payload() == {"units": "mmHg", "systolic": 120, "diastolic": 80}

    def test_sleep_analysis(self, sample_sleep_batch):
        [record] = map_metric_batch(sample_sleep_batch)

        assert isinstance(record, SleepAnalysisRecord)
        assert record.sleep_start == datetime(2024, 1, 14, 23, 0, tzinfo=UTC)
        assert record.in_bed_end == datetime(2024, 1, 15, 7, 5, tzinfo=UTC)
        assert record.deep == 1.5
        payload = record.payload()
        assert payload["sleepStart"] == "2024-01-14T23:00:00.000Z"
        assert payload["inBedStart"] == "2024-01-14T22:45:00.000Z"
        assert payload["inBed"] == 8.3
        assert payload["units"] == "hr"

    def test_unknown_name_maps_to_quantity(self, sample_steps_batch):
        records = map_metric_batch(sample_steps_batch)

        assert all(isinstance(record, QuantityRecord) for record in records)
        assert [record.qty for record in records] == [1200, 3400]
        assert records[0].date == datetime(2024, 1, 15, 8, 0, tzinfo=UTC)

    def test_values_copied_verbatim(self):
        batch = {"name": "step_count", "data": [{"qty": "12", "date": "2024-01-01T00:00:00Z"}]}
        [record] = map_metric_batch(batch)
        assert record.qty == "12"

    def test_order_preserved(self):
        batch = {
            "name": "step_count",
            "data": [{"qty": n, "date": f"2024-01-0{n}T00:00:00Z"} for n in (3, 1, 2)],
        }
        assert [record.qty for record in map_metric_batch(batch)] == [3, 1, 2]

    def test_unreadable_date_falls_back(self):
        batch = {"name": "step_count", "data": [{"qty": 1, "date": "yesterday"}]}
        [record] = map_metric_batch(batch)
        assert record.date == EPOCH_FALLBACK

    def test_oversized_epoch_date_falls_back(self):
        batch = {"name": "step_count", "data": [{"qty": 1, "date": 10**400}]}
        [record] = map_metric_batch(batch)
        assert record.date == EPOCH_FALLBACK
        assert record.qty == 1

    def test_missing_source_left_unset(self):
        batch = {"name": "step_count", "data": [{"qty": 1, "date": "2024-01-01T00:00:00Z"}]}
        [record] = map_metric_batch(batch)
        assert record.source is None

    def test_malformed_measurement_still_mapped(self):
        [record] = map_metric_batch({"name": "step_count", "data": ["oops"]})
        assert record.date == EPOCH_FALLBACK
        assert record.qty is None

    @pytest.mark.parametrize("data", [None, "x", {"qty": 1}])
    def test_non_list_data_maps_to_nothing(self, data):
        assert map_metric_batch({"name": "step_count", "data": data}) == []

    def test_metadata_kept(self):
        batch = {
            "name": "step_count",
            "data": [{"qty": 1, "date": "2024-01-01T00:00:00Z", "metadata": {"device": "x"}}],
        }
        [record] = map_metric_batch(batch)
        assert record.payload()["metadata"] == {"device": "x"}


class TestMapWorkout:
    """Tests for map_workout and map_route."""

    def test_workout_fields(self, sample_workout):
        record = map_workout(sample_workout)

        assert record.workout_id == "W1"
        assert record.name == "Outdoor Run"
        assert record.start == datetime(2024, 1, 15, 7, 0, tzinfo=UTC)
        assert record.end == datetime(2024, 1, 15, 7, 45, tzinfo=UTC)
        assert record.duration == 2700

    def test_attributes_exclude_columns_and_route(self, sample_workout):
        document = map_workout(sample_workout).document()

        assert document["activeEnergyBurned"] == {"qty": 350.5, "units": "kcal"}
        assert len(document["heartRateData"]) == 2
        for key in ("id", "name", "start", "end", "duration", "route"):
            assert key not in document

    def test_missing_dates_fall_back(self):
        record = map_workout({"id": "W9"})
        assert record.start == EPOCH_FALLBACK
        assert record.end == EPOCH_FALLBACK

    def test_route(self, sample_workout):
        route = map_route(sample_workout)

        assert route is not None
        assert route.workout_id == "W1"
        assert len(route.locations) == 2
        assert route.locations[0]["timestamp"] == "2024-01-15T07:00:05.000Z"
        assert route.locations[0]["latitude"] == 52.52
        assert route.locations[0]["altitude"] == 34.0

    @pytest.mark.parametrize("route", [None, [], "abc", [1, "x"]])
    def test_no_usable_route(self, route):
        assert map_route({"id": "W1", "route": route}) is None

    def test_empty_route_record_rejected(self):
        with pytest.raises(ValueError, match="at least one point"):
            RouteRecord(workout_id="W1", locations=[])
