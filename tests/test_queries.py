"""Tests for range queries."""

from datetime import UTC, datetime

import pytest

from health_store.timestamps import parse_epoch_millis


def _workout(workout_id, start, duration=600, **extra):
    return {
        "id": workout_id,
        "name": "Walk",
        "start": start,
        "end": start,
        "duration": duration,
        **extra,
    }


class TestMetricsInRange:
    """Tests for QueryService.metrics_in_range."""

    @pytest.mark.asyncio
    async def test_inclusive_bounds(self, metric_store, query_service):
        await metric_store.save_batches(
            [
                {
                    "name": "step_count",
                    "data": [
                        {"qty": day, "date": f"2024-01-0{day}T00:00:00Z", "source": "iPhone"}
                        for day in (1, 2, 3, 4)
                    ],
                }
            ]
        )

        rows = await query_service.metrics_in_range(
            "step_count",
            datetime(2024, 1, 2, tzinfo=UTC),
            datetime(2024, 1, 3, tzinfo=UTC),
        )
        assert [row["data"]["qty"] for row in rows] == [2, 3]

    @pytest.mark.asyncio
    async def test_one_bound_returns_everything(self, metric_store, query_service, sample_steps_batch):
        await metric_store.save_batches([sample_steps_batch])

        rows = await query_service.metrics_in_range(
            "step_count", datetime(2030, 1, 1, tzinfo=UTC), None
        )
        assert len(rows) == 2

    @pytest.mark.asyncio
    async def test_unparseable_bounds_return_everything(
        self, metric_store, query_service, sample_steps_batch
    ):
        await metric_store.save_batches([sample_steps_batch])

        rows = await query_service.metrics_in_range(
            "step_count", parse_epoch_millis("abc"), parse_epoch_millis("def")
        )
        assert len(rows) == 2

    @pytest.mark.asyncio
    async def test_other_names_excluded(
        self, metric_store, query_service, sample_steps_batch, sample_heart_rate_batch
    ):
        await metric_store.save_batches([sample_steps_batch, sample_heart_rate_batch])

        rows = await query_service.metrics_in_range("heart_rate")
        assert [row["name"] for row in rows] == ["heart_rate"]

    @pytest.mark.asyncio
    async def test_unknown_name(self, query_service):
        assert await query_service.metrics_in_range("nothing") == []


class TestWorkoutsInRange:
    """Tests for QueryService.workouts_in_range."""

    @pytest.mark.asyncio
    async def test_newest_first(self, workout_store, query_service):
        await workout_store.save(
            [
                _workout("a", "2024-01-01T08:00:00Z"),
                _workout("c", "2024-01-03T08:00:00Z"),
                _workout("b", "2024-01-02T08:00:00Z"),
            ]
        )

        workouts = await query_service.workouts_in_range()
        assert [w["id"] for w in workouts] == ["c", "b", "a"]

    @pytest.mark.asyncio
    async def test_filtered_by_start(self, workout_store, query_service):
        await workout_store.save(
            [
                _workout("a", "2024-01-01T08:00:00Z"),
                _workout("b", "2024-01-02T08:00:00Z"),
            ]
        )

        workouts = await query_service.workouts_in_range(
            datetime(2024, 1, 2, tzinfo=UTC), datetime(2024, 1, 3, tzinfo=UTC)
        )
        assert [w["id"] for w in workouts] == ["b"]

    @pytest.mark.asyncio
    async def test_summary_fields(self, workout_store, query_service, sample_workout):
        await workout_store.save([sample_workout])

        [summary] = await query_service.workouts_in_range()
        assert summary == {
            "id": "W1",
            "workout_type": "Outdoor Run",
            "start_time": "2024-01-15T07:00:00.000Z",
            "end_time": "2024-01-15T07:45:00.000Z",
            "duration_minutes": 45,
            "calories_burned": 350.5,
        }

    @pytest.mark.asyncio
    async def test_missing_duration(self, workout_store, query_service):
        await workout_store.save([_workout("a", "2024-01-01T08:00:00Z", duration=None)])

        [summary] = await query_service.workouts_in_range()
        assert summary["duration_minutes"] is None


class TestWorkoutById:
    """Tests for QueryService.workout_by_id."""

    @pytest.mark.asyncio
    async def test_not_found(self, query_service):
        assert await query_service.workout_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_detail(self, workout_store, query_service, sample_workout):
        await workout_store.save([sample_workout])

        detail = await query_service.workout_by_id("W1")

        assert detail["heartRateData"] == [
            {"type": "Heart Rate", "timestamp": "2024-01-15T07:05:00.000Z", "value": 142},
            {"type": "Heart Rate", "timestamp": "2024-01-15T07:10:00.000Z", "value": 151},
        ]
        assert detail["heartRateRecovery"] == [
            {"type": "Heart Rate Recovery", "timestamp": "2024-01-15T07:46:00.000Z", "value": 118},
        ]
        assert detail["route"] == [
            {"latitude": 52.52, "longitude": 13.405, "time": "2024-01-15T07:00:05.000Z"},
            {"latitude": 52.521, "longitude": 13.406, "time": "2024-01-15T07:00:10.000Z"},
        ]

    @pytest.mark.asyncio
    async def test_unreadable_sample_dates(self, workout_store, query_service):
        await workout_store.save(
            [
                _workout(
                    "a",
                    "2024-01-01T08:00:00Z",
                    heartRateData=[{"date": 10**400, "Avg": 90}],
                    route=[{"latitude": 1.0, "longitude": 2.0, "timestamp": "garbage"}],
                )
            ]
        )

        detail = await query_service.workout_by_id("a")

        assert detail["heartRateData"] == [
            {"type": "Heart Rate", "timestamp": "1970-01-01T00:00:00.000Z", "value": 90}
        ]
        assert detail["route"][0]["time"] == "1970-01-01T00:00:00.000Z"
