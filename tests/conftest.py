"""Pytest configuration and fixtures."""

from pathlib import Path
import sys

import pytest
import pytest_asyncio

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from health_store.config import DatabaseSettings  # noqa: E402
from health_store.store import (  # noqa: E402
    HealthDatabase,
    MetricStore,
    QueryService,
    WorkoutStore,
)


@pytest_asyncio.fixture
async def database(tmp_path):
    """Connected store backed by a fresh SQLite file."""
    db = HealthDatabase(DatabaseSettings(_env_file=None, path=str(tmp_path / "health.db")))
    await db.connect()
    yield db
    await db.close()


@pytest.fixture
def metric_store(database):
    return MetricStore(database)


@pytest.fixture
def workout_store(database):
    return WorkoutStore(database)


@pytest.fixture
def query_service(database):
    return QueryService(database)


@pytest.fixture
def sample_heart_rate_batch():
    """Heart rate batch as sent by Health Auto Export."""
    return {
        "name": "heart_rate",
        "units": "count/min",
        "data": [
            {
                "Min": 60,
                "Avg": 72,
                "Max": 110,
                "date": "2024-01-01T00:00:00Z",
                "source": "watch",
            }
        ],
    }


@pytest.fixture
def sample_steps_batch():
    """Step count batch in the export's date format."""
    return {
        "name": "step_count",
        "units": "count",
        "data": [
            {"qty": 1200, "date": "2024-01-15 08:00:00 +0000", "source": "iPhone"},
            {"qty": 3400, "date": "2024-01-15 09:00:00 +0000", "source": "iPhone"},
        ],
    }


@pytest.fixture
def sample_sleep_batch():
    """Aggregated sleep analysis batch."""
    return {
        "name": "sleep_analysis",
        "units": "hr",
        "data": [
            {
                "date": "2024-01-15 00:00:00 +0000",
                "inBedStart": "2024-01-14 22:45:00 +0000",
                "inBedEnd": "2024-01-15 07:05:00 +0000",
                "sleepStart": "2024-01-14 23:00:00 +0000",
                "sleepEnd": "2024-01-15 07:00:00 +0000",
                "core": 3.5,
                "rem": 2.0,
                "deep": 1.5,
                "awake": 0.25,
                "inBed": 8.3,
                "source": "Apple Watch",
            }
        ],
    }


@pytest.fixture
def sample_workout():
    """Running workout with heart rate samples and a two point route."""
    return {
        "id": "W1",
        "name": "Outdoor Run",
        "start": "2024-01-15 07:00:00 +0000",
        "end": "2024-01-15 07:45:00 +0000",
        "duration": 2700,
        "activeEnergyBurned": {"qty": 350.5, "units": "kcal"},
        "distance": {"qty": 5.2, "units": "km"},
        "heartRateData": [
            {"date": "2024-01-15 07:05:00 +0000", "Min": 120, "Avg": 142, "Max": 160},
            {"date": "2024-01-15 07:10:00 +0000", "Min": 130, "Avg": 151, "Max": 170},
        ],
        "heartRateRecovery": [
            {"date": "2024-01-15 07:46:00 +0000", "Min": 100, "Avg": 118, "Max": 130},
        ],
        "route": [
            {
                "latitude": 52.52,
                "longitude": 13.405,
                "altitude": 34.0,
                "timestamp": "2024-01-15 07:00:05 +0000",
            },
            {
                "latitude": 52.521,
                "longitude": 13.406,
                "altitude": 35.0,
                "timestamp": "2024-01-15 07:00:10 +0000",
            },
        ],
    }


@pytest.fixture
def sample_indoor_workout():
    """Workout without GPS samples."""
    return {
        "id": "W2",
        "name": "Indoor Cycling",
        "start": "2024-01-16 18:00:00 +0000",
        "end": "2024-01-16 18:30:00 +0000",
        "duration": 1800,
        "activeEnergyBurned": {"qty": 210, "units": "kcal"},
        "route": [],
    }
