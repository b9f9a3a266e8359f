"""Tests for the import and query command line tools."""

import argparse
import json
import sys
from datetime import UTC, date, datetime

import pytest

from health_store import cli
from health_store.config import AppSettings, DatabaseSettings, Settings


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Settings:
    """Settings pointing at a scratch database, installed for the CLI."""
    settings = Settings(
        database=DatabaseSettings(_env_file=None, path=str(tmp_path / "cli.db")),
        app=AppSettings(_env_file=None, log_level="WARNING"),
    )
    monkeypatch.setattr(cli, "get_settings", lambda: settings)
    monkeypatch.setattr(cli, "setup_logging", lambda app_settings: None)
    return settings


def test_parse_date():
    assert cli.parse_date("2024-01-15") == date(2024, 1, 15)

    with pytest.raises(ValueError):
        cli.parse_date("15/01/2024")


def test_day_bounds():
    start, end = cli._day_bounds(date(2024, 1, 1), date(2024, 1, 2))

    assert start == datetime(2024, 1, 1, tzinfo=UTC)
    assert end == datetime(2024, 1, 2, 23, 59, 59, 999999, tzinfo=UTC)
    assert cli._day_bounds(None, date(2024, 1, 2)) == (None, None)


@pytest.mark.asyncio
async def test_import_export(settings, tmp_path, sample_heart_rate_batch, sample_workout):
    export = tmp_path / "export.json"
    export.write_text(
        json.dumps({"data": {"metrics": [sample_heart_rate_batch], "workouts": [sample_workout]}})
    )

    assert await cli._import_export(export) == 200


@pytest.mark.asyncio
async def test_import_export_partial(settings, tmp_path, sample_steps_batch):
    export = tmp_path / "export.json"
    export.write_text(
        json.dumps({"data": {"metrics": [sample_steps_batch], "workouts": [{"name": "no id"}]}})
    )

    assert await cli._import_export(export) == 207


@pytest.mark.asyncio
async def test_import_export_without_envelope(settings, tmp_path, capsys):
    export = tmp_path / "export.json"
    export.write_text(json.dumps({"metrics": []}))

    assert await cli._import_export(export) == 500
    assert "No data provided" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_query_metrics_csv(settings, tmp_path, capsys, sample_steps_batch):
    export = tmp_path / "export.json"
    export.write_text(json.dumps({"data": {"metrics": [sample_steps_batch]}}))
    await cli._import_export(export)
    capsys.readouterr()

    args = argparse.Namespace(
        name="step_count", start=date(2024, 1, 15), end=date(2024, 1, 15), format="csv"
    )
    await cli._query_metrics(args)

    out = capsys.readouterr().out
    assert "date,name,source,data" in out
    assert "2024-01-15T08:00:00.000Z,step_count,iPhone" in out
    assert "2024-01-15T09:00:00.000Z,step_count,iPhone" in out


@pytest.mark.asyncio
async def test_query_metrics_text_empty(settings, capsys):
    args = argparse.Namespace(name="step_count", start=None, end=None, format="text")
    await cli._query_metrics(args)

    out = capsys.readouterr().out
    assert "Metric: step_count | Records: 0" in out
    assert "No data found." in out


def test_import_export_rejects_non_finite_numbers(settings, tmp_path, monkeypatch, capsys):
    export = tmp_path / "export.json"
    export.write_text(
        '{"data": {"metrics": [{"name": "step_count", "data": [{"qty": NaN}]}]}}'
    )
    monkeypatch.setattr(sys, "argv", ["health-store-import", str(export)])

    with pytest.raises(SystemExit) as exc_info:
        cli.import_export()

    assert exc_info.value.code == 1
    assert "invalid JSON" in capsys.readouterr().err
