"""Metric persistence with idempotent upserts."""

import asyncio
import json
import sqlite3
from collections.abc import Mapping, Sequence
from typing import Any

import structlog

from ..config import DEFAULT_SOURCE
from ..mappers import MetricRecord, map_metric_batch
from ..metrics import RECORDS_WRITTEN
from ..timestamps import format_timestamp
from .database import HealthDatabase

logger = structlog.get_logger(__name__)

_UPSERT_METRIC = """
    INSERT INTO metrics (name, source, date, data)
    VALUES (?, ?, ?, ?)
    ON CONFLICT (name, source, date)
    DO UPDATE SET data = excluded.data
"""


class MetricStore:
    """Upserts metric records keyed by (name, source, date).

    Each metric name is written in its own transaction; different names are
    written concurrently and never roll each other back.
    """

    def __init__(self, database: HealthDatabase, default_source: str = DEFAULT_SOURCE) -> None:
        self._database = database
        self._default_source = default_source

    def _source(self, record: MetricRecord) -> str:
        return record.source or self._default_source

    async def save(self, name: str, records: Sequence[MetricRecord]) -> int:
        """Upsert all records of one metric name atomically.

        Args:
            name: Metric name the records were ingested under.
            records: Mapped records for that name.

        Returns:
            Number of records written.

        Raises:
            Exception: Any store or serialization failure; nothing of this
                name is committed in that case.
        """
        rows = [
            (name, self._source(record), format_timestamp(record.date), record.payload())
            for record in records
        ]

        def do_save(conn: sqlite3.Connection) -> int:
            for metric_name, source, date, payload in rows:
                conn.execute(_UPSERT_METRIC, (metric_name, source, date, json.dumps(payload)))
            return len(rows)

        saved = await self._database.run_transaction(do_save, name=f"metrics.{name}")
        RECORDS_WRITTEN.labels(table="metrics").inc(saved)
        logger.debug("metrics_saved", metric_name=name, count=saved)
        return saved

    async def save_batches(self, batches: Sequence[Mapping[str, Any]]) -> int:
        """Map raw batches and upsert every metric name concurrently.

        Batches sharing a name are merged into one transaction. All names run
        to completion before the first failure, if any, is re-raised.

        Returns:
            Total number of records written.
        """
        grouped: dict[str, list[MetricRecord]] = {}
        for batch in batches:
            if not isinstance(batch, Mapping):
                logger.warning("metric_batch_malformed", batch_type=type(batch).__name__)
                continue
            name = str(batch.get("name") or "")
            grouped.setdefault(name, []).extend(map_metric_batch(batch))

        results = await asyncio.gather(
            *(self.save(name, records) for name, records in grouped.items()),
            return_exceptions=True,
        )

        failures = [result for result in results if isinstance(result, BaseException)]
        if failures:
            logger.warning(
                "metric_kinds_failed",
                failed=len(failures),
                total=len(grouped),
            )
            raise failures[0]
        return sum(results)
