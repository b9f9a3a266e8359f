"""Prometheus metrics definitions for the health store service."""

from prometheus_client import Counter, Histogram, Info

# -- Service info --
SERVICE_INFO = Info("health_store", "Health store service info")

# -- Ingestion --
INGEST_OUTCOMES = Counter(
    "health_store_ingest_outcomes_total",
    "Ingest subsystem outcomes",
    ["subsystem", "status"],
)
INGEST_RESPONSES = Counter(
    "health_store_ingest_responses_total",
    "Combined ingest responses by HTTP status",
    ["status"],
)

# -- Store writes --
RECORDS_WRITTEN = Counter(
    "health_store_records_written_total",
    "Total records upserted",
    ["table"],
)
STORE_TRANSACTIONS = Counter(
    "health_store_transactions_total",
    "Store transactions by result",
    ["result"],
)
STORE_TRANSACTION_DURATION = Histogram(
    "health_store_transaction_duration_seconds",
    "Store transaction latency",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# -- HTTP --
HTTP_REQUESTS_TOTAL = Counter(
    "health_store_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
