"""Personal health telemetry store.

A service that receives health data exported by the Health Auto Export iOS app
via REST API, normalizes metrics and workouts, upserts them into a SQLite store
and serves range queries over the stored records.

Modules:
    config: Configuration management using pydantic-settings
    dispatcher: Concurrent fan-out of one ingest request to the stores
    http_handler: REST API for ingestion and queries
    mappers: Normalization of raw metric batches and workouts
    store: Transactional persistence and read queries

Example:
    Run the service::

        $ uv run health-store

    Import an export file without the HTTP server::

        $ uv run health-store-import export.json
"""

__version__ = "0.1.0"

from .config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__"]
