"""Main entry point for the health store service."""

import asyncio
import signal

import structlog
from opentelemetry.sdk.trace import TracerProvider
from prometheus_client import start_http_server as start_metrics_server

from . import __version__
from .config import Settings, get_settings
from .dispatcher import IngestDispatcher
from .http_handler import HTTPHandler
from .logging import setup_logging
from .metrics import SERVICE_INFO
from .store import HealthDatabase, MetricStore, QueryService, WorkoutStore
from .tracing import setup_tracing, shutdown_tracing

logger = structlog.get_logger(__name__)


class HealthStoreService:
    """Owns the database client and wires it into the stores and HTTP API."""

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize the service without opening anything."""
        self._settings = settings or get_settings()
        self._database: HealthDatabase | None = None
        self._http_handler: HTTPHandler | None = None
        self._tracer_provider: TracerProvider | None = None
        self._shutdown_event = asyncio.Event()

    async def start(self) -> None:
        """Open the store and start serving."""
        self._tracer_provider = setup_tracing(self._settings.tracing)
        logger.info("service_starting", version=__version__)
        SERVICE_INFO.info({"version": __version__})

        self._database = HealthDatabase(self._settings.database)
        await self._database.connect()

        dispatcher = IngestDispatcher(
            metric_store=MetricStore(
                self._database,
                default_source=self._settings.app.default_source,
            ),
            workout_store=WorkoutStore(self._database),
        )
        self._http_handler = HTTPHandler(
            settings=self._settings.http,
            dispatcher=dispatcher,
            query_service=QueryService(self._database),
        )
        await self._http_handler.start()

        start_metrics_server(port=self._settings.app.prometheus_port)
        logger.info("prometheus_metrics_started", port=self._settings.app.prometheus_port)

        logger.info("service_started")

    async def stop(self) -> None:
        """Stop serving, then release the store."""
        logger.info("service_stopping")

        if self._http_handler:
            await self._http_handler.stop()
            self._http_handler = None

        if self._database:
            await self._database.close()
            self._database = None

        shutdown_tracing(self._tracer_provider)
        self._tracer_provider = None

        logger.info("service_stopped")

    def request_shutdown(self) -> None:
        """Ask run_until_shutdown() to return."""
        self._shutdown_event.set()

    async def run_until_shutdown(self) -> None:
        """Block until a shutdown is requested."""
        await self._shutdown_event.wait()


async def main() -> None:
    """Main entry point."""
    settings = get_settings()
    setup_logging(settings.app)

    service = HealthStoreService(settings)

    # Set up signal handlers
    loop = asyncio.get_running_loop()

    def signal_handler() -> None:
        logger.info("shutdown_signal_received")
        service.request_shutdown()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await service.start()
        await service.run_until_shutdown()
    except Exception as e:
        logger.exception("service_error", error=str(e))
        raise
    finally:
        await service.stop()


def run() -> None:
    """Entry point for the CLI."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
