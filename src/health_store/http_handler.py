"""HTTP API for Health Auto Export ingestion and range queries."""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry import trace
from opentelemetry.trace import SpanKind
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from . import __version__
from .config import HTTPSettings
from .dispatcher import (
    IngestDispatcher,
    IngestEnvelopeError,
    IngestResponse,
    envelope_data,
    load_payload,
)
from .metrics import HTTP_REQUESTS_TOTAL
from .store import QueryService
from .timestamps import parse_epoch_millis
from .tracing import extract_trace_context
from .types import JSONValue

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)


def _log_task_exception(task: asyncio.Task) -> None:
    """Log exceptions from background tasks that would otherwise be silently lost."""
    if not task.cancelled() and task.exception():
        logger.error("background_task_failed", error=str(task.exception()))


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    message: str | None = None
    max_bytes: int | None = None


class InfoResponse(BaseModel):
    """Service info response."""

    name: str
    version: str


class _RejectedBody(Exception):
    """Request body could not be turned into a JSON value."""

    def __init__(self, response: JSONResponse) -> None:
        super().__init__(response.status_code)
        self.response = response


class HTTPHandler:
    """Serves the ingest and query endpoints.

    Ingest requests are handed to the shared :class:`IngestDispatcher`; read
    requests go to the :class:`QueryService`.
    """

    def __init__(
        self,
        settings: HTTPSettings,
        dispatcher: IngestDispatcher,
        query_service: QueryService,
    ) -> None:
        self._settings = settings
        self._dispatcher = dispatcher
        self._query_service = query_service
        self._app: FastAPI | None = None
        self._server: uvicorn.Server | None = None
        self._server_task: asyncio.Task | None = None

    def _build_app(self) -> FastAPI:
        app = FastAPI(
            title="Health Store API",
            version=__version__,
            description="Ingestion and query API for Apple Health Auto Export payloads.",
        )
        app.add_middleware(
            CORSMiddleware,
            allow_origins=self._settings.cors_origins,
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization"],
        )

        def error_response(
            status_code: int,
            error: str,
            message: str | None = None,
            max_bytes: int | None = None,
        ) -> JSONResponse:
            payload: dict[str, JSONValue] = {"error": error}
            if message is not None:
                payload["message"] = message
            if max_bytes is not None:
                payload["max_bytes"] = max_bytes
            return JSONResponse(status_code=status_code, content=payload)

        def count(method: str, path: str, status_code: int) -> None:
            HTTP_REQUESTS_TOTAL.labels(method=method, path=path, status=str(status_code)).inc()

        async def read_json_body(request: Request, path: str) -> Any:
            """Return the parsed body, or None when the body is empty."""
            content_length = request.headers.get("content-length")
            try:
                declared_size = int(content_length) if content_length else None
            except ValueError:
                logger.warning("invalid_content_length", path=path, value=content_length)
                count("POST", path, 400)
                raise _RejectedBody(
                    error_response(status.HTTP_400_BAD_REQUEST, "Invalid Content-Length header")
                ) from None
            if declared_size is not None and declared_size > self._settings.max_request_size:
                count("POST", path, 413)
                raise _RejectedBody(
                    error_response(
                        status.HTTP_413_CONTENT_TOO_LARGE,
                        "Request body too large",
                        max_bytes=self._settings.max_request_size,
                    )
                )

            try:
                raw_body = await request.body()
            except Exception as e:
                logger.warning("request_body_read_failed", error=str(e))
                count("POST", path, 400)
                raise _RejectedBody(
                    error_response(status.HTTP_400_BAD_REQUEST, "Failed to read request body")
                ) from e

            if len(raw_body) > self._settings.max_request_size:
                count("POST", path, 413)
                raise _RejectedBody(
                    error_response(
                        status.HTTP_413_CONTENT_TOO_LARGE,
                        "Request body too large",
                        max_bytes=self._settings.max_request_size,
                    )
                )

            if not raw_body.strip():
                return None

            try:
                return load_payload(raw_body)
            except ValueError as exc:
                logger.warning("http_payload_parse_error", path=path, error=str(exc))
                count("POST", path, 400)
                raise _RejectedBody(
                    error_response(status.HTTP_400_BAD_REQUEST, "Invalid JSON")
                ) from exc

        def failed_request(path: str, exc: Exception) -> JSONResponse:
            logger.error("http_ingest_failed", path=path, error=str(exc))
            count("POST", path, 500)
            return error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Failed to process request",
                message=str(exc) or "An error occurred",
            )

        @app.post(
            "/api/data",
            response_model=IngestResponse,
            responses={
                207: {"model": IngestResponse},
                400: {"model": ErrorResponse},
                413: {"model": ErrorResponse},
                500: {"model": ErrorResponse},
            },
            summary="Ingest metrics and workouts",
        )
        async def ingest(request: Request):
            """Handle POST /api/data -- ingest a full export payload."""
            request_context = extract_trace_context(dict(request.headers))
            with tracer.start_as_current_span(
                "http.ingest",
                context=request_context,
                kind=SpanKind.SERVER,
            ) as span:
                span.set_attribute("http.method", "POST")
                span.set_attribute("http.route", "/api/data")
                logger.info(
                    "http_ingest_received",
                    client_host=request.client.host if request.client else None,
                    user_agent=request.headers.get("user-agent"),
                    content_length=request.headers.get("content-length"),
                )

                try:
                    payload = await read_json_body(request, "/api/data")
                except _RejectedBody as rejected:
                    return rejected.response

                try:
                    response, status_code = await self._dispatcher.ingest(payload)
                except Exception as exc:
                    return failed_request("/api/data", exc)

                span.set_attribute("http.status_code", status_code)
                count("POST", "/api/data", status_code)
                return JSONResponse(status_code=status_code, content=response.to_dict())

        @app.post(
            "/api/metrics",
            response_model=IngestResponse,
            responses={
                400: {"model": ErrorResponse},
                413: {"model": ErrorResponse},
                500: {"model": ErrorResponse},
            },
            summary="Ingest metrics only",
        )
        async def ingest_metrics(request: Request):
            """Handle POST /api/metrics -- ingest the metrics part of a payload."""
            try:
                payload = await read_json_body(request, "/api/metrics")
            except _RejectedBody as rejected:
                return rejected.response
            try:
                data = envelope_data(payload)
            except IngestEnvelopeError as exc:
                return failed_request("/api/metrics", exc)

            outcome = await self._dispatcher.ingest_metrics(data.get("metrics"))
            status_code = (
                status.HTTP_200_OK if outcome.success else status.HTTP_500_INTERNAL_SERVER_ERROR
            )
            count("POST", "/api/metrics", status_code)
            return JSONResponse(
                status_code=status_code,
                content=IngestResponse(metrics=outcome).to_dict(),
            )

        @app.get(
            "/api/metrics/{name}",
            responses={500: {"model": ErrorResponse}},
            summary="List stored records of one metric",
        )
        async def get_metrics(
            name: str,
            from_: str | None = Query(default=None, alias="from"),
            to: str | None = Query(default=None),
        ):
            """Handle GET /api/metrics/{name} -- optional epoch-ms window."""
            try:
                rows = await self._query_service.metrics_in_range(
                    name,
                    parse_epoch_millis(from_),
                    parse_epoch_millis(to),
                )
            except Exception as exc:
                logger.error("metrics_query_failed", metric_name=name, error=str(exc))
                count("GET", "/api/metrics/{name}", 500)
                return error_response(
                    status.HTTP_500_INTERNAL_SERVER_ERROR, "Error getting metrics"
                )
            count("GET", "/api/metrics/{name}", 200)
            return rows

        @app.post(
            "/api/workouts",
            response_model=IngestResponse,
            responses={
                400: {"model": ErrorResponse},
                413: {"model": ErrorResponse},
                500: {"model": ErrorResponse},
            },
            summary="Ingest workouts only",
        )
        async def ingest_workouts(request: Request):
            """Handle POST /api/workouts -- ingest the workouts part of a payload."""
            try:
                payload = await read_json_body(request, "/api/workouts")
            except _RejectedBody as rejected:
                return rejected.response
            try:
                data = envelope_data(payload)
            except IngestEnvelopeError as exc:
                return failed_request("/api/workouts", exc)

            outcome = await self._dispatcher.ingest_workouts(data.get("workouts"))
            status_code = (
                status.HTTP_200_OK if outcome.success else status.HTTP_500_INTERNAL_SERVER_ERROR
            )
            count("POST", "/api/workouts", status_code)
            return JSONResponse(
                status_code=status_code,
                content=IngestResponse(workouts=outcome).to_dict(),
            )

        @app.get(
            "/api/workouts",
            responses={500: {"model": ErrorResponse}},
            summary="List workouts",
        )
        async def get_workouts(
            start_date: str | None = Query(default=None, alias="startDate"),
            end_date: str | None = Query(default=None, alias="endDate"),
        ):
            """Handle GET /api/workouts -- optional epoch-ms window, newest first."""
            try:
                workouts = await self._query_service.workouts_in_range(
                    parse_epoch_millis(start_date),
                    parse_epoch_millis(end_date),
                )
            except Exception as exc:
                logger.error("workouts_query_failed", error=str(exc))
                count("GET", "/api/workouts", 500)
                return error_response(
                    status.HTTP_500_INTERNAL_SERVER_ERROR, "Error fetching workouts"
                )
            count("GET", "/api/workouts", 200)
            return workouts

        # Registered before /api/workouts/{workout_id} so it is not captured by it
        @app.get(
            "/api/workouts/health",
            response_model=dict[str, str],
            summary="Liveness check",
        )
        async def health() -> dict[str, str]:
            """Handle GET /api/workouts/health -- returns service liveness status."""
            count("GET", "/api/workouts/health", 200)
            return {"status": "ok"}

        @app.get(
            "/api/workouts/{workout_id}",
            responses={
                404: {"model": ErrorResponse},
                500: {"model": ErrorResponse},
            },
            summary="Workout heart rate and route",
        )
        async def get_workout(workout_id: str):
            """Handle GET /api/workouts/{workout_id} -- single workout detail."""
            try:
                detail = await self._query_service.workout_by_id(workout_id)
            except Exception as exc:
                logger.error("workout_query_failed", workout_id=workout_id, error=str(exc))
                count("GET", "/api/workouts/{id}", 500)
                return error_response(
                    status.HTTP_500_INTERNAL_SERVER_ERROR, "Error fetching workout details"
                )
            if detail is None:
                count("GET", "/api/workouts/{id}", 404)
                return error_response(status.HTTP_404_NOT_FOUND, "Workout not found")
            count("GET", "/api/workouts/{id}", 200)
            return detail

        @app.get(
            "/info",
            response_model=InfoResponse,
            summary="Service info",
        )
        async def info() -> InfoResponse:
            """Handle GET /info -- returns service metadata."""
            count("GET", "/info", 200)
            return InfoResponse(name="health-store", version=__version__)

        @app.get(
            "/metrics",
            summary="Prometheus metrics",
        )
        async def metrics() -> Response:
            """Handle GET /metrics -- returns Prometheus metrics."""
            count("GET", "/metrics", 200)
            return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

        return app

    async def start(self) -> None:
        """Start the HTTP server."""
        self._app = self._build_app()
        config = uvicorn.Config(
            self._app,
            host=self._settings.host,
            port=self._settings.port,
            log_level="info",
        )
        self._server = uvicorn.Server(config)
        self._server_task = asyncio.create_task(self._server.serve())
        self._server_task.add_done_callback(_log_task_exception)
        logger.info(
            "http_server_started",
            host=self._settings.host,
            port=self._settings.port,
        )

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._server:
            self._server.should_exit = True
        if self._server_task:
            await self._server_task
            self._server_task = None
        logger.info("http_server_stopped")

    @property
    def app(self) -> FastAPI:
        """Expose the FastAPI app for testing."""
        if not self._app:
            self._app = self._build_app()
        return self._app
