"""Configuration management using pydantic-settings."""

import threading

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Valid log levels
VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

# Span exporters understood by setup_tracing
VALID_TRACE_EXPORTERS = {"otlp", "console", "none"}

# Source recorded for measurements that arrive without one
DEFAULT_SOURCE = "source unknown"


class DatabaseSettings(BaseSettings):
    """SQLite store settings."""

    model_config = SettingsConfigDict(env_prefix="DB_")

    path: str = Field(default="/data/health.db", description="SQLite database file")
    busy_timeout_ms: int = Field(
        default=5000, description="How long a writer waits for the database lock"
    )

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Validate path is not empty."""
        if not v or not v.strip():
            raise ValueError("Database path cannot be empty")
        return v

    @field_validator("busy_timeout_ms")
    @classmethod
    def validate_busy_timeout(cls, v: int) -> int:
        """Validate busy timeout is reasonable."""
        if v < 0:
            raise ValueError(f"Busy timeout cannot be negative, got {v}")
        if v > 600_000:
            raise ValueError(f"Busy timeout too large (max 600000ms), got {v}")
        return v


class HTTPSettings(BaseSettings):
    """HTTP API settings."""

    model_config = SettingsConfigDict(env_prefix="HTTP_")

    host: str = Field(default="0.0.0.0", description="HTTP bind address")
    port: int = Field(default=3001, description="HTTP listen port")
    max_request_size: int = Field(
        default=200 * 1024 * 1024, description="Maximum accepted request body in bytes"
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"], description="Allowed CORS origins"
    )

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError(f"Port must be between 1 and 65535, got {v}")
        return v

    @field_validator("max_request_size")
    @classmethod
    def validate_max_request_size(cls, v: int) -> int:
        """Validate max request size is usable."""
        if v < 1024:
            raise ValueError(f"Max request size must be at least 1KB, got {v}")
        return v


class TracingSettings(BaseSettings):
    """OpenTelemetry tracing settings."""

    model_config = SettingsConfigDict(env_prefix="TRACING_")

    enabled: bool = Field(default=False, description="Record and export spans")
    service_name: str = Field(default="health-store", description="Reported service name")
    exporter: str = Field(default="otlp", description="Span exporter: otlp, console or none")
    otlp_endpoint: str | None = Field(
        default=None, description="OTLP/HTTP traces endpoint; the exporter default when unset"
    )

    @field_validator("exporter")
    @classmethod
    def validate_exporter(cls, v: str) -> str:
        """Validate exporter is supported."""
        normalized = v.strip().lower()
        if normalized not in VALID_TRACE_EXPORTERS:
            choices = ", ".join(sorted(VALID_TRACE_EXPORTERS))
            raise ValueError(f"Invalid trace exporter '{v}'. Must be one of: {choices}")
        return normalized


class AppSettings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_prefix="APP_")

    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or console")
    default_source: str = Field(
        default=DEFAULT_SOURCE, description="Source stored for metrics without one"
    )
    prometheus_port: int = Field(default=9090, description="Prometheus exporter port")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        normalized = v.upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level '{v}'. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
            )
        return normalized

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format is valid."""
        normalized = v.lower()
        if normalized not in ("json", "console"):
            raise ValueError(f"Invalid log format '{v}'. Must be 'json' or 'console'")
        return normalized

    @field_validator("default_source")
    @classmethod
    def validate_default_source(cls, v: str) -> str:
        """Validate default source is not blank."""
        if not v or not v.strip():
            raise ValueError("Default source cannot be empty")
        return v

    @field_validator("prometheus_port")
    @classmethod
    def validate_prometheus_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError(f"Port must be between 1 and 65535, got {v}")
        return v


class Settings(BaseSettings):
    """Combined application settings."""

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    http: HTTPSettings = Field(default_factory=HTTPSettings)
    tracing: TracingSettings = Field(default_factory=TracingSettings)
    app: AppSettings = Field(default_factory=AppSettings)

    @classmethod
    def load(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            database=DatabaseSettings(),
            http=HTTPSettings(),
            tracing=TracingSettings(),
            app=AppSettings(),
        )


# Global settings instance with thread-safe initialization
_settings: Settings | None = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """Get or create the global settings instance.

    Thread-safe singleton pattern using double-checked locking.
    """
    global _settings
    if _settings is None:
        with _settings_lock:
            # Double-check after acquiring lock
            if _settings is None:
                _settings = Settings.load()
    return _settings
