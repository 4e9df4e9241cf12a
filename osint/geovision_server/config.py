"""
Configuration management for the Geovision server.

All configuration is done via environment variables - no config files inside containers.
This module provides typed configuration classes with validation.

Invariants:
    - Listener ports, the store endpoint, database and credentials have no
      defaults; a missing value is fatal at start-up
    - Everything else has a sensible default for local development
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Required settings belong in REQUIRED_ENV and validate()
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

REQUIRED_ENV = (
    "GRPC_PORT",
    "SERVER_PORT",
    "ARANGO_URL",
    "ARANGO_DB",
    "ARANGO_USERNAME",
    "ARANGO_PASSWORD",
)


def _require(name: str) -> str:
    value = os.getenv(name, "")
    if not value:
        raise ValueError(f"{name} is required")
    return value


def _port(name: str) -> int:
    raw = _require(name)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name, "")
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class GrpcConfig:
    """gRPC server configuration.

    Attributes:
        host: Interface to bind
        port: TCP port for the binary RPC listener
        max_workers: Thread pool size for blocking handlers
        max_concurrent_rpcs: Optional cap on in-flight RPCs; None is unlimited
        grace_period: Seconds in-flight RPCs get to finish on shutdown
    """

    host: str = "0.0.0.0"
    port: int = 0
    max_workers: int = 10
    max_concurrent_rpcs: Optional[int] = None
    grace_period: float = 5.0

    @property
    def bind_address(self) -> str:
        return f"{self.host}:{self.port}"

    @classmethod
    def from_env(cls) -> GrpcConfig:
        """Load configuration from environment variables."""
        return cls(
            host=os.getenv("GRPC_HOST", "0.0.0.0"),
            port=_port("GRPC_PORT"),
            max_workers=int(os.getenv("GRPC_MAX_WORKERS", "10")),
            max_concurrent_rpcs=_optional_int("GRPC_MAX_CONCURRENT_RPCS"),
            grace_period=float(os.getenv("GRPC_GRACE_PERIOD", "5.0")),
        )


@dataclass(frozen=True)
class HttpConfig:
    """HTTP façade configuration.

    Attributes:
        host: Interface to bind
        port: TCP port for the HTTP listener
    """

    host: str = "0.0.0.0"
    port: int = 0

    @classmethod
    def from_env(cls) -> HttpConfig:
        """Load configuration from environment variables."""
        return cls(
            host=os.getenv("SERVER_HOST", "0.0.0.0"),
            port=_port("SERVER_PORT"),
        )


@dataclass(frozen=True)
class ArangoConfig:
    """ArangoDB store configuration.

    Attributes:
        url: Store endpoint URL
        database: Database name, created on first connect if absent
        username: Store user
        password: Store password (never logged)
        graph: Name of the named graph uniting vertex and edge collections
        request_timeout: Driver request timeout in seconds
    """

    url: str = ""
    database: str = ""
    username: str = ""
    password: str = field(default="", repr=False)
    graph: str = "osint_graph"
    request_timeout: int = 60

    @classmethod
    def from_env(cls) -> ArangoConfig:
        """Load configuration from environment variables."""
        return cls(
            url=_require("ARANGO_URL"),
            database=_require("ARANGO_DB"),
            username=_require("ARANGO_USERNAME"),
            password=_require("ARANGO_PASSWORD"),
            graph=os.getenv("ARANGO_GRAPH", "osint_graph"),
            request_timeout=int(os.getenv("ARANGO_REQUEST_TIMEOUT", "60")),
        )


@dataclass(frozen=True)
class EventsConfig:
    """Event query configuration.

    Attributes:
        allow_zero_bounds: Accept 0 as startTime/endTime in GetEvents
    """

    allow_zero_bounds: bool = False

    @classmethod
    def from_env(cls) -> EventsConfig:
        """Load configuration from environment variables."""
        return cls(allow_zero_bounds=_flag("EVENTS_ALLOW_ZERO_BOUNDS"))


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class ServerConfig:
    """Complete server configuration.

    This aggregates all configuration sections and provides validation.

    Attributes:
        grpc: gRPC server configuration
        http: HTTP façade configuration
        arango: Store configuration
        events: Event query configuration
        observability: Logging configuration
    """

    grpc: GrpcConfig = field(default_factory=GrpcConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    arango: ArangoConfig = field(default_factory=ArangoConfig)
    events: EventsConfig = field(default_factory=EventsConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If required configuration is missing or invalid.
        """
        config = cls(
            grpc=GrpcConfig.from_env(),
            http=HttpConfig.from_env(),
            arango=ArangoConfig.from_env(),
            events=EventsConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        for name, port in (("GRPC_PORT", self.grpc.port), ("SERVER_PORT", self.http.port)):
            if not 1 <= port <= 65535:
                raise ValueError(f"{name} must be between 1 and 65535, got {port}")

        if self.grpc.port == self.http.port and self.grpc.host == self.http.host:
            raise ValueError("GRPC_PORT and SERVER_PORT must differ")

        for name, value in (
            ("ARANGO_URL", self.arango.url),
            ("ARANGO_DB", self.arango.database),
            ("ARANGO_USERNAME", self.arango.username),
            ("ARANGO_PASSWORD", self.arango.password),
        ):
            if not value:
                raise ValueError(f"{name} is required")

        if not self.arango.graph:
            raise ValueError("ARANGO_GRAPH must not be empty")

        if self.grpc.max_workers < 1:
            raise ValueError("GRPC_MAX_WORKERS must be at least 1")

        if self.grpc.max_concurrent_rpcs is not None and self.grpc.max_concurrent_rpcs < 1:
            raise ValueError("GRPC_MAX_CONCURRENT_RPCS must be at least 1 when set")

        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Server configuration loaded",
            extra={
                "grpc_bind": self.grpc.bind_address,
                "grpc_max_concurrent_rpcs": self.grpc.max_concurrent_rpcs,
                "http_bind": f"{self.http.host}:{self.http.port}",
                "arango_url": self.arango.url,
                "arango_db": self.arango.database,
                "arango_username": self.arango.username,
                "arango_password": "***",
                "arango_graph": self.arango.graph,
                "events_allow_zero_bounds": self.events.allow_zero_bounds,
                "log_level": self.observability.log_level,
            },
        )
