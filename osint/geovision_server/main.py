"""
Geovision Server - Main entry point.

This module starts the Geovision server with all components:
- Store connection and graph bootstrap (ArangoDB)
- gRPC server (primary API)
- HTTP server (REST façade)

Usage:
    python -m osint.geovision_server.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - The store is connected and bootstrapped before any listener starts
    - Graceful shutdown waits for in-flight RPCs up to the grace period
    - All components share one store gateway

How to change safely:
    - Test shutdown sequence thoroughly
    - New components are started after bootstrap and stopped before the store
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import json_log_formatter

from .api import GeovisionServicer, GrpcServer, HttpServer
from .config import ServerConfig
from .graph import GraphBootstrap
from .store import StoreGateway, create_store

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("grpc").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


class Server:
    """Geovision server orchestrator.

    Manages the lifecycle of all server components:
    - Store connection and bootstrap
    - gRPC server
    - HTTP server

    Attributes:
        config: Server configuration
        store: Store gateway instance
        servicer: Service façade shared by both transports

    Example:
        >>> server = Server()
        >>> await server.start()
        >>> # Server is running
        >>> await server.stop()
    """

    def __init__(
        self,
        config: ServerConfig | None = None,
        store: StoreGateway | None = None,
    ) -> None:
        """Initialize the server.

        Args:
            config: Optional server configuration (loaded from env if not provided)
            store: Optional store gateway (built from config if not provided)
        """
        self.config = config or ServerConfig.from_env()
        self._running = False
        self._shutdown_event = asyncio.Event()

        # Components (initialized in start())
        self.store: StoreGateway | None = store
        self.servicer: GeovisionServicer | None = None
        self.grpc_server: GrpcServer | None = None
        self.http_server: HttpServer | None = None

    async def start(self) -> None:
        """Start the server and block until shutdown is requested."""
        if self._running:
            logger.warning("Server already running")
            return

        logger.info("Starting Geovision server")
        self.config.log_config()

        try:
            await self.setup()
            self._running = True
            logger.info("Geovision server started successfully")

            # Wait for shutdown signal
            await self._shutdown_event.wait()

        except Exception as e:
            logger.error(f"Server startup failed: {e}", exc_info=True)
            await self._teardown()
            raise

    async def setup(self) -> None:
        """Connect, bootstrap and start both listeners."""
        if self.store is None:
            self.store = create_store(self.config)
        await self.store.connect()
        logger.info("Store connected")

        await GraphBootstrap(self.store, self.config.arango.graph).run()

        self.servicer = GeovisionServicer.from_store(
            self.store,
            self.config.arango.graph,
            allow_zero_bounds=self.config.events.allow_zero_bounds,
        )

        self.grpc_server = GrpcServer(
            servicer=self.servicer,
            host=self.config.grpc.host,
            port=self.config.grpc.port,
            max_workers=self.config.grpc.max_workers,
            grace_period=self.config.grpc.grace_period,
            max_concurrent_rpcs=self.config.grpc.max_concurrent_rpcs,
        )
        await self.grpc_server.start()

        self.http_server = HttpServer(
            servicer=self.servicer,
            host=self.config.http.host,
            port=self.config.http.port,
        )
        await self.http_server.start()

    async def stop(self) -> None:
        """Stop the server gracefully. Safe to call more than once."""
        if not self._running and self.store is None:
            return

        logger.info("Stopping Geovision server")
        await self._teardown()
        self._running = False
        logger.info("Geovision server stopped")

    async def _teardown(self) -> None:
        if self.http_server:
            await self.http_server.stop()
            self.http_server = None

        if self.grpc_server:
            await self.grpc_server.stop()
            self.grpc_server = None

        if self.store:
            await self.store.close()
            self.store = None

    def request_shutdown(self) -> None:
        """Request graceful shutdown."""
        self._shutdown_event.set()


def main() -> None:
    """Main entry point."""
    # Load configuration
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    # Setup logging
    setup_logging(config)

    # Setup signal handlers
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    # Create server
    server = Server(config)

    def handle_signal(sig: int) -> None:
        logger.info(f"Received signal {sig}, initiating shutdown")
        server.request_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal, sig)

    # Run server
    exit_code = 0
    try:
        loop.run_until_complete(server.start())
    except KeyboardInterrupt:
        pass
    except Exception:
        exit_code = 1
    finally:
        loop.run_until_complete(server.stop())
        loop.close()

    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
