"""
gRPC server implementation for Geovision.

This module exposes the service façade over grpc.aio. No generated stubs
are involved: each RPC is registered through a generic handler whose
request and response messages are ``google.protobuf.Struct``. The Struct's
JSON form is exactly the request/response body the HTTP façade uses.

Invariants:
    - Every RPC runs inside a bound request context (x-request-id metadata
      or a fresh id)
    - GeovisionError becomes context.abort() with its mapped status code
    - Unexpected exceptions are logged and surface as INTERNAL with the
      generic message
    - Completion is logged once per RPC with duration_ms and status
    - In-flight RPCs are unbounded unless max_concurrent_rpcs is set

How to change safely:
    - New RPCs are added to GeovisionServicer.methods(), not here
    - Struct numbers are doubles; integer arguments go through int_arg
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional

import grpc
from google.protobuf import json_format
from google.protobuf.struct_pb2 import Struct
from grpc import aio as grpc_aio

from ..errors import GeovisionError, InternalError
from ..logctx import bind_request, get_logger
from .servicer import GeovisionServicer, Handler

logger = get_logger(__name__)

REQUEST_ID_METADATA = "x-request-id"


def struct_to_dict(message: Struct) -> Dict[str, Any]:
    return json_format.MessageToDict(message)


def dict_to_struct(payload: Dict[str, Any]) -> Struct:
    return json_format.ParseDict(payload, Struct())


def _request_id(context: grpc_aio.ServicerContext) -> Optional[str]:
    for key, value in context.invocation_metadata() or ():
        if key == REQUEST_ID_METADATA:
            return value
    return None


def _unary_handler(method: str, handler: Handler) -> grpc.RpcMethodHandler:
    """Wrap a façade handler as a Struct-in, Struct-out unary RPC."""

    async def behavior(request: Struct, context: grpc_aio.ServicerContext) -> Struct:
        started = time.monotonic()
        status = grpc.StatusCode.OK
        with bind_request(method, "grpc", _request_id(context)) as ctx:
            await context.send_initial_metadata(((REQUEST_ID_METADATA, ctx.request_id),))
            try:
                result = await handler(struct_to_dict(request))
                return dict_to_struct(result)
            except GeovisionError as e:
                status = e.grpc_status
                await context.abort(e.grpc_status, e.message)
            except Exception as e:
                status = grpc.StatusCode.INTERNAL
                logger.error(f"Unhandled error in {method}: {e}", exc_info=True)
                await context.abort(InternalError.grpc_status, InternalError().message)
            finally:
                logger.info(
                    "rpc completed",
                    extra={
                        "duration_ms": round((time.monotonic() - started) * 1000, 3),
                        "status": status.name,
                    },
                )

    return grpc.unary_unary_rpc_method_handler(
        behavior,
        request_deserializer=Struct.FromString,
        response_serializer=Struct.SerializeToString,
    )


def build_generic_handlers(servicer: GeovisionServicer) -> list[grpc.GenericRpcHandler]:
    """One generic handler per service in the servicer's RPC table."""
    handlers = []
    for service, methods in servicer.methods().items():
        handlers.append(
            grpc.method_handlers_generic_handler(
                service,
                {
                    name: _unary_handler(f"/{service}/{name}", handler)
                    for name, handler in methods.items()
                },
            )
        )
    return handlers


class GrpcServer:
    """gRPC server wrapper for Geovision.

    This class manages the gRPC server lifecycle including:
    - Server initialization
    - Service registration
    - Graceful shutdown

    Example:
        >>> server = GrpcServer(servicer, port=50051)
        >>> await server.start()
        >>> # Server is now running
        >>> await server.stop()
    """

    def __init__(
        self,
        servicer: GeovisionServicer,
        host: str = "0.0.0.0",
        port: int = 50051,
        max_workers: int = 10,
        grace_period: float = 5.0,
        max_concurrent_rpcs: Optional[int] = None,
    ) -> None:
        """Initialize the gRPC server.

        Args:
            servicer: GeovisionServicer instance
            host: Host to bind to
            port: Port to listen on (0 picks a free port)
            max_workers: Thread pool size for blocking handlers
            grace_period: Time pending RPCs get on stop()
            max_concurrent_rpcs: Cap on in-flight RPCs; None queues without limit
        """
        self.servicer = servicer
        self.host = host
        self.port = port
        self.max_workers = max_workers
        self.grace_period = grace_period
        self.max_concurrent_rpcs = max_concurrent_rpcs
        self._executor: Optional[ThreadPoolExecutor] = None
        self._server: Optional[grpc_aio.Server] = None
        self._running = False

    async def start(self) -> None:
        """Start the gRPC server."""
        if self._running:
            logger.warning("Server already running")
            return

        self._executor = ThreadPoolExecutor(max_workers=self.max_workers)
        server = grpc_aio.server(
            migration_thread_pool=self._executor,
            maximum_concurrent_rpcs=self.max_concurrent_rpcs,
        )
        server.add_generic_rpc_handlers(tuple(build_generic_handlers(self.servicer)))
        bound = server.add_insecure_port(f"{self.host}:{self.port}")
        if bound == 0:
            self._executor.shutdown(wait=False)
            self._executor = None
            raise RuntimeError(f"Failed to bind gRPC server to {self.host}:{self.port}")
        self.port = bound

        await server.start()
        self._server = server
        self._running = True

        logger.info(
            f"gRPC server started on {self.host}:{self.port}",
            extra={
                "host": self.host,
                "port": self.port,
                "max_workers": self.max_workers,
                "max_concurrent_rpcs": self.max_concurrent_rpcs,
            },
        )

    async def stop(self, grace_period: Optional[float] = None) -> None:
        """Stop the gRPC server gracefully.

        Args:
            grace_period: Time to wait for pending RPCs to complete
        """
        if not self._running:
            return

        logger.info("Stopping gRPC server")
        self._running = False

        if self._server:
            await self._server.stop(self.grace_period if grace_period is None else grace_period)
            self._server = None

        if self._executor:
            self._executor.shutdown(wait=False)
            self._executor = None

    async def wait_for_termination(self) -> None:
        if self._server:
            await self._server.wait_for_termination()

    @property
    def is_running(self) -> bool:
        """Whether the server is running."""
        return self._running
