"""
API module for the Geovision server.

This module provides the external interfaces:
- gRPC server (primary API, Struct messages over generic handlers)
- HTTP server (REST façade under /v1)
- gRPC client

Both servers share the same GeovisionServicer façade.

Invariants:
    - Both transports bind a request context before calling the façade
    - Errors reach clients as canonical categories only

How to change safely:
    - Add new RPC methods, don't modify existing ones
    - HTTP endpoints should match gRPC semantics
"""

from .grpc_client import GrpcClient
from .grpc_server import GrpcServer
from .http_server import HttpServer, create_http_app, run_http_server
from .servicer import GeovisionServicer

__all__ = [
    "GeovisionServicer",
    "GrpcClient",
    "GrpcServer",
    "HttpServer",
    "create_http_app",
    "run_http_server",
]
