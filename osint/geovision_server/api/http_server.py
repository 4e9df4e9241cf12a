"""
HTTP server implementation for Geovision.

This module provides a REST API that mirrors the gRPC interface under
``/v1``. Request bodies and responses are the same JSON shapes the gRPC
Struct messages carry.

Invariants:
    - HTTP endpoints have same semantics as gRPC
    - GeovisionError maps to its HTTP status with body {"error", "code"}
    - Invalid JSON bodies are 400
    - Every request runs inside a bound request context (X-Request-ID)

How to change safely:
    - Keep endpoints in sync with GeovisionServicer.methods()
    - Version the API if breaking changes are needed
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Awaitable, Callable
from typing import Any, Dict

from aiohttp import web

from ..errors import BadRequestError, GeovisionError, InternalError
from ..logctx import bind_request, get_logger
from ..models import EntityKind
from .servicer import GeovisionServicer

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

Route = Callable[[web.Request], Awaitable[Dict[str, Any]]]


def error_response(error: GeovisionError) -> web.Response:
    return web.json_response(error.to_dict(), status=error.http_status)


async def read_json(request: web.Request) -> Dict[str, Any]:
    """Parse the body as a JSON object; an empty body is ``{}``."""
    if not request.can_read_body:
        return {}
    try:
        body = await request.json()
    except json.JSONDecodeError as e:
        raise BadRequestError("Invalid JSON body") from e
    if not isinstance(body, dict):
        raise BadRequestError("JSON body must be an object")
    return body


@web.middleware
async def request_context_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    """Bind the request context, log completion, map errors to responses."""
    started = time.monotonic()
    method = f"{request.method} {request.path}"
    with bind_request(method, "http", request.headers.get(REQUEST_ID_HEADER)) as ctx:
        try:
            response = await handler(request)
        except GeovisionError as e:
            response = error_response(e)
        except web.HTTPException:
            raise
        except Exception as e:
            logger.error(f"HTTP handler error: {e}", exc_info=True)
            response = error_response(InternalError())

        response.headers[REQUEST_ID_HEADER] = ctx.request_id
        logger.info(
            "request completed",
            extra={
                "duration_ms": round((time.monotonic() - started) * 1000, 3),
                "status": response.status,
            },
        )
        return response


def _json(route: Route, status: int = 200) -> Callable[[web.Request], Awaitable[web.Response]]:
    async def handle(request: web.Request) -> web.Response:
        return web.json_response(await route(request), status=status)

    return handle


def create_http_app(servicer: GeovisionServicer) -> web.Application:
    """Create an HTTP application for Geovision.

    Args:
        servicer: GeovisionServicer instance

    Returns:
        aiohttp Application instance
    """
    app = web.Application(middlewares=[request_context_middleware])

    async def handle_health(request: web.Request) -> web.Response:
        """Handle GET /health - liveness."""
        return web.json_response({"status": "ok"})

    async def handle_store_health(request: web.Request) -> web.Response:
        """Handle GET /v1/health - store reachability."""
        result = await servicer.health()
        return web.json_response(result, status=200 if result["store"] else 503)

    async def get_events(request: web.Request) -> Dict[str, Any]:
        return await servicer.get_events(
            {
                "startTime": request.query.get("startTime"),
                "endTime": request.query.get("endTime"),
            }
        )

    async def related_entities(request: web.Request) -> Dict[str, Any]:
        return await servicer.get_event_related_entities({"key": request.match_info["key"]})

    async def related_events(request: web.Request) -> Dict[str, Any]:
        return await servicer.get_related_events({"key": request.match_info["key"]})

    async def get_persons(request: web.Request) -> Dict[str, Any]:
        return await servicer.get_persons({})

    async def create_relationship(request: web.Request) -> Dict[str, Any]:
        return await servicer.create_relationship(await read_json(request))

    async def update_relationship(request: web.Request) -> Dict[str, Any]:
        body = await read_json(request)
        body["id"] = f"{request.match_info['collection']}/{request.match_info['key']}"
        return await servicer.update_relationship(body)

    async def delete_relationship(request: web.Request) -> Dict[str, Any]:
        relation_id = f"{request.match_info['collection']}/{request.match_info['key']}"
        return await servicer.delete_relationship({"id": relation_id})

    app.router.add_get("/health", handle_health)
    app.router.add_get("/v1/health", handle_store_health)

    app.router.add_get("/v1/events", _json(get_events))
    app.router.add_get("/v1/events/{key}/related-entities", _json(related_entities))
    app.router.add_get("/v1/events/{key}/related-events", _json(related_events))
    app.router.add_get("/v1/persons", _json(get_persons))

    for kind in EntityKind:
        _add_entity_routes(app, servicer, kind)

    app.router.add_post("/v1/relationships", _json(create_relationship, status=201))
    app.router.add_patch("/v1/relationships/{collection}/{key}", _json(update_relationship))
    app.router.add_delete("/v1/relationships/{collection}/{key}", _json(delete_relationship))

    return app


def _add_entity_routes(app: web.Application, servicer: GeovisionServicer, kind: EntityKind) -> None:
    base = f"/v1/{kind.value}"

    async def create(request: web.Request) -> Dict[str, Any]:
        return await servicer.create_entity(kind, await read_json(request))

    async def get(request: web.Request) -> Dict[str, Any]:
        return await servicer.get_entity(kind, {"key": request.match_info["key"]})

    async def update(request: web.Request) -> Dict[str, Any]:
        body = await read_json(request)
        body["key"] = request.match_info["key"]
        return await servicer.update_entity(kind, body)

    async def delete(request: web.Request) -> Dict[str, Any]:
        return await servicer.delete_entity(kind, {"key": request.match_info["key"]})

    app.router.add_post(base, _json(create, status=201))
    app.router.add_get(f"{base}/{{key}}", _json(get))
    app.router.add_patch(f"{base}/{{key}}", _json(update))
    app.router.add_delete(f"{base}/{{key}}", _json(delete))


class HttpServer:
    """aiohttp runner wrapper with the same lifecycle as GrpcServer.

    Example:
        >>> server = HttpServer(servicer, port=8080)
        >>> await server.start()
        >>> await server.stop()
    """

    def __init__(self, servicer: GeovisionServicer, host: str = "0.0.0.0", port: int = 8080) -> None:
        self.servicer = servicer
        self.host = host
        self.port = port
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        if self._runner is not None:
            logger.warning("HTTP server already running")
            return

        runner = web.AppRunner(create_http_app(self.servicer))
        await runner.setup()
        site = web.TCPSite(runner, self.host, self.port)
        await site.start()
        self._runner = runner
        if self.port == 0:
            self.port = runner.addresses[0][1]

        logger.info(f"HTTP server running on http://{self.host}:{self.port}")

    async def stop(self) -> None:
        if self._runner is None:
            return
        logger.info("Stopping HTTP server")
        await self._runner.cleanup()
        self._runner = None

    @property
    def is_running(self) -> bool:
        return self._runner is not None


async def run_http_server(
    servicer: GeovisionServicer,
    host: str = "0.0.0.0",
    port: int = 8080,
) -> None:
    """Run the HTTP server until cancelled.

    Args:
        servicer: GeovisionServicer instance
        host: Host to bind to
        port: Port to listen on
    """
    server = HttpServer(servicer, host, port)
    await server.start()

    # Keep running until cancelled
    try:
        while True:
            await asyncio.sleep(3600)
    except asyncio.CancelledError:
        pass
    finally:
        await server.stop()


__all__ = [
    "HttpServer",
    "create_http_app",
    "run_http_server",
]
