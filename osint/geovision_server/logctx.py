"""
Request-scoped logging context.

Transports bind a RequestContext before invoking the service façade;
get_logger() then returns an adapter that stamps request_id, method and
transport onto every record. Context variables keep concurrent requests
apart without passing loggers through every call.
"""

from __future__ import annotations

import contextvars
import logging
import uuid
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class RequestContext:
    """Fields bound to every log record of one request."""
    request_id: str
    method: str
    transport: str


_current: contextvars.ContextVar[Optional[RequestContext]] = contextvars.ContextVar(
    "geovision_request", default=None
)


class RequestLoggerAdapter(logging.LoggerAdapter):
    """Merges the bound request context into ``extra``."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        ctx = _current.get()
        extra = dict(kwargs.get("extra") or {})
        if ctx is not None:
            for name, value in asdict(ctx).items():
                extra.setdefault(name, value)
        kwargs["extra"] = extra
        return msg, kwargs


def new_request_id() -> str:
    return uuid.uuid4().hex


@contextmanager
def bind_request(
    method: str,
    transport: str,
    request_id: Optional[str] = None,
) -> Iterator[RequestContext]:
    """Bind a request context for the duration of the block."""
    ctx = RequestContext(
        request_id=request_id or new_request_id(),
        method=method,
        transport=transport,
    )
    token = _current.set(ctx)
    try:
        yield ctx
    finally:
        _current.reset(token)


def current_request() -> Optional[RequestContext]:
    return _current.get()


def get_logger(name: str) -> RequestLoggerAdapter:
    """Logger bound to whatever request is current when it logs."""
    return RequestLoggerAdapter(logging.getLogger(name), {})
