"""Shared test helpers: request builders and in-process clients.

``make_request`` builds a Starlette request without a server so the
pipeline and handlers can be driven directly. ``asgi_client`` talks to
a full app in the same event loop, which lets a test keep a gated
request in flight while it changes files on disk.
"""

from __future__ import annotations

from typing import Any

import httpx
from starlette.applications import Starlette
from starlette.requests import Request

from wsb.app import create_app
from wsb.config import ServerConfig


def make_request(
    path: str = "/",
    *,
    query: str = "",
    headers: dict[str, str] | None = None,
    method: str = "GET",
) -> Request:
    """Create a bare HTTP request for *path*."""
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "raw_path": path.encode(),
        "query_string": query.encode(),
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "scheme": "http",
        "server": ("testserver", 80),
        "client": ("127.0.0.1", 50000),
        "root_path": "",
    }
    return Request(scope)


def make_app(**config: Any) -> Starlette:
    """Create an app from keyword config values."""
    return create_app(ServerConfig(**config))


def asgi_client(app: Starlette) -> httpx.AsyncClient:
    """Async client bound to *app* (no network)."""
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
        timeout=10.0,
    )


# Plain requests: httpx asks for gzip unless told otherwise.
IDENTITY = {"Accept-Encoding": "identity"}
GZIP = {"Accept-Encoding": "gzip"}
