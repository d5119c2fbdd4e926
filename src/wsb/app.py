"""Server facade: one pipeline, one broadcast channel, one Starlette app.

Handlers are registered in a fixed order when the server is built:

1. broadcast (``/b``)
2. pause/unpause (only with ``pausable_static``)
3. static files (only with a ``static_root``)

WebSocket connections on any path join the broadcast channel.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket

from wsb.broadcast import BroadcastChannel
from wsb.config import ServerConfig
from wsb.emitter import DEFAULT_MIME_TYPES
from wsb.handlers import BroadcastHandler, DefaultPageFallback, PauseHandler, StaticFileHandler
from wsb.pause import PauseSignal
from wsb.pipeline import ErrorHandler, Exchange, NormalHandler, Pipeline, not_found_fallback
from wsb.response import ResponseWriter

logger = logging.getLogger("wsb.server")

HTTP_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


class WsbServer:
    """Owns the per-server state and the request pipeline."""

    def __init__(
        self,
        config: ServerConfig,
        *,
        mime_types: Mapping[str, str] = DEFAULT_MIME_TYPES,
    ) -> None:
        self.config = config
        self.pause = PauseSignal()
        self.channel = BroadcastChannel()

        fallback = not_found_fallback if config.static_root else DefaultPageFallback(config.port)
        self.pipeline = Pipeline(fallback=fallback)
        self._register_handlers(mime_types)
        self.pipeline.freeze()

    def _register_handlers(self, mime_types: Mapping[str, str]) -> None:
        config = self.config
        self.pipeline.use(NormalHandler(BroadcastHandler(self.channel), name="broadcast"))

        if config.pausable_static:
            self.pipeline.use(NormalHandler(PauseHandler(self.pause), name="pause"))

        if config.static_root is not None:
            static = StaticFileHandler(
                config.static_root,
                pause=self.pause if config.pausable_static else None,
                static_timeout_ms=config.wait_for_static_ms,
                lockfile_timeout_ms=config.wait_for_lockfile_ms,
                compress=config.compress,
                mime_types=mime_types,
            )
            self.pipeline.use(
                NormalHandler(static, name="static"),
                ErrorHandler(static.on_error, name="static-errors"),
            )

    async def dispatch(self, request: Request) -> tuple[Exchange, ResponseWriter]:
        response = ResponseWriter()
        exchange = await self.pipeline.dispatch(request, response)
        if not response.ended:
            logger.warning(
                "no handler ended the response for %s (handlers: %s, error: %r)",
                request.url.path,
                ", ".join(exchange.trail),
                exchange.error,
            )
            response.end()
        return exchange, response

    async def handle(self, request: Request) -> Response:
        """Run one HTTP request through the pipeline."""
        logger.debug("<-- %s %s", request.method, request.url.path)
        _, response = await self.dispatch(request)
        return response.to_starlette()

    async def handle_websocket(self, websocket: WebSocket) -> None:
        await self.channel.serve(websocket)


# ------------------------------------------------------------------ #
# App factory
# ------------------------------------------------------------------ #


def create_app(
    config: ServerConfig | None = None,
    *,
    server: WsbServer | None = None,
) -> Starlette:
    """Create the Starlette application for a server."""
    server = server or WsbServer(config or ServerConfig())

    routes = [
        Route("/{path:path}", server.handle, methods=HTTP_METHODS),
        WebSocketRoute("/{path:path}", server.handle_websocket),
    ]

    app = Starlette(routes=routes)
    app.state.server = server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app
