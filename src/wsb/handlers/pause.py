"""Handler for the ``/pause`` and ``/unpause`` administrative endpoints."""

from __future__ import annotations

import logging

from starlette.requests import Request

from wsb.pause import PauseSignal
from wsb.pipeline import Next
from wsb.response import ResponseWriter

logger = logging.getLogger("wsb.handlers.pause")

PAUSE_PATH = "/pause"
UNPAUSE_PATH = "/unpause"


class PauseHandler:
    """Toggles the server's pause signal. Only registered for pausable servers."""

    def __init__(self, pause: PauseSignal) -> None:
        self._pause = pause

    async def __call__(self, request: Request, response: ResponseWriter, next: Next) -> None:
        path = request.url.path
        if path == PAUSE_PATH:
            self._pause.pause()
            logger.info("pausing static server")
            response.send_text("pausing static server")
        elif path == UNPAUSE_PATH:
            self._pause.resume()
            logger.info("unpausing static server")
            response.send_text("unpausing static server")
        else:
            await next()
