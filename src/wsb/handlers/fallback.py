"""Fallback for servers without a static root: the WebSocket console page.

Unclaimed requests get a page that connects back to the server and
logs every broadcast to the browser console. Errors are rendered
inside the same page.
"""

from __future__ import annotations

import html
import logging

from starlette.requests import Request

from wsb.pipeline import error_status, format_error
from wsb.response import ResponseWriter

logger = logging.getLogger("wsb.handlers.fallback")

PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
  <head><meta charset="utf-8"><title>wsb</title></head>
  <body>
    {body}
    <script>
      console.log('opening websocket')
      const ws = new WebSocket('ws://' + location.hostname + ':{port}')
      ws.addEventListener('open', e => console.log('open', e))
      ws.addEventListener('message', e => console.log('data', e, JSON.parse(e.data)))
    </script>
  </body>
</html>
"""


def render_page(port: int, body: str = "") -> str:
    return PAGE_TEMPLATE.replace("{port}", str(port)).replace("{body}", body)


class DefaultPageFallback:
    """Terminal handler that answers with the console page."""

    def __init__(self, port: int) -> None:
        self._port = port

    async def __call__(
        self, request: Request, response: ResponseWriter, error: Exception | None
    ) -> None:
        if error is None:
            logger.debug("--> default index")
            response.send_text(render_page(self._port), content_type="text/html; charset=utf-8")
            return
        status = error_status(error)
        body = f"<h1>{status}</h1>\n<pre>{html.escape(format_error(error))}</pre>"
        response.send_text(
            render_page(self._port, body),
            status_code=status,
            content_type="text/html; charset=utf-8",
        )
