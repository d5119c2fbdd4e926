"""Handler for ``GET /b?k=v&...``: broadcast the query string as JSON."""

from __future__ import annotations

import json

from starlette.requests import Request

from wsb.broadcast import BroadcastChannel
from wsb.pipeline import Next
from wsb.response import ResponseWriter

BROADCAST_PATH = "/b"


def query_to_payload(request: Request) -> dict[str, str]:
    """Flatten query parameters into a dict. Repeated keys keep the last value."""
    return dict(request.query_params)


class BroadcastHandler:
    """Publishes the query string to every peer and echoes it back.

    Publishing never fails the HTTP request, even with zero peers.
    """

    def __init__(self, channel: BroadcastChannel, path: str = BROADCAST_PATH) -> None:
        self._channel = channel
        self._path = path

    async def __call__(self, request: Request, response: ResponseWriter, next: Next) -> None:
        if request.url.path != self._path:
            await next()
            return

        payload = query_to_payload(request)
        await self._channel.publish(payload)
        response.send_text(
            json.dumps(payload, indent=2),
            content_type="application/json",
        )
