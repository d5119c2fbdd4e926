"""Fan-out of JSON payloads to every connected WebSocket peer.

Peers register when their connection is accepted and unregister when
it closes. Publishing is fire-and-forget: no acknowledgement is
awaited, peers that are still connecting or already closing are
skipped, and a peer that fails mid-send is dropped without failing
the publisher.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import anyio
from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

logger = logging.getLogger("wsb.broadcast")


def is_open(websocket: WebSocket) -> bool:
    return (
        websocket.client_state == WebSocketState.CONNECTED
        and websocket.application_state == WebSocketState.CONNECTED
    )


class BroadcastChannel:
    """Registry of live WebSocket peers.

    Usage::

        channel = BroadcastChannel()

        # WebSocket endpoint:
        channel.add(websocket)
        await websocket.accept()
        ...
        channel.discard(websocket)

        # Broadcast endpoint:
        delivered = await channel.publish({"reload": "true"})
    """

    def __init__(self) -> None:
        self._peers: set[WebSocket] = set()

    def __len__(self) -> int:
        return len(self._peers)

    def add(self, websocket: WebSocket) -> None:
        self._peers.add(websocket)

    def discard(self, websocket: WebSocket) -> None:
        self._peers.discard(websocket)

    async def publish(self, payload: dict[str, Any]) -> int:
        """Send *payload* as compact JSON to every open peer.

        Returns:
            Number of peers the payload was handed to.
        """
        message = json.dumps(payload, separators=(",", ":"))
        delivered = 0

        async def send(websocket: WebSocket) -> None:
            nonlocal delivered
            try:
                await websocket.send_text(message)
            except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                logger.debug("dropping peer %s: %s", websocket.client, exc)
                self.discard(websocket)
                return
            delivered += 1

        # sends run concurrently, one task per open peer
        async with anyio.create_task_group() as tg:
            for websocket in list(self._peers):
                if is_open(websocket):
                    tg.start_soon(send, websocket)
        logger.debug("--> broadcast to %d peer(s): %s", delivered, message)
        return delivered

    async def serve(self, websocket: WebSocket) -> None:
        """Accept *websocket* and keep it registered until it closes.

        Inbound messages are read and discarded.
        """
        self.add(websocket)
        try:
            await websocket.accept()
            logger.debug("peer connected: %s (%d total)", websocket.client, len(self))
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        finally:
            self.discard(websocket)
            logger.debug("peer disconnected: %s (%d total)", websocket.client, len(self))
