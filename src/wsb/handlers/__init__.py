"""Request handlers registered into the server pipeline.

- broadcast: ``/b`` query-string fan-out to WebSocket peers
- pause: ``/pause`` and ``/unpause`` administrative endpoints
- static: gated static file serving plus its error renderer
- fallback: terminal handlers for unclaimed or failed requests
"""

from wsb.handlers.broadcast import BroadcastHandler
from wsb.handlers.fallback import DefaultPageFallback
from wsb.handlers.pause import PauseHandler
from wsb.handlers.static import StaticFileHandler

__all__ = [
    "BroadcastHandler",
    "DefaultPageFallback",
    "PauseHandler",
    "StaticFileHandler",
]
