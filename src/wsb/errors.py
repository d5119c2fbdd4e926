"""Error taxonomy for the request pipeline.

Every error a handler raises on purpose carries the HTTP status it
should be rendered with. Anything else that escapes a handler is a
HandlerFault and is rendered by the fallback handler with a traceback.

- NotFoundError: target file absent (404)
- UpstreamIOError: the file exists but cannot be opened (500)
- GateTimeoutError: a readiness gate ran out of time (200, historical)

ExchangeStateError is different: it signals a programming error in a
handler (writing after the response ended, calling next() twice) and
is never routed through the error chain.
"""

from __future__ import annotations


class WsbError(Exception):
    """Base class for errors that render as a plain-text response."""

    status_code: int = 500

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(WsbError):
    """The requested file does not exist beneath the static root."""

    status_code = 404


class UpstreamIOError(WsbError):
    """The file could not be opened (permission denied, a directory, ...)."""

    status_code = 500


class GateTimeoutError(WsbError):
    """A readiness gate gave up waiting.

    Rendered with status 200 and a "timed out waiting for ..." body so
    build tooling polling the server sees a readable message instead of
    a server error.
    """

    status_code = 200


class ExchangeStateError(RuntimeError):
    """A handler drove the exchange into a state the pipeline forbids."""
