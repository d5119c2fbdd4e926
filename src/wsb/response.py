"""Write-once response object handed to every pipeline handler.

Handlers build the response through this object; the server converts
it into a Starlette response once the pipeline has finished. Once
``end()`` (or ``stream()``) has been called nothing else may be
written, and headers are frozen as soon as the first body bytes land.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from starlette.responses import Response, StreamingResponse

from wsb.errors import ExchangeStateError


class ResponseWriter:
    """Mutable status, headers and body for one exchange."""

    def __init__(self) -> None:
        self.status_code: int = 200
        self.headers: dict[str, str] = {}
        self._chunks: list[bytes] = []
        self._stream: AsyncIterator[bytes] | None = None
        self._ended = False

    @property
    def ended(self) -> bool:
        return self._ended

    @property
    def headers_sent(self) -> bool:
        return bool(self._chunks) or self._stream is not None

    @property
    def body(self) -> bytes:
        """Buffered body bytes (empty for streamed responses)."""
        return b"".join(self._chunks)

    def _check_open(self) -> None:
        if self._ended:
            raise ExchangeStateError("response already ended")

    def set_status(self, status_code: int) -> None:
        self._check_open()
        if self.headers_sent:
            raise ExchangeStateError("cannot set status after the body has started")
        self.status_code = status_code

    def set_header(self, name: str, value: str) -> None:
        self._check_open()
        if self.headers_sent:
            raise ExchangeStateError(f"cannot set header {name!r} after the body has started")
        self.headers[name.lower()] = value

    def write_head(self, status_code: int, headers: dict[str, str] | None = None) -> None:
        self.set_status(status_code)
        for name, value in (headers or {}).items():
            self.set_header(name, value)

    def write(self, data: bytes | str) -> None:
        self._check_open()
        if self._stream is not None:
            raise ExchangeStateError("cannot write to a streamed response")
        self._chunks.append(data.encode("utf-8") if isinstance(data, str) else data)

    def end(self, data: bytes | str | None = None) -> None:
        """Finish the exchange, optionally writing a last chunk."""
        if data is not None:
            self.write(data)
        self._check_open()
        self._ended = True

    def stream(self, body: AsyncIterator[bytes]) -> None:
        """Finish the exchange with a streamed body."""
        self._check_open()
        if self._chunks:
            raise ExchangeStateError("cannot stream after buffered writes")
        self._stream = body
        self._ended = True

    def send_text(
        self,
        text: str,
        *,
        status_code: int = 200,
        content_type: str = "text/plain; charset=utf-8",
    ) -> None:
        """Write a complete text response and end the exchange."""
        self.write_head(status_code, {"Content-Type": content_type})
        self.end(text)

    def to_starlette(self) -> Response:
        """Build the Starlette response to hand back to the ASGI server."""
        if self._stream is not None:
            return StreamingResponse(
                self._stream,
                status_code=self.status_code,
                headers=self.headers,
            )
        return Response(self.body, status_code=self.status_code, headers=self.headers)
