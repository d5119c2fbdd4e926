"""Ordered chain of async request handlers with single-pass error routing.

Two kinds of handler are registered into two ordered sequences:

- ``NormalHandler(fn)`` -- ``await fn(request, response, next)``
- ``ErrorHandler(fn)`` -- ``await fn(request, response, next, error)``

A handler either ends the response, or passes the exchange on:

- ``await next()`` runs the next normal handler
- ``await next(error)`` runs the next error handler
- raising is the same as ``await next(raised_error)``

Each exchange walks both sequences with its own cursors, so every
handler runs at most once per request. When a sequence runs out, the
pipeline's fallback handler gets the exchange (and the error, if any).

Usage::

    pipeline = Pipeline()

    async def hello(request, response, next):
        if request.url.path != "/hello":
            await next()
            return
        response.send_text("hi")

    pipeline.use(NormalHandler(hello))
    pipeline.freeze()

    await pipeline.dispatch(request, ResponseWriter())
"""

from __future__ import annotations

import logging
import traceback
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

from starlette.requests import Request

from wsb.errors import ExchangeStateError
from wsb.response import ResponseWriter

logger = logging.getLogger("wsb.pipeline")


class Next(Protocol):
    async def __call__(self, error: Exception | None = None) -> None: ...


NormalFn = Callable[[Request, ResponseWriter, Next], Awaitable[None]]
ErrorFn = Callable[[Request, ResponseWriter, Next, Exception], Awaitable[None]]
FallbackFn = Callable[[Request, ResponseWriter, Exception | None], Awaitable[None]]


@dataclass(frozen=True)
class NormalHandler:
    fn: NormalFn
    name: str = ""

    @property
    def label(self) -> str:
        return self.name or getattr(self.fn, "__name__", repr(self.fn))


@dataclass(frozen=True)
class ErrorHandler:
    fn: ErrorFn
    name: str = ""

    @property
    def label(self) -> str:
        return self.name or getattr(self.fn, "__name__", repr(self.fn))


Handler = NormalHandler | ErrorHandler


class Phase(StrEnum):
    AWAITING_NORMAL = "awaiting_normal"
    AWAITING_ERROR = "awaiting_error"
    TERMINATED = "terminated"


# ------------------------------------------------------------------ #
# Fallback
# ------------------------------------------------------------------ #


def error_status(error: Exception) -> int:
    return getattr(error, "status_code", 500)


def format_error(error: Exception) -> str:
    return "".join(traceback.format_exception(error))


async def not_found_fallback(
    request: Request, response: ResponseWriter, error: Exception | None
) -> None:
    """404 for unclaimed requests, status and traceback for errors."""
    if error is None:
        response.send_text("Not found", status_code=404)
    else:
        response.send_text(format_error(error), status_code=error_status(error))


# ------------------------------------------------------------------ #
# Per-exchange state
# ------------------------------------------------------------------ #


class Exchange:
    """Cursor state for one request travelling through a pipeline."""

    def __init__(
        self,
        pipeline: Pipeline,
        request: Request,
        response: ResponseWriter,
    ) -> None:
        self._pipeline = pipeline
        self.request = request
        self.response = response
        self.phase = Phase.AWAITING_NORMAL
        self.normal_index = 0
        self.error_index = 0
        self.error: Exception | None = None
        self.trail: list[str] = []

    async def advance(self, error: Exception | None = None) -> None:
        """Hand the exchange to the next handler in the matching sequence."""
        if self.response.ended:
            self.phase = Phase.TERMINATED
            if error is not None:
                logger.error(
                    "error after response ended for %s: %r", self.request.url.path, error
                )
            return

        if error is None:
            self.phase = Phase.AWAITING_NORMAL
            handlers = self._pipeline.normal_handlers
            if self.normal_index >= len(handlers):
                await self._fallback(None)
                return
            handler = handlers[self.normal_index]
            self.normal_index += 1
            await self._invoke(handler, (self.request, self.response))
        else:
            self.phase = Phase.AWAITING_ERROR
            self.error = error
            handlers = self._pipeline.error_handlers
            if self.error_index >= len(handlers):
                await self._fallback(error)
                return
            handler = handlers[self.error_index]
            self.error_index += 1
            await self._invoke(handler, (self.request, self.response), error)

    async def _invoke(
        self, handler: Handler, args: tuple[Any, ...], error: Exception | None = None
    ) -> None:
        spent = False

        async def next_(err: Exception | None = None) -> None:
            nonlocal spent
            if spent:
                raise ExchangeStateError(f"next() called more than once by {handler.label}")
            spent = True
            await self.advance(err)

        self.trail.append(handler.label)
        try:
            if error is None:
                await handler.fn(*args, next_)
            else:
                await handler.fn(*args, next_, error)
        except ExchangeStateError:
            raise
        except Exception as exc:  # noqa: BLE001
            if self.response.ended:
                logger.exception("handler %s failed after the response ended", handler.label)
                self.phase = Phase.TERMINATED
                return
            logger.debug("handler %s raised %r", handler.label, exc)
            spent = True
            await self.advance(exc)
            return

        if self.response.ended:
            self.phase = Phase.TERMINATED

    async def _fallback(self, error: Exception | None) -> None:
        self.trail.append("fallback")
        await self._pipeline.fallback(self.request, self.response, error)
        if self.response.ended:
            self.phase = Phase.TERMINATED


# ------------------------------------------------------------------ #
# Pipeline
# ------------------------------------------------------------------ #


class Pipeline:
    """Registration-ordered normal and error handler sequences."""

    def __init__(self, fallback: FallbackFn = not_found_fallback) -> None:
        self.fallback = fallback
        self._normal: list[NormalHandler] = []
        self._error: list[ErrorHandler] = []
        self._frozen = False

    @property
    def normal_handlers(self) -> tuple[NormalHandler, ...]:
        return tuple(self._normal)

    @property
    def error_handlers(self) -> tuple[ErrorHandler, ...]:
        return tuple(self._error)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def use(self, *handlers: Handler) -> None:
        """Append handlers to the end of their sequence."""
        if self._frozen:
            raise ExchangeStateError("pipeline is frozen; register handlers during startup")
        for handler in handlers:
            if isinstance(handler, NormalHandler):
                self._normal.append(handler)
            elif isinstance(handler, ErrorHandler):
                self._error.append(handler)
            else:
                raise TypeError(f"expected NormalHandler or ErrorHandler, got {handler!r}")

    def freeze(self) -> None:
        """Stop accepting registrations; called once startup is done."""
        self._frozen = True

    async def dispatch(self, request: Request, response: ResponseWriter) -> Exchange:
        """Run one request through the pipeline.

        Returns:
            The exchange state, for logging and inspection.

        Raises:
            ExchangeStateError: A handler misused the response or next().
        """
        exchange = Exchange(self, request, response)
        await exchange.advance()
        return exchange
