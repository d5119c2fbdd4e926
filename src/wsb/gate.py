"""Bounded polling wait on an async predicate.

A gate repeatedly asks "is it ready yet?" and suspends between tries,
so other requests keep flowing while one request waits for a build
step to finish.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from wsb.errors import GateTimeoutError

logger = logging.getLogger("wsb.gate")

POLL_INTERVAL = 0.1  # seconds between predicate calls

Predicate = Callable[[], Awaitable[bool]]


async def wait_until(
    predicate: Predicate,
    timeout_ms: int | None,
    what: str,
    *,
    interval: float = POLL_INTERVAL,
) -> None:
    """Wait until *predicate* returns True.

    The predicate is called immediately and then every *interval*
    seconds. A zero or ``None`` timeout disables the gate entirely: the
    predicate is not called and the wait returns at once.

    Args:
        predicate: Async callable returning True once the condition holds.
            It should return False for expected absence (file not there
            yet) and raise only for unexpected I/O failures, which
            propagate immediately without retrying.
        timeout_ms: Deadline in milliseconds, 0/None to skip the gate.
        what: Human-readable description used in the timeout message,
            e.g. ``"file to exist"``.

    Raises:
        GateTimeoutError: If the deadline passes before the predicate
            succeeds. The message reads ``timed out waiting for <what>``.
    """
    if not timeout_ms:
        return

    start = time.monotonic()
    while True:
        if await predicate():
            return
        elapsed_ms = (time.monotonic() - start) * 1000
        if elapsed_ms > timeout_ms:
            raise GateTimeoutError(f"timed out waiting for {what} (after {timeout_ms}ms)")
        logger.debug("still waiting for %s (%.0fms elapsed)", what, elapsed_ms)
        await asyncio.sleep(interval)
