"""Pause signal shared by the pause/unpause endpoints and static requests.

The signal is owned by a server instance rather than living at module
level, so two servers in one process pause independently.
"""

from __future__ import annotations

import asyncio


class PauseSignal:
    """Cooperative pause flag for static file requests.

    Starts resolved (not paused). ``pause()`` swaps in a fresh unresolved
    event; ``resume()`` resolves it. Static requests ``await wait()``
    and block for as long as the server stays paused. There is no
    timeout: pausing is an administrator decision.

    Usage::

        signal = PauseSignal()

        # /pause endpoint:
        signal.pause()

        # Static handler:
        await signal.wait()

        # /unpause endpoint:
        signal.resume()
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._event.set()

    @property
    def is_paused(self) -> bool:
        """Whether static requests are currently held."""
        return not self._event.is_set()

    def pause(self) -> None:
        """Hold static requests until ``resume()``. Repeated calls are no-ops."""
        if self.is_paused:
            return
        self._event = asyncio.Event()

    def resume(self) -> None:
        """Release every waiting request. Safe when not paused."""
        self._event.set()

    async def wait(self) -> None:
        """Return once the server is not paused."""
        await self._event.wait()
