"""Static file handler: resolve, gate, then stream.

Every request that reaches this handler is treated as a file request;
it is registered last so ``/b``, ``/pause`` and ``/unpause`` win. A
file literally named ``b`` at the root is therefore unreachable.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from starlette.requests import Request

from wsb.emitter import DEFAULT_MIME_TYPES, emit_file
from wsb.errors import NotFoundError, WsbError
from wsb.pause import PauseSignal
from wsb.pipeline import Next
from wsb.readiness import ensure_ready
from wsb.response import ResponseWriter

logger = logging.getLogger("wsb.handlers.static")

INDEX_FILE = "index.html"


def resolve_target(root: Path, url_path: str) -> Path:
    """Map a URL path onto a file beneath *root*.

    ``/`` maps to ``index.html``. Paths that normalise to somewhere
    outside the root are rejected.

    Raises:
        NotFoundError: If the path escapes the root.
    """
    relative = INDEX_FILE if url_path in ("", "/") else url_path.lstrip("/")
    target = Path(os.path.normpath(root / relative))
    if target != root and root not in target.parents:
        raise NotFoundError(f"Not found: {url_path} is outside the static root")
    return target


class StaticFileHandler:
    """Serves files from a static root once they are ready.

    Args:
        root: Absolute static root directory.
        pause: Pause signal to honour, or None when pausing is disabled.
        static_timeout_ms: How long to wait for a missing file (0 = don't).
        lockfile_timeout_ms: How long to wait for ``*.lock`` files to go (0 = don't).
        compress: Whether gzip encoding may be used.
        mime_types: Extension to content-type table.
    """

    def __init__(
        self,
        root: Path,
        *,
        pause: PauseSignal | None = None,
        static_timeout_ms: int = 0,
        lockfile_timeout_ms: int = 0,
        compress: bool = False,
        mime_types: Mapping[str, str] = DEFAULT_MIME_TYPES,
    ) -> None:
        self.root = root
        self.pause = pause
        self.static_timeout_ms = static_timeout_ms
        self.lockfile_timeout_ms = lockfile_timeout_ms
        self.compress = compress
        self.mime_types = mime_types

    async def __call__(self, request: Request, response: ResponseWriter, next: Next) -> None:
        target = resolve_target(self.root, request.url.path)
        await ensure_ready(
            target,
            self.root,
            pause=self.pause,
            lockfile_timeout_ms=self.lockfile_timeout_ms,
            static_timeout_ms=self.static_timeout_ms,
        )
        await emit_file(
            request,
            response,
            target,
            compress=self.compress,
            mime_types=self.mime_types,
        )

    async def on_error(
        self,
        request: Request,
        response: ResponseWriter,
        next: Next,
        error: Exception,
    ) -> None:
        """Render gate timeouts and file errors as plain text."""
        if not isinstance(error, WsbError):
            await next(error)
            return
        logger.info("%s -> %d: %s", request.url.path, error.status_code, error)
        response.send_text(str(error), status_code=error.status_code)
