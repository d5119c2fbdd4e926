"""Turn a resolved file path into a streamed HTTP response.

The file is opened inside the handler so open failures travel through
the pipeline's error chain. The body is then read in chunks and,
when the client accepts it, gzip-compressed on the fly.
"""

from __future__ import annotations

import logging
import zlib
from collections.abc import AsyncIterator, Mapping
from pathlib import Path

import anyio
from starlette.requests import Request

from wsb.errors import NotFoundError, UpstreamIOError
from wsb.response import ResponseWriter

logger = logging.getLogger("wsb.emitter")

CHUNK_SIZE = 64 * 1024

DEFAULT_CONTENT_TYPE = "application/octet-stream"

DEFAULT_MIME_TYPES: dict[str, str] = {
    ".html": "text/html",
    ".js": "text/javascript",
    ".css": "text/css",
    ".json": "application/json",
    ".png": "image/png",
    ".jpg": "image/jpg",
    ".gif": "image/gif",
    ".wav": "audio/wav",
    ".mp4": "video/mp4",
    ".woff": "application/font-woff",
    ".ttf": "application/font-ttf",
    ".eot": "application/vnd.ms-fontobject",
    ".otf": "application/font-otf",
    ".svg": "image/svg+xml",
}

COMPRESSIBLE_EXTENSIONS = frozenset({".html", ".js", ".css", ".json"})


def content_type_for(path: Path, mime_types: Mapping[str, str]) -> str:
    return mime_types.get(path.suffix.lower(), DEFAULT_CONTENT_TYPE)


def should_compress(request: Request, path: Path, *, compress: bool) -> bool:
    """Whether *path* should be gzip-encoded for this client."""
    if not compress or path.suffix.lower() not in COMPRESSIBLE_EXTENSIONS:
        return False
    return "gzip" in request.headers.get("accept-encoding", "")


async def _read_chunks(handle: anyio.AsyncFile[bytes]) -> AsyncIterator[bytes]:
    try:
        while chunk := await handle.read(CHUNK_SIZE):
            yield chunk
    finally:
        await handle.aclose()


async def gzip_chunks(chunks: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    """Compress a byte stream into a single gzip member."""
    compressor = zlib.compressobj(wbits=zlib.MAX_WBITS | 16)  # gzip container
    async for chunk in chunks:
        data = compressor.compress(chunk)
        if data:
            yield data
    yield compressor.flush()


async def open_file(path: Path) -> anyio.AsyncFile[bytes]:
    """Open *path* for reading, mapping OS errors onto the error taxonomy."""
    try:
        return await anyio.open_file(path, "rb")
    except (FileNotFoundError, NotADirectoryError) as exc:
        raise NotFoundError(f"Not found: {exc.strerror}, open '{path}'") from exc
    except ValueError as exc:
        # embedded null byte
        raise NotFoundError(f"Not found: {exc}") from exc
    except OSError as exc:
        raise UpstreamIOError(f"File could not be read: {exc.strerror}, open '{path}'") from exc


async def emit_file(
    request: Request,
    response: ResponseWriter,
    path: Path,
    *,
    compress: bool = False,
    mime_types: Mapping[str, str] = DEFAULT_MIME_TYPES,
) -> None:
    """Stream *path* into *response* with status 200.

    Raises:
        NotFoundError: The file vanished or never existed.
        UpstreamIOError: The file exists but could not be opened.
    """
    handle = await open_file(path)
    response.write_head(200, {"Content-Type": content_type_for(path, mime_types)})

    body = _read_chunks(handle)
    gzipped = should_compress(request, path, compress=compress)
    if gzipped:
        response.set_header("Content-Encoding", "gzip")
        response.set_header("Vary", "Accept-Encoding")
        body = gzip_chunks(body)

    logger.debug("--> static %s%s", path, " (gzip)" if gzipped else "")
    response.stream(body)
