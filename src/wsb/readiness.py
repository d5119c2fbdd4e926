"""File readiness checks run before a static file is served.

Three gates, always applied in this order:

1. pause -- wait while an administrator has paused the static server
2. lock files -- wait while any ``*.lock`` file exists under the root
3. existence -- wait until the target file exists

Any ``*.lock`` file blocks every static request, not only the file it
names: a lock is treated as "a build is in progress".
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import anyio
import anyio.to_thread

from wsb.gate import wait_until
from wsb.pause import PauseSignal

logger = logging.getLogger("wsb.readiness")

LOCK_SUFFIX = ".lock"


def _find_lock_file(root: Path) -> Path | None:
    for dirpath, _dirnames, filenames in os.walk(root):
        for name in filenames:
            if name.endswith(LOCK_SUFFIX):
                return Path(dirpath) / name
    return None


async def no_lock_files(root: Path) -> bool:
    """True when no ``*.lock`` file exists anywhere beneath *root*."""
    lock = await anyio.to_thread.run_sync(_find_lock_file, root)
    if lock is not None:
        logger.debug("blocked by lock file %s", lock)
        return False
    return True


async def file_exists(path: Path) -> bool:
    """True once *path* exists."""
    return await anyio.Path(path).exists()


async def wait_for_unpause(pause: PauseSignal) -> None:
    if pause.is_paused:
        logger.debug("static server paused, holding request")
    await pause.wait()


async def wait_for_lock_files(root: Path, timeout_ms: int | None) -> None:
    await wait_until(lambda: no_lock_files(root), timeout_ms, "lock files to be removed")


async def wait_for_file(path: Path, timeout_ms: int | None) -> None:
    await wait_until(lambda: file_exists(path), timeout_ms, "file to exist")


async def ensure_ready(
    path: Path,
    root: Path,
    *,
    pause: PauseSignal | None = None,
    lockfile_timeout_ms: int | None = None,
    static_timeout_ms: int | None = None,
) -> None:
    """Run every enabled gate for *path*, strictly one after another.

    Args:
        path: Resolved target file.
        root: Static root scanned for lock files.
        pause: Pause signal, or None when pausing is disabled.
        lockfile_timeout_ms: Lock-file gate timeout, 0/None to skip.
        static_timeout_ms: Existence gate timeout, 0/None to skip.

    Raises:
        GateTimeoutError: If the lock-file or existence gate times out.
    """
    if pause is not None:
        await wait_for_unpause(pause)
    await wait_for_lock_files(root, lockfile_timeout_ms)
    await wait_for_file(path, static_timeout_ms)
