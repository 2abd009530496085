"""Off-loop execution of slow pipeline stages.

Model load, resize, byte read and the forward pass are blocking calls.
They run on a small thread pool behind a semaphore sized by
``max_concurrent``; callers wait for a slot without a timeout and a
started stage is never cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

    from dermascan.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InferencePool:
    """Serializes pipeline stages onto worker threads."""

    def __init__(self, settings: Settings) -> None:
        self._slots = asyncio.Semaphore(settings.max_concurrent)
        self._workers = ThreadPoolExecutor(
            max_workers=settings.max_concurrent,
            thread_name_prefix="dermascan-stage",
        )

    async def run(self, func: Callable[..., T], *args: object) -> T:
        """Await ``func(*args)`` on a worker thread; its exceptions propagate."""
        async with self._slots:
            return await asyncio.get_running_loop().run_in_executor(self._workers, func, *args)

    def shutdown(self) -> None:
        logger.debug("Stopping stage workers")
        self._workers.shutdown(wait=True)
