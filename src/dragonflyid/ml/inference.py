"""Runs photo identification off the event loop.

Uploads wait for one of ``max_concurrent`` slots (one by default, so photos
are classified one at a time), then ``DragonflyIdentifier.identify_detailed``
runs on a worker thread. A request that cannot get a slot within
``SLOT_TIMEOUT_SECONDS`` gets a TimeoutError, answered with 503 by the API.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from dragonflyid.config import Settings
    from dragonflyid.ml.identifier import DragonflyIdentifier
    from dragonflyid.ml.results import Identification

logger = logging.getLogger(__name__)

SLOT_TIMEOUT_SECONDS: float = 5.0


class InferencePool:
    """Admits identification requests into a bounded set of worker threads."""

    def __init__(self, settings: Settings) -> None:
        self._slots = asyncio.Semaphore(settings.max_concurrent)
        self._workers = ThreadPoolExecutor(
            max_workers=settings.max_concurrent,
            thread_name_prefix="dragonfly-identify",
        )
        self._running = 0
        self._waiting = 0
        self._lock = threading.Lock()

    async def identify(self, identifier: DragonflyIdentifier, image_path: str) -> Identification:
        """Identify the photo at ``image_path`` once a slot is free.

        Raises:
            TimeoutError: If every slot stays busy for ``SLOT_TIMEOUT_SECONDS``.
        """
        async with self._slot(image_path):
            started = time.perf_counter()
            loop = asyncio.get_running_loop()
            identification = await loop.run_in_executor(self._workers, identifier.identify_detailed, image_path)
            logger.debug(
                "Identified %s as %s via %s in %.1f ms",
                image_path,
                identification.prediction.label if identification.prediction else None,
                identification.source,
                (time.perf_counter() - started) * 1000,
            )
            return identification

    @asynccontextmanager
    async def _slot(self, image_path: str) -> AsyncIterator[None]:
        self._adjust(waiting=1)
        try:
            await asyncio.wait_for(self._slots.acquire(), timeout=SLOT_TIMEOUT_SECONDS)
        except TimeoutError:
            logger.warning("No identification slot for %s within %.0fs", image_path, SLOT_TIMEOUT_SECONDS)
            raise
        finally:
            self._adjust(waiting=-1)

        self._adjust(running=1)
        try:
            yield
        finally:
            self._slots.release()
            self._adjust(running=-1)

    def _adjust(self, *, running: int = 0, waiting: int = 0) -> None:
        with self._lock:
            self._running += running
            self._waiting += waiting

    @property
    def active_count(self) -> int:
        """Identifications currently running."""
        with self._lock:
            return self._running

    @property
    def queue_depth(self) -> int:
        """Uploads waiting for a slot."""
        with self._lock:
            return self._waiting

    def shutdown(self) -> None:
        """Let running identifications finish, then stop the workers."""
        self._workers.shutdown(wait=True)
