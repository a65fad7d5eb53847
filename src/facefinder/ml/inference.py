"""Inference concurrency layer.

Architecture:
    FastAPI (async) -> asyncio.Semaphore(N) -> ThreadPoolExecutor(N) -> image pipeline

One uploaded image is one job. Jobs beyond ``max_concurrent`` wait for a
slot for at most ``queue_timeout`` seconds and are then refused with
``ServiceBusy`` (503).
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from facefinder.errors import ServiceBusy

if TYPE_CHECKING:
    from collections.abc import Callable

    from facefinder.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class PoolStats:
    """Snapshot of the pool's job counters."""

    running: int = 0
    waiting: int = 0
    completed: int = 0
    failed: int = 0
    refused: int = 0


class InferencePool:
    """Bounded worker pool for the blocking decode/detect/annotate work."""

    def __init__(self, settings: Settings) -> None:
        self._queue_timeout = settings.queue_timeout
        self._slots = asyncio.Semaphore(settings.max_concurrent)
        self._executor = ThreadPoolExecutor(
            max_workers=settings.max_concurrent,
            thread_name_prefix="cascade-worker",
        )
        self._stats = PoolStats()
        self._lock = threading.Lock()

    async def run(self, func: Callable[..., T], *args: object) -> T:
        """Run ``func(*args)`` on a worker thread once a slot is free.

        Raises:
            ServiceBusy: No slot became free within the queue timeout.
        """
        await self._admit()
        self._bump(running=1)
        try:
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(self._executor, func, *args)
        except Exception:
            self._bump(failed=1)
            raise
        else:
            self._bump(completed=1)
            return result
        finally:
            self._bump(running=-1)
            self._slots.release()

    async def _admit(self) -> None:
        self._bump(waiting=1)
        try:
            await asyncio.wait_for(self._slots.acquire(), timeout=self._queue_timeout)
        except TimeoutError:
            self._bump(refused=1)
            logger.warning(
                "No worker free after %.1fs (%d running)",
                self._queue_timeout,
                self.stats().running,
            )
            raise ServiceBusy("Server busy, try again later") from None
        finally:
            self._bump(waiting=-1)

    def _bump(self, **deltas: int) -> None:
        with self._lock:
            for name, delta in deltas.items():
                setattr(self._stats, name, getattr(self._stats, name) + delta)

    def stats(self) -> PoolStats:
        """Return a copy of the current counters."""
        with self._lock:
            return PoolStats(**vars(self._stats))

    @property
    def active_count(self) -> int:
        """Number of jobs currently running."""
        return self.stats().running

    @property
    def queue_depth(self) -> int:
        """Number of jobs waiting for a slot."""
        return self.stats().waiting

    def shutdown(self) -> None:
        """Wait for running jobs, then stop the worker threads."""
        self._executor.shutdown(wait=True)
        logger.info("Inference pool stopped (%s)", self.stats())
