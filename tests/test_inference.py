"""Tests for the bounded inference pool."""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING

import pytest

from facefinder.config import Settings
from facefinder.errors import DetectionError, ServiceBusy
from facefinder.ml.inference import InferencePool

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


@pytest.fixture()
async def pool() -> AsyncIterator[InferencePool]:
    p = InferencePool(Settings(max_concurrent=1, queue_timeout=0.1))
    yield p
    p.shutdown()


class TestInferencePool:
    async def test_runs_on_worker_thread(self, pool: InferencePool) -> None:
        name = await pool.run(lambda: threading.current_thread().name)
        assert name.startswith("cascade-worker")

    async def test_passes_arguments_through(self, pool: InferencePool) -> None:
        assert await pool.run(divmod, 17, 5) == (3, 2)
        stats = pool.stats()
        assert stats.completed == 1
        assert stats.running == 0

    async def test_job_error_propagates_and_is_counted(self, pool: InferencePool) -> None:
        def _fail() -> None:
            raise DetectionError("Unable to decode image")

        with pytest.raises(DetectionError):
            await pool.run(_fail)

        stats = pool.stats()
        assert stats.failed == 1
        assert stats.completed == 0
        # The slot was released
        assert await pool.run(int, "7") == 7

    async def test_saturated_pool_refuses_with_service_busy(self, pool: InferencePool) -> None:
        release = threading.Event()
        started = threading.Event()

        def _block() -> None:
            started.set()
            release.wait(5)

        blocker = asyncio.create_task(pool.run(_block))
        await asyncio.to_thread(started.wait, 5)

        with pytest.raises(ServiceBusy) as excinfo:
            await pool.run(int, "1")
        assert excinfo.value.status_code == 503

        release.set()
        await blocker

        stats = pool.stats()
        assert stats.refused == 1
        assert stats.completed == 1
        assert stats.waiting == 0

    async def test_waiting_job_counts_in_queue_depth(self) -> None:
        pool = InferencePool(Settings(max_concurrent=1, queue_timeout=5.0))
        release = threading.Event()
        started = threading.Event()

        def _block() -> None:
            started.set()
            release.wait(5)

        try:
            blocker = asyncio.create_task(pool.run(_block))
            await asyncio.to_thread(started.wait, 5)
            waiter = asyncio.create_task(pool.run(int, "2"))
            await asyncio.sleep(0.05)

            assert pool.active_count == 1
            assert pool.queue_depth == 1

            release.set()
            await blocker
            assert await waiter == 2
            assert pool.queue_depth == 0
        finally:
            release.set()
            pool.shutdown()
