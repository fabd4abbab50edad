from __future__ import annotations

import asyncio
import threading
import time
from contextlib import suppress

from synclab.jobs.models import JobStatus
from synclab.jobs.pipeline import DubbingPipeline
from synclab.jobs.store import JobStore
from synclab.ops.metrics import jobs_queued
from synclab.utils.log import logger

RESTART_MESSAGE = "Interrupted by server restart"


class JobQueue:
    """
    Bounded worker pool in front of DubbingPipeline.

    submit() returns immediately; each job's pipeline runs in a worker thread so blocking
    tool and network waits never stall the event loop or other jobs.
    """

    def __init__(self, store: JobStore, pipeline: DubbingPipeline, *, concurrency: int = 2) -> None:
        self.store = store
        self.pipeline = pipeline
        self.concurrency = max(1, int(concurrency))
        self._q: asyncio.Queue[str] = asyncio.Queue()
        self._tasks: list[asyncio.Task] = []
        self._pending: set[str] = set()
        self._active: set[str] = set()
        self._cancel: set[str] = set()
        # guards the pending/active handoff and cancel flags, which worker threads read
        self._lock = threading.Lock()

    def recover_interrupted(self) -> int:
        """Jobs left queued/running by a previous process can never finish; fail them."""
        n = 0
        for j in self.store.list():
            if j.status in {JobStatus.QUEUED, JobStatus.RUNNING}:
                self.store.update(
                    j.id, status=JobStatus.ERROR, error=RESTART_MESSAGE, message=RESTART_MESSAGE
                )
                n += 1
        if n:
            logger.warning("jobs_recovered_as_error", count=n)
        return n

    async def start(self) -> None:
        if self._tasks:
            return
        self.recover_interrupted()
        for i in range(self.concurrency):
            self._tasks.append(asyncio.create_task(self._worker(), name=f"synclab-worker-{i}"))
        logger.info("job_queue_started", concurrency=self.concurrency)

    async def stop(self) -> None:
        for t in self._tasks:
            t.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

    async def graceful_shutdown(self, *, timeout_s: float = 120.0) -> None:
        """
        Let queued and active jobs finish for up to timeout_s, then cancel the workers.
        """
        with suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._q.join(), timeout=float(timeout_s))
        await self.stop()

    def submit(self, job_id: str) -> bool:
        """
        Enqueue a created job. Returns False when the id is already queued or running here.
        """
        with self._lock:
            if job_id in self._pending or job_id in self._active:
                return False
            self._pending.add(job_id)
        self._q.put_nowait(job_id)
        jobs_queued.inc()
        logger.info("job_submitted", job_id=job_id, pending=len(self._pending))
        return True

    def cancel(self, job_id: str) -> bool:
        """Flag a queued or running job; ids this queue is not holding are ignored."""
        with self._lock:
            if job_id not in self._pending and job_id not in self._active:
                return False
            self._cancel.add(job_id)
            return True

    def is_canceled(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._cancel

    def active_count(self) -> int:
        return len(self._active)

    def pending_count(self) -> int:
        return len(self._pending)

    async def _worker(self) -> None:
        while True:
            job_id = await self._q.get()
            with self._lock:
                self._pending.discard(job_id)
                self._active.add(job_id)
            t0 = time.perf_counter()
            try:
                if self.is_canceled(job_id):
                    logger.info("job_skipped_canceled", job_id=job_id)
                    continue
                await asyncio.to_thread(
                    self.pipeline.run, job_id, should_cancel=lambda: self.is_canceled(job_id)
                )
            except asyncio.CancelledError:
                raise
            except Exception as ex:
                # DubbingPipeline records its own failures; this is a bug in the queue itself
                logger.exception("job_worker_error", job_id=job_id, error=str(ex))
            finally:
                with self._lock:
                    self._active.discard(job_id)
                    self._cancel.discard(job_id)
                self._q.task_done()
                logger.info(
                    "job_worker_finished",
                    job_id=job_id,
                    secs=round(time.perf_counter() - t0, 2),
                )
