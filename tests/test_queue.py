from __future__ import annotations

import asyncio
import threading
import time
from pathlib import Path
from typing import Any

from synclab.jobs.models import JobMeta, JobStatus
from synclab.jobs.queue import RESTART_MESSAGE, JobQueue
from synclab.jobs.store import InMemoryJobStore
from synclab.ops.retention import RetentionManager


class _SlowPipeline:
    """Stands in for DubbingPipeline; tracks how many runs overlap."""

    def __init__(self, store: InMemoryJobStore, *, delay_s: float = 0.1) -> None:
        self.store = store
        self.delay_s = delay_s
        self.lock = threading.Lock()
        self.running = 0
        self.peak = 0
        self.ran: list[str] = []

    def run(self, job_id: str, *a: Any, should_cancel=None, **kw: Any) -> None:
        with self.lock:
            self.running += 1
            self.peak = max(self.peak, self.running)
            self.ran.append(job_id)
        try:
            self.store.update(job_id, status=JobStatus.RUNNING)
            time.sleep(self.delay_s)
            self.store.update(job_id, status=JobStatus.DONE, progress=100)
        finally:
            with self.lock:
                self.running -= 1


def _create(store: InMemoryJobStore, n: int) -> list[str]:
    ids = [f"j{i}" for i in range(n)]
    for jid in ids:
        store.create(jid, JobMeta(source_path=f"/tmp/{jid}.mp4"))
    return ids


def test_concurrency_is_bounded() -> None:
    store = InMemoryJobStore()
    pipeline = _SlowPipeline(store)
    ids = _create(store, 5)

    async def main() -> None:
        q = JobQueue(store, pipeline, concurrency=2)  # type: ignore[arg-type]
        await q.start()
        for jid in ids:
            assert q.submit(jid) is True
        await q.graceful_shutdown(timeout_s=10)

    asyncio.run(main())
    assert sorted(pipeline.ran) == ids
    assert pipeline.peak <= 2
    assert all(store.get(j).status == JobStatus.DONE for j in ids)


def test_duplicate_submission_ignored() -> None:
    store = InMemoryJobStore()
    pipeline = _SlowPipeline(store, delay_s=0.0)
    (jid,) = _create(store, 1)

    async def main() -> None:
        q = JobQueue(store, pipeline, concurrency=1)  # type: ignore[arg-type]
        assert q.submit(jid) is True
        assert q.submit(jid) is False
        assert q.pending_count() == 1
        await q.start()
        await q.graceful_shutdown(timeout_s=10)

    asyncio.run(main())
    assert pipeline.ran == [jid]


def test_canceled_before_start_is_skipped() -> None:
    store = InMemoryJobStore()
    pipeline = _SlowPipeline(store, delay_s=0.0)
    a, b = _create(store, 2)

    async def main() -> None:
        q = JobQueue(store, pipeline, concurrency=1)  # type: ignore[arg-type]
        q.submit(a)
        q.submit(b)
        q.cancel(a)
        assert q.is_canceled(a)
        await q.start()
        await q.graceful_shutdown(timeout_s=10)
        assert not q.is_canceled(a)

    asyncio.run(main())
    assert pipeline.ran == [b]


def test_start_fails_jobs_interrupted_by_restart(tmp_path: Path) -> None:
    store = InMemoryJobStore()
    queued, running, done = _create(store, 3)
    store.update(running, status=JobStatus.RUNNING, progress=40)
    store.update(done, status=JobStatus.RUNNING)
    store.update(done, status=JobStatus.DONE, progress=100)

    async def main() -> None:
        q = JobQueue(store, _SlowPipeline(store), concurrency=1)  # type: ignore[arg-type]
        await q.start()
        await q.stop()

    asyncio.run(main())
    for jid in (queued, running):
        j = store.get(jid)
        assert j.status == JobStatus.ERROR
        assert j.error == RESTART_MESSAGE
    assert store.get(done).status == JobStatus.DONE


def test_deleting_finished_job_leaves_no_cancel_flag(tmp_path: Path) -> None:
    store = InMemoryJobStore()
    pipeline = _SlowPipeline(store, delay_s=0.0)
    (jid,) = _create(store, 1)
    retention = RetentionManager(tmp_path, delay_s=0)

    async def main() -> JobQueue:
        q = JobQueue(store, pipeline, concurrency=1)  # type: ignore[arg-type]
        await q.start()
        q.submit(jid)
        await q.graceful_shutdown(timeout_s=10)
        return q

    q = asyncio.run(main())
    assert store.get(jid).status == JobStatus.DONE
    assert retention.delete_job(store, jid, cancel=q.cancel) is True
    assert q.cancel(jid) is False
    assert not q.is_canceled(jid)
    assert q._cancel == set()
