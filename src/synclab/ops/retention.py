from __future__ import annotations

import shutil
import threading
from collections.abc import Callable
from pathlib import Path

from synclab.jobs.store import JobStore
from synclab.utils.log import logger
from synclab.utils.paths import job_temp_paths


class RetentionManager:
    """
    Deferred, best-effort removal of a job's temp intermediates.

    Only files under temp_dir are ever touched; deliverables in the outputs dir and the job
    record itself survive cleanup.
    """

    def __init__(self, temp_dir: Path, *, delay_s: float = 300.0) -> None:
        self.temp_dir = Path(temp_dir)
        self.delay_s = max(0.0, float(delay_s))
        self._lock = threading.Lock()
        self._timers: dict[str, threading.Timer] = {}

    def artifact_paths(self, job_id: str) -> list[Path]:
        return job_temp_paths(job_id, self.temp_dir).all()

    def cleanup_job_artifacts(self, job_id: str) -> int:
        """Delete whatever intermediates exist; returns how many were removed. Never raises."""
        removed = 0
        for p in self.artifact_paths(job_id):
            try:
                if p.is_dir():
                    shutil.rmtree(p)
                elif p.exists():
                    p.unlink()
                else:
                    continue
                removed += 1
            except OSError as ex:
                logger.warning("cleanup_failed", job_id=job_id, path=str(p), error=str(ex))
        logger.info("cleanup_done", job_id=job_id, removed=removed)
        return removed

    def _fire(self, job_id: str) -> None:
        try:
            self.cleanup_job_artifacts(job_id)
        finally:
            with self._lock:
                self._timers.pop(job_id, None)

    def schedule_cleanup(self, job_id: str, delay: float | None = None) -> None:
        delay_s = self.delay_s if delay is None else max(0.0, float(delay))
        t = threading.Timer(delay_s, self._fire, args=(job_id,))
        t.daemon = True
        with self._lock:
            prev = self._timers.pop(job_id, None)
            if prev is not None:
                prev.cancel()
            self._timers[job_id] = t
        t.start()
        logger.info("cleanup_scheduled", job_id=job_id, delay_s=delay_s)

    def cancel_scheduled(self, job_id: str) -> bool:
        with self._lock:
            t = self._timers.pop(job_id, None)
        if t is None:
            return False
        t.cancel()
        return True

    def pending(self) -> list[str]:
        with self._lock:
            return list(self._timers)

    def shutdown(self) -> None:
        """Cancel every armed timer; artifacts of those jobs stay on disk."""
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for t in timers:
            t.cancel()

    def delete_job(
        self,
        store: JobStore,
        job_id: str,
        *,
        cancel: Callable[[str], object] | None = None,
    ) -> bool:
        """
        Explicit deletion: flag the job canceled, clean up synchronously, drop the record.

        Returns False (and changes nothing) for unknown ids.
        """
        if store.get(job_id) is None:
            return False
        if cancel is not None:
            cancel(job_id)
        self.cancel_scheduled(job_id)
        self.cleanup_job_artifacts(job_id)
        deleted = store.delete(job_id)
        logger.info("job_deleted", job_id=job_id, deleted=deleted)
        return deleted
