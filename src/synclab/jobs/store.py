from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from sqlitedict import SqliteDict  # type: ignore

from synclab.config import get_settings
from synclab.jobs.models import Job, JobMeta, JobStatus, Stage, can_transition
from synclab.utils.log import logger
from synclab.utils.time import now_utc

MUTABLE_FIELDS = frozenset(
    {"status", "stage", "progress", "message", "outputs", "error", "runtime"}
)


def _apply(job: Job, fields: dict[str, Any]) -> None:
    """
    Merge `fields` into `job` in place; raises before touching anything when the update is illegal.
    """
    unknown = set(fields) - MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Job fields are not updatable: {sorted(unknown)}")

    status = job.status
    if "status" in fields:
        status = JobStatus(fields["status"])
        if not can_transition(job.status, status):
            raise ValueError(f"Illegal status transition {job.status.value} -> {status.value}")
    if job.status.terminal and ({"stage", "progress", "outputs"} & set(fields)):
        raise ValueError(f"Job {job.id} is {job.status.value}; no further stage transitions")
    if fields.get("outputs") and status != JobStatus.DONE:
        raise ValueError("outputs may only be published with the transition into done")

    stage = fields.get("stage", job.stage)
    if stage is not None and not isinstance(stage, Stage):
        stage = Stage(str(stage))

    job.status = status
    job.stage = stage
    if "progress" in fields:
        job.progress = max(0, min(100, int(fields["progress"])))
    if "message" in fields:
        job.message = str(fields["message"] or "")
    if "outputs" in fields:
        job.outputs = {str(k): str(v) for k, v in dict(fields["outputs"] or {}).items()}
    if "error" in fields:
        job.error = None if fields["error"] is None else str(fields["error"])
    if "runtime" in fields:
        job.runtime = dict(fields["runtime"] or {})
    job.updated_at = now_utc()


class JobStore(ABC):
    """
    Process-wide job id -> Job map.

    Every method is atomic with respect to every other method; readers get detached copies,
    so a poller can never observe half of an update.
    """

    @abstractmethod
    def create(self, job_id: str, meta: JobMeta) -> Job: ...

    @abstractmethod
    def update(self, job_id: str, **fields: Any) -> Job | None:
        """Merge fields; unknown ids are a silent no-op returning None."""

    @abstractmethod
    def get(self, job_id: str) -> Job | None: ...

    @abstractmethod
    def list(self) -> list[Job]: ...

    @abstractmethod
    def delete(self, job_id: str) -> bool: ...

    def count(self) -> int:
        return len(self.list())

    def count_by_status(self, status: JobStatus) -> int:
        return sum(1 for j in self.list() if j.status == status)


class InMemoryJobStore(JobStore):
    """Process-lifetime store; state is lost on restart."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._jobs: dict[str, Job] = {}

    def create(self, job_id: str, meta: JobMeta) -> Job:
        with self._lock:
            if job_id in self._jobs:
                raise ValueError(f"Job already exists: {job_id}")
            job = Job(id=job_id, meta=meta)
            self._jobs[job_id] = job
            return job.clone()

    def update(self, job_id: str, **fields: Any) -> Job | None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            # apply to a copy so a rejected update leaves no trace
            nxt = job.clone()
            _apply(nxt, fields)
            self._jobs[job_id] = nxt
            return nxt.clone()

    def get(self, job_id: str) -> Job | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.clone() if job is not None else None

    def list(self) -> list[Job]:
        with self._lock:
            # dict preserves insertion (= creation) order
            return [j.clone() for j in self._jobs.values()]

    def delete(self, job_id: str) -> bool:
        with self._lock:
            return self._jobs.pop(job_id, None) is not None

    def count(self) -> int:
        with self._lock:
            return len(self._jobs)


class SqliteJobStore(JobStore):
    """
    Durable drop-in for InMemoryJobStore (JOB_STORE=sqlite).

    Records are stored as plain dicts in a sqlitedict table; a process-local lock serializes
    read-modify-write cycles.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    def _jobs(self) -> SqliteDict:
        # Open/close per operation (avoids cross-thread SQLite handle issues)
        return SqliteDict(str(self.db_path), tablename="jobs", autocommit=True)

    def create(self, job_id: str, meta: JobMeta) -> Job:
        with self._lock, self._jobs() as db:
            if job_id in db:
                raise ValueError(f"Job already exists: {job_id}")
            job = Job(id=job_id, meta=meta)
            db[job_id] = job.to_dict()
            return job

    def update(self, job_id: str, **fields: Any) -> Job | None:
        with self._lock, self._jobs() as db:
            raw = db.get(job_id)
            if raw is None:
                return None
            job = Job.from_dict(raw)
            _apply(job, fields)
            db[job_id] = job.to_dict()
            return job

    def get(self, job_id: str) -> Job | None:
        with self._lock, self._jobs() as db:
            raw = db.get(job_id)
            return Job.from_dict(raw) if raw is not None else None

    def list(self) -> list[Job]:
        with self._lock, self._jobs() as db:
            jobs = [Job.from_dict(v) for v in db.values()]
        return sorted(jobs, key=lambda j: j.created_at)

    def delete(self, job_id: str) -> bool:
        with self._lock, self._jobs() as db:
            if job_id not in db:
                return False
            del db[job_id]
            return True


def make_store() -> JobStore:
    s = get_settings()
    kind = str(s.job_store or "memory").strip().lower()
    if kind == "sqlite":
        path = s.job_store_path or (Path(s.outputs_dir) / "_state" / "jobs.db")
        logger.info("job_store_init", backend="sqlite", db=str(path))
        return SqliteJobStore(Path(path))
    logger.info("job_store_init", backend="memory")
    return InMemoryJobStore()
