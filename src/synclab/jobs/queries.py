from __future__ import annotations

from pathlib import Path
from typing import Any

from synclab.jobs.models import ArtifactKind, Job, JobStatus
from synclab.jobs.store import JobStore


class JobNotFound(LookupError):
    pass


class JobNotComplete(RuntimeError):
    pass


class ArtifactMissing(LookupError):
    pass


class UnknownArtifactKind(ValueError):
    pass


def status_view(job: Job, *, download_base: str | None = None) -> dict[str, Any]:
    """
    Client-facing status. `outputs` appears only once the job is done; with download_base
    the entries are download URLs instead of artifact paths.
    """
    view: dict[str, Any] = {
        "job_id": job.id,
        "status": job.status.value,
        "stage": job.stage.value if job.stage is not None else None,
        "progress": int(job.progress),
        "message": job.message,
        "degraded": job.degraded,
        "fallbacks": list(job.runtime.get("fallbacks") or []),
        "created_at": job.created_at,
        "updated_at": job.updated_at,
    }
    if job.error:
        view["error"] = job.error
    if job.status == JobStatus.DONE:
        if download_base is not None:
            base = download_base.rstrip("/")
            view["outputs"] = {k: f"{base}/{k}" for k in job.outputs}
        else:
            view["outputs"] = dict(job.outputs)
    return view


def summary_view(job: Job) -> dict[str, Any]:
    return {
        "id": job.id,
        "status": job.status.value,
        "progress": int(job.progress),
        "filename": job.meta.filename,
        "created_at": job.created_at,
    }


def list_view(store: JobStore, *, limit: int | None = None, offset: int = 0) -> dict[str, Any]:
    """All jobs in creation order; limit=None returns everything after offset."""
    jobs = store.list()
    start = max(0, int(offset))
    page = jobs[start:] if limit is None else jobs[start : start + max(0, int(limit))]
    return {"total": len(jobs), "jobs": [summary_view(j) for j in page]}


def resolve_artifact(store: JobStore, job_id: str, kind: str) -> Path:
    try:
        k = ArtifactKind(str(kind))
    except ValueError:
        raise UnknownArtifactKind(f"Unknown artifact kind: {kind}") from None
    job = store.get(job_id)
    if job is None:
        raise JobNotFound(f"Job not found: {job_id}")
    if job.status != JobStatus.DONE:
        raise JobNotComplete(f"Job not completed (status={job.status.value})")
    raw = job.outputs.get(k.value)
    if not raw:
        raise ArtifactMissing(f"No {k.value} artifact recorded")
    p = Path(raw)
    if not p.is_file():
        raise ArtifactMissing(f"{k.value} artifact no longer exists")
    return p
