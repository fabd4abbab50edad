from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from synclab import __version__, catalog
from synclab.jobs.models import JobStatus
from synclab.ops.metrics import REGISTRY
from synclab.system.readiness import collect_readiness

router = APIRouter()


@router.get("/api/health")
async def health(request: Request) -> dict[str, Any]:
    store = getattr(request.app.state, "job_store", None)
    queue = getattr(request.app.state, "job_queue", None)
    report = collect_readiness()
    return {
        "status": "healthy",
        "service": "SyncLab Dubbing Engine",
        "version": __version__,
        "services": report["collaborators"],
        "active_jobs": store.count_by_status(JobStatus.RUNNING) if store is not None else 0,
        "queued_jobs": queue.pending_count() if queue is not None else 0,
        "total_jobs": store.count() if store is not None else 0,
    }


@router.get("/api/languages")
async def languages() -> dict[str, Any]:
    return {"languages": catalog.languages()}


@router.get("/api/models")
async def models() -> dict[str, Any]:
    return catalog.models()


@router.get("/metrics")
async def metrics() -> Response:
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
