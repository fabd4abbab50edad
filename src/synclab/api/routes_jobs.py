from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi import APIRouter, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import FileResponse

from synclab import catalog
from synclab.config import get_settings
from synclab.jobs.models import JobMeta, new_id
from synclab.jobs.queries import (
    ArtifactMissing,
    JobNotComplete,
    JobNotFound,
    UnknownArtifactKind,
    list_view,
    resolve_artifact,
    status_view,
)
from synclab.utils.log import logger

router = APIRouter()

_ALLOWED_UPLOAD_MIME = {
    "video/mp4",
    "video/quicktime",
    "video/x-msvideo",
    "video/x-matroska",
    "video/webm",
}
_CHUNK = 1024 * 1024


def _get_store(request: Request):
    store = getattr(request.app.state, "job_store", None)
    if store is None:
        raise HTTPException(status_code=500, detail="Job store not initialized")
    return store


def _get_queue(request: Request):
    q = getattr(request.app.state, "job_queue", None)
    if q is None:
        raise HTTPException(status_code=500, detail="Job queue not initialized")
    return q


def _get_retention(request: Request):
    r = getattr(request.app.state, "retention", None)
    if r is None:
        raise HTTPException(status_code=500, detail="Retention manager not initialized")
    return r


def _upload_suffix(filename: str) -> str:
    ext = Path(filename or "").suffix.lower()
    return ext[:8] if ext else ".mp4"


async def _save_upload(upload: UploadFile, dest: Path, *, max_mb: int) -> None:
    max_bytes = int(max_mb) * 1024 * 1024
    written = 0
    dest.parent.mkdir(parents=True, exist_ok=True)
    try:
        with dest.open("wb") as f:
            while True:
                chunk = await upload.read(_CHUNK)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    raise HTTPException(status_code=413, detail=f"Upload too large (>{max_mb}MB)")
                f.write(chunk)
    except HTTPException:
        dest.unlink(missing_ok=True)
        raise


@router.post("/api/dub")
async def submit_dub(
    request: Request,
    video: UploadFile | None = File(None),
    lang_from: str = Form("en"),
    lang_to: str = Form("es"),
    voice_mode: str = Form("clone"),
    quality: str = Form("balanced"),
    sync_confidence: str = Form("0.85"),
) -> dict[str, Any]:
    store = _get_store(request)
    queue = _get_queue(request)
    s = get_settings()

    if video is None or not video.filename:
        raise HTTPException(status_code=400, detail="No video file provided")
    ctype = (video.content_type or "").lower().strip()
    if ctype not in _ALLOWED_UPLOAD_MIME:
        raise HTTPException(
            status_code=415,
            detail="Invalid file type. Only MP4, MOV, AVI, MKV, and WebM are allowed.",
        )
    lang_from = lang_from.strip().lower()
    lang_to = lang_to.strip().lower()
    if not catalog.is_source_language(lang_from):
        raise HTTPException(status_code=400, detail=f"Unsupported source language: {lang_from}")
    if not catalog.is_target_language(lang_to):
        raise HTTPException(status_code=400, detail=f"Unsupported target language: {lang_to}")
    if voice_mode not in catalog.VOICE_MODES:
        raise HTTPException(status_code=400, detail=f"Unsupported voice_mode: {voice_mode}")
    if quality not in catalog.QUALITY_TIERS:
        raise HTTPException(status_code=400, detail=f"Unsupported quality: {quality}")
    try:
        confidence = float(sync_confidence)
    except ValueError:
        raise HTTPException(status_code=400, detail="sync_confidence must be a number") from None

    jid = new_id()
    dest = Path(s.uploads_dir) / f"{jid}{_upload_suffix(video.filename)}"
    await _save_upload(video, dest, max_mb=int(s.max_upload_mb))

    meta = JobMeta(
        source_path=str(dest),
        lang_from=lang_from,
        lang_to=lang_to,
        voice_mode=voice_mode,
        quality=quality,
        sync_confidence=confidence,
        filename=video.filename,
    )
    store.create(jid, meta)
    queue.submit(jid)
    logger.info("job_created", job_id=jid, filename=video.filename, lang_to=lang_to)
    return {
        "job_id": jid,
        "status": "queued",
        "message": "Video uploaded successfully. Processing started.",
    }


@router.get("/api/dub/{job_id}/status")
async def job_status(request: Request, job_id: str) -> dict[str, Any]:
    job = _get_store(request).get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return status_view(job, download_base=f"/api/dub/{job_id}/download")


@router.get("/api/dub/{job_id}/download/{kind}")
async def download_artifact(request: Request, job_id: str, kind: str) -> FileResponse:
    try:
        path = resolve_artifact(_get_store(request), job_id, kind)
    except (JobNotFound, ArtifactMissing, UnknownArtifactKind) as ex:
        raise HTTPException(status_code=404, detail=str(ex)) from None
    except JobNotComplete as ex:
        raise HTTPException(status_code=400, detail=str(ex)) from None
    return FileResponse(path, filename=f"dubbed_{kind}{path.suffix}")


@router.get("/api/jobs")
async def list_jobs(
    request: Request,
    limit: int | None = Query(None, ge=0, le=1000),
    offset: int = Query(0, ge=0),
) -> dict[str, Any]:
    return list_view(_get_store(request), limit=limit, offset=offset)


@router.delete("/api/dub/{job_id}")
async def delete_job(request: Request, job_id: str) -> dict[str, Any]:
    store = _get_store(request)
    queue = _get_queue(request)
    ok = _get_retention(request).delete_job(store, job_id, cancel=queue.cancel)
    if not ok:
        raise HTTPException(status_code=404, detail="Job not found")
    return {"message": "Job deleted successfully"}
