from __future__ import annotations

from pathlib import Path

import pytest

from synclab.jobs.models import JobMeta, JobStatus, Stage
from synclab.jobs.queries import (
    ArtifactMissing,
    JobNotComplete,
    JobNotFound,
    UnknownArtifactKind,
    list_view,
    resolve_artifact,
    status_view,
)
from synclab.jobs.store import InMemoryJobStore


def _done(store: InMemoryJobStore, jid: str, video: Path) -> None:
    store.create(jid, JobMeta(source_path="/tmp/a.mp4", filename="a.mp4"))
    store.update(jid, status=JobStatus.RUNNING)
    store.update(
        jid,
        status=JobStatus.DONE,
        stage=Stage.COMPLETE,
        progress=100,
        outputs={"video": str(video), "srt": str(video.with_suffix(".srt"))},
    )


def test_status_view_hides_outputs_until_done(tmp_path: Path) -> None:
    store = InMemoryJobStore()
    store.create("q", JobMeta(source_path="/tmp/a.mp4"))
    v = status_view(store.get("q"))
    assert v["status"] == "queued"
    assert v["stage"] is None
    assert "outputs" not in v
    assert v["degraded"] is False

    video = tmp_path / "v.mp4"
    video.write_bytes(b"v")
    _done(store, "d", video)
    v = status_view(store.get("d"), download_base="/api/dub/d/download")
    assert v["progress"] == 100
    assert v["outputs"] == {
        "video": "/api/dub/d/download/video",
        "srt": "/api/dub/d/download/srt",
    }


def test_status_view_error(tmp_path: Path) -> None:
    store = InMemoryJobStore()
    store.create("e", JobMeta(source_path="/tmp/a.mp4"))
    store.update("e", status=JobStatus.ERROR, error="boom", message="boom")
    v = status_view(store.get("e"))
    assert v["error"] == "boom"
    assert "outputs" not in v


def test_list_view_pagination() -> None:
    store = InMemoryJobStore()
    for i in range(5):
        store.create(f"j{i}", JobMeta(source_path="/tmp/a.mp4", filename=f"{i}.mp4"))
    full = list_view(store)
    assert full["total"] == 5
    assert [j["id"] for j in full["jobs"]] == ["j0", "j1", "j2", "j3", "j4"]
    assert set(full["jobs"][0]) == {"id", "status", "progress", "filename", "created_at"}
    page = list_view(store, limit=2, offset=1)
    assert page["total"] == 5
    assert [j["id"] for j in page["jobs"]] == ["j1", "j2"]


def test_resolve_artifact_errors(tmp_path: Path) -> None:
    store = InMemoryJobStore()
    with pytest.raises(JobNotFound):
        resolve_artifact(store, "missing", "video")
    store.create("q", JobMeta(source_path="/tmp/a.mp4"))
    with pytest.raises(JobNotComplete):
        resolve_artifact(store, "q", "video")
    with pytest.raises(UnknownArtifactKind):
        resolve_artifact(store, "q", "thumbnail")

    video = tmp_path / "v.mp4"
    video.write_bytes(b"v")
    _done(store, "d", video)
    assert resolve_artifact(store, "d", "video") == video
    # recorded but gone from disk
    with pytest.raises(ArtifactMissing):
        resolve_artifact(store, "d", "srt")
    # never recorded
    with pytest.raises(ArtifactMissing):
        resolve_artifact(store, "d", "audio")
