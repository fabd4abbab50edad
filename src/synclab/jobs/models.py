from __future__ import annotations

import copy
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from synclab.utils.time import now_utc


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self in {JobStatus.DONE, JobStatus.ERROR}


# queued -> error covers jobs interrupted before their pipeline started (restart recovery).
_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.QUEUED: {JobStatus.RUNNING, JobStatus.ERROR},
    JobStatus.RUNNING: {JobStatus.DONE, JobStatus.ERROR},
    JobStatus.DONE: set(),
    JobStatus.ERROR: set(),
}


def can_transition(cur: JobStatus, new: JobStatus) -> bool:
    return cur == new or new in _TRANSITIONS[cur]


class Stage(str, Enum):
    EXTRACT_AUDIO = "extract_audio"
    EXTRACT_FRAMES = "extract_frames"
    TRANSCRIBE = "transcribe"
    TRANSLATE = "translate"
    SYNTHESIZE = "synthesize"
    LIPSYNC = "lipsync"
    RENDER = "render"
    COMPLETE = "complete"


class ArtifactKind(str, Enum):
    video = "video"
    srt = "srt"
    audio = "audio"


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True, slots=True)
class JobMeta:
    """Submission parameters; fixed at creation."""

    source_path: str
    lang_from: str = "en"
    lang_to: str = "es"
    voice_mode: str = "clone"
    quality: str = "balanced"
    # accepted and stored, not enforced by the pipeline
    sync_confidence: float = 0.85
    filename: str = ""

    @property
    def wants_clone(self) -> bool:
        return str(self.voice_mode or "").strip().lower() == "clone"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> JobMeta:
        known = {k: d[k] for k in cls.__dataclass_fields__ if k in d}
        return cls(**known)


@dataclass(slots=True)
class Job:
    id: str
    meta: JobMeta
    status: JobStatus = JobStatus.QUEUED
    stage: Stage | None = None
    progress: int = 0
    message: str = ""
    outputs: dict[str, str] = field(default_factory=dict)
    error: str | None = None
    runtime: dict[str, Any] = field(default_factory=dict)
    created_at: str = field(default_factory=now_utc)
    updated_at: str = field(default_factory=now_utc)

    @property
    def degraded(self) -> bool:
        return bool(self.runtime.get("degraded"))

    def clone(self) -> Job:
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "meta": self.meta.to_dict(),
            "status": self.status.value,
            "stage": self.stage.value if self.stage is not None else None,
            "progress": int(self.progress),
            "message": self.message,
            "outputs": dict(self.outputs),
            "error": self.error,
            "runtime": copy.deepcopy(self.runtime),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Job:
        dd = dict(d)
        stage = dd.get("stage")
        return cls(
            id=str(dd["id"]),
            meta=JobMeta.from_dict(dict(dd.get("meta") or {})),
            status=JobStatus(str(dd.get("status") or "queued")),
            stage=Stage(str(stage)) if stage else None,
            progress=int(dd.get("progress") or 0),
            message=str(dd.get("message") or ""),
            outputs=dict(dd.get("outputs") or {}),
            error=dd.get("error"),
            runtime=dict(dd.get("runtime") or {}),
            created_at=str(dd.get("created_at") or now_utc()),
            updated_at=str(dd.get("updated_at") or now_utc()),
        )
