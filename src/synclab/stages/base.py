from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from synclab.jobs.models import JobMeta, Stage
from synclab.utils.paths import JobOutputPaths, JobTempPaths

# Progress values polled by clients for UI pacing; must be non-decreasing across a run.
CHECKPOINTS: dict[str, int] = {
    "extract_audio": 8,
    "extract_audio_done": 15,
    "extract_frames": 18,
    "transcribe": 28,
    "transcribe_done": 40,
    "translate": 48,
    "translate_done": 58,
    "synthesize": 65,
    "synthesize_done": 75,
    "lipsync": 82,
    "lipsync_merge": 86,
    "lipsync_done": 90,
    "render": 94,
    "render_done": 98,
    "complete": 100,
}


class StageFailed(RuntimeError):
    """Unrecoverable stage failure; aborts the pipeline and fails the job."""

    def __init__(self, stage: Stage, message: str) -> None:
        super().__init__(message)
        self.stage = stage


@dataclass(frozen=True, slots=True)
class Segment:
    id: int
    start: float
    end: float
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "start": self.start, "end": self.end, "text": self.text}


@dataclass(frozen=True, slots=True)
class Transcript:
    text: str
    segments: list[Segment] = field(default_factory=list)
    language: str | None = None

    @classmethod
    def from_whisper(cls, data: dict[str, Any]) -> Transcript:
        """
        Parse whisper's JSON output ({text, segments:[{id,start,end,text}], language}).
        Raises ValueError on anything unusable.
        """
        if not isinstance(data, dict):
            raise ValueError("whisper output is not an object")
        raw_segments = data.get("segments")
        if not isinstance(raw_segments, list):
            raise ValueError("whisper output has no segments list")
        segments = []
        for i, seg in enumerate(raw_segments):
            if not isinstance(seg, dict):
                raise ValueError(f"segment {i} is not an object")
            segments.append(
                Segment(
                    id=int(seg.get("id", i)),
                    start=float(seg["start"]),
                    end=float(seg["end"]),
                    text=str(seg.get("text") or "").strip(),
                )
            )
        text = str(data.get("text") or "").strip()
        if not text:
            text = " ".join(s.text for s in segments).strip()
        lang = data.get("language")
        return cls(text=text, segments=segments, language=str(lang) if lang else None)


@dataclass(frozen=True, slots=True)
class Translation:
    """Transcript plus its translation; segments keep the source timings."""

    source: Transcript
    translated_text: str
    segments: list[Segment]
    target_lang: str
    provider: str | None = None

    def subtitle_lines(self) -> list[dict[str, Any]]:
        if self.segments:
            return [s.to_dict() for s in self.segments]
        # no timing information: a single cue spanning the first five seconds
        return [{"start": 0.0, "end": 5.0, "text": self.translated_text}]


@dataclass(frozen=True, slots=True)
class StageContext:
    """
    What a stage gets besides its own inputs.

    report(stage, progress, message) writes a checkpoint to the job record;
    note_fallback(stage, reason) records a degradation for diagnostics.
    """

    job_id: str
    meta: JobMeta
    temp: JobTempPaths
    outputs: JobOutputPaths
    report: Callable[..., None]
    note_fallback: Callable[[Stage, str], None]
    timeout_s: float | None = None

    def checkpoint(self, stage: Stage, key: str, message: str | None = None) -> None:
        self.report(stage=stage, progress=CHECKPOINTS[key], message=message)


class ProviderError(RuntimeError):
    """One provider failed; the stage moves on to the next one in priority order."""
