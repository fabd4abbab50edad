from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from synclab.config import get_settings


@dataclass(frozen=True, slots=True)
class ProjectPaths:
    """Centralized filesystem layout for the service."""

    uploads_dir: Path
    outputs_dir: Path
    temp_dir: Path
    logs_dir: Path


def default_paths(work_dir: Path | None = None) -> ProjectPaths:
    if work_dir is not None:
        base = Path(work_dir)
        return ProjectPaths(
            uploads_dir=base / "uploads",
            outputs_dir=base / "outputs",
            temp_dir=base / "temp",
            logs_dir=base / "logs",
        )
    s = get_settings()
    return ProjectPaths(
        uploads_dir=Path(s.uploads_dir).resolve(),
        outputs_dir=Path(s.outputs_dir).resolve(),
        temp_dir=Path(s.temp_dir).resolve(),
        logs_dir=Path(s.log_dir).resolve(),
    )


def ensure_dirs(paths: ProjectPaths) -> ProjectPaths:
    for d in (paths.uploads_dir, paths.outputs_dir, paths.temp_dir, paths.logs_dir):
        d.mkdir(parents=True, exist_ok=True)
    return paths


@dataclass(frozen=True, slots=True)
class JobTempPaths:
    """Intermediates for one job; everything here is owned by retention."""

    audio_wav: Path
    transcript_json: Path
    dubbed_wav: Path
    dubbed_mp3: Path
    lipsync_mp4: Path
    frames_dir: Path

    def all(self) -> list[Path]:
        return [
            self.audio_wav,
            self.transcript_json,
            self.dubbed_wav,
            self.dubbed_mp3,
            self.lipsync_mp4,
            self.frames_dir,
        ]


@dataclass(frozen=True, slots=True)
class JobOutputPaths:
    final_video: Path
    subtitles: Path


def job_temp_paths(job_id: str, temp_dir: Path) -> JobTempPaths:
    t = Path(temp_dir)
    return JobTempPaths(
        audio_wav=t / f"{job_id}_audio.wav",
        # whisper writes <audio stem>.json next to --output_dir
        transcript_json=t / f"{job_id}_audio.json",
        dubbed_wav=t / f"{job_id}_dubbed.wav",
        dubbed_mp3=t / f"{job_id}_dubbed.mp3",
        lipsync_mp4=t / f"{job_id}_lipsync.mp4",
        frames_dir=t / f"{job_id}_frames",
    )


def job_output_paths(job_id: str, outputs_dir: Path) -> JobOutputPaths:
    o = Path(outputs_dir)
    return JobOutputPaths(
        final_video=o / f"{job_id}_dubbed_final.mp4",
        subtitles=o / f"{job_id}_subtitles.srt",
    )
