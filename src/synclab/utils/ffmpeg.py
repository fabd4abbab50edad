from __future__ import annotations

# ffmpeg helpers for the pipeline.
#
# Thin wrappers over `synclab.utils.proc.run_tool`; each helper is one ffmpeg
# invocation and raises the ToolError subclasses unchanged so the calling stage
# decides between abort and fallback.
import shutil
import subprocess
from pathlib import Path

from synclab.config import get_settings
from synclab.utils.proc import ToolError, ToolExitError, ToolNotFound, ToolTimeout, run_tool

__all__ = [
    "ToolError",
    "ToolExitError",
    "ToolNotFound",
    "ToolTimeout",
    "run_ffmpeg",
    "ffmpeg_available",
    "extract_audio_mono_16k",
    "extract_frames",
    "merge_audio_video",
    "encode_final",
]


def _bin() -> str:
    return str(get_settings().ffmpeg_bin)


def run_ffmpeg(args: list[str], *, timeout_s: float | None = None) -> None:
    run_tool([_bin(), *args], name="ffmpeg", timeout_s=timeout_s)


def ffmpeg_available() -> bool:
    b = _bin()
    if shutil.which(b) is None and not Path(b).is_file():
        return False
    try:
        subprocess.run(
            [b, "-version"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=10,
            check=True,
        )
        return True
    except Exception:
        return False


def extract_audio_mono_16k(video: Path, wav_out: Path, *, timeout_s: float | None = None) -> Path:
    wav_out.parent.mkdir(parents=True, exist_ok=True)
    run_ffmpeg(
        [
            "-i",
            str(video),
            "-vn",
            "-acodec",
            "pcm_s16le",
            "-ar",
            "16000",
            "-ac",
            "1",
            "-y",
            str(wav_out),
        ],
        timeout_s=timeout_s,
    )
    return wav_out


def extract_frames(
    video: Path, frames_dir: Path, *, fps: int = 25, timeout_s: float | None = None
) -> Path:
    frames_dir.mkdir(parents=True, exist_ok=True)
    run_ffmpeg(
        [
            "-i",
            str(video),
            "-vf",
            f"fps={int(fps)}",
            "-q:v",
            "2",
            str(frames_dir / "frame_%05d.jpg"),
            "-y",
        ],
        timeout_s=timeout_s,
    )
    return frames_dir


def merge_audio_video(
    video: Path, audio: Path, out: Path, *, timeout_s: float | None = None
) -> Path:
    """
    Copy the video stream untouched and substitute the audio track.
    """
    out.parent.mkdir(parents=True, exist_ok=True)
    run_ffmpeg(
        [
            "-i",
            str(video),
            "-i",
            str(audio),
            "-c:v",
            "copy",
            "-map",
            "0:v:0",
            "-map",
            "1:a:0",
            "-shortest",
            "-y",
            str(out),
        ],
        timeout_s=timeout_s,
    )
    return out


def encode_final(src: Path, dst: Path, *, timeout_s: float | None = None) -> Path:
    dst.parent.mkdir(parents=True, exist_ok=True)
    run_ffmpeg(
        [
            "-i",
            str(src),
            "-c:v",
            "libx264",
            "-preset",
            "fast",
            "-crf",
            "23",
            "-c:a",
            "aac",
            "-b:a",
            "192k",
            "-movflags",
            "+faststart",
            "-y",
            str(dst),
        ],
        timeout_s=timeout_s,
    )
    return dst
