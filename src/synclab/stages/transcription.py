from __future__ import annotations

import json
import sys
from pathlib import Path

from synclab.config import get_settings
from synclab.jobs.models import Stage
from synclab.ops.metrics import stage_fallbacks
from synclab.stages.base import Segment, StageContext, Transcript
from synclab.utils.log import logger
from synclab.utils.proc import ToolError, ToolNotFound, run_tool


def mock_transcript() -> Transcript:
    """Deterministic placeholder used whenever whisper is unavailable or unusable."""
    return Transcript(
        text="Hello, welcome to this demonstration of the SyncLab dubbing engine.",
        segments=[
            Segment(id=0, start=0.0, end=2.5, text="Hello, welcome to this demonstration"),
            Segment(id=1, start=2.5, end=5.0, text="of the SyncLab dubbing engine."),
        ],
        language="en",
    )


def whisper_python() -> str:
    return str(get_settings().whisper_python or "") or sys.executable


def whisper_argv(audio: Path, out_dir: Path, lang: str) -> list[str]:
    argv = [
        whisper_python(),
        "-m",
        "whisper",
        str(audio),
        "--model",
        str(get_settings().whisper_model),
        "--output_dir",
        str(out_dir),
        "--output_format",
        "json",
    ]
    lang = str(lang or "auto").strip().lower()
    if lang != "auto":
        argv += ["--language", lang]
    return argv


def _fallback(ctx: StageContext, reason: str) -> Transcript:
    stage_fallbacks.labels(stage=Stage.TRANSCRIBE.value, reason=reason).inc()
    ctx.note_fallback(Stage.TRANSCRIBE, reason)
    ctx.checkpoint(Stage.TRANSCRIBE, "transcribe_done")
    return mock_transcript()


def transcribe(ctx: StageContext, audio: Path) -> Transcript:
    """
    Run whisper on the normalized audio track.

    Honors the source-language hint (`auto` lets whisper detect it). Never fails the job:
    a missing engine, a non-zero exit or unparsable output yield the mock transcript.
    """
    ctx.checkpoint(Stage.TRANSCRIBE, "transcribe", "Running speech recognition...")
    audio = Path(audio)
    out_dir = ctx.temp.transcript_json.parent
    json_path = out_dir / f"{audio.stem}.json"

    try:
        run_tool(
            whisper_argv(audio, out_dir, ctx.meta.lang_from),
            name="whisper",
            timeout_s=ctx.timeout_s,
        )
    except ToolNotFound:
        logger.warning("whisper_not_installed_using_mock_transcript")
        return _fallback(ctx, "engine_unavailable")
    except ToolError as ex:
        logger.warning("whisper_failed_using_mock_transcript", error=str(ex))
        return _fallback(ctx, "engine_failed")

    try:
        data = json.loads(json_path.read_text(encoding="utf-8"))
        transcript = Transcript.from_whisper(data)
    except (OSError, ValueError, KeyError, TypeError) as ex:
        logger.warning("whisper_output_unparsable", path=str(json_path), error=str(ex))
        return _fallback(ctx, "unparsable_output")

    ctx.checkpoint(Stage.TRANSCRIBE, "transcribe_done")
    logger.info(
        "transcribed",
        segments=len(transcript.segments),
        language=transcript.language,
    )
    return transcript
