from __future__ import annotations

from pathlib import Path

from synclab.jobs.models import Stage
from synclab.ops.metrics import stage_fallbacks
from synclab.stages.base import StageContext
from synclab.utils.ffmpeg import extract_frames
from synclab.utils.log import logger

FRAME_RATE = 25


def extract(ctx: StageContext, video: Path) -> Path | None:
    """
    Decode the source video to JPEG frames at a fixed rate.

    Optional: consumers treat None as "no frames"; a failure never fails the job.
    """
    ctx.checkpoint(Stage.EXTRACT_FRAMES, "extract_frames", "Extracting video frames...")
    try:
        return extract_frames(
            Path(video), ctx.temp.frames_dir, fps=FRAME_RATE, timeout_s=ctx.timeout_s
        )
    except Exception as ex:
        # ffmpeg errors as well as filesystem errors on the frames directory
        logger.warning("frame_extraction_failed", error=str(ex), error_type=type(ex).__name__)
        stage_fallbacks.labels(stage=Stage.EXTRACT_FRAMES.value, reason="frames_unavailable").inc()
        ctx.note_fallback(Stage.EXTRACT_FRAMES, "frames_unavailable")
        return None
