from __future__ import annotations

from pathlib import Path

from synclab.jobs.models import Stage
from synclab.ops.metrics import stage_fallbacks
from synclab.plugins.lipsync.base import LipSyncPlugin, LipSyncRequest, LipSyncUnavailable
from synclab.stages.base import StageContext, StageFailed
from synclab.utils.ffmpeg import ToolError, ToolNotFound, ToolTimeout, merge_audio_video
from synclab.utils.log import logger


def merge_audio_only(ctx: StageContext, video: Path, dubbed_audio: Path) -> Path:
    """Keep the original picture and swap in the dubbed track."""
    ctx.checkpoint(Stage.LIPSYNC, "lipsync_merge", "Merging dubbed audio with video...")
    try:
        out = merge_audio_video(
            Path(video), Path(dubbed_audio), ctx.temp.lipsync_mp4, timeout_s=ctx.timeout_s
        )
    except ToolError as ex:
        logger.error("audio_merge_failed", error=str(ex))
        raise StageFailed(Stage.LIPSYNC, "Audio merge failed") from ex
    ctx.checkpoint(Stage.LIPSYNC, "lipsync_done")
    return out


def _fallback_reason(ex: Exception) -> str:
    if isinstance(ex, LipSyncUnavailable):
        return "model_unavailable"
    if isinstance(ex, ToolNotFound):
        return "launch_failed"
    if isinstance(ex, ToolTimeout):
        return "timeout"
    return "inference_failed"


def run(
    ctx: StageContext, video: Path, dubbed_audio: Path, plugin: LipSyncPlugin | None
) -> Path:
    """
    Produce a video whose mouth movement matches the dubbed audio.

    When the model is absent, or inference cannot launch, exits non-zero or produces nothing,
    the dubbed audio is merged onto the untouched video instead.
    """
    ctx.checkpoint(Stage.LIPSYNC, "lipsync", "Applying Wav2Lip lip synchronization...")

    reason: str | None = None
    if plugin is None:
        reason = "model_unavailable"
    elif not plugin.is_available():
        logger.warning("lipsync_model_missing_using_merge", plugin=plugin.name)
        reason = "model_unavailable"
    else:
        req = LipSyncRequest(
            input_video=Path(video),
            dubbed_audio=Path(dubbed_audio),
            output_video=ctx.temp.lipsync_mp4,
            quality=ctx.meta.quality,
            timeout_s=ctx.timeout_s,
        )
        try:
            out = plugin.run(req)
        except (LipSyncUnavailable, ToolError) as ex:
            reason = _fallback_reason(ex)
            logger.warning("lipsync_failed_using_merge", plugin=plugin.name, error=str(ex))
        else:
            if Path(out).is_file():
                ctx.checkpoint(Stage.LIPSYNC, "lipsync_done")
                logger.info("lipsync_done", plugin=plugin.name, out=str(out))
                return Path(out)
            logger.warning("lipsync_output_missing_using_merge", plugin=plugin.name, out=str(out))
            reason = "no_output"

    stage_fallbacks.labels(stage=Stage.LIPSYNC.value, reason=reason).inc()
    ctx.note_fallback(Stage.LIPSYNC, reason)
    return merge_audio_only(ctx, video, dubbed_audio)
