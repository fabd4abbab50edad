from __future__ import annotations

import shutil
from pathlib import Path

from synclab.jobs.models import Stage
from synclab.ops.metrics import stage_fallbacks
from synclab.stages.base import StageContext, StageFailed
from synclab.utils.ffmpeg import ToolError, ToolNotFound, encode_final
from synclab.utils.log import logger


def render(ctx: StageContext, src: Path) -> tuple[Path, bool]:
    """
    Encode the lip-synced intermediate into the deliverable (H.264/AAC, fast-start MP4).

    Returns (final_path, fell_back). When the encoder cannot be launched at all the
    intermediate is copied unchanged to the deliverable path; any other encoder failure
    fails the job.
    """
    ctx.checkpoint(Stage.RENDER, "render", "Encoding final output...")
    dst = ctx.outputs.final_video
    fell_back = False
    try:
        encode_final(Path(src), dst, timeout_s=ctx.timeout_s)
    except ToolNotFound as ex:
        logger.warning("encoder_unavailable_copying_intermediate", error=str(ex))
        try:
            dst.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(src, dst)
        except OSError as cex:
            raise StageFailed(Stage.RENDER, "Final render failed") from cex
        stage_fallbacks.labels(stage=Stage.RENDER.value, reason="encoder_unavailable").inc()
        ctx.note_fallback(Stage.RENDER, "encoder_unavailable")
        fell_back = True
    except ToolError as ex:
        logger.error("render_failed", error=str(ex))
        raise StageFailed(Stage.RENDER, "Final render failed") from ex
    ctx.checkpoint(Stage.RENDER, "render_done")
    logger.info("rendered", out=str(dst), fell_back=fell_back)
    return dst, fell_back
