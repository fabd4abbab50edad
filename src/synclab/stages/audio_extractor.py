from __future__ import annotations

from pathlib import Path

from synclab.jobs.models import Stage
from synclab.stages.base import StageContext, StageFailed
from synclab.utils.ffmpeg import ToolError, ToolExitError, ToolNotFound, extract_audio_mono_16k
from synclab.utils.log import logger


def extract(ctx: StageContext, video: Path) -> Path:
    """
    Extract a mono 16kHz PCM WAV from the source media.

    Mandatory stage: any ffmpeg failure aborts the job.
    """
    ctx.checkpoint(Stage.EXTRACT_AUDIO, "extract_audio", "Extracting audio from video...")
    try:
        wav = extract_audio_mono_16k(Path(video), ctx.temp.audio_wav, timeout_s=ctx.timeout_s)
    except ToolNotFound as ex:
        raise StageFailed(Stage.EXTRACT_AUDIO, "ffmpeg not found; please install ffmpeg") from ex
    except ToolExitError as ex:
        logger.error("audio_extract_failed", code=ex.returncode, stderr_tail=ex.stderr_tail[-500:])
        raise StageFailed(
            Stage.EXTRACT_AUDIO, f"ffmpeg audio extraction failed (code {ex.returncode})"
        ) from ex
    except ToolError as ex:
        raise StageFailed(Stage.EXTRACT_AUDIO, f"ffmpeg audio extraction failed: {ex}") from ex
    ctx.checkpoint(Stage.EXTRACT_AUDIO, "extract_audio_done")
    logger.info("audio_extracted", wav=str(wav))
    return wav
