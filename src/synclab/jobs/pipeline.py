from __future__ import annotations

import time
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from synclab.jobs.models import Job, JobMeta, JobStatus, Stage
from synclab.jobs.store import JobStore
from synclab.ops.metrics import (
    jobs_degraded,
    jobs_finished,
    jobs_running,
    stage_errors,
    stage_seconds,
    time_hist,
)
from synclab.ops.retention import RetentionManager
from synclab.plugins.lipsync.base import LipSyncPlugin
from synclab.stages import audio_extractor, frames, lipsync, render, transcription, translation, tts
from synclab.stages.base import StageContext, StageFailed
from synclab.stages.translation import Translator
from synclab.stages.tts import VoiceProvider
from synclab.utils.log import logger, set_job_id
from synclab.utils.paths import ProjectPaths, job_output_paths, job_temp_paths
from synclab.utils.subtitles import write_srt


class JobCanceled(Exception):
    pass


class _Reporter:
    """
    Writes stage checkpoints to the store.

    Progress is clamped so observers never see it move backward, and it cannot reach 100
    before the job is done.
    """

    def __init__(self, store: JobStore, job_id: str) -> None:
        self.store = store
        self.job_id = job_id
        self.last = 0

    def __call__(self, *, stage: Stage, progress: int, message: str | None = None) -> None:
        self.last = max(self.last, min(99, int(progress)))
        fields: dict[str, Any] = {"stage": stage, "progress": self.last}
        if message is not None:
            fields["message"] = message
        # a deleted record makes this a no-op; the next stage boundary notices
        self.store.update(self.job_id, **fields)


class DubbingPipeline:
    """
    Runs one job through every stage, in order, on the calling thread.

    Results reach callers only through the job store.
    """

    def __init__(
        self,
        store: JobStore,
        *,
        paths: ProjectPaths,
        retention: RetentionManager | None = None,
        translators: Sequence[Translator] | None = None,
        voices: Sequence[VoiceProvider] | None = None,
        lipsync_plugin: LipSyncPlugin | None = None,
        stage_timeout_s: float | None = None,
    ) -> None:
        self.store = store
        self.paths = paths
        self.retention = retention
        self.translators = (
            list(translators) if translators is not None else translation.default_translators()
        )
        self.voices = list(voices) if voices is not None else tts.default_voice_providers()
        self.lipsync_plugin = lipsync_plugin
        self.stage_timeout_s = stage_timeout_s

    def _check_canceled(self, job_id: str, should_cancel: Callable[[], bool] | None) -> None:
        if should_cancel is not None and should_cancel():
            raise JobCanceled()
        if self.store.get(job_id) is None:
            raise JobCanceled()

    @contextmanager
    def _stage(
        self, job_id: str, stage: Stage, should_cancel: Callable[[], bool] | None
    ) -> Iterator[None]:
        self._check_canceled(job_id, should_cancel)
        with time_hist(stage_seconds.labels(stage=stage.value)):
            yield

    def _fail(self, job_id: str, message: str) -> None:
        self.store.update(job_id, status=JobStatus.ERROR, error=message, message=message)
        jobs_finished.labels(state="error").inc()

    def run(
        self,
        job_id: str,
        source_path: Path | str | None = None,
        meta: JobMeta | None = None,
        *,
        should_cancel: Callable[[], bool] | None = None,
    ) -> Job | None:
        """
        Execute the pipeline for a queued job and return its final record.

        source_path and meta default to what was recorded at submission. A stage failure (or
        any unexpected exception) ends the job in `error` with the failure message verbatim;
        a cancellation (job deleted mid-run) stops without writing further state.
        """
        set_job_id(job_id)
        try:
            job = self.store.get(job_id)
            if job is None:
                logger.warning("pipeline_job_missing")
                return None
            if job.status != JobStatus.QUEUED:
                logger.warning("pipeline_refused", status=job.status.value)
                return job
            source = Path(source_path or job.meta.source_path)
            return self._run(job, source, meta or job.meta, should_cancel)
        finally:
            set_job_id(None)

    def _run(
        self,
        job: Job,
        source: Path,
        meta: JobMeta,
        should_cancel: Callable[[], bool] | None,
    ) -> Job | None:
        job_id = job.id
        fallbacks: list[dict[str, str]] = []

        def note_fallback(stage: Stage, reason: str) -> None:
            fallbacks.append({"stage": stage.value, "reason": reason})
            self.store.update(job_id, runtime={"fallbacks": list(fallbacks), "degraded": True})

        ctx = StageContext(
            job_id=job_id,
            meta=meta,
            temp=job_temp_paths(job_id, self.paths.temp_dir),
            outputs=job_output_paths(job_id, self.paths.outputs_dir),
            report=_Reporter(self.store, job_id),
            note_fallback=note_fallback,
            timeout_s=self.stage_timeout_s,
        )

        canceled = False
        t0 = time.perf_counter()
        jobs_running.inc()
        try:
            self._check_canceled(job_id, should_cancel)
            self.store.update(
                job_id, status=JobStatus.RUNNING, message="Starting dubbing pipeline..."
            )
            logger.info(
                "pipeline_start",
                source=str(source),
                lang_from=meta.lang_from,
                lang_to=meta.lang_to,
                quality=meta.quality,
            )

            with self._stage(job_id, Stage.EXTRACT_AUDIO, should_cancel):
                audio = audio_extractor.extract(ctx, source)
            with self._stage(job_id, Stage.EXTRACT_FRAMES, should_cancel):
                frames_dir = frames.extract(ctx, source)
            with self._stage(job_id, Stage.TRANSCRIBE, should_cancel):
                transcript = transcription.transcribe(ctx, audio)
            with self._stage(job_id, Stage.TRANSLATE, should_cancel):
                translated = translation.translate(ctx, transcript, self.translators)
            with self._stage(job_id, Stage.SYNTHESIZE, should_cancel):
                dubbed_audio = tts.synthesize(ctx, translated, audio, self.voices)
            with self._stage(job_id, Stage.LIPSYNC, should_cancel):
                synced = lipsync.run(ctx, source, dubbed_audio, self.lipsync_plugin)
            with self._stage(job_id, Stage.RENDER, should_cancel):
                final_video, render_fell_back = render.render(ctx, synced)
            self._check_canceled(job_id, should_cancel)

            srt = write_srt(translated.subtitle_lines(), ctx.outputs.subtitles)
            message = "Dubbing complete!"
            if render_fell_back:
                message = "Dubbing complete (encoder unavailable, intermediate delivered as-is)"
            self.store.update(
                job_id,
                status=JobStatus.DONE,
                stage=Stage.COMPLETE,
                progress=100,
                message=message,
                outputs={"video": str(final_video), "srt": str(srt), "audio": str(dubbed_audio)},
                runtime={
                    "fallbacks": list(fallbacks),
                    "degraded": bool(fallbacks),
                    "frames_dir": str(frames_dir) if frames_dir else None,
                    "translation_provider": translated.provider,
                },
            )
            jobs_finished.labels(state="done").inc()
            if fallbacks:
                jobs_degraded.inc()
            logger.info(
                "pipeline_done",
                secs=round(time.perf_counter() - t0, 2),
                degraded=bool(fallbacks),
                fallbacks=fallbacks,
            )
        except JobCanceled:
            canceled = True
            jobs_finished.labels(state="canceled").inc()
            logger.info("pipeline_canceled")
        except StageFailed as ex:
            stage_errors.labels(stage=ex.stage.value).inc()
            logger.error("pipeline_failed", stage=ex.stage.value, error=str(ex))
            self._fail(job_id, str(ex))
        except Exception as ex:
            logger.exception("pipeline_crashed", error=str(ex))
            self._fail(job_id, str(ex) or type(ex).__name__)
        finally:
            jobs_running.dec()
            if self.retention is not None:
                if canceled:
                    self.retention.cleanup_job_artifacts(job_id)
                else:
                    self.retention.schedule_cleanup(job_id)
        return self.store.get(job_id)
