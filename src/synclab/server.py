from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from synclab import __version__
from synclab.api.middleware import request_context_middleware
from synclab.api.routes_jobs import router as jobs_router
from synclab.api.routes_system import router as system_router
from synclab.config import get_settings
from synclab.jobs.pipeline import DubbingPipeline
from synclab.jobs.queue import JobQueue
from synclab.jobs.store import JobStore, make_store
from synclab.ops.retention import RetentionManager
from synclab.plugins.lipsync.wav2lip_plugin import Wav2LipPlugin
from synclab.utils.log import logger
from synclab.utils.paths import default_paths, ensure_dirs


def create_app(
    *,
    store: JobStore | None = None,
    pipeline_options: dict[str, Any] | None = None,
) -> FastAPI:
    """
    Build the HTTP app. `pipeline_options` is forwarded to DubbingPipeline (providers,
    lip-sync plugin) and exists so embedders and tests can swap collaborators.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        s = get_settings()
        paths = ensure_dirs(default_paths())
        job_store = store if store is not None else make_store()
        retention = RetentionManager(paths.temp_dir, delay_s=float(s.retention_delay_sec))
        opts: dict[str, Any] = {"lipsync_plugin": Wav2LipPlugin()}
        opts.update(pipeline_options or {})
        pipeline = DubbingPipeline(
            job_store,
            paths=paths,
            retention=retention,
            stage_timeout_s=float(s.stage_timeout_sec) or None,
            **opts,
        )
        q = JobQueue(job_store, pipeline, concurrency=int(s.jobs_concurrency))
        app.state.job_store = job_store
        app.state.job_queue = q
        app.state.retention = retention
        app.state.paths = paths
        await q.start()
        logger.info(
            "server_started",
            version=__version__,
            uploads=str(paths.uploads_dir),
            outputs=str(paths.outputs_dir),
            temp=str(paths.temp_dir),
        )
        try:
            yield
        finally:
            await q.graceful_shutdown(timeout_s=5.0)
            retention.shutdown()
            logger.info("server_stopped")

    app = FastAPI(title="SyncLab Dubbing Engine", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_settings().cors_origin_list() or ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(request_context_middleware)
    app.include_router(system_router)
    app.include_router(jobs_router)
    return app


app = create_app()
