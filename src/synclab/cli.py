from __future__ import annotations

import json
import time
from pathlib import Path

import click

from synclab import __version__, catalog
from synclab.config import get_settings
from synclab.jobs.models import JobMeta, new_id
from synclab.jobs.pipeline import DubbingPipeline
from synclab.jobs.queries import status_view
from synclab.jobs.store import InMemoryJobStore
from synclab.ops.retention import RetentionManager
from synclab.plugins.lipsync.wav2lip_plugin import Wav2LipPlugin
from synclab.system.readiness import collect_readiness
from synclab.utils.log import logger, set_log_level
from synclab.utils.paths import default_paths, ensure_dirs


@click.group()
@click.version_option(__version__, prog_name="synclab")
@click.option("--log-level", default=None, help="Override LOG_LEVEL for this invocation.")
def cli(log_level: str | None) -> None:
    """SyncLab dubbing engine."""
    if log_level:
        set_log_level(log_level)


@cli.command()
@click.option("--host", default=None, help="Bind address (default: HOST).")
@click.option("--port", type=int, default=None, help="Bind port (default: PORT).")
def serve(host: str | None, port: int | None) -> None:
    """Run the HTTP API."""
    import uvicorn

    s = get_settings()
    uvicorn.run(
        "synclab.server:app",
        host=host or str(s.host),
        port=int(port or s.port),
        log_level=str(s.log_level).lower(),
    )


@cli.command()
def doctor() -> None:
    """Print the collaborator readiness report as JSON."""
    report = collect_readiness()
    click.echo(json.dumps(report, indent=2, sort_keys=True))
    if not report["ready"]:
        raise SystemExit(1)


@cli.command()
@click.argument("video", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--lang-from", default="en", show_default=True, help="Source language, or auto")
@click.option("--lang-to", default="es", show_default=True, help="Target language code")
@click.option(
    "--voice-mode",
    type=click.Choice(list(catalog.VOICE_MODES)),
    default="clone",
    show_default=True,
)
@click.option(
    "--quality",
    type=click.Choice(list(catalog.QUALITY_TIERS)),
    default="balanced",
    show_default=True,
)
def dub(video: Path, lang_from: str, lang_to: str, voice_mode: str, quality: str) -> None:
    """
    Dub VIDEO in-process and print the final job status.

    Example:
      synclab dub clip.mp4 --lang-to fr --quality ultra
    """
    if not video.exists():
        raise click.ClickException(f"Video not found: {video}")
    if not catalog.is_source_language(lang_from):
        raise click.ClickException(f"Unsupported source language: {lang_from}")
    if not catalog.is_target_language(lang_to):
        raise click.ClickException(f"Unsupported target language: {lang_to}")

    paths = ensure_dirs(default_paths())
    store = InMemoryJobStore()
    retention = RetentionManager(paths.temp_dir)
    pipeline = DubbingPipeline(
        store,
        paths=paths,
        retention=retention,
        lipsync_plugin=Wav2LipPlugin(),
        stage_timeout_s=float(get_settings().stage_timeout_sec) or None,
    )
    jid = new_id()
    store.create(
        jid,
        JobMeta(
            source_path=str(video.resolve()),
            lang_from=lang_from,
            lang_to=lang_to,
            voice_mode=voice_mode,
            quality=quality,
            filename=video.name,
        ),
    )
    t0 = time.perf_counter()
    job = pipeline.run(jid)
    # the process exits right after, so intermediates are removed now rather than on a timer
    retention.cancel_scheduled(jid)
    retention.cleanup_job_artifacts(jid)
    logger.info("cli_dub_finished", job_id=jid, secs=round(time.perf_counter() - t0, 2))
    if job is None:
        raise click.ClickException("Job record vanished during the run")
    click.echo(json.dumps(status_view(job), indent=2))
    if job.status.value != "done":
        raise SystemExit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
