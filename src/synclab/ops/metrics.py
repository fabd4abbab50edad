from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager, suppress

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

REGISTRY = CollectorRegistry()

# Latency buckets (seconds) for long-ish media pipeline stages.
PIPELINE_BUCKETS = (
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    30.0,
    60.0,
    120.0,
    300.0,
    600.0,
    1200.0,
    1800.0,
    3600.0,
)

# Jobs
jobs_queued = Counter("synclab_jobs_queued_total", "Jobs queued", registry=REGISTRY)
jobs_finished = Counter(
    "synclab_jobs_finished_total",
    "Jobs finished by final state",
    labelnames=("state",),
    registry=REGISTRY,
)
jobs_degraded = Counter(
    "synclab_jobs_degraded_total",
    "Jobs that finished done with at least one stage fallback",
    registry=REGISTRY,
)
jobs_running = Gauge("synclab_jobs_running", "Jobs currently running", registry=REGISTRY)

# Stages
stage_errors = Counter(
    "synclab_stage_errors_total",
    "Unrecoverable stage failures",
    labelnames=("stage",),
    registry=REGISTRY,
)
stage_fallbacks = Counter(
    "synclab_stage_fallbacks_total",
    "Stage fallbacks taken",
    labelnames=("stage", "reason"),
    registry=REGISTRY,
)
provider_failures = Counter(
    "synclab_provider_failures_total",
    "Provider attempts that failed and fell through",
    labelnames=("stage", "provider"),
    registry=REGISTRY,
)
stage_seconds = Histogram(
    "synclab_stage_seconds",
    "Pipeline stage latency (seconds)",
    labelnames=("stage",),
    registry=REGISTRY,
    buckets=PIPELINE_BUCKETS,
)


@contextmanager
def time_hist(h: Histogram) -> Iterator[Callable[[], float]]:
    """
    Context manager to time a block and observe into a histogram.
    Usage:
        with time_hist(stage_seconds.labels(stage="render")) as elapsed:
            ...
        dt = elapsed()
    """
    t0 = time.perf_counter()
    dt: float | None = None

    def elapsed() -> float:
        return float(dt or 0.0)

    try:
        yield elapsed
    finally:
        dt = max(0.0, time.perf_counter() - t0)
        with suppress(Exception):
            h.observe(dt)
