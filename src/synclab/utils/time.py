from __future__ import annotations

from datetime import datetime, timezone


def format_srt_timestamp(seconds: float) -> str:
    """
    Convert seconds to SRT timestamp: HH:MM:SS,mmm
    """
    if seconds < 0:
        seconds = 0.0
    # round on the whole value so 1.9996 becomes 00:00:02,000 rather than ,1000
    total_ms = int(round(float(seconds) * 1000.0))
    h, rem = divmod(total_ms, 3_600_000)
    m, rem = divmod(rem, 60_000)
    s, ms = divmod(rem, 1000)
    return f"{h:02}:{m:02}:{s:02},{ms:03}"


def now_utc() -> str:
    return datetime.now(tz=timezone.utc).isoformat()
