from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from synclab.utils.time import format_srt_timestamp


def render_srt(lines: Iterable[Mapping[str, Any]]) -> str:
    """
    Render numbered SRT cues from [{start,end,text}].
    """
    blocks = []
    for idx, line in enumerate(lines, 1):
        st = format_srt_timestamp(float(line["start"]))
        en = format_srt_timestamp(float(line["end"]))
        txt = str(line.get("text", "") or "").strip()
        blocks.append(f"{idx}\n{st} --> {en}\n{txt}\n")
    return "\n".join(blocks)


def write_srt(lines: Iterable[Mapping[str, Any]], path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_srt(lines), encoding="utf-8")
    return path
