from __future__ import annotations

from pathlib import Path

from synclab.stages.base import Segment, Transcript, Translation
from synclab.utils.subtitles import render_srt, write_srt
from synclab.utils.time import format_srt_timestamp


def test_format_srt_timestamp() -> None:
    assert format_srt_timestamp(0.0) == "00:00:00,000"
    assert format_srt_timestamp(2.5) == "00:00:02,500"
    assert format_srt_timestamp(3661.007) == "01:01:01,007"


def test_two_cues(tmp_path: Path) -> None:
    lines = [
        {"start": 0.0, "end": 2.5, "text": "A"},
        {"start": 2.5, "end": 5.0, "text": "B"},
    ]
    out = write_srt(lines, tmp_path / "sub" / "x.srt")
    text = out.read_text(encoding="utf-8")
    assert "1\n00:00:00,000 --> 00:00:02,500\nA\n" in text
    assert "2\n00:00:02,500 --> 00:00:05,000\nB\n" in text
    assert text.index("A") < text.index("B")
    assert render_srt(lines) == text


def test_translation_without_segments_yields_single_cue() -> None:
    t = Translation(
        source=Transcript(text="hola"),
        translated_text="hello",
        segments=[],
        target_lang="en",
    )
    assert t.subtitle_lines() == [{"start": 0.0, "end": 5.0, "text": "hello"}]


def test_translation_keeps_segment_timings() -> None:
    segs = [Segment(id=0, start=1.0, end=2.0, text="uno")]
    t = Translation(
        source=Transcript(text="one"), translated_text="uno", segments=segs, target_lang="es"
    )
    assert t.subtitle_lines() == [{"id": 0, "start": 1.0, "end": 2.0, "text": "uno"}]
