from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

from synclab.stages import transcription
from synclab.stages.base import Transcript
from synclab.utils.proc import ToolExitError, run_tool
from tests._helpers.stages import make_ctx

_WHISPER_JSON = {
    "text": " Hola a todos. Bienvenidos. ",
    "language": "es",
    "segments": [
        {"id": 0, "start": 0.0, "end": 1.2, "text": " Hola a todos."},
        {"id": 1, "start": 1.2, "end": 2.8, "text": " Bienvenidos."},
    ],
}


def _audio(root: Path) -> Path:
    p = root / "temp" / "job-1_audio.wav"
    p.write_bytes(b"RIFF")
    return p


def test_from_whisper_parses_segments() -> None:
    t = Transcript.from_whisper(_WHISPER_JSON)
    assert t.text == "Hola a todos. Bienvenidos."
    assert t.language == "es"
    assert [(s.id, s.start, s.end, s.text) for s in t.segments] == [
        (0, 0.0, 1.2, "Hola a todos."),
        (1, 1.2, 2.8, "Bienvenidos."),
    ]


def test_whisper_argv_language_hint(tmp_path: Path) -> None:
    auto = transcription.whisper_argv(tmp_path / "a.wav", tmp_path, "auto")
    assert "--language" not in auto
    assert auto[1:3] == ["-m", "whisper"]

    fr = transcription.whisper_argv(tmp_path / "a.wav", tmp_path, "FR")
    assert fr[-2:] == ["--language", "fr"]


def test_transcribe_reads_whisper_json(_test_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    ctx, rec = make_ctx(_test_env, lang_from="es")
    audio = _audio(_test_env)

    def fake_whisper(argv: list[str], **_kw):
        out_dir = Path(argv[argv.index("--output_dir") + 1])
        (out_dir / f"{audio.stem}.json").write_text(json.dumps(_WHISPER_JSON), encoding="utf-8")

    monkeypatch.setattr(transcription, "run_tool", fake_whisper)
    t = transcription.transcribe(ctx, audio)
    assert t.language == "es"
    assert len(t.segments) == 2
    assert rec.fallbacks == []
    assert [r["progress"] for r in rec.reports] == [28, 40]


def test_nonzero_exit_uses_mock_transcript(
    _test_env: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    ctx, rec = make_ctx(_test_env)

    def failing(argv: list[str], **_kw):
        raise ToolExitError("whisper failed (code 1)", returncode=1)

    monkeypatch.setattr(transcription, "run_tool", failing)
    t = transcription.transcribe(ctx, _audio(_test_env))
    assert t == transcription.mock_transcript()
    assert rec.fallbacks == [("transcribe", "engine_failed")]
    assert [r["progress"] for r in rec.reports] == [28, 40]


@pytest.mark.parametrize("payload", [None, "{not json", json.dumps({"text": "x"})])
def test_unusable_output_uses_mock_transcript(
    _test_env: Path, monkeypatch: pytest.MonkeyPatch, payload: str | None
) -> None:
    ctx, rec = make_ctx(_test_env)
    audio = _audio(_test_env)

    def fake_whisper(argv: list[str], **_kw):
        if payload is not None:
            (_test_env / "temp" / f"{audio.stem}.json").write_text(payload, encoding="utf-8")

    monkeypatch.setattr(transcription, "run_tool", fake_whisper)
    t = transcription.transcribe(ctx, audio)
    assert t == transcription.mock_transcript()
    assert rec.fallbacks == [("transcribe", "unparsable_output")]


_NON_UTF8_STDERR = "import sys; sys.stderr.buffer.write(b'\\xff\\xfe bad bytes'); sys.exit(1)"


def test_run_tool_tolerates_non_utf8_stderr() -> None:
    with pytest.raises(ToolExitError) as ei:
        run_tool([sys.executable, "-c", _NON_UTF8_STDERR], name="tool")
    assert ei.value.returncode == 1
    assert "bad bytes" in ei.value.stderr_tail
    assert "�" in ei.value.stderr_tail


def test_whisper_with_non_utf8_stderr_falls_back(
    _test_env: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    ctx, rec = make_ctx(_test_env)
    monkeypatch.setattr(
        transcription,
        "whisper_argv",
        lambda audio, out_dir, lang: [sys.executable, "-c", _NON_UTF8_STDERR],
    )
    t = transcription.transcribe(ctx, _audio(_test_env))
    assert t == transcription.mock_transcript()
    assert rec.fallbacks == [("transcribe", "engine_failed")]
