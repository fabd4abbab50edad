from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from synclab.config import get_settings
from synclab.stages import audio_extractor, frames, lipsync, render, transcription
from synclab.utils.proc import ToolNotFound

_PROVIDER_ENV = (
    "LIBRETRANSLATE_URL",
    "LIBRETRANSLATE_KEY",
    "DEEPL_API_KEY",
    "OPENAI_API_KEY",
    "XTTS_SERVER_URL",
    "ELEVENLABS_API_KEY",
    "WAV2LIP_DIR",
    "WAV2LIP_MODEL",
    "WHISPER_PYTHON",
    "JOB_STORE_PATH",
)


@pytest.fixture(autouse=True)
def _test_env(
    tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch
) -> Iterator[Path]:
    root = tmp_path_factory.mktemp("synclab_test")
    for d in ("uploads", "outputs", "temp", "logs", "models"):
        (root / d).mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("APP_ROOT", str(root))
    monkeypatch.setenv("UPLOADS_DIR", str(root / "uploads"))
    monkeypatch.setenv("OUTPUTS_DIR", str(root / "outputs"))
    monkeypatch.setenv("TEMP_DIR", str(root / "temp"))
    monkeypatch.setenv("SYNCLAB_LOG_DIR", str(root / "logs"))
    monkeypatch.setenv("MODELS_DIR", str(root / "models"))
    monkeypatch.setenv("JOB_STORE", "memory")
    monkeypatch.setenv("JOBS_CONCURRENCY", "2")
    for k in _PROVIDER_ENV:
        monkeypatch.delenv(k, raising=False)
    get_settings.cache_clear()
    yield root
    get_settings.cache_clear()


class FakeMedia:
    """
    Stand-ins for every external tool the stages launch. Records what ran.
    """

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.fail_extract: Exception | None = None
        self.fail_merge: Exception | None = None
        self.fail_encode: Exception | None = None

    def extract_audio(self, video: Path, wav_out: Path, *, timeout_s: float | None = None) -> Path:
        self.calls.append("extract_audio")
        if self.fail_extract is not None:
            raise self.fail_extract
        wav_out.parent.mkdir(parents=True, exist_ok=True)
        wav_out.write_bytes(b"RIFF-original")
        return wav_out

    def extract_frames(
        self, video: Path, frames_dir: Path, *, fps: int = 25, timeout_s: float | None = None
    ) -> Path:
        self.calls.append("extract_frames")
        frames_dir.mkdir(parents=True, exist_ok=True)
        (frames_dir / "frame_00001.jpg").write_bytes(b"\xff\xd8")
        return frames_dir

    def merge(
        self, video: Path, audio: Path, out: Path, *, timeout_s: float | None = None
    ) -> Path:
        self.calls.append("merge")
        if self.fail_merge is not None:
            raise self.fail_merge
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(b"merged:" + Path(audio).read_bytes())
        return out

    def encode(self, src: Path, dst: Path, *, timeout_s: float | None = None) -> Path:
        self.calls.append("encode")
        if self.fail_encode is not None:
            raise self.fail_encode
        dst.parent.mkdir(parents=True, exist_ok=True)
        dst.write_bytes(b"encoded:" + Path(src).read_bytes())
        return dst

    def whisper(self, argv, *, name=None, cwd=None, timeout_s=None):
        self.calls.append("whisper")
        raise ToolNotFound("whisper not installed")


@pytest.fixture()
def fake_media(monkeypatch: pytest.MonkeyPatch) -> FakeMedia:
    fm = FakeMedia()
    monkeypatch.setattr(audio_extractor, "extract_audio_mono_16k", fm.extract_audio)
    monkeypatch.setattr(frames, "extract_frames", fm.extract_frames)
    monkeypatch.setattr(lipsync, "merge_audio_video", fm.merge)
    monkeypatch.setattr(render, "encode_final", fm.encode)
    monkeypatch.setattr(transcription, "run_tool", fm.whisper)
    return fm


@pytest.fixture()
def source_video(_test_env: Path) -> Path:
    p = _test_env / "uploads" / "clip.mp4"
    p.write_bytes(b"\x00\x00\x00\x18ftypmp42")
    return p
