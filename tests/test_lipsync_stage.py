from __future__ import annotations

from pathlib import Path

import pytest

from synclab.plugins.lipsync.base import LipSyncPlugin, LipSyncRequest
from synclab.plugins.lipsync.wav2lip_plugin import Wav2LipPlugin, resize_factor_for
from synclab.stages import lipsync
from synclab.stages.base import StageFailed
from synclab.utils.proc import ToolExitError, ToolNotFound
from tests._helpers.stages import make_ctx


class _Plugin(LipSyncPlugin):
    name = "fake"

    def __init__(self, *, available: bool, error: Exception | None = None) -> None:
        self.available = available
        self.error = error
        self.inference_calls: list[LipSyncRequest] = []

    def is_available(self) -> bool:
        return self.available

    def run(self, req: LipSyncRequest) -> Path:
        self.inference_calls.append(req)
        if self.error is not None:
            raise self.error
        req.output_video.parent.mkdir(parents=True, exist_ok=True)
        req.output_video.write_bytes(b"synced")
        return req.output_video


def _inputs(root: Path) -> tuple[Path, Path]:
    video = root / "uploads" / "clip.mp4"
    video.write_bytes(b"video")
    audio = root / "temp" / "dub.wav"
    audio.write_bytes(b"audio")
    return video, audio


def test_missing_model_merges_without_inference(_test_env: Path, fake_media) -> None:
    ctx, rec = make_ctx(_test_env)
    plugin = _Plugin(available=False)
    out = lipsync.run(ctx, *_inputs(_test_env), plugin)
    assert "merge" in fake_media.calls
    assert plugin.inference_calls == []
    assert out.read_bytes() == b"merged:audio"
    assert rec.fallbacks == [("lipsync", "model_unavailable")]
    assert [r["progress"] for r in rec.reports] == [82, 86, 90]


@pytest.mark.parametrize(
    ("error", "reason"),
    [
        (ToolNotFound("no python"), "launch_failed"),
        (ToolExitError("wav2lip failed (code 1)", returncode=1), "inference_failed"),
    ],
)
def test_inference_failure_merges(
    _test_env: Path, fake_media, error: Exception, reason: str
) -> None:
    ctx, rec = make_ctx(_test_env)
    plugin = _Plugin(available=True, error=error)
    lipsync.run(ctx, *_inputs(_test_env), plugin)
    assert len(plugin.inference_calls) == 1
    assert fake_media.calls == ["merge"]
    assert rec.fallbacks == [("lipsync", reason)]


def test_successful_inference_skips_merge(_test_env: Path, fake_media) -> None:
    ctx, rec = make_ctx(_test_env, quality="ultra")
    plugin = _Plugin(available=True)
    out = lipsync.run(ctx, *_inputs(_test_env), plugin)
    assert out.read_bytes() == b"synced"
    assert fake_media.calls == []
    assert plugin.inference_calls[0].quality == "ultra"
    assert rec.fallbacks == []
    assert [r["progress"] for r in rec.reports] == [82, 90]


def test_merge_failure_is_stage_failure(_test_env: Path, fake_media) -> None:
    fake_media.fail_merge = ToolExitError("ffmpeg failed (code 1)", returncode=1)
    ctx, _ = make_ctx(_test_env)
    with pytest.raises(StageFailed) as ei:
        lipsync.run(ctx, *_inputs(_test_env), None)
    assert str(ei.value) == "Audio merge failed"


def test_resize_factor() -> None:
    assert resize_factor_for("ultra") == "1"
    assert resize_factor_for("balanced") == "2"
    assert resize_factor_for("fast") == "2"


def test_wav2lip_availability_follows_checkpoint(_test_env: Path) -> None:
    plugin = Wav2LipPlugin()
    paths = plugin.resolve_paths()
    assert paths.repo_dir == _test_env / "Wav2Lip"
    assert paths.checkpoint == _test_env / "models" / "wav2lip_gan.pth"
    assert plugin.is_available() is False
    paths.checkpoint.write_bytes(b"ckpt")
    assert plugin.is_available() is True


def test_wav2lip_argv(_test_env: Path) -> None:
    ckpt = _test_env / "w.pth"
    plugin = Wav2LipPlugin(wav2lip_dir=_test_env / "W2L", checkpoint_path=ckpt, python_bin="py")
    req = LipSyncRequest(
        input_video=_test_env / "in.mp4",
        dubbed_audio=_test_env / "a.wav",
        output_video=_test_env / "out.mp4",
        quality="ultra",
    )
    argv = plugin.argv(req, plugin.resolve_paths())
    assert argv[:2] == ["py", "inference.py"]
    assert argv[argv.index("--checkpoint_path") + 1] == str(ckpt)
    assert argv[argv.index("--resize_factor") + 1] == "1"
