from __future__ import annotations

from pathlib import Path

import pytest

from config.settings import get_safe_config_report
from synclab.config import get_settings
from synclab.system.readiness import collect_readiness


def _by_name(report: dict) -> dict[str, dict]:
    return {it["name"]: it for it in report["items"]}


def test_readiness_reports_each_collaborator() -> None:
    items = _by_name(collect_readiness())
    assert set(items) == {
        "ffmpeg",
        "whisper",
        "wav2lip",
        "libretranslate",
        "deepl",
        "openai",
        "xtts",
        "elevenlabs",
    }
    assert items["deepl"]["status"] == "Disabled"
    assert items["wav2lip"]["status"] == "Missing"


def test_readiness_follows_configuration(
    monkeypatch: pytest.MonkeyPatch, _test_env: Path
) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-123456789")
    monkeypatch.setenv("XTTS_SERVER_URL", "http://xtts.local:8020")
    monkeypatch.setenv("FFMPEG_BIN", str(_test_env / "no-such-ffmpeg"))
    get_settings.cache_clear()
    (_test_env / "models" / "wav2lip_gan.pth").write_bytes(b"ckpt")

    report = collect_readiness()
    items = _by_name(report)
    assert items["openai"]["status"] == "OK"
    assert items["xtts"]["status"] == "OK"
    assert items["wav2lip"]["status"] == "OK"
    assert items["ffmpeg"]["status"] == "Missing"
    assert report["ready"] is False
    assert report["collaborators"]["openai"] is True


def test_safe_config_report_never_leaks_secrets(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ELEVENLABS_API_KEY", "el-secret-value-0001")
    get_settings.cache_clear()
    rep = get_safe_config_report()
    assert rep["secrets"]["elevenlabs_api_key"] == "SET"
    assert rep["secrets"]["deepl_api_key"] == "UNSET"
    assert "el-secret-value-0001" not in str(rep)
