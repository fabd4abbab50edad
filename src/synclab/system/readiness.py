from __future__ import annotations

import importlib.util
from pathlib import Path
from typing import Any

from synclab.config import get_settings, secret_value
from synclab.plugins.lipsync.wav2lip_plugin import Wav2LipPlugin
from synclab.utils.ffmpeg import ffmpeg_available
from synclab.utils.time import now_utc


def _status(ok: bool, *, disabled: bool = False) -> str:
    if ok:
        return "OK"
    return "Disabled" if disabled else "Missing"


def _item(name: str, *, ok: bool, disabled: bool, reason: str, action: str) -> dict[str, Any]:
    return {
        "name": str(name),
        "status": _status(ok, disabled=disabled),
        "reason": str(reason),
        "action": str(action),
    }


def _can_import(module: str) -> bool:
    try:
        return importlib.util.find_spec(module) is not None
    except (ImportError, ValueError):
        return False


def _whisper_ready() -> bool:
    py = str(get_settings().whisper_python or "")
    if py:
        # a separate interpreter; only its presence is checked here
        return Path(py).is_file()
    return _can_import("whisper")


def collect_readiness() -> dict[str, Any]:
    """
    Presence/configuration of every external collaborator, without running any of them.

    Only ffmpeg is required; everything else has a fallback, so "Disabled" is not an error.
    """
    s = get_settings()
    wav2lip = Wav2LipPlugin().resolve_paths()
    items = [
        _item(
            "ffmpeg",
            ok=ffmpeg_available(),
            disabled=False,
            reason="Required for audio extraction, merge and final render.",
            action="Install ffmpeg or set FFMPEG_BIN.",
        ),
        _item(
            "whisper",
            ok=_whisper_ready(),
            disabled=False,
            reason="Speech recognition; a mock transcript is used when missing.",
            action="pip install openai-whisper (or set WHISPER_PYTHON).",
        ),
        _item(
            "wav2lip",
            ok=wav2lip.checkpoint.is_file(),
            disabled=False,
            reason=f"Lip-sync model {wav2lip.checkpoint}; audio-only merge is used when missing.",
            action="Download wav2lip_gan.pth into MODELS_DIR (or set WAV2LIP_MODEL).",
        ),
        _item(
            "libretranslate",
            ok=bool(s.libretranslate_url),
            disabled=not s.libretranslate_url,
            reason="Translation provider (priority 1).",
            action="Set LIBRETRANSLATE_URL.",
        ),
        _item(
            "deepl",
            ok=bool(secret_value(s.deepl_api_key)),
            disabled=not secret_value(s.deepl_api_key),
            reason="Translation provider (priority 2).",
            action="Set DEEPL_API_KEY.",
        ),
        _item(
            "openai",
            ok=bool(secret_value(s.openai_api_key)),
            disabled=not secret_value(s.openai_api_key),
            reason="Translation provider (priority 3).",
            action="Set OPENAI_API_KEY.",
        ),
        _item(
            "xtts",
            ok=bool(s.xtts_server_url),
            disabled=not s.xtts_server_url,
            reason="Voice-cloning TTS (used when voice_mode=clone).",
            action="Set XTTS_SERVER_URL.",
        ),
        _item(
            "elevenlabs",
            ok=bool(secret_value(s.elevenlabs_api_key)),
            disabled=not secret_value(s.elevenlabs_api_key),
            reason="Cloud TTS; the original audio is reused when no voice provider works.",
            action="Set ELEVENLABS_API_KEY.",
        ),
    ]
    return {
        "generated_at": now_utc(),
        "ready": items[0]["status"] == "OK",
        "items": items,
        "collaborators": {it["name"]: it["status"] == "OK" for it in items},
    }
