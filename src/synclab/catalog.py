from __future__ import annotations

from typing import Any

# Code -> display name; "auto" is only valid as a source language.
LANGUAGES: dict[str, str] = {
    "auto": "Auto-detect",
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "zh": "Chinese",
    "ja": "Japanese",
    "ko": "Korean",
    "ar": "Arabic",
    "hi": "Hindi",
}

VOICE_MODES = ("clone", "plain")
QUALITY_TIERS = ("fast", "balanced", "high", "ultra")


def languages() -> list[dict[str, str]]:
    return [{"code": k, "name": v} for k, v in LANGUAGES.items()]


def is_source_language(code: str) -> bool:
    return code in LANGUAGES


def is_target_language(code: str) -> bool:
    return code in LANGUAGES and code != "auto"


def models() -> dict[str, list[dict[str, Any]]]:
    return {
        "lipsync": [
            {"id": "wav2lip", "name": "Wav2Lip", "quality": "balanced"},
            {"id": "wav2lip_gan", "name": "Wav2Lip GAN", "quality": "ultra"},
        ],
        "tts": [
            {"id": "xtts", "name": "Coqui XTTS v2", "voice_cloning": True},
            {"id": "elevenlabs", "name": "ElevenLabs", "voice_cloning": False},
        ],
        "translation": [
            {"id": "libretranslate", "name": "LibreTranslate"},
            {"id": "deepl", "name": "DeepL"},
            {"id": "openai", "name": "OpenAI"},
        ],
    }
