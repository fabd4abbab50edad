from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

from synclab.config import get_settings, secret_value
from synclab.jobs.models import Stage
from synclab.ops.metrics import provider_failures, stage_fallbacks
from synclab.stages.base import ProviderError, StageContext, Translation
from synclab.utils.log import logger
from synclab.utils.net import post_json
from synclab.utils.paths import JobTempPaths


class VoiceProvider(ABC):
    """
    One text-to-speech backend.

    clone_only providers are used only when the job asked for voice cloning.
    """

    name: str
    clone_only: bool = False

    @abstractmethod
    def is_configured(self) -> bool: ...

    @abstractmethod
    def synthesize(
        self, text: str, *, language: str, reference_audio: Path, temp: JobTempPaths
    ) -> Path:
        """Write the dubbed track under `temp` and return its path."""


class XTTSProvider(VoiceProvider):
    """
    Coqui XTTS v2 server (`tts-server --model_name tts_models/multilingual/multi-dataset/xtts_v2`).

    The server writes the WAV itself, so it must share the temp directory with this process.
    """

    name = "xtts"
    clone_only = True

    def __init__(self, url: str, *, timeout_s: float = 120.0) -> None:
        self.url = str(url or "").rstrip("/")
        self.timeout_s = timeout_s

    def is_configured(self) -> bool:
        return bool(self.url)

    def synthesize(
        self, text: str, *, language: str, reference_audio: Path, temp: JobTempPaths
    ) -> Path:
        out = temp.dubbed_wav
        post_json(
            f"{self.url}/tts_to_file",
            {
                "text": text,
                "language": language,
                "speaker_wav": str(reference_audio),
                "file_path": str(out),
            },
            timeout_s=self.timeout_s,
        )
        return out


class ElevenLabsProvider(VoiceProvider):
    name = "elevenlabs"

    def __init__(
        self,
        api_key: str,
        *,
        url: str,
        voice_id: str,
        model_id: str,
        timeout_s: float = 120.0,
    ) -> None:
        self.api_key = api_key
        self.url = str(url or "").rstrip("/")
        self.voice_id = voice_id
        self.model_id = model_id
        self.timeout_s = timeout_s

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def synthesize(
        self, text: str, *, language: str, reference_audio: Path, temp: JobTempPaths
    ) -> Path:
        audio = post_json(
            f"{self.url}/{self.voice_id}",
            {
                "text": text,
                "model_id": self.model_id,
                "voice_settings": {"stability": 0.5, "similarity_boost": 0.75},
            },
            headers={"xi-api-key": self.api_key},
            timeout_s=self.timeout_s,
        )
        if not audio:
            raise ProviderError("elevenlabs returned an empty body")
        out = temp.dubbed_mp3
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(audio)
        return out


def default_voice_providers() -> list[VoiceProvider]:
    """Providers in priority order: the cloning server first, then the cloud voice."""
    s = get_settings()
    timeout = float(s.provider_timeout_sec)
    return [
        XTTSProvider(str(s.xtts_server_url or ""), timeout_s=timeout),
        ElevenLabsProvider(
            secret_value(s.elevenlabs_api_key),
            url=str(s.elevenlabs_api_url),
            voice_id=str(s.elevenlabs_voice_id),
            model_id=str(s.elevenlabs_model),
            timeout_s=timeout,
        ),
    ]


def synthesize(
    ctx: StageContext,
    translation: Translation,
    reference_audio: Path,
    providers: Sequence[VoiceProvider],
) -> Path:
    """
    Produce the dubbed audio track.

    On total failure the original (untranslated) track is reused so the job still completes.
    """
    ctx.checkpoint(Stage.SYNTHESIZE, "synthesize", "Synthesizing dubbed voice...")
    for provider in providers:
        if provider.clone_only and not ctx.meta.wants_clone:
            continue
        if not provider.is_configured():
            continue
        try:
            out = provider.synthesize(
                translation.translated_text,
                language=ctx.meta.lang_to,
                reference_audio=Path(reference_audio),
                temp=ctx.temp,
            )
        except Exception as ex:
            provider_failures.labels(stage=Stage.SYNTHESIZE.value, provider=provider.name).inc()
            logger.warning("tts_provider_failed", provider=provider.name, error=str(ex))
            continue
        ctx.checkpoint(Stage.SYNTHESIZE, "synthesize_done")
        logger.info("voice_synthesized", provider=provider.name, path=str(out))
        return out

    logger.warning("tts_unavailable_using_original_audio")
    stage_fallbacks.labels(stage=Stage.SYNTHESIZE.value, reason="original_audio").inc()
    ctx.note_fallback(Stage.SYNTHESIZE, "original_audio")
    ctx.checkpoint(Stage.SYNTHESIZE, "synthesize_done")
    return Path(reference_audio)
