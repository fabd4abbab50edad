from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Sequence

from openai import OpenAI

from synclab.config import get_settings, secret_value
from synclab.jobs.models import Stage
from synclab.ops.metrics import provider_failures, stage_fallbacks
from synclab.stages.base import ProviderError, Segment, StageContext, Transcript, Translation
from synclab.utils.log import logger
from synclab.utils.net import post_json_for_json


class Translator(ABC):
    """
    One machine-translation backend.

    translate() maps a batch of texts to the same number of translated texts, in order.
    """

    name: str

    @abstractmethod
    def is_configured(self) -> bool: ...

    @abstractmethod
    def translate(self, texts: list[str], *, source: str, target: str) -> list[str]: ...


def _expect_batch(name: str, out: object, n: int) -> list[str]:
    if not isinstance(out, list) or len(out) != n:
        raise ProviderError(f"{name} returned {type(out).__name__} for a batch of {n}")
    return [str(t or "") for t in out]


class LibreTranslateTranslator(Translator):
    name = "libretranslate"

    def __init__(self, url: str, *, api_key: str = "", timeout_s: float = 120.0) -> None:
        self.url = str(url or "").rstrip("/")
        self.api_key = api_key
        self.timeout_s = timeout_s

    def is_configured(self) -> bool:
        return bool(self.url)

    def translate(self, texts: list[str], *, source: str, target: str) -> list[str]:
        data = post_json_for_json(
            f"{self.url}/translate",
            {
                "q": texts,
                "source": source or "auto",
                "target": target,
                "format": "text",
                "api_key": self.api_key,
            },
            timeout_s=self.timeout_s,
        )
        if not isinstance(data, dict) or "translatedText" not in data:
            raise ProviderError(f"libretranslate response missing translatedText: {data!r:.200}")
        return _expect_batch(self.name, data["translatedText"], len(texts))


class DeepLTranslator(Translator):
    name = "deepl"

    def __init__(self, api_key: str, *, url: str, timeout_s: float = 120.0) -> None:
        self.api_key = api_key
        self.url = url
        self.timeout_s = timeout_s

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def translate(self, texts: list[str], *, source: str, target: str) -> list[str]:
        payload: dict[str, object] = {"text": texts, "target_lang": target.upper()}
        if source and source != "auto":
            payload["source_lang"] = source.upper()
        data = post_json_for_json(
            self.url,
            payload,
            headers={"Authorization": f"DeepL-Auth-Key {self.api_key}"},
            timeout_s=self.timeout_s,
        )
        try:
            out = [t["text"] for t in data["translations"]]
        except (KeyError, TypeError) as ex:
            raise ProviderError(f"deepl response malformed: {ex}") from ex
        return _expect_batch(self.name, out, len(texts))


class OpenAITranslator(Translator):
    name = "openai"

    def __init__(self, api_key: str, *, model: str, timeout_s: float = 120.0) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout_s = timeout_s
        self._client: OpenAI | None = None

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout_s)
        return self._client

    def translate(self, texts: list[str], *, source: str, target: str) -> list[str]:
        src = "the detected source language" if not source or source == "auto" else source
        resp = self._get_client().chat.completions.create(
            model=self.model,
            temperature=0,
            response_format={"type": "json_object"},
            messages=[
                {
                    "role": "system",
                    "content": (
                        f"Translate each string from {src} to {target} for video dubbing. "
                        'Reply with JSON {"translations": [...]} holding exactly one '
                        "translation per input string, in the same order."
                    ),
                },
                {"role": "user", "content": json.dumps({"texts": texts}, ensure_ascii=False)},
            ],
        )
        content = resp.choices[0].message.content or ""
        try:
            out = json.loads(content).get("translations")
        except (ValueError, AttributeError) as ex:
            raise ProviderError(f"openai returned non-JSON content: {ex}") from ex
        return _expect_batch(self.name, out, len(texts))


def default_translators() -> list[Translator]:
    """Providers in priority order; unconfigured ones are skipped at call time."""
    s = get_settings()
    timeout = float(s.provider_timeout_sec)
    return [
        LibreTranslateTranslator(
            str(s.libretranslate_url or ""),
            api_key=secret_value(s.libretranslate_key),
            timeout_s=timeout,
        ),
        DeepLTranslator(secret_value(s.deepl_api_key), url=str(s.deepl_api_url), timeout_s=timeout),
        OpenAITranslator(
            secret_value(s.openai_api_key), model=str(s.openai_model), timeout_s=timeout
        ),
    ]


def placeholder_translation(transcript: Transcript, target: str) -> Translation:
    """Original text annotated with the target tag; segments keep their source text."""
    return Translation(
        source=transcript,
        translated_text=f"[Translated to {target}]: {transcript.text}",
        segments=list(transcript.segments),
        target_lang=target,
        provider=None,
    )


def _source_lang(ctx: StageContext, transcript: Transcript) -> str:
    lang = str(ctx.meta.lang_from or "auto").strip().lower()
    if lang == "auto" and transcript.language:
        return transcript.language
    return lang


def translate(
    ctx: StageContext, transcript: Transcript, translators: Sequence[Translator]
) -> Translation:
    """
    Translate the full text and every segment in one batch, preserving segment timings.

    Providers are tried in order; each failure is logged and the next one is tried. When none
    succeeds the deterministic placeholder translation is returned.
    """
    target = ctx.meta.lang_to
    source = _source_lang(ctx, transcript)
    ctx.checkpoint(Stage.TRANSLATE, "translate", f"Translating {source} -> {target}...")

    texts = [transcript.text] + [s.text for s in transcript.segments]
    for provider in translators:
        if not provider.is_configured():
            continue
        try:
            out = provider.translate(texts, source=source, target=target)
        except Exception as ex:
            provider_failures.labels(stage=Stage.TRANSLATE.value, provider=provider.name).inc()
            logger.warning("translate_provider_failed", provider=provider.name, error=str(ex))
            continue
        segments = [
            Segment(id=s.id, start=s.start, end=s.end, text=t)
            for s, t in zip(transcript.segments, out[1:])
        ]
        ctx.checkpoint(Stage.TRANSLATE, "translate_done")
        logger.info("translated", provider=provider.name, segments=len(segments))
        return Translation(
            source=transcript,
            translated_text=out[0],
            segments=segments,
            target_lang=target,
            provider=provider.name,
        )

    logger.warning("translate_no_provider_succeeded_using_placeholder", target=target)
    stage_fallbacks.labels(stage=Stage.TRANSLATE.value, reason="placeholder").inc()
    ctx.note_fallback(Stage.TRANSLATE, "placeholder")
    ctx.checkpoint(Stage.TRANSLATE, "translate_done")
    return placeholder_translation(transcript, target)
