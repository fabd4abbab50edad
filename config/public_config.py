from __future__ import annotations

import os
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_app_root() -> Path:
    """
    Default application root.

    Historically, this project assumes:
      - Docker: /app
      - Local/dev: current working directory
    """
    env = os.environ.get("APP_ROOT")
    if env:
        return Path(env).resolve()
    if Path("/app").exists():
        return Path("/app").resolve()
    return Path.cwd().resolve()


class PublicConfig(BaseSettings):
    """
    Non-sensitive config with safe defaults.

    Loaded from (in order):
      - process env
      - optional `.env` file
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- core paths ---
    app_root: Path = Field(default_factory=_default_app_root, alias="APP_ROOT")
    uploads_dir: Path = Field(
        default_factory=lambda: (Path.cwd() / "uploads").resolve(), alias="UPLOADS_DIR"
    )
    # Permanent deliverables (final video + subtitles). Never touched by retention.
    outputs_dir: Path = Field(
        default_factory=lambda: (Path.cwd() / "outputs").resolve(), alias="OUTPUTS_DIR"
    )
    # Per-job intermediates (<job_id>_audio.wav, <job_id>_frames/, ...).
    temp_dir: Path = Field(
        default_factory=lambda: (Path.cwd() / "temp").resolve(), alias="TEMP_DIR"
    )
    log_dir: Path = Field(
        default_factory=lambda: (Path.cwd() / "logs").resolve(),
        alias=AliasChoices("SYNCLAB_LOG_DIR", "LOG_DIR"),
    )
    models_dir: Path = Field(
        default_factory=lambda: (Path.cwd() / "models").resolve(), alias="MODELS_DIR"
    )

    # --- tool binaries ---
    ffmpeg_bin: str = Field(default="ffmpeg", alias="FFMPEG_BIN")
    # Interpreter used for `python -m whisper` and Wav2Lip's inference.py (empty => sys.executable)
    whisper_python: str = Field(default="", alias="WHISPER_PYTHON")

    # --- transcription ---
    whisper_model: str = Field(default="base", alias="WHISPER_MODEL")

    # --- lip-sync (Wav2Lip) ---
    # If unset: <APP_ROOT>/Wav2Lip and <MODELS_DIR>/wav2lip_gan.pth
    wav2lip_dir: Path | None = Field(default=None, alias="WAV2LIP_DIR")
    wav2lip_model: Path | None = Field(default=None, alias="WAV2LIP_MODEL")

    # --- translation providers (tried in this order when configured) ---
    libretranslate_url: str = Field(default="", alias="LIBRETRANSLATE_URL")
    deepl_api_url: str = Field(
        default="https://api-free.deepl.com/v2/translate", alias="DEEPL_API_URL"
    )
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")

    # --- voice synthesis providers ---
    xtts_server_url: str = Field(default="", alias="XTTS_SERVER_URL")
    elevenlabs_api_url: str = Field(
        default="https://api.elevenlabs.io/v1/text-to-speech", alias="ELEVENLABS_API_URL"
    )
    elevenlabs_voice_id: str = Field(default="21m00Tcm4TlvDq8ikWAM", alias="ELEVENLABS_VOICE_ID")
    elevenlabs_model: str = Field(default="eleven_multilingual_v2", alias="ELEVENLABS_MODEL")

    # --- job execution ---
    jobs_concurrency: int = Field(default=2, alias="JOBS_CONCURRENCY")
    retention_delay_sec: float = Field(default=300.0, alias="RETENTION_DELAY_SEC")
    # 0 disables subprocess timeouts (a hung tool stalls only its own job).
    stage_timeout_sec: int = Field(default=0, alias="STAGE_TIMEOUT_SEC")
    provider_timeout_sec: float = Field(default=120.0, alias="PROVIDER_TIMEOUT_SEC")
    max_upload_mb: int = Field(default=2048, alias="MAX_UPLOAD_MB")

    # --- job record store ---
    job_store: str = Field(default="memory", alias="JOB_STORE")  # memory|sqlite
    job_store_path: Path | None = Field(default=None, alias="JOB_STORE_PATH")

    # --- web server ---
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, alias="PORT")
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")

    # --- logging ---
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_max_bytes: int = Field(default=5 * 1024 * 1024, alias="LOG_MAX_BYTES")
    log_backup_count: int = Field(default=3, alias="LOG_BACKUP_COUNT")

    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in str(self.cors_origins or "").split(",") if o.strip()]
