"""
Application settings. Every field can be overridden by a LIVECLS_* environment
variable or a .env file in the working directory.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_PROJECT_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LIVECLS_",
        env_file=".env",
        extra="ignore",
        protected_namespaces=(),
    )

    # Teachable Machine "TensorFlow Lite" export: model file plus labels.txt
    model_source: str = str(_PROJECT_DIR / "models" / "model_unquant.tflite")
    metadata_source: str | None = str(_PROJECT_DIR / "models" / "labels.txt")
    cache_dir: Path = _PROJECT_DIR / "models" / ".cache"

    camera_index: int = Field(default=0, ge=0)
    frame_width: int = Field(default=640, gt=0)
    frame_height: int = Field(default=480, gt=0)
    max_missed_frames: int = Field(default=90, gt=0)
    # Bounded wait for background threads (frame grabber, model loader) on stop
    shutdown_timeout_ms: int = Field(default=5000, gt=0)

    max_backoff_ms: int = Field(default=250, gt=0)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("metadata_source")
    @classmethod
    def _empty_is_none(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value
