from __future__ import annotations

"""Runtime configuration helpers for the table-read stitcher."""

import os
from dataclasses import dataclass

from .audio.types import PipelineConfig

_BOOL_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _BOOL_TRUTHY


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class StitchSettings:
    pause_duration_ms: int
    room_tone_volume: float
    sample_rate: int
    fetch_timeout: float
    fetch_concurrency: int
    max_clip_bytes: int
    max_clips: int
    max_recordings: int

    def pipeline_config(self) -> PipelineConfig:
        return PipelineConfig(
            pause_duration_ms=self.pause_duration_ms,
            room_tone_volume=self.room_tone_volume,
            canonical_sample_rate=self.sample_rate,
        )


@dataclass(frozen=True)
class LoggingSettings:
    level: str
    format: str
    file: str | None


@dataclass(frozen=True)
class ServerSettings:
    host: str
    port: int
    reload: bool


@dataclass(frozen=True)
class Settings:
    stitch: StitchSettings
    logging: LoggingSettings
    server: ServerSettings


def load_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""

    stitch_settings = StitchSettings(
        pause_duration_ms=_env_int("STITCH_PAUSE_MS", 750),
        room_tone_volume=_env_float("STITCH_ROOM_TONE_VOLUME", 0.08),
        sample_rate=_env_int("STITCH_SAMPLE_RATE", 44100),
        fetch_timeout=_env_float("STITCH_FETCH_TIMEOUT", 30.0),
        fetch_concurrency=_env_int("STITCH_FETCH_CONCURRENCY", 1),
        max_clip_bytes=_env_int("STITCH_MAX_CLIP_BYTES", 50 * 1024 * 1024),
        max_clips=_env_int("STITCH_MAX_CLIPS", 500),
        max_recordings=_env_int("STITCH_MAX_RECORDINGS", 32),
    )

    logging_settings = LoggingSettings(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format=os.getenv("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
        file=os.getenv("LOG_FILE"),
    )

    server_settings = ServerSettings(
        host=os.getenv("HOST", "0.0.0.0"),
        port=_env_int("PORT", 8200),
        reload=_env_bool("RELOAD", False),
    )

    return Settings(stitch=stitch_settings, logging=logging_settings, server=server_settings)


settings = load_settings()

__all__ = [
    "Settings",
    "StitchSettings",
    "LoggingSettings",
    "ServerSettings",
    "settings",
    "load_settings",
]
