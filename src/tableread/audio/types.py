from __future__ import annotations

import base64
import binascii
import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union
from urllib.parse import unquote, urlparse

import numpy as np


class StitchStage(str, Enum):
    """Progress-reporting stages, in execution order."""

    LOADING = "loading"
    PROCESSING = "processing"
    MIXING = "mixing"
    EXPORTING = "exporting"

    @property
    def order(self) -> int:
        return _STAGE_ORDER[self]


_STAGE_ORDER = {stage: index for index, stage in enumerate(StitchStage)}


class PipelineState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    PROCESSING = "processing"
    MIXING = "mixing"
    EXPORTING = "exporting"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ClipSource:
    """Reference to one recorded take: a URL/path or inline bytes."""

    url: Optional[str] = None
    data: Optional[bytes] = None
    label: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.url is None) == (self.data is None):
            raise ValueError("ClipSource needs exactly one of url or data")

    @classmethod
    def coerce(cls, value: Union["ClipSource", str, bytes, bytearray, Path]) -> "ClipSource":
        if isinstance(value, ClipSource):
            return value
        if isinstance(value, (bytes, bytearray)):
            return cls(data=bytes(value))
        if isinstance(value, Path):
            return cls(url=str(value))
        if isinstance(value, str):
            if not value.strip():
                raise ValueError("empty clip source")
            return cls(url=value)
        raise TypeError(f"unsupported clip source: {type(value).__name__}")

    @property
    def scheme(self) -> str:
        """Transport used to obtain the bytes: inline, http, data or file."""
        if self.data is not None:
            return "inline"
        assert self.url is not None
        parsed = urlparse(self.url)
        if parsed.scheme in {"http", "https"}:
            return "http"
        if parsed.scheme == "data":
            return "data"
        return "file"

    def local_path(self) -> Path:
        assert self.url is not None
        parsed = urlparse(self.url)
        if parsed.scheme == "file":
            return Path(unquote(parsed.path))
        return Path(self.url)

    def inline_data(self) -> bytes:
        """Payload of a ``data:`` URL."""
        assert self.url is not None
        header, _, payload = self.url.partition(",")
        if header.endswith(";base64"):
            try:
                return base64.b64decode(payload, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise ValueError("invalid base64 payload in data URL") from exc
        return unquote(payload).encode("latin-1")

    def describe(self) -> str:
        if self.label:
            return self.label
        if self.data is not None:
            return f"<{len(self.data)} bytes>"
        assert self.url is not None
        if self.url.startswith("data:"):
            return self.url[:32] + "..."
        return self.url


@dataclass(slots=True)
class DecodedBuffer:
    """Float PCM in [-1, 1]; 1-D when mono, (frames, channels) otherwise."""

    samples: np.ndarray
    sample_rate: int

    @property
    def channels(self) -> int:
        return 1 if self.samples.ndim == 1 else int(self.samples.shape[1])

    @property
    def frame_count(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration_seconds(self) -> float:
        return self.frame_count / float(self.sample_rate) if self.sample_rate > 0 else 0.0

    @property
    def is_mono(self) -> bool:
        return self.samples.ndim == 1


@dataclass(frozen=True)
class PipelineConfig:
    pause_duration_ms: int = 750
    room_tone_volume: float = 0.08
    canonical_sample_rate: int = 44100
    output_bit_depth: int = field(default=16, init=False)

    def __post_init__(self) -> None:
        if isinstance(self.pause_duration_ms, bool) or not isinstance(self.pause_duration_ms, int):
            raise ValueError("pause_duration_ms must be an integer")
        if self.pause_duration_ms < 0:
            raise ValueError("pause_duration_ms must be non-negative")
        if not 0.0 <= float(self.room_tone_volume) <= 1.0:
            raise ValueError("room_tone_volume must be within [0, 1]")
        if isinstance(self.canonical_sample_rate, bool) or not isinstance(self.canonical_sample_rate, int):
            raise ValueError("canonical_sample_rate must be an integer")
        if self.canonical_sample_rate <= 0:
            raise ValueError("canonical_sample_rate must be positive")

    def with_overrides(self, **overrides: Any) -> "PipelineConfig":
        changes = {key: value for key, value in overrides.items() if value is not None}
        if not changes:
            return self
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    stage: StitchStage
    current: int
    total: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "current": self.current,
            "total": self.total,
            "message": self.message,
        }


@dataclass(frozen=True, slots=True)
class EncodedAudio:
    data: bytes
    frame_count: int
    sample_rate: int
    duration_seconds: float
    content_type: str = "audio/wav"


@dataclass(frozen=True, slots=True)
class StitchResult:
    """Final table read: WAV bytes plus a handle registered for playback."""

    encoded_bytes: bytes
    playable_handle: str
    duration_seconds: float
    frame_count: int
    sample_rate: int
