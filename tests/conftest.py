"""
Shared fixtures: synthetic WAV clips and a mock HTTP transport serving them.
"""

import io
from typing import Callable, Dict, Optional

import httpx
import numpy as np
import pytest
import soundfile as sf


def make_wav(
    frames: int,
    *,
    sample_rate: int = 44100,
    channels: int = 1,
    value: Optional[float] = None,
    subtype: str = "FLOAT",
) -> bytes:
    if value is None:
        t = np.arange(frames, dtype=np.float64) / sample_rate
        mono = 0.25 * np.sin(2 * np.pi * 220.0 * t)
    else:
        mono = np.full(frames, value, dtype=np.float64)
    data = mono if channels == 1 else np.repeat(mono[:, None], channels, axis=1)
    buf = io.BytesIO()
    sf.write(buf, data.astype(np.float32), sample_rate, format="WAV", subtype=subtype)
    return buf.getvalue()


@pytest.fixture
def wav_bytes() -> Callable[..., bytes]:
    return make_wav


@pytest.fixture
def clip_server() -> Callable[[Dict[str, object]], httpx.MockTransport]:
    """Build a MockTransport from {path: bytes | int status}."""

    def _build(routes: Dict[str, object]) -> httpx.MockTransport:
        def handler(request: httpx.Request) -> httpx.Response:
            entry = routes.get(request.url.path)
            if entry is None:
                return httpx.Response(404)
            if isinstance(entry, int):
                return httpx.Response(entry)
            return httpx.Response(200, content=entry, headers={"Content-Type": "audio/wav"})

        return httpx.MockTransport(handler)

    return _build


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: unit tests")
    config.addinivalue_line("markers", "integration: end-to-end pipeline tests")
