from __future__ import annotations

"""Silence and room-tone generators."""

import math
from typing import Optional

import numpy as np
from scipy.signal import lfilter

# Voss-McCartney (Paul Kellet refined) pink-noise filter bank: (pole, gain).
_PINK_POLES = (
    (0.99886, 0.0555179),
    (0.99332, 0.0750759),
    (0.96900, 0.1538520),
    (0.86650, 0.3104856),
    (0.55000, 0.5329522),
    (-0.7616, -0.0168980),
)
_PINK_DIRECT_GAIN = 0.5362
_PINK_DELAYED_GAIN = 0.115926
ROOM_TONE_ATTENUATION = 0.01


def frames_for(duration_seconds: float, sample_rate: int) -> int:
    """Frame count for a duration, rounded half-up."""
    if duration_seconds <= 0:
        return 0
    return int(math.floor(duration_seconds * sample_rate + 0.5))


def create_silence(duration_ms: int, sample_rate: int) -> np.ndarray:
    return np.zeros(frames_for(duration_ms / 1000.0, sample_rate), dtype=np.float32)


def pink_noise(white: np.ndarray) -> np.ndarray:
    """Run white noise through the pink filter bank, all state starting at zero.

    Each b0..b5 term is a one-pole low-pass of the white input; b6 is the
    previous white sample scaled, so it contributes a one-sample delay tap.
    """
    white = np.asarray(white, dtype=np.float64)
    pink = white * _PINK_DIRECT_GAIN
    for pole, gain in _PINK_POLES:
        pink += lfilter([gain], [1.0, -pole], white)
    if white.size > 1:
        pink[1:] += white[:-1] * _PINK_DELAYED_GAIN
    return pink


def generate_room_tone(
    duration_seconds: float,
    sample_rate: int,
    *,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Low-level pink-noise ambience lasting ``duration_seconds``.

    ``rng`` supplies uniform white noise in [-1, 1); pass a seeded
    ``numpy.random.default_rng`` for reproducible output.
    """
    frame_count = frames_for(duration_seconds, sample_rate)
    if frame_count == 0:
        return np.zeros(0, dtype=np.float32)
    generator = rng if rng is not None else np.random.default_rng()
    white = generator.uniform(-1.0, 1.0, frame_count)
    return (pink_noise(white) * ROOM_TONE_ATTENUATION).astype(np.float32)


__all__ = [
    "ROOM_TONE_ATTENUATION",
    "create_silence",
    "frames_for",
    "generate_room_tone",
    "pink_noise",
]
