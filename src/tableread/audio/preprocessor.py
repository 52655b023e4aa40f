from __future__ import annotations

import math

import numpy as np

from .types import DecodedBuffer


def mix_down(buffer: DecodedBuffer) -> DecodedBuffer:
    """Average all channels into one. Mono input is returned as-is."""
    if buffer.is_mono:
        return buffer
    if buffer.channels == 1:
        return DecodedBuffer(samples=np.ascontiguousarray(buffer.samples[:, 0]), sample_rate=buffer.sample_rate)
    mono = np.mean(buffer.samples, axis=1, dtype=np.float64).astype(np.float32)
    return DecodedBuffer(samples=mono, sample_rate=buffer.sample_rate)


def resample(buffer: DecodedBuffer, target_rate: int) -> DecodedBuffer:
    """Linear-interpolation resampling of a mono buffer to ``target_rate``.

    Output length is ``floor(n / ratio)`` with ``ratio = source / target``.
    The sample after the last input frame is taken to be the last frame
    itself. Equal rates return the input buffer unchanged.
    """
    if buffer.sample_rate == target_rate:
        return buffer
    if not buffer.is_mono:
        raise ValueError("resample expects a mono buffer")

    source = buffer.samples.astype(np.float64, copy=False)
    length = source.shape[0]
    ratio = buffer.sample_rate / target_rate
    new_length = int(math.floor(length / ratio))
    if new_length <= 0 or length == 0:
        return DecodedBuffer(samples=np.zeros(0, dtype=np.float32), sample_rate=target_rate)

    positions = np.arange(new_length, dtype=np.float64) * ratio
    index = np.minimum(np.floor(positions).astype(np.int64), length - 1)
    frac = positions - index
    has_next = index + 1 < length
    following = source[np.where(has_next, index + 1, index)]
    interpolated = np.where(
        has_next,
        source[index] * (1.0 - frac) + following * frac,
        source[index],
    )
    return DecodedBuffer(samples=interpolated.astype(np.float32), sample_rate=target_rate)


class AudioPreprocessor:
    """Brings decoded clips to mono at the canonical sample rate."""

    def __init__(self, *, target_sample_rate: int = 44100) -> None:
        self._target_sample_rate = target_sample_rate

    @property
    def target_sample_rate(self) -> int:
        return self._target_sample_rate

    def normalize(self, buffer: DecodedBuffer) -> DecodedBuffer:
        return resample(mix_down(buffer), self._target_sample_rate)


__all__ = ["AudioPreprocessor", "mix_down", "resample"]
