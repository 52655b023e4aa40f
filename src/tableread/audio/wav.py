from __future__ import annotations

"""16-bit mono PCM WAV serialization."""

import struct

import numpy as np

from .types import EncodedAudio

HEADER_SIZE = 44
BITS_PER_SAMPLE = 16
CHANNELS = 1
_BLOCK_ALIGN = CHANNELS * BITS_PER_SAMPLE // 8
_WAVE_FORMAT_PCM = 1


def wav_header(frame_count: int, sample_rate: int) -> bytes:
    data_size = frame_count * _BLOCK_ALIGN
    return struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        HEADER_SIZE + data_size - 8,
        b"WAVE",
        b"fmt ",
        16,
        _WAVE_FORMAT_PCM,
        CHANNELS,
        sample_rate,
        sample_rate * _BLOCK_ALIGN,
        _BLOCK_ALIGN,
        BITS_PER_SAMPLE,
        b"data",
        data_size,
    )


def to_pcm16(samples: np.ndarray) -> np.ndarray:
    """Clamp to [-1, 1] and scale asymmetrically (x32768 below zero, x32767 otherwise).

    Scaled values are truncated toward zero; NaN becomes silence.
    """
    clipped = np.clip(np.nan_to_num(samples.astype(np.float64), nan=0.0), -1.0, 1.0)
    scaled = np.where(clipped < 0, clipped * 32768.0, clipped * 32767.0)
    return np.trunc(scaled).astype("<i2")


def encode_wav(samples: np.ndarray, sample_rate: int) -> EncodedAudio:
    if samples.ndim != 1:
        raise ValueError("encode_wav expects a mono buffer")
    frame_count = int(samples.shape[0])
    data = wav_header(frame_count, sample_rate) + np.ascontiguousarray(to_pcm16(samples)).tobytes()
    return EncodedAudio(
        data=data,
        frame_count=frame_count,
        sample_rate=sample_rate,
        duration_seconds=frame_count / float(sample_rate),
    )


__all__ = ["HEADER_SIZE", "encode_wav", "to_pcm16", "wav_header"]
