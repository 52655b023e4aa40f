from __future__ import annotations

from typing import Sequence

import numpy as np

from .types import DecodedBuffer


def concatenate_clips(clips: Sequence[DecodedBuffer], silence: np.ndarray, *, sample_rate: int) -> DecodedBuffer:
    """Lay clips end to end in input order with ``silence`` between each pair.

    No silence is added after the final clip.
    """
    for position, clip in enumerate(clips):
        if not clip.is_mono or clip.sample_rate != sample_rate:
            raise ValueError(f"clip {position} is not mono at {sample_rate} Hz")

    gaps = max(len(clips) - 1, 0)
    total = sum(clip.frame_count for clip in clips) + gaps * silence.shape[0]
    output = np.zeros(total, dtype=np.float32)

    offset = 0
    for position, clip in enumerate(clips):
        output[offset : offset + clip.frame_count] = clip.samples
        offset += clip.frame_count
        if position < gaps:
            output[offset : offset + silence.shape[0]] = silence
            offset += silence.shape[0]
    return DecodedBuffer(samples=output, sample_rate=sample_rate)


__all__ = ["concatenate_clips"]
