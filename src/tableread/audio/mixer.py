from __future__ import annotations

import numpy as np


def mix_room_tone(dialogue: np.ndarray, room_tone: np.ndarray, volume: float) -> np.ndarray:
    """Add scaled room tone under dialogue, hard-limited to [-1, 1]."""
    if dialogue.shape != room_tone.shape:
        raise ValueError(
            f"room tone length {room_tone.shape[0]} does not match dialogue length {dialogue.shape[0]}"
        )
    mixed = dialogue.astype(np.float64) + room_tone.astype(np.float64) * float(volume)
    return np.clip(mixed, -1.0, 1.0).astype(np.float32)


__all__ = ["mix_room_tone"]
