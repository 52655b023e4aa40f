import numpy as np
import pytest

from tableread.audio.mixer import mix_room_tone
from tableread.audio.sequencer import concatenate_clips
from tableread.audio.synth import create_silence
from tableread.audio.types import DecodedBuffer


def _clip(frames: int, value: float, rate: int = 44100) -> DecodedBuffer:
    return DecodedBuffer(samples=np.full(frames, value, dtype=np.float32), sample_rate=rate)


@pytest.mark.parametrize(
    "lengths, pause_ms",
    [
        ([], 750),
        ([100], 750),
        ([44100, 88200], 750),
        ([10, 20, 30, 40], 600),
        ([5, 0, 5], 0),
    ],
)
def test_concatenated_length(lengths, pause_ms):
    rate = 44100
    silence = create_silence(pause_ms, rate)
    clips = [_clip(n, 0.1) for n in lengths]

    out = concatenate_clips(clips, silence, sample_rate=rate)

    gaps = max(len(lengths) - 1, 0)
    assert out.frame_count == sum(lengths) + gaps * round(pause_ms / 1000 * rate)


def test_clips_keep_order_with_silence_between():
    silence = np.zeros(2, dtype=np.float32)
    clips = [_clip(3, 0.1, rate=10), _clip(1, 0.2, rate=10), _clip(2, 0.3, rate=10)]

    out = concatenate_clips(clips, silence, sample_rate=10)

    np.testing.assert_allclose(
        out.samples,
        [0.1, 0.1, 0.1, 0, 0, 0.2, 0, 0, 0.3, 0.3],
        rtol=1e-6,
    )


def test_single_clip_has_no_silence():
    clip = _clip(44100, 0.5)

    out = concatenate_clips([clip], create_silence(750, 44100), sample_rate=44100)

    assert out.frame_count == 44100
    np.testing.assert_array_equal(out.samples, clip.samples)


def test_concatenate_rejects_foreign_rate():
    with pytest.raises(ValueError):
        concatenate_clips([_clip(10, 0.0, rate=48000)], np.zeros(0, dtype=np.float32), sample_rate=44100)


def test_mix_adds_scaled_room_tone():
    dialogue = np.array([0.0, 0.5, -0.5], dtype=np.float32)
    tone = np.array([1.0, -1.0, 0.5], dtype=np.float32)

    out = mix_room_tone(dialogue, tone, 0.1)

    np.testing.assert_allclose(out, [0.1, 0.4, -0.45], rtol=1e-6)


def test_mix_hard_clamps_to_unit_range():
    dialogue = np.array([0.99, -0.99, 1.5], dtype=np.float32)
    tone = np.array([1.0, -1.0, 0.0], dtype=np.float32)

    out = mix_room_tone(dialogue, tone, 1.0)

    np.testing.assert_array_equal(out, np.array([1.0, -1.0, 1.0], dtype=np.float32))


def test_mix_requires_equal_lengths():
    with pytest.raises(ValueError):
        mix_room_tone(np.zeros(4, dtype=np.float32), np.zeros(3, dtype=np.float32), 0.08)
