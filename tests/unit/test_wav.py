import io
import struct

import numpy as np
import soundfile as sf

from tableread.audio.wav import HEADER_SIZE, encode_wav, to_pcm16


def test_header_layout():
    encoded = encode_wav(np.zeros(1000, dtype=np.float32), 44100)
    data = encoded.data

    assert len(data) == HEADER_SIZE + 2000
    assert data[0:4] == b"RIFF"
    assert data[8:12] == b"WAVE"
    assert data[12:16] == b"fmt "
    assert data[36:40] == b"data"
    riff_size, = struct.unpack_from("<I", data, 4)
    fmt_size, fmt_code, channels, rate, byte_rate, block_align, bits = struct.unpack_from("<IHHIIHH", data, 16)
    data_size, = struct.unpack_from("<I", data, 40)
    assert riff_size == len(data) - 8
    assert (fmt_size, fmt_code, channels) == (16, 1, 1)
    assert rate == 44100
    assert byte_rate == 44100 * 2
    assert (block_align, bits) == (2, 16)
    assert data_size == 1000 * 2


def test_sample_conversion_is_asymmetric_and_clamped():
    samples = np.array([-1.0, -0.5, 0.0, 0.5, 1.0, 2.0, -3.0, np.nan], dtype=np.float32)

    pcm = to_pcm16(samples)

    assert pcm.dtype == np.dtype("<i2")
    assert pcm.tolist() == [-32768, -16384, 0, 16383, 32767, 32767, -32768, 0]


def test_encoded_samples_stay_in_int16_range():
    samples = np.random.default_rng(5).uniform(-4, 4, 10000).astype(np.float32)

    encoded = encode_wav(samples, 22050)
    pcm = np.frombuffer(encoded.data[HEADER_SIZE:], dtype="<i2")

    assert pcm.min() >= -32768
    assert pcm.max() <= 32767
    assert encoded.frame_count == 10000
    assert encoded.duration_seconds == 10000 / 22050


def test_output_readable_by_soundfile():
    samples = np.linspace(-0.9, 0.9, 441, dtype=np.float32)

    encoded = encode_wav(samples, 44100)
    decoded, rate = sf.read(io.BytesIO(encoded.data), dtype="int16")

    assert rate == 44100
    assert decoded.shape == (441,)
    np.testing.assert_array_equal(decoded, to_pcm16(samples))


def test_empty_buffer_encodes_header_only():
    encoded = encode_wav(np.zeros(0, dtype=np.float32), 44100)

    assert len(encoded.data) == HEADER_SIZE
    assert encoded.duration_seconds == 0.0
