"""Audio stages of the stitching pipeline."""

from .loader import ClipLoader, DecodingContext
from .mixer import mix_room_tone
from .preprocessor import AudioPreprocessor, mix_down, resample
from .sequencer import concatenate_clips
from .synth import create_silence, generate_room_tone
from .types import (
    ClipSource,
    DecodedBuffer,
    EncodedAudio,
    PipelineConfig,
    PipelineState,
    ProgressEvent,
    StitchResult,
    StitchStage,
)
from .wav import encode_wav

__all__ = [
    "AudioPreprocessor",
    "ClipLoader",
    "ClipSource",
    "DecodedBuffer",
    "DecodingContext",
    "EncodedAudio",
    "PipelineConfig",
    "PipelineState",
    "ProgressEvent",
    "StitchResult",
    "StitchStage",
    "concatenate_clips",
    "create_silence",
    "encode_wav",
    "generate_room_tone",
    "mix_down",
    "mix_room_tone",
    "resample",
]
