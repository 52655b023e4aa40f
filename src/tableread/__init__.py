"""Table-read audio stitching engine."""

__version__ = "0.1.0"

from .audio.types import (  # noqa: E402
    ClipSource,
    PipelineConfig,
    ProgressEvent,
    StitchResult,
    StitchStage,
)
from .errors import (  # noqa: E402
    DecodeError,
    FetchError,
    PipelineBusyError,
    ResourceError,
    StitchCancelledError,
    StitchError,
)
from .playback import PlaybackRegistry  # noqa: E402
from .stitcher import AudioStitcher, stitch_audio  # noqa: E402

__all__ = [
    "__version__",
    "AudioStitcher",
    "ClipSource",
    "DecodeError",
    "FetchError",
    "PipelineBusyError",
    "PipelineConfig",
    "PlaybackRegistry",
    "ProgressEvent",
    "ResourceError",
    "StitchCancelledError",
    "StitchError",
    "StitchResult",
    "StitchStage",
    "stitch_audio",
]
