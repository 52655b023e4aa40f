from __future__ import annotations

"""Error taxonomy for the stitching pipeline."""

from typing import Optional

from .audio.types import StitchStage


class StitchError(Exception):
    """Base failure of a stitch invocation; names the stage that failed."""

    def __init__(
        self,
        message: str,
        *,
        stage: Optional[StitchStage] = None,
        clip_index: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.stage = stage
        self.clip_index = clip_index

    def to_dict(self) -> dict[str, object]:
        cause = self.__cause__
        return {
            "error": type(self).__name__,
            "message": str(self),
            "stage": self.stage.value if self.stage else None,
            "clipIndex": self.clip_index,
            "cause": repr(cause) if cause is not None else None,
        }


class FetchError(StitchError):
    """A clip could not be retrieved (network, HTTP status, missing file)."""

    def __init__(
        self,
        message: str,
        *,
        clip_index: Optional[int] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message, stage=StitchStage.LOADING, clip_index=clip_index)
        self.status_code = status_code


class DecodeError(StitchError):
    """Clip bytes are not audio that the decoder understands."""

    def __init__(self, message: str, *, clip_index: Optional[int] = None) -> None:
        super().__init__(message, stage=StitchStage.LOADING, clip_index=clip_index)


class ResourceError(StitchError):
    """The per-invocation decoding context could not be opened or closed."""


class PipelineBusyError(StitchError):
    """Another stitch is already running on this stitcher."""


class StitchCancelledError(StitchError):
    """The caller requested cancellation."""


__all__ = [
    "StitchError",
    "FetchError",
    "DecodeError",
    "ResourceError",
    "PipelineBusyError",
    "StitchCancelledError",
]
