from __future__ import annotations

"""Table-read stitching pipeline: load, process, mix, export."""

import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Union

import httpx
import numpy as np

from .audio.loader import ClipLoader, DecodingContext
from .audio.mixer import mix_room_tone
from .audio.preprocessor import AudioPreprocessor
from .audio.sequencer import concatenate_clips
from .audio.synth import create_silence, generate_room_tone
from .audio.types import (
    ClipSource,
    DecodedBuffer,
    PipelineConfig,
    PipelineState,
    ProgressEvent,
    StitchResult,
    StitchStage,
)
from .audio.wav import encode_wav
from .errors import PipelineBusyError, StitchCancelledError, StitchError
from .playback import PlaybackRegistry
from .settings import StitchSettings

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], Union[None, Awaitable[None]]]
SourceLike = Union[ClipSource, str, bytes]


class _ProgressReporter:
    def __init__(self, callback: Optional[ProgressCallback]) -> None:
        self._callback = callback
        self._last = (-1, -1)

    async def emit(self, stage: StitchStage, current: int, total: int, message: str) -> None:
        position = (stage.order, current)
        if position < self._last:
            raise RuntimeError(f"progress moved backwards: {position} after {self._last}")
        self._last = position
        event = ProgressEvent(stage=stage, current=current, total=total, message=message)
        logger.debug("stitch.progress", extra={"progress": event.to_dict()})
        if self._callback is None:
            return
        outcome = self._callback(event)
        if inspect.isawaitable(outcome):
            await outcome


class AudioStitcher:
    """Turns an ordered list of clips into one room-toned WAV recording.

    One stitch runs at a time per instance; an overlapping call is rejected
    with ``PipelineBusyError``. Each call opens its own ``DecodingContext``
    and closes it on every exit path.
    """

    def __init__(
        self,
        *,
        config: Optional[PipelineConfig] = None,
        registry: Optional[PlaybackRegistry] = None,
        fetch_timeout: float = 30.0,
        fetch_concurrency: int = 1,
        max_clip_bytes: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rng_factory: Optional[Callable[[], np.random.Generator]] = None,
    ) -> None:
        self._config = config or PipelineConfig()
        self._registry = registry if registry is not None else PlaybackRegistry()
        self._fetch_timeout = fetch_timeout
        self._fetch_concurrency = fetch_concurrency
        self._max_clip_bytes = max_clip_bytes
        self._transport = transport
        self._rng_factory = rng_factory or np.random.default_rng
        self._lock = asyncio.Lock()
        self._state = PipelineState.IDLE

    @classmethod
    def from_settings(cls, cfg: StitchSettings | None, **kwargs: Any) -> "AudioStitcher":
        if cfg is None:
            return cls(**kwargs)
        registry = kwargs.pop("registry", None)
        return cls(
            config=cfg.pipeline_config(),
            registry=registry if registry is not None else PlaybackRegistry(max_entries=cfg.max_recordings),
            fetch_timeout=cfg.fetch_timeout,
            fetch_concurrency=cfg.fetch_concurrency,
            max_clip_bytes=cfg.max_clip_bytes,
            **kwargs,
        )

    @property
    def config(self) -> PipelineConfig:
        return self._config

    @property
    def registry(self) -> PlaybackRegistry:
        return self._registry

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def _open_context(self) -> DecodingContext:
        return DecodingContext(
            timeout=self._fetch_timeout,
            max_clip_bytes=self._max_clip_bytes,
            transport=self._transport,
        )

    async def stitch(
        self,
        sources: Iterable[SourceLike],
        on_progress: Optional[ProgressCallback] = None,
        *,
        config: Optional[PipelineConfig] = None,
        cancel_event: Optional[asyncio.Event] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> StitchResult:
        if self._lock.locked():
            raise PipelineBusyError("a stitch is already in progress")
        async with self._lock:
            return await self._run(
                [ClipSource.coerce(source) for source in sources],
                _ProgressReporter(on_progress),
                config or self._config,
                cancel_event,
                rng,
            )

    async def _run(
        self,
        sources: List[ClipSource],
        progress: _ProgressReporter,
        cfg: PipelineConfig,
        cancel_event: Optional[asyncio.Event],
        rng: Optional[np.random.Generator],
    ) -> StitchResult:
        stage: Optional[StitchStage] = None
        started = time.perf_counter()
        total = len(sources)
        rate = cfg.canonical_sample_rate

        def _enter(next_stage: StitchStage) -> None:
            nonlocal stage
            _check_cancelled()
            stage = next_stage
            self._state = PipelineState(next_stage.value)

        def _check_cancelled() -> None:
            if cancel_event is not None and cancel_event.is_set():
                raise StitchCancelledError("stitch cancelled", stage=stage)

        logger.info("stitch.start", extra={"clips": total, "pause_ms": cfg.pause_duration_ms, "sample_rate": rate})
        try:
            async with self._open_context() as context:
                _enter(StitchStage.LOADING)
                await progress.emit(StitchStage.LOADING, 0, total, "Loading audio files...")

                async def _on_loaded(done: int, _buffer: DecodedBuffer) -> None:
                    await progress.emit(StitchStage.LOADING, done, total, f"Loaded audio {done} of {total}")

                loader = ClipLoader(context, concurrency=self._fetch_concurrency)
                loaded = await loader.load(sources, on_loaded=_on_loaded, before_each=_check_cancelled)

                _enter(StitchStage.PROCESSING)
                await progress.emit(StitchStage.PROCESSING, 0, total, "Processing audio clips...")
                preprocessor = AudioPreprocessor(target_sample_rate=rate)
                processed: List[DecodedBuffer] = []
                for index, buffer in enumerate(loaded):
                    _check_cancelled()
                    processed.append(preprocessor.normalize(buffer))
                    await progress.emit(
                        StitchStage.PROCESSING, index + 1, total, f"Processed clip {index + 1} of {total}"
                    )
                del loaded

                _enter(StitchStage.MIXING)
                await progress.emit(StitchStage.MIXING, 0, 1, "Concatenating clips and adding room tone...")
                silence = create_silence(cfg.pause_duration_ms, rate)
                dialogue = concatenate_clips(processed, silence, sample_rate=rate)
                room_tone = generate_room_tone(
                    dialogue.duration_seconds,
                    rate,
                    rng=rng if rng is not None else self._rng_factory(),
                )
                mixed = mix_room_tone(dialogue.samples, room_tone, cfg.room_tone_volume)

                _enter(StitchStage.EXPORTING)
                await progress.emit(StitchStage.EXPORTING, 0, 1, "Exporting final audio...")
                encoded = encode_wav(mixed, rate)
                handle = self._registry.register(encoded.data)
                await progress.emit(StitchStage.EXPORTING, 1, 1, "Complete!")
        except StitchError as exc:
            self._state = PipelineState.FAILED
            if exc.stage is None:
                exc.stage = stage
            self._log_failure(exc, stage)
            raise
        except asyncio.CancelledError:
            self._state = PipelineState.FAILED
            logger.info("stitch.cancelled", extra={"stage": stage.value if stage else None})
            raise
        except Exception as exc:
            self._state = PipelineState.FAILED
            self._log_failure(exc, stage)
            label = stage.value if stage else "setup"
            raise StitchError(f"{label} stage failed: {exc}", stage=stage) from exc

        self._state = PipelineState.COMPLETE
        logger.info(
            "stitch.complete",
            extra={
                "clips": total,
                "frames": encoded.frame_count,
                "duration_seconds": round(encoded.duration_seconds, 3),
                "elapsed_ms": round((time.perf_counter() - started) * 1000.0, 1),
            },
        )
        return StitchResult(
            encoded_bytes=encoded.data,
            playable_handle=handle,
            duration_seconds=encoded.duration_seconds,
            frame_count=encoded.frame_count,
            sample_rate=encoded.sample_rate,
        )

    @staticmethod
    def _log_failure(exc: BaseException, stage: Optional[StitchStage]) -> None:
        logger.warning(
            "stitch.failed",
            extra={"stage": stage.value if stage else None, "error": repr(exc)},
        )


async def stitch_audio(
    sources: Iterable[SourceLike],
    on_progress: Optional[ProgressCallback] = None,
    *,
    config: Optional[PipelineConfig] = None,
    **kwargs: Any,
) -> StitchResult:
    """One-shot stitch with a throwaway ``AudioStitcher``."""
    stitcher = AudioStitcher(config=config, **kwargs)
    return await stitcher.stitch(sources, on_progress)


__all__ = ["AudioStitcher", "ProgressCallback", "stitch_audio"]
