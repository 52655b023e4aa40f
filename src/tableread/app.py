import asyncio
import json
import logging
from typing import Any, AsyncGenerator, Dict, List, Optional, Tuple

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from . import __version__
from .audio.types import ClipSource, PipelineConfig, ProgressEvent, StitchResult
from .errors import (
    DecodeError,
    FetchError,
    PipelineBusyError,
    StitchCancelledError,
    StitchError,
)
from .playback import PlaybackRegistry
from .settings import settings as runtime_settings
from .stitcher import AudioStitcher

app = FastAPI(title="tableread-stitcher", version=__version__)
logger = logging.getLogger(__name__)

stitch_cfg = runtime_settings.stitch
stitcher = AudioStitcher.from_settings(stitch_cfg)


class StitchRequest(BaseModel):
    """Body of ``POST /stitch``: ordered clip URLs plus optional overrides."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    clips: List[str] = Field(min_length=1)
    pause_ms: Optional[int] = Field(default=None, ge=0, alias="pauseMs")
    room_tone_volume: Optional[float] = Field(default=None, ge=0.0, le=1.0, alias="roomToneVolume")
    sample_rate: Optional[int] = Field(default=None, gt=0, le=192000, alias="sampleRate")


def _status_for(exc: StitchError) -> int:
    if isinstance(exc, PipelineBusyError):
        return 409
    if isinstance(exc, FetchError):
        return 502
    if isinstance(exc, DecodeError):
        return 422
    if isinstance(exc, StitchCancelledError):
        return 499
    return 500


async def _parse_stitch_request(request: Request) -> Tuple[List[ClipSource], PipelineConfig]:
    try:
        body = await request.json()
    except Exception:
        raise HTTPException(status_code=400, detail="invalid json")

    try:
        parsed = StitchRequest.model_validate(body)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=json.loads(exc.json())) from exc

    if len(parsed.clips) > stitch_cfg.max_clips:
        raise HTTPException(status_code=413, detail=f"too many clips (max {stitch_cfg.max_clips})")

    try:
        sources = [ClipSource.coerce(clip) for clip in parsed.clips]
        config = stitcher.config.with_overrides(
            pause_duration_ms=parsed.pause_ms,
            room_tone_volume=parsed.room_tone_volume,
            canonical_sample_rate=parsed.sample_rate,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    local = [index for index, source in enumerate(sources) if source.scheme == "file"]
    if local:
        raise HTTPException(status_code=400, detail=f"clips must be http(s) or data URLs (bad index {local[0]})")
    return sources, config


def _result_payload(result: StitchResult) -> Dict[str, Any]:
    recording_id = PlaybackRegistry.handle_id(result.playable_handle)
    return {
        "handle": result.playable_handle,
        "url": f"/recordings/{recording_id}",
        "durationSeconds": result.duration_seconds,
        "frameCount": result.frame_count,
        "sampleRate": result.sample_rate,
    }


def _sse_format(event: str, data: Dict[str, Any]) -> bytes:
    payload = json.dumps(data, ensure_ascii=False)
    return f"event: {event}\n" f"data: {payload}\n\n".encode("utf-8")


@app.get("/health")
async def health() -> Dict[str, Any]:
    config = stitcher.config
    return {
        "status": "ok",
        "service": "tableread-stitcher",
        "version": __version__,
        "busy": stitcher.busy,
        "state": stitcher.state.value,
        "defaults": {
            "pauseMs": config.pause_duration_ms,
            "roomToneVolume": config.room_tone_volume,
            "sampleRate": config.canonical_sample_rate,
        },
    }


@app.post("/stitch")
async def stitch(request: Request) -> JSONResponse:
    sources, config = await _parse_stitch_request(request)
    try:
        result = await stitcher.stitch(sources, config=config)
    except StitchError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=exc.to_dict()) from exc
    return JSONResponse(_result_payload(result))


@app.post("/stitch/stream")
async def stitch_stream(request: Request) -> StreamingResponse:
    sources, config = await _parse_stitch_request(request)
    if stitcher.busy:
        raise HTTPException(status_code=409, detail="a stitch is already in progress")

    async def event_generator() -> AsyncGenerator[bytes, None]:
        queue: asyncio.Queue[Optional[ProgressEvent]] = asyncio.Queue()
        cancel_event = asyncio.Event()

        async def _run() -> StitchResult:
            try:
                return await stitcher.stitch(sources, queue.put, config=config, cancel_event=cancel_event)
            finally:
                queue.put_nowait(None)

        task = asyncio.create_task(_run())
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield _sse_format("progress", event.to_dict())
                # Cooperative cancellation: stop if client disconnected
                if await request.is_disconnected():
                    cancel_event.set()
            try:
                result = await task
            except StitchError as exc:
                yield _sse_format("error", exc.to_dict())
                return
            yield _sse_format("result", _result_payload(result))
        finally:
            if not task.done():
                cancel_event.set()
                await asyncio.gather(task, return_exceptions=True)

    headers = {"Cache-Control": "no-cache", "Connection": "keep-alive"}
    return StreamingResponse(event_generator(), media_type="text/event-stream", headers=headers)


@app.get("/recordings/{recording_id}")
async def get_recording(recording_id: str) -> Response:
    data = stitcher.registry.get(recording_id)
    if data is None:
        raise HTTPException(status_code=404, detail="recording not found")
    headers = {"Content-Disposition": 'inline; filename="table-read.wav"'}
    return Response(content=data, media_type="audio/wav", headers=headers)


@app.delete("/recordings/{recording_id}")
async def revoke_recording(recording_id: str) -> Response:
    if not stitcher.registry.revoke(recording_id):
        raise HTTPException(status_code=404, detail="recording not found")
    return Response(status_code=204)


def run(host: Optional[str] = None, port: Optional[int] = None) -> None:
    import uvicorn

    server = runtime_settings.server
    uvicorn.run(
        "tableread.app:app",
        host=host or server.host,
        port=port or server.port,
        reload=server.reload,
    )
