from __future__ import annotations

"""Clip retrieval and decoding."""

import asyncio
import io
import logging
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence

import httpx
import numpy as np
import soundfile as sf

from ..errors import DecodeError, FetchError, ResourceError
from .types import ClipSource, DecodedBuffer

logger = logging.getLogger(__name__)

ClipLoadedCallback = Callable[[int, DecodedBuffer], Awaitable[None]]


class DecodingContext:
    """Per-invocation fetch/decode resources.

    Owns one ``httpx.AsyncClient``. Must be entered before use and is unusable
    once closed.
    """

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        max_clip_bytes: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._max_clip_bytes = max_clip_bytes
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._client is not None and not self._closed

    @property
    def closed(self) -> bool:
        return self._closed

    async def open(self) -> None:
        if self._closed:
            raise ResourceError("decoding context already closed")
        if self._client is not None:
            return
        try:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=True,
            )
        except Exception as exc:
            raise ResourceError("failed to open decoding context") from exc

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.aclose()
        except Exception as exc:
            raise ResourceError("failed to close decoding context") from exc

    async def __aenter__(self) -> "DecodingContext":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        try:
            await self.close()
        except ResourceError:
            if exc is None:
                raise
            # Keep the in-flight error; the close failure is secondary.
            logger.warning("stitch.context.close_failed", exc_info=True)

    def _require_open(self) -> httpx.AsyncClient:
        if self._client is None or self._closed:
            raise ResourceError("decoding context is not open")
        return self._client

    async def fetch(self, source: ClipSource, *, clip_index: Optional[int] = None) -> bytes:
        client = self._require_open()
        scheme = source.scheme
        if scheme == "inline":
            assert source.data is not None
            data = source.data
        elif scheme == "data":
            try:
                data = source.inline_data()
            except ValueError as exc:
                raise FetchError(f"unreadable data URL for clip {clip_index}", clip_index=clip_index) from exc
        elif scheme == "http":
            data = await self._fetch_http(client, source, clip_index)
        else:
            data = await self._read_file(source.local_path(), clip_index)
        self._enforce_size(len(data), clip_index)
        return data

    async def _fetch_http(
        self, client: httpx.AsyncClient, source: ClipSource, clip_index: Optional[int]
    ) -> bytes:
        assert source.url is not None
        try:
            response = await client.get(source.url)
        except httpx.HTTPError as exc:
            raise FetchError(
                f"failed to fetch clip {clip_index} from {source.describe()}: {exc!r}",
                clip_index=clip_index,
            ) from exc
        if not response.is_success:
            raise FetchError(
                f"failed to fetch clip {clip_index}: HTTP {response.status_code} {response.reason_phrase}",
                clip_index=clip_index,
                status_code=response.status_code,
            )
        return response.content

    async def _read_file(self, path: Path, clip_index: Optional[int]) -> bytes:
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise FetchError(f"failed to read clip {clip_index} from {path}", clip_index=clip_index) from exc

    def _enforce_size(self, size: int, clip_index: Optional[int]) -> None:
        if self._max_clip_bytes is not None and size > self._max_clip_bytes:
            raise FetchError(
                f"clip {clip_index} is {size} bytes, over the {self._max_clip_bytes} byte limit",
                clip_index=clip_index,
            )

    def decode(self, data: bytes, *, clip_index: Optional[int] = None) -> DecodedBuffer:
        self._require_open()
        if not data:
            raise DecodeError(f"clip {clip_index} is empty", clip_index=clip_index)
        try:
            audio_array, sample_rate = sf.read(io.BytesIO(data), dtype="float32", always_2d=True)
        except Exception as exc:
            raise DecodeError(f"unsupported audio encoding for clip {clip_index}", clip_index=clip_index) from exc
        if audio_array.shape[1] == 1:
            audio_array = np.ascontiguousarray(audio_array[:, 0])
        return DecodedBuffer(samples=audio_array, sample_rate=int(sample_rate))


class ClipLoader:
    """Fetches and decodes clips, returning buffers in input order."""

    def __init__(self, context: DecodingContext, *, concurrency: int = 1) -> None:
        self._context = context
        self._concurrency = max(1, int(concurrency))

    async def load_one(self, source: ClipSource, index: int) -> DecodedBuffer:
        data = await self._context.fetch(source, clip_index=index)
        buffer = self._context.decode(data, clip_index=index)
        logger.debug(
            "stitch.clip.loaded",
            extra={
                "clip_index": index,
                "frames": buffer.frame_count,
                "channels": buffer.channels,
                "sample_rate": buffer.sample_rate,
            },
        )
        return buffer

    async def load(
        self,
        sources: Sequence[ClipSource],
        *,
        on_loaded: Optional[ClipLoadedCallback] = None,
        before_each: Optional[Callable[[], None]] = None,
    ) -> List[DecodedBuffer]:
        """Load every source; any failure aborts the whole batch.

        ``on_loaded`` receives the number of clips completed so far, so it
        increases by one per call regardless of completion order.
        """
        if self._concurrency == 1 or len(sources) <= 1:
            return await self._load_sequential(sources, on_loaded, before_each)
        return await self._load_concurrent(sources, on_loaded, before_each)

    async def _load_sequential(self, sources, on_loaded, before_each) -> List[DecodedBuffer]:  # noqa: ANN001
        buffers: List[DecodedBuffer] = []
        for index, source in enumerate(sources):
            if before_each is not None:
                before_each()
            buffer = await self.load_one(source, index)
            buffers.append(buffer)
            if on_loaded is not None:
                await on_loaded(len(buffers), buffer)
        return buffers

    async def _load_concurrent(self, sources, on_loaded, before_each) -> List[DecodedBuffer]:  # noqa: ANN001
        results: List[Optional[DecodedBuffer]] = [None] * len(sources)
        semaphore = asyncio.Semaphore(self._concurrency)
        completed = 0
        report_lock = asyncio.Lock()

        async def _worker(index: int, source: ClipSource) -> None:
            nonlocal completed
            async with semaphore:
                if before_each is not None:
                    before_each()
                buffer = await self.load_one(source, index)
            results[index] = buffer
            async with report_lock:
                completed += 1
                if on_loaded is not None:
                    await on_loaded(completed, buffer)

        tasks = [asyncio.create_task(_worker(index, source)) for index, source in enumerate(sources)]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return [buffer for buffer in results if buffer is not None]


__all__ = ["ClipLoader", "DecodingContext"]
