from __future__ import annotations

"""Ephemeral playable handles for stitched recordings."""

import threading
import uuid
from typing import Dict, Optional

HANDLE_PREFIX = "blob:tableread/"


class PlaybackRegistry:
    """Holds encoded recordings under opaque handles until revoked.

    Owned by whoever creates it (normally one ``AudioStitcher``); nothing here
    is process-global.
    """

    def __init__(self, *, max_entries: Optional[int] = None) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._entries: Dict[str, bytes] = {}
        self._max_entries = max_entries
        self._lock = threading.Lock()

    def register(self, data: bytes) -> str:
        handle = f"{HANDLE_PREFIX}{uuid.uuid4().hex}"
        with self._lock:
            if self._max_entries is not None:
                while len(self._entries) >= self._max_entries:
                    oldest = next(iter(self._entries))
                    del self._entries[oldest]
            self._entries[handle] = data
        return handle

    def get(self, handle: str) -> Optional[bytes]:
        with self._lock:
            return self._entries.get(self._normalize(handle))

    def revoke(self, handle: str) -> bool:
        with self._lock:
            return self._entries.pop(self._normalize(handle), None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, handle: object) -> bool:
        if not isinstance(handle, str):
            return False
        with self._lock:
            return self._normalize(handle) in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @staticmethod
    def _normalize(handle: str) -> str:
        return handle if handle.startswith(HANDLE_PREFIX) else f"{HANDLE_PREFIX}{handle}"

    @staticmethod
    def handle_id(handle: str) -> str:
        return handle[len(HANDLE_PREFIX):] if handle.startswith(HANDLE_PREFIX) else handle


__all__ = ["HANDLE_PREFIX", "PlaybackRegistry"]
