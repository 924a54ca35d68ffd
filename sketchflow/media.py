"""In-memory blob registry for generated video and speech clips.

Generated media is held in process memory and addressed by a URI that the
web backend serves from ``/api/media/<id>``. Nothing is written to disk.
"""
from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass

log = logging.getLogger(__name__)

MEDIA_URL_PREFIX = "/api/media/"


@dataclass(frozen=True)
class MediaItem:
    media_id: str
    data: bytes
    media_type: str


class MediaStore:
    def __init__(self, url_prefix: str = MEDIA_URL_PREFIX) -> None:
        self.url_prefix = url_prefix
        self._items: dict[str, MediaItem] = {}
        self._lock = threading.Lock()

    def put(self, data: bytes, media_type: str) -> str:
        """Register ``data`` and return the URI it is served under."""
        media_id = uuid.uuid4().hex
        with self._lock:
            self._items[media_id] = MediaItem(media_id, bytes(data), media_type)
        log.debug("Stored %s blob %s (%d bytes)", media_type, media_id, len(data))
        return self.url_prefix + media_id

    def get(self, media_id: str) -> MediaItem | None:
        with self._lock:
            return self._items.get(media_id)

    def resolve(self, uri: str) -> MediaItem | None:
        if not uri.startswith(self.url_prefix):
            return None
        return self.get(uri[len(self.url_prefix):])

    def revoke(self, uri: str) -> None:
        if uri.startswith(self.url_prefix):
            with self._lock:
                self._items.pop(uri[len(self.url_prefix):], None)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


# Singleton
media_store = MediaStore()
