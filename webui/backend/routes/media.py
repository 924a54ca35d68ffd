"""Serve generated video and speech blobs from the in-memory store."""
from __future__ import annotations

from litestar import Response, get
from litestar.exceptions import NotFoundException

from sketchflow.media import media_store


@get("/api/media/{media_id:str}")
async def get_media(media_id: str) -> Response[bytes]:
    item = media_store.get(media_id)
    if item is None:
        raise NotFoundException(f"Media {media_id!r} not found")
    return Response(content=item.data, media_type=item.media_type)
