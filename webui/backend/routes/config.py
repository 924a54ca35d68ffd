"""Config read/write routes (API key selection)."""
from __future__ import annotations

from pathlib import Path

from litestar import get, post

from webui.backend import state
from webui.backend.models import ConfigPayload


@get("/api/config")
async def get_config() -> ConfigPayload:
    cfg = state.studio.config
    return ConfigPayload(
        # Mask secret key, show only first/last 4 chars
        gemini_api_key=_mask(cfg.gemini_api_key),
        output_dir=str(cfg.output_dir),
        image_size=state.studio.image_size,
        has_api_key=state.studio.has_api_key,
    )


@post("/api/config")
async def save_config(data: ConfigPayload) -> dict:
    studio = state.studio
    cfg = studio.config
    # Only update the key if the user sent a non-masked value
    if data.gemini_api_key and "…" not in data.gemini_api_key:
        studio.select_api_key(data.gemini_api_key)
        state.chat_session.config = cfg
    cfg.output_dir = Path(data.output_dir)
    cfg.image_size = data.image_size
    studio.set_image_size(data.image_size)
    cfg.save()
    return {"ok": True, "has_api_key": studio.has_api_key}


def _mask(value: str) -> str:
    if not value:
        return ""
    return value[:4] + "…" + value[-4:] if len(value) > 8 else "…"
