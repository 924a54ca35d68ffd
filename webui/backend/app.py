"""Litestar ASGI application for the SketchFlow Web API."""
from __future__ import annotations

import asyncio
from pathlib import Path

from litestar import Litestar, Request, Response
from litestar.config.cors import CORSConfig
from litestar.logging import LoggingConfig
from litestar.static_files import create_static_files_router

from sketchflow.errors import ApiKeyRequired, SceneNotFound, StudioBusy, StudioError
from webui.backend.job_manager import job_manager
from webui.backend.routes.chat import get_chat, send_chat, transcribe
from webui.backend.routes.config import get_config, save_config
from webui.backend.routes.jobs import cancel_job, get_job
from webui.backend.routes.media import get_media
from webui.backend.routes.project import (
    dismiss_error,
    generate_storyboards,
    get_state,
    reset_project,
    set_image_size,
    submit_script,
    upload_script,
)
from webui.backend.routes.scenes import (
    generate_final_video,
    generate_storyboard,
    toggle_approval,
    update_prompt,
)
from webui.backend.routes.stream import stream_job

FRONTEND_DIST = Path(__file__).parent.parent / "frontend" / "dist"

_STATUS_FOR = {
    StudioBusy: 409,
    ApiKeyRequired: 401,
    SceneNotFound: 404,
}


def _on_startup() -> None:
    """Capture the running event loop for thread-safe queue operations."""
    loop = asyncio.get_event_loop()
    job_manager.set_event_loop(loop)


def _studio_error(request: Request, exc: StudioError) -> Response:
    status = _STATUS_FOR.get(type(exc), 400)
    return Response(content={"status_code": status, "detail": str(exc)}, status_code=status)


app = Litestar(
    route_handlers=[
        get_state,
        submit_script,
        upload_script,
        reset_project,
        generate_storyboards,
        set_image_size,
        dismiss_error,
        generate_storyboard,
        update_prompt,
        toggle_approval,
        generate_final_video,
        get_job,
        cancel_job,
        stream_job,
        get_media,
        get_config,
        save_config,
        get_chat,
        send_chat,
        transcribe,
    ],
    exception_handlers={StudioError: _studio_error},
    cors_config=CORSConfig(
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    ),
    on_startup=[_on_startup],
    logging_config=LoggingConfig(
        loggers={
            "sketchflow": {"level": "INFO", "handlers": ["queue_listener"]},
            "webui": {"level": "INFO", "handlers": ["queue_listener"]},
        }
    ),
)

# Serve built frontend (production). During dev, Vite dev server handles this.
if FRONTEND_DIST.exists():
    app.register(
        create_static_files_router(
            path="/",
            directories=[FRONTEND_DIST],
            html_mode=True,
        )
    )
