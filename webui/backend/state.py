"""Process-wide studio and chat session shared by every route."""
from __future__ import annotations

from typing import Callable

from sketchflow.chat import ChatSession
from sketchflow.config import Config
from sketchflow.errors import ApiKeyRequired
from sketchflow.studio import Studio

from .job_manager import job_manager

_config = Config.load()

studio = Studio(_config, progress_cb=job_manager.progress)
chat_session = ChatSession(_config)


def start_studio_job(label: str, target: Callable[[Studio], object]) -> str:
    """Run a Gemini-backed studio action as a background job."""
    current = studio
    if not current.has_api_key:
        raise ApiKeyRequired("Select a Gemini API key before generating.")
    return job_manager.submit(
        label,
        lambda: target(current),
        error_getter=lambda: current.error,
        cancel=current.cancel,
    )
