"""Project-level routes: state, script submission, bulk storyboards, reset."""
from __future__ import annotations

from typing import Annotated

from litestar import delete, get, post
from litestar.datastructures import UploadFile
from litestar.enums import RequestEncodingType
from litestar.exceptions import ValidationException
from litestar.params import Body

from sketchflow.studio import decode_script
from webui.backend import state
from webui.backend.job_manager import job_manager
from webui.backend.models import (
    ImageSizeRequest,
    JobCreated,
    ProjectOut,
    ScriptRequest,
    StudioState,
)


def current_state() -> StudioState:
    snap = state.studio.snapshot()
    project = snap.pop("project")
    return StudioState(
        project=ProjectOut.model_validate(project) if project else None,
        active_job=job_manager.active_job,
        **snap,
    )


@get("/api/state")
async def get_state() -> StudioState:
    return current_state()


@post("/api/script")
async def submit_script(data: ScriptRequest) -> JobCreated:
    if not data.script.strip():
        raise ValidationException("Script is empty")
    state.studio.load_script_text(data.script)
    job_id = state.start_studio_job("analyze", lambda s: s.submit_script(data.script))
    return JobCreated(job_id=job_id)


@post("/api/script/upload")
async def upload_script(
    data: Annotated[UploadFile, Body(media_type=RequestEncodingType.MULTI_PART)],
) -> StudioState:
    """Load a plain-text script file into the input buffer (no analysis yet)."""
    state.studio.load_script_text(decode_script(await data.read()))
    return current_state()


@delete("/api/project", status_code=200)
async def reset_project() -> StudioState:
    state.studio.reset_project()
    return current_state()


@post("/api/storyboards")
async def generate_storyboards() -> JobCreated:
    if state.studio.project is None:
        raise ValidationException("No project loaded")
    job_id = state.start_studio_job("storyboards", lambda s: s.generate_all_storyboards())
    return JobCreated(job_id=job_id)


@post("/api/settings/image-size")
async def set_image_size(data: ImageSizeRequest) -> StudioState:
    state.studio.set_image_size(data.size)
    return current_state()


@delete("/api/error", status_code=200)
async def dismiss_error() -> StudioState:
    state.studio.dismiss_error()
    return current_state()
