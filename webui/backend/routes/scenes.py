"""Per-scene routes: storyboard, prompt edit, approval, final animation."""
from __future__ import annotations

from litestar import post, put
from litestar.exceptions import NotFoundException, ValidationException

from sketchflow.models import Scene
from webui.backend import state
from webui.backend.models import JobCreated, PromptUpdate, SceneOut


def _scene_or_404(scene_id: str) -> Scene:
    project = state.studio.project
    scene = project.find_scene(scene_id) if project else None
    if scene is None:
        raise NotFoundException(f"Scene {scene_id!r} not found")
    return scene


@post("/api/scenes/{scene_id:str}/storyboard")
async def generate_storyboard(scene_id: str) -> JobCreated:
    _scene_or_404(scene_id)
    job_id = state.start_studio_job("storyboard", lambda s: s.generate_storyboard(scene_id))
    return JobCreated(job_id=job_id)


@put("/api/scenes/{scene_id:str}/prompt")
async def update_prompt(scene_id: str, data: PromptUpdate) -> SceneOut:
    _scene_or_404(scene_id)
    scene = state.studio.update_prompt(scene_id, data.prompt)
    return SceneOut.model_validate(scene.to_dict())


@post("/api/scenes/{scene_id:str}/approve")
async def toggle_approval(scene_id: str) -> SceneOut:
    _scene_or_404(scene_id)
    scene = state.studio.toggle_approval(scene_id)
    return SceneOut.model_validate(scene.to_dict())


@post("/api/scenes/{scene_id:str}/final")
async def generate_final_video(scene_id: str) -> JobCreated:
    scene = _scene_or_404(scene_id)
    if not scene.storyboard_image_url:
        raise ValidationException("Generate a storyboard for this scene first")
    if not scene.is_approved:
        raise ValidationException("Approve the storyboard before animating it")
    job_id = state.start_studio_job("final", lambda s: s.generate_final_video(scene_id))
    return JobCreated(job_id=job_id)
