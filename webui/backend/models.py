"""Pydantic request/response models for the SketchFlow Web API."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

ImageSize = Literal["1K", "2K", "4K"]


class SceneOut(BaseModel):
    id: str
    order: int
    description: str
    dialogue: str
    storyboard_image_url: str | None = None
    storyboard_prompt: str | None = None
    video_url: str | None = None
    audio_url: str | None = None
    is_approved: bool = False


class ProjectOut(BaseModel):
    title: str
    script: str
    scenes: list[SceneOut] = Field(default_factory=list)


class StudioState(BaseModel):
    project: ProjectOut | None = None
    loading: str | None = None
    error: str | None = None
    has_api_key: bool = False
    image_size: ImageSize = "1K"
    script_input: str = ""
    active_job: str | None = None


class ScriptRequest(BaseModel):
    script: str


class PromptUpdate(BaseModel):
    prompt: str


class ImageSizeRequest(BaseModel):
    size: ImageSize


class JobCreated(BaseModel):
    job_id: str


class JobStatus(BaseModel):
    job_id: str
    label: str
    state: Literal["queued", "running", "done", "cancelled", "failed"]
    started_at: float | None = None
    finished_at: float | None = None
    error: str | None = None


class ConfigPayload(BaseModel):
    gemini_api_key: str = ""
    output_dir: str = "output"
    image_size: ImageSize = "1K"
    has_api_key: bool = False


class ChatRequest(BaseModel):
    text: str


class ChatMessageOut(BaseModel):
    role: Literal["user", "assistant"]
    text: str


class Transcription(BaseModel):
    text: str
