"""Project, scene and chat records."""
from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from typing import Literal

from pydantic import BaseModel, Field

from .config import DEFAULT_PROJECT_TITLE


class SceneOutline(BaseModel):
    """One element of the structured scene-analysis response."""
    order: int
    description: str = Field(..., description="Detailed visual description of the scene for an artist")
    dialogue: str = Field(..., description="Spoken lines in this scene")


@dataclass
class Scene:
    order: int
    description: str
    dialogue: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    storyboard_image_url: str | None = None
    storyboard_prompt: str | None = None
    video_url: str | None = None
    audio_url: str | None = None
    is_approved: bool = False

    @property
    def visual_prompt(self) -> str:
        return self.storyboard_prompt or self.description

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Project:
    script: str
    scenes: list[Scene] = field(default_factory=list)
    title: str = DEFAULT_PROJECT_TITLE

    def find_scene(self, scene_id: str) -> Scene | None:
        for scene in self.scenes:
            if scene.id == scene_id:
                return scene
        return None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ChatMessage:
    role: Literal["user", "assistant"]
    text: str

    def to_dict(self) -> dict:
        return asdict(self)


def scenes_from_outlines(outlines: list[dict]) -> list[Scene]:
    """Turn raw analysis items into fresh, unapproved scenes.

    A missing or zero ``order`` falls back to the 1-based position.
    """
    scenes: list[Scene] = []
    for idx, item in enumerate(outlines):
        description = item.get("description") or ""
        scenes.append(
            Scene(
                order=item.get("order") or idx + 1,
                description=description,
                dialogue=item.get("dialogue") or "",
                storyboard_prompt=description,
            )
        )
    return scenes
