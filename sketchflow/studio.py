"""Holds the in-memory project and drives every storyboard/animation action."""
from __future__ import annotations

import concurrent.futures
import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Callable, Iterator

from .config import IMAGE_SIZES, Config
from .errors import (
    ApiKeyRequired,
    AuthExpiredError,
    GenerationCancelled,
    ProviderError,
    SceneNotFound,
    StudioBusy,
)
from .media import MediaStore, media_store
from .models import Project, Scene, scenes_from_outlines
from .utils import gemini_client as gemini

log = logging.getLogger(__name__)

SESSION_EXPIRED_MESSAGE = "API Session expired. Please re-select your key."
CANCELLED_MESSAGE = "Generation cancelled."


def decode_script(raw: bytes) -> str:
    """Decode an uploaded or on-disk script: UTF-8, falling back to cp1252."""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("cp1252")


class Studio:
    """Application state controller.

    Only one provider-backed action runs at a time: ``loading`` holds its
    status message while it runs. Failures are recorded in ``error`` and
    never raised to the caller; whatever finished before the failure stays.
    """

    def __init__(
        self,
        config: Config,
        progress_cb: Callable[[str], None] | None = None,
        media: MediaStore = media_store,
    ):
        self.config = config
        self.progress_cb = progress_cb or (lambda msg: None)
        self.media = media
        self.project: Project | None = None
        self.loading: str | None = None
        self.error: str | None = None
        self.has_api_key = bool(config.gemini_api_key)
        self.image_size = config.image_size if config.image_size in IMAGE_SIZES else IMAGE_SIZES[0]
        self.script_input = ""
        self._lock = threading.Lock()
        self._cancelled = threading.Event()

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def select_api_key(self, api_key: str) -> None:
        self.config.gemini_api_key = api_key.strip()
        self.has_api_key = bool(self.config.gemini_api_key)

    def set_image_size(self, size: str) -> None:
        if size not in IMAGE_SIZES:
            raise ValueError(f"Unsupported image size {size!r}; expected one of {IMAGE_SIZES}")
        self.image_size = size

    def dismiss_error(self) -> None:
        self.error = None

    def reset_project(self) -> None:
        with self._lock:
            if self.loading is not None:
                raise StudioBusy(f"Busy: {self.loading}")
        if self.project:
            for scene in self.project.scenes:
                for uri in (scene.video_url, scene.audio_url):
                    if uri:
                        self.media.revoke(uri)
        self.project = None

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _check_cancel(self) -> None:
        if self._cancelled.is_set():
            raise GenerationCancelled(CANCELLED_MESSAGE)

    # ------------------------------------------------------------------
    # Script input
    # ------------------------------------------------------------------

    def load_script_text(self, text: str) -> str:
        self.script_input = text
        return text

    def load_script_file(self, path: Path | str) -> str:
        """Read a local plain-text script into the input buffer."""
        path = Path(path)
        text = decode_script(path.read_bytes())
        log.info("Loaded script from %s (%d chars)", path, len(text))
        return self.load_script_text(text)

    # ------------------------------------------------------------------
    # Action boundary
    # ------------------------------------------------------------------

    @contextmanager
    def _action(self, message: str, failure: str) -> Iterator[None]:
        """Hold the loading flag for one action and record any failure."""
        if not self.has_api_key:
            raise ApiKeyRequired("Select a Gemini API key before generating.")
        with self._lock:
            if self.loading is not None:
                raise StudioBusy(f"Busy: {self.loading}")
            self.loading = message
        self._cancelled.clear()
        self.error = None
        self.progress_cb(message)
        try:
            yield
        except AuthExpiredError as e:
            log.warning("%s: %s", failure, e)
            self.has_api_key = False
            self.error = SESSION_EXPIRED_MESSAGE
        except GenerationCancelled:
            log.info("%s: cancelled", failure)
            self.error = CANCELLED_MESSAGE
        except ProviderError as e:
            log.error("%s: %s", failure, e)
            self.error = str(e) or failure
        finally:
            with self._lock:
                self.loading = None
        if self.error:
            self.progress_cb(f"  ✗ {self.error}")

    def _set_loading(self, message: str) -> None:
        self.loading = message
        self.progress_cb(message)

    def _require_project(self) -> Project:
        if self.project is None:
            raise SceneNotFound("No project loaded.")
        return self.project

    def _scene(self, scene_id: str) -> Scene:
        scene = self._require_project().find_scene(scene_id)
        if scene is None:
            raise SceneNotFound(f"Scene {scene_id!r} not found")
        return scene

    def _commit(self, updated: Scene) -> None:
        """Swap in a new version of a scene, keeping its position."""
        project = self._require_project()
        project.scenes = [updated if s.id == updated.id else s for s in project.scenes]

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def submit_script(self, text: str | None = None) -> Project | None:
        """Analyze the script and start a new project from its scenes."""
        script = self.script_input if text is None else text
        if not script.strip():
            return None
        self.script_input = script

        with self._action("Analyzing script and breaking into scenes...", "Failed to analyze script"):
            outlines = gemini.analyze_script(script, self.config)
            scenes = scenes_from_outlines(outlines)
            self.project = Project(script=script, scenes=scenes)
            self.progress_cb(f"  Generated {len(scenes)} scenes")
            for s in scenes:
                self.progress_cb(f"  Scene {s.order}: {s.description[:60]}")
        return self.project

    def generate_storyboard(self, scene_id: str, size: str | None = None) -> Scene:
        """(Re)draw one scene's storyboard frame, replacing any previous one."""
        scene = self._scene(scene_id)
        size = size or self.image_size

        with self._action("Generating sketch storyboard...", "Storyboard generation failed"):
            image_url = gemini.generate_storyboard_image(scene.visual_prompt, size, self.config)
            self._commit(replace(self._scene(scene_id), storyboard_image_url=image_url))
            self.progress_cb(f"  ✓ Scene {scene.order}")
        return self._scene(scene_id)

    def generate_all_storyboards(self, size: str | None = None) -> int:
        """Draw every scene still missing a frame, one after another.

        Each finished frame is committed before the next request starts so
        partial progress survives a failure. Returns the number drawn.
        """
        project = self._require_project()
        size = size or self.image_size
        drawn = 0

        with self._action("Generating all storyboards sequentially...", "Bulk generation failed"):
            for scene_id in [s.id for s in project.scenes]:
                self._check_cancel()
                scene = self._scene(scene_id)
                if scene.storyboard_image_url:
                    continue
                self._set_loading(f"Generating sketch for Scene {scene.order}...")
                image_url = gemini.generate_storyboard_image(scene.visual_prompt, size, self.config)
                self._commit(replace(self._scene(scene_id), storyboard_image_url=image_url))
                drawn += 1
                self.progress_cb(f"  ✓ Scene {scene.order}")
        return drawn

    def update_prompt(self, scene_id: str, prompt: str) -> Scene:
        updated = replace(self._scene(scene_id), storyboard_prompt=prompt)
        self._commit(updated)
        return updated

    def toggle_approval(self, scene_id: str) -> Scene:
        scene = self._scene(scene_id)
        updated = replace(scene, is_approved=not scene.is_approved)
        self._commit(updated)
        return updated

    def generate_final_video(self, scene_id: str) -> Scene | None:
        """Animate an approved scene and narrate its dialogue.

        The Veo clip and the speech run in parallel; both are committed
        together or not at all. Scenes without a frame, or not yet approved,
        are left alone.
        """
        if self.project is None:
            return None
        scene = self.project.find_scene(scene_id)
        if scene is None or not scene.storyboard_image_url or not scene.is_approved:
            log.info("Final video skipped for %s: needs an approved storyboard", scene_id)
            return None

        message = f"Animating scene {scene.order}... This will take about a minute."
        with self._action(message, "Animation generation failed"):
            with concurrent.futures.ThreadPoolExecutor(max_workers=2) as executor:
                video_future = executor.submit(
                    gemini.generate_scene_video,
                    scene.visual_prompt,
                    self.config,
                    scene.storyboard_image_url,
                    media=self.media,
                    cancel_event=self._cancelled,
                    progress_cb=self.progress_cb,
                )
                audio_future = executor.submit(
                    gemini.generate_dialogue_speech,
                    scene.dialogue,
                    self.config,
                    media=self.media,
                )
                done, _ = concurrent.futures.wait(
                    [video_future, audio_future],
                    return_when=concurrent.futures.FIRST_EXCEPTION,
                )
                if any(f.exception() is not None for f in done):
                    # Stop a still-polling Veo job
                    self._cancelled.set()

            futures = (video_future, audio_future)
            errors = [f.exception() for f in futures if f.exception() is not None]
            if errors:
                for f in futures:
                    if f.exception() is None:
                        self.media.revoke(f.result())
                # Report the real failure rather than the cancellation it caused
                real = [e for e in errors if not isinstance(e, GenerationCancelled)]
                raise (real or errors)[0]
            video_url = video_future.result()
            audio_url = audio_future.result()

            current = self._scene(scene_id)
            self._commit(replace(current, video_url=video_url, audio_url=audio_url))
            self.progress_cb(f"  ✓ Scene {scene.order} animated")
        return self._scene(scene_id)

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def snapshot(self) -> dict:
        return {
            "project": self.project.to_dict() if self.project else None,
            "loading": self.loading,
            "error": self.error,
            "has_api_key": self.has_api_key,
            "image_size": self.image_size,
            "script_input": self.script_input,
        }
