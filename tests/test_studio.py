import threading

import pytest

from sketchflow.config import TTS_MODEL
from sketchflow.errors import ApiKeyRequired, AuthExpiredError, ProviderError, SceneNotFound, StudioBusy
from sketchflow.models import Project, Scene
from sketchflow.studio import CANCELLED_MESSAGE, SESSION_EXPIRED_MESSAGE, Studio, decode_script
from sketchflow.utils import gemini_client

from conftest import inline_response, text_response, video_operation


class StubGemini:
    """Records every provider call the studio makes."""

    def __init__(self, monkeypatch):
        self.calls = []
        self.image_error = None
        self.video_error = None
        self.speech_error = None
        self.outlines = [
            {"order": 1, "description": "A dim room.", "dialogue": "Hello?"},
            {"order": 2, "description": "Alice waves.", "dialogue": "Over here!"},
        ]
        monkeypatch.setattr(gemini_client, "analyze_script", self.analyze_script)
        monkeypatch.setattr(gemini_client, "generate_storyboard_image", self.generate_storyboard_image)
        monkeypatch.setattr(gemini_client, "generate_scene_video", self.generate_scene_video)
        monkeypatch.setattr(gemini_client, "generate_dialogue_speech", self.generate_dialogue_speech)

    def analyze_script(self, script, config):
        self.calls.append(("analyze", script))
        return self.outlines

    def generate_storyboard_image(self, prompt, size, config):
        self.calls.append(("image", prompt, size))
        if self.image_error and len(self.named("image")) >= 2:
            raise self.image_error
        return f"data:image/png;base64,{len(self.calls)}"

    def generate_scene_video(self, prompt, config, seed_image=None, **kwargs):
        self.calls.append(("video", prompt, seed_image))
        if self.video_error:
            raise self.video_error
        return kwargs["media"].put(b"mp4", "video/mp4")

    def generate_dialogue_speech(self, text, config, **kwargs):
        self.calls.append(("speech", text))
        if self.speech_error:
            raise self.speech_error
        return kwargs["media"].put(b"wav", "audio/wav")

    def named(self, name):
        return [c for c in self.calls if c[0] == name]


@pytest.fixture
def stub(monkeypatch):
    return StubGemini(monkeypatch)


@pytest.fixture
def studio(config, media):
    return Studio(config, media=media)


def _project(*scenes):
    return Project(script="script", scenes=list(scenes))


def test_submit_script_builds_unapproved_scenes(studio, stub):
    project = studio.submit_script("INT. ROOM - DAY\nAlice waves.")

    assert project is studio.project
    assert project.title == "My New Animation"
    assert [s.order for s in project.scenes] == [1, 2]
    assert all(not s.is_approved for s in project.scenes)
    assert all(s.storyboard_prompt == s.description for s in project.scenes)
    assert studio.loading is None
    assert studio.error is None


def test_scene_ids_are_distinct(studio, stub):
    stub.outlines = [{"order": 1, "description": "x", "dialogue": "y"}] * 25
    studio.submit_script("a long script")
    ids = [s.id for s in studio.project.scenes]
    assert len(set(ids)) == len(ids)


def test_missing_order_falls_back_to_position(studio, stub):
    stub.outlines = [
        {"description": "a", "dialogue": "b"},
        {"order": 0, "description": "c", "dialogue": "d"},
        {"order": 7, "description": "e", "dialogue": "f"},
        {"order": 7, "description": "g", "dialogue": "h"},
    ]
    studio.submit_script("script")
    assert [s.order for s in studio.project.scenes] == [1, 2, 7, 7]


def test_blank_script_is_noop(studio, stub):
    assert studio.submit_script("   \n") is None
    assert stub.calls == []


def test_submit_uses_loaded_file(studio, stub, tmp_path):
    path = tmp_path / "script.txt"
    path.write_text("INT. ROOM - DAY\nAlice waves.", encoding="utf-8")
    studio.load_script_file(path)
    studio.submit_script()
    assert stub.calls == [("analyze", "INT. ROOM - DAY\nAlice waves.")]


def test_analysis_failure_sets_error(studio, stub, monkeypatch):
    def boom(script, config):
        raise ProviderError("Script analysis failed: 503")

    monkeypatch.setattr(gemini_client, "analyze_script", boom)
    assert studio.submit_script("script") is None
    assert studio.error == "Script analysis failed: 503"
    assert studio.loading is None


def test_end_to_end_scenario(studio, fake_genai):
    fake_genai.content["gemini-3-pro-preview"] = text_response(
        '[{"order": 1, "description": "A small room in daylight; Alice raises a hand.", "dialogue": "Hi!"}]'
    )
    studio.submit_script("INT. ROOM - DAY\nAlice waves.")

    scenes = studio.project.scenes
    assert len(scenes) >= 1
    assert scenes[0].description and scenes[0].dialogue
    assert scenes[0].is_approved is False


def test_generate_storyboard_overwrites(studio, stub):
    scene = Scene(order=1, description="desc", dialogue="line", storyboard_image_url="data:old")
    studio.project = _project(scene)

    updated = studio.generate_storyboard(scene.id)

    assert updated.storyboard_image_url != "data:old"
    assert stub.named("image") == [("image", "desc", "1K")]


def test_generate_storyboard_uses_edited_prompt_and_size(studio, stub):
    scene = Scene(order=1, description="desc", dialogue="line", storyboard_prompt="edited")
    studio.project = _project(scene)
    studio.set_image_size("4K")

    studio.generate_storyboard(scene.id)

    assert stub.named("image") == [("image", "edited", "4K")]


def test_unknown_scene(studio, stub):
    studio.project = _project()
    with pytest.raises(SceneNotFound):
        studio.generate_storyboard("nope")


@pytest.mark.parametrize("pattern", ["EEE", "FFF", "FEF", "EFE", "FFE", "EEF"])
def test_bulk_generation_skips_existing(studio, stub, pattern):
    # F = already has a frame, E = empty
    scenes = [
        Scene(order=i + 1, description=f"scene {i}", dialogue="",
              storyboard_image_url="data:keep" if c == "F" else None)
        for i, c in enumerate(pattern)
    ]
    studio.project = _project(*scenes)

    drawn = studio.generate_all_storyboards()

    expected = [f"scene {i}" for i, c in enumerate(pattern) if c == "E"]
    assert [c[1] for c in stub.named("image")] == expected
    assert drawn == len(expected)
    for original, now in zip(scenes, studio.project.scenes):
        if original.storyboard_image_url:
            assert now.storyboard_image_url == "data:keep"
        else:
            assert now.storyboard_image_url


def test_bulk_generation_keeps_partial_progress(studio, stub):
    stub.image_error = ProviderError("quota exceeded")
    scenes = [Scene(order=i, description=f"s{i}", dialogue="") for i in range(3)]
    studio.project = _project(*scenes)

    studio.generate_all_storyboards()

    images = [s.storyboard_image_url for s in studio.project.scenes]
    assert images[0] is not None
    assert images[1:] == [None, None]
    assert studio.error == "quota exceeded"
    assert studio.loading is None


def test_bulk_generation_cancel(studio, stub, monkeypatch):
    scenes = [Scene(order=i, description=f"s{i}", dialogue="") for i in range(3)]
    studio.project = _project(*scenes)

    def draw_then_cancel(prompt, size, config):
        studio.cancel()
        return "data:image/png;base64,AA"

    monkeypatch.setattr(gemini_client, "generate_storyboard_image", draw_then_cancel)
    assert studio.generate_all_storyboards() == 1
    assert studio.error == CANCELLED_MESSAGE


def test_bulk_generation_keeps_edits_made_while_drawing(studio, stub, monkeypatch):
    scene = Scene(order=1, description="d", dialogue="l")
    studio.project = _project(scene)

    def draw_while_editing(prompt, size, config):
        studio.toggle_approval(scene.id)
        studio.update_prompt(scene.id, "edited")
        return "data:image/png;base64,AA"

    monkeypatch.setattr(gemini_client, "generate_storyboard_image", draw_while_editing)
    assert studio.generate_all_storyboards() == 1

    updated = studio.project.scenes[0]
    assert updated.storyboard_image_url == "data:image/png;base64,AA"
    assert updated.is_approved is True
    assert updated.storyboard_prompt == "edited"


def test_toggle_approval_twice(studio, stub):
    scene = Scene(order=1, description="d", dialogue="l")
    studio.project = _project(scene)

    assert studio.toggle_approval(scene.id).is_approved is True
    assert studio.toggle_approval(scene.id).is_approved is False
    assert stub.calls == []


def test_update_prompt_touches_nothing_else(studio, stub):
    scene = Scene(order=1, description="d", dialogue="l", storyboard_image_url="data:img",
                  video_url="/api/media/v", audio_url="/api/media/a")
    studio.project = _project(scene)

    updated = studio.update_prompt(scene.id, "new framing")

    assert updated.storyboard_prompt == "new framing"
    assert (updated.description, updated.dialogue) == ("d", "l")
    assert (updated.storyboard_image_url, updated.video_url, updated.audio_url) == (
        "data:img", "/api/media/v", "/api/media/a",
    )
    assert stub.calls == []


def test_final_video_without_image_is_noop(studio, stub):
    scene = Scene(order=1, description="d", dialogue="l", is_approved=True)
    studio.project = _project(scene)

    assert studio.generate_final_video(scene.id) is None
    assert stub.calls == []


def test_final_video_requires_approval(studio, stub):
    scene = Scene(order=1, description="d", dialogue="l", storyboard_image_url="data:img")
    studio.project = _project(scene)

    assert studio.generate_final_video(scene.id) is None
    assert stub.calls == []


def test_final_video_commits_both(studio, stub, media):
    scene = Scene(order=1, description="d", dialogue="line", storyboard_image_url="data:img",
                  is_approved=True)
    studio.project = _project(scene)

    updated = studio.generate_final_video(scene.id)

    assert media.resolve(updated.video_url).media_type == "video/mp4"
    assert media.resolve(updated.audio_url).media_type == "audio/wav"
    assert stub.named("video") == [("video", "d", "data:img")]
    assert stub.named("speech") == [("speech", "line")]


def test_final_video_failure_commits_neither(studio, stub, media):
    stub.speech_error = ProviderError("No audio data returned")
    scene = Scene(order=1, description="d", dialogue="line", storyboard_image_url="data:img",
                  is_approved=True)
    studio.project = _project(scene)

    updated = studio.generate_final_video(scene.id)

    assert updated.video_url is None and updated.audio_url is None
    assert studio.error == "No audio data returned"
    assert len(media) == 0


def test_final_video_auth_expired_clears_key(studio, stub):
    stub.video_error = AuthExpiredError("Video generation failed: Requested entity was not found.")
    scene = Scene(order=1, description="d", dialogue="line", storyboard_image_url="data:img",
                  is_approved=True)
    studio.project = _project(scene)

    studio.generate_final_video(scene.id)

    assert studio.has_api_key is False
    assert studio.error == SESSION_EXPIRED_MESSAGE
    with pytest.raises(ApiKeyRequired):
        studio.generate_storyboard(scene.id)


def test_final_video_expired_operation_clears_key(studio, fake_genai, fake_download, media):
    fake_genai.video_ops = [
        video_operation(error={"code": 5, "message": "Requested entity was not found."})
    ]
    fake_genai.content[TTS_MODEL] = inline_response(b"\x00\x01" * 8, "audio/L16;rate=24000")
    scene = Scene(order=1, description="d", dialogue="line",
                  storyboard_image_url="data:image/png;base64,iVBORw0KGgo=", is_approved=True)
    studio.project = _project(scene)

    updated = studio.generate_final_video(scene.id)

    assert studio.has_api_key is False
    assert studio.error == SESSION_EXPIRED_MESSAGE
    assert updated.video_url is None and updated.audio_url is None
    assert len(media) == 0
    assert fake_download.requests == []


def test_actions_need_api_key(config, media, stub):
    config.gemini_api_key = ""
    studio = Studio(config, media=media)
    with pytest.raises(ApiKeyRequired):
        studio.submit_script("script")
    assert stub.calls == []

    studio.select_api_key("new-key")
    assert studio.has_api_key
    studio.submit_script("script")
    assert studio.project is not None


def test_busy_rejects_second_action(studio, stub, monkeypatch):
    started = threading.Event()
    release = threading.Event()

    def slow(script, config):
        started.set()
        release.wait(5)
        return []

    monkeypatch.setattr(gemini_client, "analyze_script", slow)
    worker = threading.Thread(target=studio.submit_script, args=("script",))
    worker.start()
    started.wait(5)
    try:
        with pytest.raises(StudioBusy):
            studio.submit_script("another")
    finally:
        release.set()
        worker.join(5)
    assert studio.loading is None


def test_reset_project_drops_media(studio, stub, media):
    scene = Scene(order=1, description="d", dialogue="line", storyboard_image_url="data:img",
                  is_approved=True)
    studio.project = _project(scene)
    studio.generate_final_video(scene.id)
    assert len(media) == 2

    studio.reset_project()

    assert studio.project is None
    assert len(media) == 0


def test_reset_project_rejected_while_busy(studio, stub, media, monkeypatch):
    scene = Scene(order=1, description="d", dialogue="line", storyboard_image_url="data:img",
                  is_approved=True)
    studio.project = _project(scene)
    started = threading.Event()
    release = threading.Event()

    def slow_video(prompt, config, seed_image=None, **kwargs):
        started.set()
        release.wait(5)
        return kwargs["media"].put(b"mp4", "video/mp4")

    monkeypatch.setattr(gemini_client, "generate_scene_video", slow_video)
    worker = threading.Thread(target=studio.generate_final_video, args=(scene.id,))
    worker.start()
    started.wait(5)
    try:
        with pytest.raises(StudioBusy):
            studio.reset_project()
    finally:
        release.set()
        worker.join(5)

    assert studio.project is not None
    assert studio.project.scenes[0].video_url is not None
    studio.reset_project()
    assert len(media) == 0


def test_decode_script_falls_back_to_cp1252():
    assert decode_script("Café scene".encode("utf-8")) == "Café scene"
    assert decode_script("Café scene".encode("cp1252")) == "Café scene"


def test_set_image_size_validates(studio):
    with pytest.raises(ValueError):
        studio.set_image_size("8K")


def test_dismiss_error(studio):
    studio.error = "boom"
    studio.dismiss_error()
    assert studio.error is None


def test_progress_messages(config, media, stub):
    messages = []
    studio = Studio(config, progress_cb=messages.append, media=media)
    studio.submit_script("script")
    assert messages[0].startswith("Analyzing script")
