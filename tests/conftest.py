import json

import pytest
import requests
from google.genai import types

from sketchflow.config import Config
from sketchflow.media import MediaStore
from sketchflow.utils import gemini_client


def text_response(text):
    return types.GenerateContentResponse(
        candidates=[types.Candidate(content=types.Content(role="model", parts=[types.Part(text=text)]))]
    )


def inline_response(data, mime_type):
    blob = types.Blob(data=data, mime_type=mime_type)
    return types.GenerateContentResponse(
        candidates=[types.Candidate(content=types.Content(role="model", parts=[types.Part(inline_data=blob)]))]
    )


def video_operation(done=True, uri="https://files.example/v1/video.mp4?alt=media", error=None):
    if error is not None:
        return types.GenerateVideosOperation(name="operations/veo-1", done=True, error=error)
    if not done:
        return types.GenerateVideosOperation(name="operations/veo-1", done=None)
    video = types.GeneratedVideo(video=types.Video(uri=uri)) if uri else types.GeneratedVideo()
    return types.GenerateVideosOperation(
        name="operations/veo-1",
        done=True,
        response=types.GenerateVideosResponse(generated_videos=[video]),
    )


class _Models:
    def __init__(self, fake):
        self.fake = fake

    def generate_content(self, model, contents, config=None):
        self.fake.calls.append(("generate_content", model, contents, config))
        result = self.fake.content.get(model)
        if isinstance(result, Exception):
            raise result
        if callable(result):
            return result(contents, config)
        return result

    def generate_videos(self, **kwargs):
        self.fake.calls.append(("generate_videos", kwargs))
        if isinstance(self.fake.video_error, Exception):
            raise self.fake.video_error
        return self.fake.video_ops.pop(0)


class _Operations:
    def __init__(self, fake):
        self.fake = fake

    def get(self, operation):
        self.fake.calls.append(("operations.get", operation.name))
        return self.fake.video_ops.pop(0)


class _Chat:
    def __init__(self, fake):
        self.fake = fake

    def send_message(self, message):
        self.fake.calls.append(("send_message", message))
        if isinstance(self.fake.chat_reply, Exception):
            raise self.fake.chat_reply
        return text_response(self.fake.chat_reply) if self.fake.chat_reply else types.GenerateContentResponse()


class _Chats:
    def __init__(self, fake):
        self.fake = fake

    def create(self, model, config=None):
        self.fake.calls.append(("chats.create", model, config))
        return _Chat(self.fake)


class FakeGenai:
    """Stands in for ``genai.Client``: calling it returns itself."""

    def __init__(self):
        self.calls = []
        self.api_keys = []
        self.content = {}
        self.video_ops = []
        self.video_error = None
        self.chat_reply = "Try a low angle for scene two."
        self.models = _Models(self)
        self.operations = _Operations(self)
        self.chats = _Chats(self)

    def __call__(self, api_key=None, **kwargs):
        self.api_keys.append(api_key)
        return self

    def calls_named(self, name):
        return [c for c in self.calls if c[0] == name]


class FakeDownload:
    def __init__(self, content=b"\x00\x00\x00\x18ftypmp42", status_code=200):
        self.content = content
        self.status_code = status_code
        self.requests = []

    def __call__(self, url, params=None, timeout=None, **kwargs):
        self.requests.append((url, params))
        return self

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


@pytest.fixture
def fake_genai(monkeypatch):
    fake = FakeGenai()
    monkeypatch.setattr(gemini_client.genai, "Client", fake)
    return fake


@pytest.fixture
def fake_download(monkeypatch):
    download = FakeDownload()
    monkeypatch.setattr(gemini_client.requests, "get", download)
    return download


@pytest.fixture
def config(tmp_path):
    return Config(
        gemini_api_key="test-key",
        output_dir=tmp_path / "output",
        video_poll_interval=0,
        video_max_polls=3,
    )


@pytest.fixture
def media():
    return MediaStore()


@pytest.fixture
def scene_json():
    return json.dumps([
        {"order": 1, "description": "A dim room, Alice stands by the window.", "dialogue": "Hello?"},
        {"order": 2, "description": "Alice waves at the camera.", "dialogue": "Over here!"},
    ])
