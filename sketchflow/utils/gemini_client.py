"""Gemini request shaping for script analysis, storyboards, Veo clips, speech and chat."""
from __future__ import annotations

import base64
import json
import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator

import requests
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..config import (
    ANIMATION_STYLE,
    ASPECT_RATIO,
    ASSISTANT_INSTRUCTION,
    CHAT_MODEL,
    IMAGE_MODEL,
    IMAGE_SIZES,
    PENCIL_SKETCH_MODIFIER,
    SCRIPT_MODEL,
    TRANSCRIBE_MODEL,
    TTS_MODEL,
    TTS_VOICE,
    VIDEO_MODEL,
    VIDEO_RESOLUTION,
    Config,
    VideoPollPolicy,
)
from ..errors import (
    ApiKeyMissingError,
    AuthExpiredError,
    GenerationCancelled,
    ProviderError,
    ScriptParseError,
    VideoTimeoutError,
)
from ..media import MediaStore, media_store
from ..models import ChatMessage, SceneOutline
from ..wavutil import pcm_to_wav

log = logging.getLogger(__name__)

# Returned by Gemini when the selected key/project has gone away
AUTH_EXPIRED_MARKER = "Requested entity was not found"
AUTH_STATUS_CODES = (401, 403)

CHAT_FALLBACK_REPLY = "Sorry, I couldn't process that."
DOWNLOAD_TIMEOUT = 120  # seconds


def _client(config: Config) -> genai.Client:
    if not config.gemini_api_key:
        raise ApiKeyMissingError("GEMINI_API_KEY is not set.")
    return genai.Client(api_key=config.gemini_api_key)


def _failure(action: str, detail: object, code: int | None = None, raw: str = "") -> ProviderError:
    """Build the error for a failed call, tagging rejected credentials."""
    msg = f"{action} failed: {detail}"
    if code in AUTH_STATUS_CODES or AUTH_EXPIRED_MARKER in f"{msg} {raw}":
        log.warning("%s rejected credentials: %s", action, detail)
        return AuthExpiredError(msg)
    return ProviderError(msg)


@contextmanager
def _provider_errors(action: str) -> Iterator[None]:
    """Translate SDK and HTTP failures into the ProviderError family."""
    try:
        yield
    except (ProviderError, GenerationCancelled):
        raise
    except genai_errors.APIError as e:
        raise _failure(action, e.message or e, e.code, raw=str(e)) from e
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        raise _failure(action, e, status) from e
    except requests.RequestException as e:
        raise ProviderError(f"{action} failed: {e}") from e


def _inline_data(response) -> types.Blob | None:
    """Return the first inline-data part of the first candidate, if any."""
    for candidate in response.candidates or []:
        content = candidate.content
        if content is None:
            continue
        for part in content.parts or []:
            if part.inline_data is not None and part.inline_data.data:
                return part.inline_data
    return None


def _as_bytes(data: bytes | str) -> bytes:
    # The SDK hands back raw bytes; REST-shaped payloads carry base64 text.
    if isinstance(data, str):
        return base64.b64decode(data)
    return bytes(data)


def _split_data_uri(image: str) -> tuple[bytes, str]:
    """Decode a ``data:`` URI (or bare base64) into ``(bytes, mime_type)``."""
    mime_type = "image/png"
    payload = image
    if image.startswith("data:") and "," in image:
        header, payload = image.split(",", 1)
        mime_type = header[5:].split(";", 1)[0] or mime_type
    return base64.b64decode(payload), mime_type


# ---------------------------------------------------------------------------
# Script analysis
# ---------------------------------------------------------------------------

def analyze_script(script: str, config: Config) -> list[dict]:
    """Break a script into sequential storyboard scenes.

    Returns a list of ``{"order", "description", "dialogue"}`` dicts in the
    order the model produced them. An empty response yields an empty list;
    a non-JSON response raises ``ScriptParseError``.
    """
    client = _client(config)
    prompt = (
        "Analyze this script and break it into sequential scenes for a storyboard. "
        "For each scene, provide a descriptive action summary and dialogue.\n"
        f"Script: {script}"
    )
    log.info("Analyzing script (%d chars) with %s", len(script), SCRIPT_MODEL)

    with _provider_errors("Script analysis"):
        response = client.models.generate_content(
            model=SCRIPT_MODEL,
            contents=prompt,
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=list[SceneOutline],
            ),
        )

    text = response.text or "[]"
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ScriptParseError(f"Scene analysis returned invalid JSON: {text[:200]}") from e
    if not isinstance(data, list):
        raise ScriptParseError(f"Scene analysis returned {type(data).__name__}, expected a list")

    log.info("Script analysis produced %d scenes", len(data))
    return data


# ---------------------------------------------------------------------------
# Storyboard frames
# ---------------------------------------------------------------------------

def generate_storyboard_image(prompt: str, size: str, config: Config) -> str:
    """Render one 16:9 pencil-sketch frame and return it as a PNG data URI."""
    if size not in IMAGE_SIZES:
        raise ValueError(f"Unsupported image size {size!r}; expected one of {IMAGE_SIZES}")

    client = _client(config)
    full_prompt = f"{PENCIL_SKETCH_MODIFIER} {prompt}"
    log.info("Generating %s storyboard frame: %s", size, prompt[:80])

    with _provider_errors("Storyboard generation"):
        response = client.models.generate_content(
            model=IMAGE_MODEL,
            contents=[full_prompt],
            config=types.GenerateContentConfig(
                image_config=types.ImageConfig(
                    aspect_ratio=ASPECT_RATIO,
                    image_size=size,
                ),
            ),
        )

    blob = _inline_data(response)
    if blob is None:
        raise ProviderError("No image data returned from Gemini")

    encoded = base64.b64encode(_as_bytes(blob.data)).decode("ascii")
    return f"data:{blob.mime_type or 'image/png'};base64,{encoded}"


# ---------------------------------------------------------------------------
# Veo animation
# ---------------------------------------------------------------------------

def _wait_for_operation(
    client: genai.Client,
    operation,
    poll: VideoPollPolicy,
    cancel_event: threading.Event | None,
):
    attempts = 0
    # done is None until the operation finishes
    while not operation.done:
        if attempts >= poll.max_attempts:
            raise VideoTimeoutError(
                f"Video generation did not finish after {attempts} polls "
                f"({attempts * poll.interval:.0f}s)"
            )
        if cancel_event is not None:
            if cancel_event.wait(poll.interval):
                raise GenerationCancelled("Video generation cancelled.")
        else:
            time.sleep(poll.interval)
        attempts += 1
        operation = client.operations.get(operation)
    return operation


def _download(url: str, api_key: str) -> bytes:
    """Fetch a generated file; the signed link needs the key re-appended."""
    with requests.get(url, params={"key": api_key}, timeout=DOWNLOAD_TIMEOUT) as r:
        r.raise_for_status()
        return r.content


def generate_scene_video(
    prompt: str,
    config: Config,
    seed_image: str | None = None,
    *,
    media: MediaStore = media_store,
    poll: VideoPollPolicy | None = None,
    cancel_event: threading.Event | None = None,
    progress_cb: Callable[[str], None] | None = None,
) -> str:
    """Animate a scene with Veo and return the media-store URI of the MP4.

    ``seed_image`` is the storyboard frame (data URI or bare base64) used to
    condition the first frame.
    """
    client = _client(config)
    poll = poll or config.poll_policy()
    full_prompt = f"{PENCIL_SKETCH_MODIFIER} {prompt}. {ANIMATION_STYLE}"

    kwargs = {
        "model": VIDEO_MODEL,
        "prompt": full_prompt,
        "config": types.GenerateVideosConfig(
            number_of_videos=1,
            resolution=VIDEO_RESOLUTION,
            aspect_ratio=ASPECT_RATIO,
        ),
    }
    if seed_image:
        image_bytes, mime_type = _split_data_uri(seed_image)
        kwargs["image"] = types.Image(image_bytes=image_bytes, mime_type=mime_type)

    if progress_cb:
        progress_cb(f"  Video gen: Veo ({VIDEO_MODEL}) - submitting job...")
    log.info("Generating video with Veo: %s", prompt[:80])

    with _provider_errors("Video generation"):
        operation = client.models.generate_videos(**kwargs)
        if progress_cb:
            progress_cb("  Video gen: job submitted, waiting for completion...")
        operation = _wait_for_operation(client, operation, poll, cancel_event)

        if operation.error:
            # error is a google.rpc.Status dict: {"code": ..., "message": ...}
            error = operation.error
            raise _failure(
                "Veo generation", error.get("message") or error, error.get("code"), raw=str(error)
            )

        generated = operation.response.generated_videos if operation.response else None
        video = generated[0].video if generated else None
        if video is None or not video.uri:
            raise ProviderError("Video generation failed: no download link")

        log.info("Veo video URI: %s", video.uri)
        if progress_cb:
            progress_cb("  Video gen: download ready, fetching clip...")
        data = _download(video.uri, config.gemini_api_key)

    return media.put(data, "video/mp4")


# ---------------------------------------------------------------------------
# Speech
# ---------------------------------------------------------------------------

def generate_dialogue_speech(
    text: str,
    config: Config,
    *,
    media: MediaStore = media_store,
) -> str:
    """Narrate a line of dialogue and return the media-store URI of the WAV."""
    client = _client(config)
    log.info("Generating speech (%s): %s", TTS_VOICE, text[:60])

    with _provider_errors("Speech generation"):
        response = client.models.generate_content(
            model=TTS_MODEL,
            contents=f"Read this dialogue naturally as the character: {text}",
            config=types.GenerateContentConfig(
                response_modalities=["AUDIO"],
                speech_config=types.SpeechConfig(
                    voice_config=types.VoiceConfig(
                        prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=TTS_VOICE),
                    ),
                ),
            ),
        )

    blob = _inline_data(response)
    if blob is None:
        raise ProviderError("No audio data returned")

    return media.put(pcm_to_wav(_as_bytes(blob.data)), "audio/wav")


# ---------------------------------------------------------------------------
# Transcription & chat
# ---------------------------------------------------------------------------

def transcribe_audio(base64_audio: str, config: Config, mime_type: str = "audio/webm") -> str:
    client = _client(config)
    with _provider_errors("Transcription"):
        response = client.models.generate_content(
            model=TRANSCRIBE_MODEL,
            contents=[
                types.Part.from_bytes(data=base64.b64decode(base64_audio), mime_type=mime_type),
                "Transcribe this audio clip accurately.",
            ],
        )
    return response.text or ""


def chat_with_gemini(messages: list[ChatMessage], config: Config) -> str:
    """Answer the latest message in a fresh, instruction-scoped chat session.

    Earlier turns are not replayed; each call starts a new session.
    """
    if not messages:
        raise ValueError("chat_with_gemini needs at least one message")

    client = _client(config)
    with _provider_errors("Chat"):
        chat = client.chats.create(
            model=CHAT_MODEL,
            config=types.GenerateContentConfig(system_instruction=ASSISTANT_INSTRUCTION),
        )
        response = chat.send_message(messages[-1].text)
    return response.text or CHAT_FALLBACK_REPLY
