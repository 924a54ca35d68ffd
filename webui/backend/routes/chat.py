"""Assistant chat and voice transcription routes."""
from __future__ import annotations

from typing import Annotated

from litestar import get, post
from litestar.datastructures import UploadFile
from litestar.enums import RequestEncodingType
from litestar.params import Body

from webui.backend import state
from webui.backend.models import ChatMessageOut, ChatRequest, Transcription


def _transcript() -> list[ChatMessageOut]:
    return [ChatMessageOut(role=m.role, text=m.text) for m in state.chat_session.messages]


@get("/api/chat")
async def get_chat() -> list[ChatMessageOut]:
    return _transcript()


@post("/api/chat", sync_to_thread=True)
def send_chat(data: ChatRequest) -> list[ChatMessageOut]:
    state.chat_session.send(data.text)
    return _transcript()


@post("/api/chat/transcribe", sync_to_thread=True)
def transcribe(
    data: Annotated[UploadFile, Body(media_type=RequestEncodingType.MULTI_PART)],
) -> Transcription:
    """Transcribe a finished microphone recording (webm/ogg/wav upload)."""
    audio = data.file.read()
    mime_type = data.content_type or "audio/webm"
    return Transcription(text=state.chat_session.transcribe(audio, mime_type))
