"""SketchFlow Assistant: scriptwriting chat with optional voice input."""
from __future__ import annotations

import base64
import logging
import threading

from .config import Config
from .errors import ProviderError
from .models import ChatMessage
from .utils import gemini_client as gemini

log = logging.getLogger(__name__)

UNREACHABLE_REPLY = "Error: Could not reach the AI assistant."


class ChatSession:
    def __init__(self, config: Config) -> None:
        self.config = config
        self._messages: list[ChatMessage] = []
        self._lock = threading.Lock()

    @property
    def messages(self) -> list[ChatMessage]:
        with self._lock:
            return list(self._messages)

    def _append(self, message: ChatMessage) -> None:
        with self._lock:
            self._messages.append(message)

    def send(self, text: str) -> ChatMessage | None:
        """Post a user message and append the assistant's reply.

        Provider failures become an in-transcript error reply.
        """
        if not text.strip():
            return None
        self._append(ChatMessage(role="user", text=text))
        try:
            reply_text = gemini.chat_with_gemini(self.messages, self.config)
        except ProviderError as e:
            log.warning("Chat failed: %s", e)
            reply_text = UNREACHABLE_REPLY
        reply = ChatMessage(role="assistant", text=reply_text)
        self._append(reply)
        return reply

    def transcribe(self, audio: bytes, mime_type: str = "audio/webm") -> str:
        """Turn a finished microphone recording into text; empty on failure."""
        if not audio:
            return ""
        encoded = base64.b64encode(audio).decode("ascii")
        try:
            return gemini.transcribe_audio(encoded, self.config, mime_type=mime_type)
        except ProviderError as e:
            log.warning("Transcription failed: %s", e)
            return ""

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()
