"""Settings and API key management."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_DIR = Path.home() / ".sketchflow"
CONFIG_FILE = CONFIG_DIR / "config.json"

# Gemini models
SCRIPT_MODEL = "gemini-3-pro-preview"
IMAGE_MODEL = "gemini-3-pro-image-preview"
VIDEO_MODEL = "veo-3.1-fast-generate-preview"
TTS_MODEL = "gemini-2.5-flash-preview-tts"
TRANSCRIBE_MODEL = "gemini-3-flash-preview"
CHAT_MODEL = "gemini-3-pro-preview"

# Every storyboard frame and animation is rendered in the same look
PENCIL_SKETCH_MODIFIER = (
    "Rough pencil sketch storyboard frame, hand-drawn graphite lines, "
    "charcoal shading, black and white, loose cross-hatching:"
)
ANIMATION_STYLE = (
    "Maintain rough pencil sketch style with charcoal textures. "
    "Animation should be fluid but look like moving sketches."
)

# Storyboard frames
ASPECT_RATIO = "16:9"
IMAGE_SIZES = ("1K", "2K", "4K")
DEFAULT_IMAGE_SIZE = "1K"

# Veo output
VIDEO_RESOLUTION = "720p"
VIDEO_POLL_INTERVAL = 10.0  # seconds
VIDEO_MAX_POLLS = 90        # 15 minutes at the default interval

# Speech (Gemini TTS returns raw 16-bit mono PCM at 24 kHz)
TTS_VOICE = "Kore"
TTS_SAMPLE_RATE = 24000
TTS_CHANNELS = 1
TTS_BITS_PER_SAMPLE = 16

DEFAULT_PROJECT_TITLE = "My New Animation"

ASSISTANT_INSTRUCTION = (
    "You are SketchFlow Assistant, a helpful AI specialized in scriptwriting, "
    "storyboarding, and animation. You help users refine their creative projects. "
    "Focus on visual descriptions and storytelling."
)


@dataclass(frozen=True)
class VideoPollPolicy:
    """How long to wait on a Veo operation before giving up."""
    interval: float = VIDEO_POLL_INTERVAL
    max_attempts: int = VIDEO_MAX_POLLS


@dataclass
class Config:
    gemini_api_key: str = ""
    output_dir: Path = field(default_factory=lambda: Path("output"))
    image_size: str = DEFAULT_IMAGE_SIZE
    video_poll_interval: float = VIDEO_POLL_INTERVAL
    video_max_polls: int = VIDEO_MAX_POLLS

    @classmethod
    def load(cls) -> "Config":
        """Load config from env vars then config file."""
        cfg = cls()

        # Env var takes priority
        gemini_key = os.environ.get("GEMINI_API_KEY", "") or os.environ.get("API_KEY", "")

        # Fall back to config file
        if CONFIG_FILE.exists():
            try:
                data = json.loads(CONFIG_FILE.read_text(encoding="utf-8-sig"))
                if not gemini_key:
                    gemini_key = data.get("gemini_api_key", "")
                if out := data.get("output_dir"):
                    cfg.output_dir = Path(out)
                if (size := data.get("image_size")) in IMAGE_SIZES:
                    cfg.image_size = size
                if data.get("video_poll_interval") is not None:
                    cfg.video_poll_interval = float(data["video_poll_interval"])
                if data.get("video_max_polls") is not None:
                    cfg.video_max_polls = int(data["video_max_polls"])
            except (json.JSONDecodeError, OSError, TypeError, ValueError):
                pass

        cfg.gemini_api_key = gemini_key
        return cfg

    def save(self) -> None:
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        data = {
            "gemini_api_key": self.gemini_api_key,
            "output_dir": str(self.output_dir),
            "image_size": self.image_size,
            "video_poll_interval": self.video_poll_interval,
            "video_max_polls": self.video_max_polls,
        }
        CONFIG_FILE.write_text(json.dumps(data, indent=2))

    def poll_policy(self) -> VideoPollPolicy:
        return VideoPollPolicy(
            interval=self.video_poll_interval,
            max_attempts=self.video_max_polls,
        )
