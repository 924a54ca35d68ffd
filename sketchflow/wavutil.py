"""Minimal RIFF/WAVE container for raw PCM returned by Gemini TTS."""
from __future__ import annotations

import struct

from .config import TTS_BITS_PER_SAMPLE, TTS_CHANNELS, TTS_SAMPLE_RATE

WAV_HEADER_SIZE = 44


def wav_header(
    pcm_length: int,
    sample_rate: int = TTS_SAMPLE_RATE,
    channels: int = TTS_CHANNELS,
    bits_per_sample: int = TTS_BITS_PER_SAMPLE,
) -> bytes:
    """Build the 44-byte canonical WAV header for ``pcm_length`` bytes of PCM."""
    if pcm_length < 0:
        raise ValueError(f"PCM length must be >= 0, got {pcm_length}")

    block_align = channels * (bits_per_sample // 8)
    byte_rate = sample_rate * block_align

    return struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        36 + pcm_length,
        b"WAVE",
        b"fmt ",
        16,                 # fmt chunk size
        1,                  # PCM
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
        b"data",
        pcm_length,
    )


def pcm_to_wav(pcm: bytes) -> bytes:
    return wav_header(len(pcm)) + pcm
