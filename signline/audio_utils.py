# ============================================================
# audio_utils.py — Wrap Gemini TTS PCM Output as WAV
# ============================================================
# Gemini speech generation returns raw 16-bit little-endian mono
# PCM ("audio/L16;codec=pcm;rate=24000"). Browsers cannot play
# that directly, so announcements ship a WAV container instead.
# ============================================================

import base64
import io
import re
import wave

DEFAULT_SAMPLE_RATE = 24000
SAMPLE_WIDTH_BYTES = 2
CHANNELS = 1

_RATE_PATTERN = re.compile(r"rate=(\d+)")


def sample_rate_from_mime(mime_type: str | None) -> int:
    """Read the sample rate from an "audio/L16;...;rate=24000" MIME type."""
    if mime_type:
        match = _RATE_PATTERN.search(mime_type)
        if match:
            return int(match.group(1))
    return DEFAULT_SAMPLE_RATE


def pcm_to_wav(pcm_bytes: bytes, sample_rate: int = DEFAULT_SAMPLE_RATE) -> bytes:
    """Prepend a RIFF/WAVE header to raw PCM samples."""
    with io.BytesIO() as buffer:
        with wave.open(buffer, "wb") as wave_file:
            wave_file.setnchannels(CHANNELS)
            wave_file.setsampwidth(SAMPLE_WIDTH_BYTES)
            wave_file.setframerate(sample_rate)
            wave_file.writeframes(pcm_bytes)
        return buffer.getvalue()


def pcm_b64_to_wav_b64(audio_b64: str, mime_type: str | None) -> tuple[str, str]:
    """
    Convert base64 PCM from Gemini into base64 WAV.

    Returns:
        (wav_base64, "audio/wav"). Audio that is already WAV is
        passed through unchanged.
    """
    if mime_type and "wav" in mime_type.lower():
        return audio_b64, "audio/wav"
    pcm_bytes = base64.b64decode(audio_b64)
    wav_bytes = pcm_to_wav(pcm_bytes, sample_rate_from_mime(mime_type))
    return base64.b64encode(wav_bytes).decode("utf-8"), "audio/wav"
