"""Shared fixtures: an in-memory stand-in for the Gemini client."""

import base64
import json

import pytest

from signline.costs import GEMINI_3_FLASH, calculate_cost
from signline.gemini_client import AudioResponse, GeminiClientError, GenerateResponse, TokenUsage
from signline.session import SessionStatus, create_initial_session

PCM_MIME_TYPE = "audio/L16;codec=pcm;rate=24000"


class FakeGeminiClient:
    """
    Replays canned model replies.

    replies is either a list (consumed in call order) or a dict mapping
    a substring of the system message to the reply for that agent, which
    keeps concurrent agent calls deterministic.
    """

    def __init__(
        self,
        replies=None,
        model_name: str = GEMINI_3_FLASH,
        usage: TokenUsage | None = TokenUsage(1000, 200, 1200, 0),
        error: Exception | None = None,
        audio_error: Exception | None = None,
        audio_pcm: bytes = b"\x01\x00" * 480,
    ):
        self.model_name = model_name
        self.replies = replies if replies is not None else []
        self.usage = usage
        self.error = error
        self.audio_error = audio_error
        self.audio_pcm = audio_pcm
        self.calls: list[dict] = []
        self.audio_calls: list[dict] = []

    def _next_reply(self, system_message: str) -> str:
        if isinstance(self.replies, dict):
            for marker, reply in self.replies.items():
                if marker in system_message:
                    return reply
            raise AssertionError(f"No canned reply for prompt: {system_message[:60]!r}")
        return self.replies.pop(0)

    async def generate(self, system_message: str, human_message: str) -> GenerateResponse:
        self.calls.append({"system": system_message, "human": human_message})
        if self.error is not None:
            raise self.error
        return GenerateResponse(text=self._next_reply(system_message), usage=self.usage)

    async def generate_with_image(self, system_message, human_message, image_b64, mime_type="image/jpeg"):
        self.calls.append({"system": system_message, "human": human_message, "image": image_b64})
        if self.error is not None:
            raise self.error
        return GenerateResponse(text=self._next_reply(system_message), usage=self.usage)

    async def generate_audio(self, script, voice_name="Kore", model="gemini-2.5-flash-preview-tts"):
        self.audio_calls.append({"script": script, "voice_name": voice_name, "model": model})
        if self.audio_error is not None:
            raise self.audio_error
        return AudioResponse(
            audio_base64=base64.b64encode(self.audio_pcm).decode("utf-8"),
            mime_type=PCM_MIME_TYPE,
            usage=TokenUsage(40, 600, 640, 0),
        )

    def calculate_cost(self, input_tokens, output_tokens, cached_input_tokens=0):
        return calculate_cost(input_tokens, output_tokens, self.model_name, cached_input_tokens)


def validation_reply(match: float = 100, is_valid: bool = True, letters=None) -> dict:
    reply = {"isValid": is_valid, "matchPercentage": match, "reasoning": "Compared letters."}
    if letters is not None:
        reply["letterByLetterMatch"] = letters
    return reply


def feedback_reply(tips=None) -> dict:
    return {
        "feedbackText": "Your H and E were crisp.",
        "technicalTips": tips or ["Keep the L thumb out", "Curl the O fully"],
        "encouragement": "Great run!",
    }


def consolidated_reply(match: float = 100, is_valid: bool = True) -> str:
    return json.dumps({"validation": validation_reply(match, is_valid), "feedback": feedback_reply()})


@pytest.fixture
def make_client():
    return FakeGeminiClient


@pytest.fixture
def hello_session():
    session = create_initial_session("north-south", "ns-hello", "HELLO", 1)
    return session.model_copy(
        update={
            "status": SessionStatus.STREAMING,
            "final_transcription": "HELLO",
            "duration_ms": 5000,
        }
    )


@pytest.fixture
def transport_error():
    return GeminiClientError("503 Service Unavailable")
