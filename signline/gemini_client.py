# ============================================================
# gemini_client.py — Async Gemini Client (text, image, audio)
# ============================================================
# Thin wrapper over google-genai used by every agent. Each call
# takes the next key from the KeyRotator; 429/RESOURCE_EXHAUSTED
# responses are retried with exponential backoff on a fresh key.
# Any other failure is raised as GeminiClientError for the
# calling agent to convert into its result envelope.
# ============================================================

import base64
from dataclasses import dataclass

from google.genai import types
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from signline.config import (
    GENERATION_MAX_OUTPUT_TOKENS,
    GENERATION_TEMPERATURE,
    MAX_RATE_LIMIT_RETRIES,
    MODEL_TTS,
    MODEL_VALIDATION,
    TTS_VOICE_NAME,
    KeyRotator,
)
from signline.costs import calculate_cost
from signline.image_utils import prepare_snapshot, pil_to_bytes

LOG_PREFIX = "[GEMINI_CLIENT]"


class GeminiClientError(RuntimeError):
    """Raised when a Gemini call fails (transport, auth, empty reply)."""


@dataclass(frozen=True)
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cached_input_tokens: int = 0


@dataclass(frozen=True)
class GenerateResponse:
    text: str
    usage: TokenUsage | None = None


@dataclass(frozen=True)
class AudioResponse:
    audio_base64: str
    mime_type: str | None = None
    usage: TokenUsage | None = None


def _is_rate_limited(exc: BaseException) -> bool:
    message = str(exc)
    return "429" in message or "RESOURCE_EXHAUSTED" in message


def _log_rate_limit(retry_state) -> None:
    attempt = retry_state.attempt_number
    print(f"  ⚠️ 429 rate limit hit, rotating key (attempt {attempt}/{MAX_RATE_LIMIT_RETRIES})")


def _usage_from(response) -> TokenUsage | None:
    meta = getattr(response, "usage_metadata", None)
    if meta is None:
        return None
    return TokenUsage(
        input_tokens=meta.prompt_token_count or 0,
        output_tokens=meta.candidates_token_count or 0,
        total_tokens=meta.total_token_count or 0,
        cached_input_tokens=meta.cached_content_token_count or 0,
    )


class GeminiClient:
    """Gemini client bound to one model name."""

    def __init__(
        self,
        model_name: str = MODEL_VALIDATION,
        rotator: KeyRotator | None = None,
        temperature: float = GENERATION_TEMPERATURE,
        max_output_tokens: int = GENERATION_MAX_OUTPUT_TOKENS,
        max_retries: int = MAX_RATE_LIMIT_RETRIES,
    ):
        self.model_name = model_name
        self.rotator = rotator or KeyRotator()
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        self._max_retries = max_retries
        print(f"{LOG_PREFIX} Initialized with model: {model_name}")

    async def _call_with_retry(self, model: str, contents, config: types.GenerateContentConfig):
        """Call Gemini, rotating keys and backing off on 429 errors."""
        response = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(multiplier=1, min=1, max=8),
            retry=retry_if_exception(_is_rate_limited),
            before_sleep=_log_rate_limit,
            reraise=True,
        ):
            with attempt:
                client = self.rotator.get_client()
                response = await client.aio.models.generate_content(
                    model=model,
                    contents=contents,
                    config=config,
                )
        return response

    def _text_config(self, system_message: str) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            system_instruction=system_message,
            temperature=self._temperature,
            max_output_tokens=self._max_output_tokens,
        )

    async def generate(self, system_message: str, human_message: str) -> GenerateResponse:
        """Generate text from a system + human message pair."""
        print(f"{LOG_PREFIX} Generating content [generate]")
        try:
            response = await self._call_with_retry(
                self.model_name,
                human_message,
                self._text_config(system_message),
            )
        except Exception as e:
            print(f"{LOG_PREFIX} ❌ Generation error: {e} [generate]")
            raise GeminiClientError(str(e)) from e

        usage = _usage_from(response)
        print(
            f"{LOG_PREFIX} Generation complete: "
            f"tokens={usage.input_tokens if usage else 0}→{usage.output_tokens if usage else 0} [generate]"
        )
        return GenerateResponse(text=response.text or "", usage=usage)

    async def generate_with_image(
        self,
        system_message: str,
        human_message: str,
        image_b64: str,
        mime_type: str = "image/jpeg",
    ) -> GenerateResponse:
        """Generate text from a prompt plus one base64 image (camera snapshot)."""
        print(f"{LOG_PREFIX} Generating content with image [generate_with_image]")
        try:
            image = prepare_snapshot(image_b64)
            image_format = "PNG" if mime_type == "image/png" else "JPEG"
            image_part = types.Part.from_bytes(
                data=pil_to_bytes(image, format=image_format),
                mime_type=mime_type,
            )
            response = await self._call_with_retry(
                self.model_name,
                [image_part, human_message],
                self._text_config(system_message),
            )
        except Exception as e:
            print(f"{LOG_PREFIX} ❌ Generation with image error: {e} [generate_with_image]")
            raise GeminiClientError(str(e)) from e

        usage = _usage_from(response)
        print(
            f"{LOG_PREFIX} Generation with image complete: "
            f"tokens={usage.input_tokens if usage else 0}→{usage.output_tokens if usage else 0} [generate_with_image]"
        )
        return GenerateResponse(text=response.text or "", usage=usage)

    async def generate_audio(
        self,
        script: str,
        voice_name: str = TTS_VOICE_NAME,
        model: str = MODEL_TTS,
    ) -> AudioResponse:
        """Speak a persona script with a prebuilt voice; returns base64 PCM."""
        print(f"{LOG_PREFIX} Generating audio with voice {voice_name} [generate_audio]")
        config = types.GenerateContentConfig(
            response_modalities=["AUDIO"],
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice_name),
                ),
            ),
        )
        try:
            response = await self._call_with_retry(model, script, config)
            blob = response.candidates[0].content.parts[0].inline_data
        except Exception as e:
            print(f"{LOG_PREFIX} ❌ Audio generation error: {e} [generate_audio]")
            raise GeminiClientError(str(e)) from e

        if blob is None or not blob.data:
            raise GeminiClientError("Gemini returned no audio data")

        usage = _usage_from(response)
        print(
            f"{LOG_PREFIX} Audio generation complete: {len(blob.data)} bytes, "
            f"tokens={usage.input_tokens if usage else 0}→{usage.output_tokens if usage else 0} [generate_audio]"
        )
        return AudioResponse(
            audio_base64=base64.b64encode(blob.data).decode("utf-8"),
            mime_type=blob.mime_type,
            usage=usage,
        )

    def calculate_cost(self, input_tokens: int, output_tokens: int, cached_input_tokens: int = 0) -> float:
        """Cost of a call against this client's model."""
        return calculate_cost(input_tokens, output_tokens, self.model_name, cached_input_tokens)
