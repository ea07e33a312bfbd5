"""Tests for the Gemini wrapper against a stubbed google-genai client."""

import base64
import io
from types import SimpleNamespace

import pytest
from PIL import Image

from signline.config import KeyRotator
from signline.gemini_client import GeminiClient, GeminiClientError
from signline.image_utils import MAX_SNAPSHOT_SIDE, prepare_snapshot


def _usage(prompt=10, candidates=5):
    return SimpleNamespace(
        prompt_token_count=prompt,
        candidates_token_count=candidates,
        total_token_count=prompt + candidates,
        cached_content_token_count=None,
    )


class StubModels:
    """Plays back a queue of responses or exceptions for generate_content."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    async def generate_content(self, model, contents, config):
        self.requests.append({"model": model, "contents": contents, "config": config})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class StubRotator(KeyRotator):
    def __init__(self, models: StubModels):
        super().__init__(keys=["key-a", "key-b"])
        self.models = models
        self.keys_used = []

    def get_client(self):
        self.keys_used.append(self.next_key())
        return SimpleNamespace(aio=SimpleNamespace(models=self.models))


def _jpeg_b64(size=(1024, 512)) -> str:
    buffer = io.BytesIO()
    Image.new("RGB", size, "white").save(buffer, format="JPEG")
    return base64.b64encode(buffer.getvalue()).decode()


class TestGenerate:

    @pytest.mark.asyncio
    async def test_text_and_usage(self):
        models = StubModels([SimpleNamespace(text='{"ok": true}', usage_metadata=_usage())])
        client = GeminiClient("gemini-3-flash-preview", StubRotator(models))

        response = await client.generate("system", "human")

        assert response.text == '{"ok": true}'
        assert response.usage.input_tokens == 10
        assert response.usage.cached_input_tokens == 0
        request = models.requests[0]
        assert request["model"] == "gemini-3-flash-preview"
        assert request["config"].system_instruction == "system"
        assert request["config"].temperature == 0.1

    @pytest.mark.asyncio
    async def test_rate_limit_retries_on_next_key(self):
        models = StubModels([
            RuntimeError("429 RESOURCE_EXHAUSTED"),
            SimpleNamespace(text="done", usage_metadata=None),
        ])
        rotator = StubRotator(models)
        client = GeminiClient(rotator=rotator)

        response = await client.generate("system", "human")

        assert response.text == "done"
        assert response.usage is None
        assert rotator.keys_used == ["key-a", "key-b"]

    @pytest.mark.asyncio
    async def test_other_errors_are_wrapped(self):
        client = GeminiClient(rotator=StubRotator(StubModels([RuntimeError("401 API key not valid")])))
        with pytest.raises(GeminiClientError, match="401"):
            await client.generate("system", "human")

    @pytest.mark.asyncio
    async def test_image_is_downscaled_and_attached(self):
        models = StubModels([SimpleNamespace(text='{"letter": "A"}', usage_metadata=_usage())])
        client = GeminiClient(rotator=StubRotator(models))

        await client.generate_with_image("system", "human", _jpeg_b64())

        image_part, prompt = models.requests[0]["contents"]
        assert prompt == "human"
        assert image_part.inline_data.mime_type == "image/jpeg"
        sent = Image.open(io.BytesIO(image_part.inline_data.data))
        assert max(sent.size) == MAX_SNAPSHOT_SIDE

    @pytest.mark.asyncio
    async def test_garbage_image_raises_client_error(self):
        client = GeminiClient(rotator=StubRotator(StubModels([])))
        with pytest.raises(GeminiClientError):
            await client.generate_with_image("system", "human", "bm90IGFuIGltYWdl")


class TestGenerateAudio:

    @pytest.mark.asyncio
    async def test_returns_base64_pcm(self):
        blob = SimpleNamespace(data=b"\x00\x01" * 8, mime_type="audio/L16;codec=pcm;rate=24000")
        response = SimpleNamespace(
            candidates=[SimpleNamespace(content=SimpleNamespace(parts=[SimpleNamespace(inline_data=blob)]))],
            usage_metadata=_usage(20, 300),
        )
        models = StubModels([response])
        client = GeminiClient(rotator=StubRotator(models))

        audio = await client.generate_audio("Say hello", voice_name="Puck", model="gemini-2.5-flash-preview-tts")

        assert base64.b64decode(audio.audio_base64) == blob.data
        assert audio.mime_type.startswith("audio/L16")
        assert audio.usage.output_tokens == 300
        config = models.requests[0]["config"]
        assert config.response_modalities == ["AUDIO"]
        assert config.speech_config.voice_config.prebuilt_voice_config.voice_name == "Puck"

    @pytest.mark.asyncio
    async def test_empty_audio_raises(self):
        blob = SimpleNamespace(data=b"", mime_type="audio/L16")
        response = SimpleNamespace(
            candidates=[SimpleNamespace(content=SimpleNamespace(parts=[SimpleNamespace(inline_data=blob)]))],
            usage_metadata=None,
        )
        client = GeminiClient(rotator=StubRotator(StubModels([response])))
        with pytest.raises(GeminiClientError, match="no audio"):
            await client.generate_audio("Say hello")


def test_prepare_snapshot_keeps_small_images():
    image = prepare_snapshot("data:image/jpeg;base64," + _jpeg_b64((320, 240)))
    assert image.size == (320, 240)


def test_cost_bound_to_client_model():
    client = GeminiClient("gemini-3-flash-preview", StubRotator(StubModels([])))
    assert client.calculate_cost(1000, 200) == pytest.approx(0.0011)
