"""Tests for the shared agent machinery: JSON extraction, envelopes, debug logs."""

import json

import pytest

from conftest import FakeGeminiClient, validation_reply
from signline.agent.agents import ValidationAgent, ValidationInput
from signline.agent.base import extract_json_object


class TestExtractJsonObject:

    def test_object_wrapped_in_prose(self):
        text = 'Sure! {"isValid": true, "matchPercentage": 100} Hope that helps!'
        assert json.loads(extract_json_object(text)) == {"isValid": True, "matchPercentage": 100}

    def test_markdown_fence(self):
        text = '```json\n{"letter": "A"}\n```'
        assert extract_json_object(text) == '{"letter": "A"}'

    def test_braces_inside_strings(self):
        text = 'Result: {"reasoning": "looked like a } brace {", "ok": true} done'
        assert json.loads(extract_json_object(text))["reasoning"] == "looked like a } brace {"

    def test_nested_objects(self):
        text = 'x {"validation": {"isValid": false}, "feedback": {"tips": ["a"]}} y'
        assert json.loads(extract_json_object(text))["validation"] == {"isValid": False}

    def test_skips_stray_brace_before_real_object(self):
        text = 'Use {curly} braces: {"letter": "B"}'
        assert extract_json_object(text) == '{"letter": "B"}'

    def test_no_braces(self):
        assert extract_json_object("I could not tell.") is None

    def test_unbalanced(self):
        assert extract_json_object('{"isValid": true') is None


def _input():
    return ValidationInput(expected_word="hello", level=1, transcription="helo", duration_ms=3000)


class TestBaseAgentRun:

    @pytest.mark.asyncio
    async def test_success_envelope(self):
        client = FakeGeminiClient([f"Here you go: {json.dumps(validation_reply(80, False))}"])
        result = await ValidationAgent().run(client, _input(), "validation_0")

        assert result.ok is True
        assert result.error is None
        assert result.content.match_percentage == 80
        assert result.metadata.agent_name == "validation_agent"
        assert result.metadata.input_tokens == 1000
        assert result.metadata.cost == pytest.approx(0.0011)

    @pytest.mark.asyncio
    async def test_prompt_carries_normalized_words(self):
        client = FakeGeminiClient([json.dumps(validation_reply())])
        await ValidationAgent().run(client, _input(), "validation_0")
        assert 'Expected Word: "hello"' in client.calls[0]["human"]
        assert 'Detected Transcription: "helo"' in client.calls[0]["human"]

    @pytest.mark.asyncio
    async def test_no_json_keeps_cost(self):
        client = FakeGeminiClient(["I am not sure what was signed."])
        result = await ValidationAgent().run(client, _input(), "validation_0")

        assert result.ok is False
        assert result.content is None
        assert result.error.code == "no_json"
        assert result.metadata.cost > 0

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client = FakeGeminiClient(["{'isValid': true}"])
        result = await ValidationAgent().run(client, _input(), "validation_0")

        assert result.ok is False
        assert result.error.code == "invalid_json"
        assert result.error.message.startswith("Invalid JSON in response")

    @pytest.mark.asyncio
    async def test_schema_violation(self):
        client = FakeGeminiClient([json.dumps(validation_reply(150))])
        result = await ValidationAgent().run(client, _input(), "validation_0")

        assert result.ok is False
        assert result.error.code == "schema_invalid"
        assert result.error.message.startswith("Schema validation failed")
        assert result.metadata.output_tokens == 200

    @pytest.mark.asyncio
    async def test_client_exception_never_raises(self, transport_error):
        client = FakeGeminiClient(error=transport_error)
        result = await ValidationAgent().run(client, _input(), "validation_0")

        assert result.ok is False
        assert result.error.code == "call_failed"
        assert "503" in result.error.message
        assert result.metadata.cost == 0
        assert result.metadata.input_tokens == 0

    @pytest.mark.asyncio
    async def test_missing_usage_counts_zero_tokens(self):
        client = FakeGeminiClient([json.dumps(validation_reply())], usage=None)
        result = await ValidationAgent().run(client, _input(), "validation_0")

        assert result.ok is True
        assert result.metadata.input_tokens == 0
        assert result.metadata.cost == 0


class TestDebugLogs:

    @pytest.mark.asyncio
    async def test_writes_input_and_output_logs(self, tmp_path):
        client = FakeGeminiClient([json.dumps(validation_reply())])
        await ValidationAgent().run(client, _input(), "validation_0", str(tmp_path))

        names = sorted(p.name for p in tmp_path.iterdir())
        assert len(names) == 2
        assert any(n.endswith("_validation_agent_input.log") for n in names)
        assert any(n.endswith("_validation_agent_output.log") for n in names)

    @pytest.mark.asyncio
    async def test_writes_error_log_with_raw_response(self, tmp_path):
        client = FakeGeminiClient(["no json here"])
        await ValidationAgent().run(client, _input(), "validation_0", str(tmp_path))

        error_logs = list(tmp_path.glob("*_validation_agent_error.log"))
        assert len(error_logs) == 1
        assert "no json here" in error_logs[0].read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_unwritable_log_dir_does_not_fail_the_call(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file in the way", encoding="utf-8")
        client = FakeGeminiClient([json.dumps(validation_reply())])

        result = await ValidationAgent().run(client, _input(), "validation_0", str(blocker))

        assert result.ok is True
