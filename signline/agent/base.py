# ============================================================
# agent/base.py — Base Model-Call Agent
# ============================================================
# Standardizes: build prompt → call Gemini → extract JSON →
# validate against a pydantic schema → write debug logs →
# return an AgentResult envelope.
#
# Agents NEVER raise to their caller and never touch graph
# state: every failure mode is encoded in the envelope, and the
# graph decides whether it is fatal.
# ============================================================

import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import ClassVar, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from signline.costs import LLMInferenceMetadata
from signline.gemini_client import GeminiClient, GenerateResponse

InputT = TypeVar("InputT", bound=BaseModel)
OutputT = TypeVar("OutputT", bound=BaseModel)

_RULE = "=" * 80
_THIN_RULE = "-" * 40


@dataclass(frozen=True)
class AgentError:
    message: str
    code: str | None = None


@dataclass(frozen=True)
class AgentResult(Generic[OutputT]):
    ok: bool
    content: OutputT | None
    metadata: LLMInferenceMetadata
    error: AgentError | None = None


def _balanced_object_end(text: str, start: int) -> int | None:
    """Index of the brace closing the object opened at text[start], if any."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return None


def extract_json_object(text: str) -> str | None:
    """
    Find the first top-level JSON object embedded in free text.

    Models like to wrap their answer in prose or Markdown fences
    ("Sure! {...} Hope that helps!"). Brace matching is string-aware,
    so braces inside JSON string values do not confuse it. A stray
    "{" in the prose that does not start valid JSON is skipped.

    Returns:
        The JSON substring, the first balanced-but-invalid candidate
        when nothing parses, or None when there are no braces at all.
    """
    first_candidate = None
    start = text.find("{")
    while start != -1:
        end = _balanced_object_end(text, start)
        if end is not None:
            candidate = text[start:end + 1]
            try:
                if isinstance(json.loads(candidate), dict):
                    return candidate
            except json.JSONDecodeError:
                pass
            if first_candidate is None:
                first_candidate = candidate
        start = text.find("{", start + 1)
    return first_candidate


def _log_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")


class BaseAgent(ABC, Generic[InputT, OutputT]):
    """One bounded model call with a fixed prompt template and a strict output schema."""

    output_schema: ClassVar[type[BaseModel]]

    def __init__(self, agent_name: str):
        self.agent_name = agent_name
        self.log_prefix = f"[{agent_name.upper()}]"

    # ── Hooks ─────────────────────────────────────────────────
    @abstractmethod
    def build_system_message(self) -> str:
        """Instructions plus the output-format contract."""

    @abstractmethod
    def build_human_message(self, input: InputT) -> str:
        """The serialized request."""

    async def invoke_model(
        self, client: GeminiClient, system_message: str, human_message: str, input: InputT
    ) -> GenerateResponse:
        return await client.generate(system_message, human_message)

    def describe_input(self, input: InputT) -> str:
        return input.model_dump_json(indent=2, by_alias=True)

    # ── Run ───────────────────────────────────────────────────
    async def run(
        self,
        client: GeminiClient,
        input: InputT,
        agent_key: str,
        output_dir: str | None = None,
    ) -> AgentResult[OutputT]:
        print(f"{self.log_prefix} Starting agent execution ({agent_key}) [run]")
        start_time = time.perf_counter()

        try:
            system_message = self.build_system_message()
            human_message = self.build_human_message(input)
            if output_dir:
                self._save_input_log(system_message, human_message, input, output_dir)
            response = await self.invoke_model(client, system_message, human_message, input)
        except Exception as e:
            error_message = str(e) or type(e).__name__
            print(f"{self.log_prefix} ❌ Error: {error_message} [run]")
            # The call never completed, so it cost nothing
            metadata = LLMInferenceMetadata(
                model=client.model_name,
                latency_ms=self._elapsed_ms(start_time),
                agent_name=self.agent_name,
            )
            if output_dir:
                self._save_error_log(error_message, "", output_dir)
            return AgentResult(
                ok=False,
                content=None,
                error=AgentError(error_message, "call_failed"),
                metadata=metadata,
            )

        usage = response.usage
        input_tokens = usage.input_tokens if usage else 0
        output_tokens = usage.output_tokens if usage else 0
        cached_tokens = usage.cached_input_tokens if usage else 0
        metadata = LLMInferenceMetadata(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cached_input_tokens=cached_tokens,
            cost=client.calculate_cost(input_tokens, output_tokens, cached_tokens),
            model=client.model_name,
            latency_ms=self._elapsed_ms(start_time),
            agent_name=self.agent_name,
        )
        return self._parse_response(response.text, metadata, output_dir)

    def _parse_response(
        self, text: str, metadata: LLMInferenceMetadata, output_dir: str | None
    ) -> AgentResult[OutputT]:
        raw_json = extract_json_object(text)
        if raw_json is None:
            return self._failure("No JSON in response", "no_json", text, metadata, output_dir)

        try:
            parsed = json.loads(raw_json)
        except json.JSONDecodeError as e:
            return self._failure(
                f"Invalid JSON in response: {e.msg}", "invalid_json", text, metadata, output_dir
            )

        try:
            content = self.output_schema.model_validate(parsed)
        except ValidationError as e:
            return self._failure(
                f"Schema validation failed: {e}", "schema_invalid", text, metadata, output_dir
            )

        print(
            f"{self.log_prefix} Complete: ok=True, cost=${metadata.cost:.4f}, "
            f"tokens={metadata.input_tokens}→{metadata.output_tokens} [run]"
        )
        if output_dir:
            self._save_output_log(content, metadata, output_dir)
        return AgentResult(ok=True, content=content, metadata=metadata)

    def _failure(
        self,
        message: str,
        code: str,
        raw_text: str,
        metadata: LLMInferenceMetadata,
        output_dir: str | None,
    ) -> AgentResult[OutputT]:
        # The call completed, so its metadata still carries the real cost
        print(f"{self.log_prefix} ❌ {message} [run]")
        if output_dir:
            self._save_error_log(message, raw_text, output_dir)
        return AgentResult(ok=False, content=None, error=AgentError(message, code), metadata=metadata)

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return int(round((time.perf_counter() - start_time) * 1000))

    # ── Debug Logs ────────────────────────────────────────────
    def _write_log(self, output_dir: str, kind: str, content: str) -> Path:
        directory = Path(output_dir)
        directory.mkdir(parents=True, exist_ok=True)
        log_path = directory / f"{_log_timestamp()}_{self.agent_name}_{kind}.log"
        log_path.write_text(content, encoding="utf-8")
        return log_path

    def _save_input_log(self, system_message: str, human_message: str, input: InputT, output_dir: str) -> None:
        content = "\n".join([
            _RULE, f"{self.log_prefix} INPUT MESSAGES", _RULE, "",
            "SYSTEM MESSAGE:", _THIN_RULE, system_message, _THIN_RULE, "",
            "HUMAN MESSAGE:", _THIN_RULE, human_message, _THIN_RULE, "",
            "RAW INPUT:", _THIN_RULE, self.describe_input(input), _THIN_RULE, "",
            _RULE,
        ])
        try:
            log_path = self._write_log(output_dir, "input", content)
            print(f"{self.log_prefix} Saved input messages to {log_path} [save_input_log]")
        except OSError as e:
            print(f"{self.log_prefix} ⚠️ Failed to save input log: {e} [save_input_log]")

    def _save_output_log(self, output: BaseModel, metadata: LLMInferenceMetadata, output_dir: str) -> None:
        content = "\n".join([
            _RULE, f"{self.log_prefix} AGENT OUTPUT", _RULE, "",
            "METRICS:",
            "  Status: ✓ Success",
            f"  Input Tokens: {metadata.input_tokens}",
            f"  Output Tokens: {metadata.output_tokens}",
            f"  Cost: ${metadata.cost:.6f}",
            f"  Latency: {metadata.latency_ms}ms",
            f"  Model: {metadata.model}", "",
            "OUTPUT:", _THIN_RULE, output.model_dump_json(indent=2, by_alias=True), _THIN_RULE, "",
            _RULE,
        ])
        try:
            log_path = self._write_log(output_dir, "output", content)
            print(f"{self.log_prefix} Saved output to {log_path} [save_output_log]")
        except OSError as e:
            print(f"{self.log_prefix} ⚠️ Failed to save output log: {e} [save_output_log]")

    def _save_error_log(self, error: str, raw_response: str, output_dir: str) -> None:
        content = "\n".join([
            _RULE, f"{self.log_prefix} AGENT ERROR", _RULE, "",
            "ERROR:", _THIN_RULE, error, _THIN_RULE, "",
            "RAW RESPONSE:", _THIN_RULE, raw_response, _THIN_RULE, "",
            _RULE,
        ])
        try:
            self._write_log(output_dir, "error", content)
        except OSError as e:
            print(f"{self.log_prefix} ⚠️ Failed to save error log: {e} [save_error_log]")
