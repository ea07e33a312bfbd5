# ============================================================
# costs.py — Gemini Price Table, Cost Metadata & Cost Ledger
# ============================================================
# Cost tracking is observability, not a correctness gate: an
# unknown model name falls back to a conservative default price
# and never blocks the pipeline.
# ============================================================

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, NamedTuple, Union

from pydantic import ConfigDict, Field

from signline.camel_model import CamelModel


# ── Model Names ───────────────────────────────────────────────
GEMINI_2_5_FLASH = "gemini-2.5-flash"
GEMINI_2_5_PRO = "gemini-2.5-pro"
GEMINI_2_5_FLASH_NATIVE_AUDIO = "gemini-2.5-flash-native-audio-preview-12-2025"
GEMINI_2_0_FLASH_LIVE = "gemini-2.0-flash-exp"
GEMINI_2_5_FLASH_TTS = "gemini-2.5-flash-preview-tts"
GEMINI_3_FLASH = "gemini-3-flash-preview"
GEMINI_3_PRO = "gemini-3-pro-preview"

_PER_MILLION = 1_000_000


@dataclass(frozen=True)
class ModelPricing:
    """USD cost per single token."""
    input: float
    output: float
    cached_input: float | None = None


# ── Price Table ───────────────────────────────────────────────
PRICING: dict[str, ModelPricing] = {
    GEMINI_2_5_FLASH: ModelPricing(
        input=0.30 / _PER_MILLION,
        output=2.50 / _PER_MILLION,
        cached_input=0.075 / _PER_MILLION,
    ),
    GEMINI_2_5_PRO: ModelPricing(input=1.25 / _PER_MILLION, output=10.0 / _PER_MILLION),
    # Audio/video input, text output
    GEMINI_2_5_FLASH_NATIVE_AUDIO: ModelPricing(input=3.0 / _PER_MILLION, output=2.0 / _PER_MILLION),
    # Video/image input, text output
    GEMINI_2_0_FLASH_LIVE: ModelPricing(input=0.10 / _PER_MILLION, output=0.40 / _PER_MILLION),
    # Text input, audio output
    GEMINI_2_5_FLASH_TTS: ModelPricing(input=0.50 / _PER_MILLION, output=10.0 / _PER_MILLION),
    GEMINI_3_FLASH: ModelPricing(input=0.50 / _PER_MILLION, output=3.0 / _PER_MILLION),
    GEMINI_3_PRO: ModelPricing(input=2.0 / _PER_MILLION, output=12.0 / _PER_MILLION),
}

DEFAULT_PRICING = ModelPricing(input=0.15 / _PER_MILLION, output=0.60 / _PER_MILLION)

# Rough image-token cost of one streamed video frame
ESTIMATED_TOKENS_PER_FRAME = 258


def get_model_pricing(model: str, pricing: Mapping[str, ModelPricing] | None = None) -> ModelPricing:
    """Look up a model's pricing, tolerating the "models/" resource prefix."""
    table = PRICING if pricing is None else pricing
    name = model.removeprefix("models/")
    return table.get(name, DEFAULT_PRICING)


def calculate_cost(
    input_tokens: int,
    output_tokens: int,
    model: str,
    cached_input_tokens: int = 0,
    pricing: Mapping[str, ModelPricing] | None = None,
) -> float:
    """Calculate the USD cost of one call from its token counts."""
    model_pricing = get_model_pricing(model, pricing)
    cost = input_tokens * model_pricing.input + output_tokens * model_pricing.output
    if cached_input_tokens > 0 and model_pricing.cached_input:
        cost += cached_input_tokens * model_pricing.cached_input
    return cost


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ── Metadata Records ──────────────────────────────────────────
class LLMInferenceMetadata(CamelModel):
    """One record per agent invocation. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    input_tokens: int = Field(0, ge=0)
    output_tokens: int = Field(0, ge=0)
    cached_input_tokens: int = Field(0, ge=0)
    cost: float = Field(0.0, ge=0)
    model: str
    timestamp: str = Field(default_factory=_utc_now_iso)
    latency_ms: int = Field(0, ge=0)
    agent_name: str

    def recompute_cost(self, pricing: Mapping[str, ModelPricing] | None = None) -> float:
        """Re-price this call, e.g. against an updated price table."""
        return calculate_cost(
            self.input_tokens,
            self.output_tokens,
            self.model,
            cached_input_tokens=self.cached_input_tokens,
            pricing=pricing,
        )


class StreamingCostMetadata(CamelModel):
    """Client-side estimate for a realtime streaming session."""

    model_config = ConfigDict(frozen=True)

    model: str
    session_duration_ms: int = Field(ge=0)
    estimated_input_tokens: int = Field(ge=0)
    estimated_output_tokens: int = Field(ge=0)
    estimated_cost: float = Field(ge=0)
    frame_count: int = Field(ge=0)
    transcription_count: int = Field(0, ge=0)


CostLedgerEntry = Union[LLMInferenceMetadata, StreamingCostMetadata]


class LedgerTotals(NamedTuple):
    cost: float
    input_tokens: int
    output_tokens: int


def entry_cost(entry: CostLedgerEntry) -> float:
    if isinstance(entry, StreamingCostMetadata):
        return entry.estimated_cost
    return entry.cost


def entry_tokens(entry: CostLedgerEntry) -> tuple[int, int]:
    if isinstance(entry, StreamingCostMetadata):
        return entry.estimated_input_tokens, entry.estimated_output_tokens
    return entry.input_tokens, entry.output_tokens


def ledger_totals(ledger: Mapping[str, CostLedgerEntry]) -> LedgerTotals:
    """
    Resum every entry in the cost ledger.

    Uses math.fsum so the total does not depend on iteration order.
    """
    entries = list(ledger.values())
    tokens = [entry_tokens(entry) for entry in entries]
    return LedgerTotals(
        cost=math.fsum(entry_cost(entry) for entry in entries),
        input_tokens=sum(t[0] for t in tokens),
        output_tokens=sum(t[1] for t in tokens),
    )


def estimate_streaming_cost(
    frame_count: int,
    final_transcription: str,
    duration_ms: int,
    model: str = GEMINI_2_0_FLASH_LIVE,
    transcription_count: int = 0,
) -> StreamingCostMetadata:
    """
    Estimate the cost of a realtime recognition stream.

    Input tokens are ~258 per frame sent; output is roughly one token
    per transcribed character.
    """
    pricing = get_model_pricing(model)
    estimated_input = frame_count * ESTIMATED_TOKENS_PER_FRAME
    estimated_output = len(final_transcription)
    return StreamingCostMetadata(
        model=model,
        session_duration_ms=max(0, duration_ms),
        estimated_input_tokens=estimated_input,
        estimated_output_tokens=estimated_output,
        estimated_cost=estimated_input * pricing.input + estimated_output * pricing.output,
        frame_count=frame_count,
        transcription_count=transcription_count,
    )


def print_cost_summary(total: float, breakdown: Mapping[str, CostLedgerEntry]) -> None:
    """Print the total cost plus one line per ledger entry."""
    print("========== FINAL COST SUMMARY ==========")
    print(f"Total Cost: ${total:.4f}")
    for key, meta in breakdown.items():
        if isinstance(meta, StreamingCostMetadata):
            print(
                f"  - {key}: ${meta.estimated_cost:.4f} "
                f"(streaming, {meta.frame_count} frames, {meta.session_duration_ms}ms)"
            )
        else:
            print(
                f"  - {key}: ${meta.cost:.4f} "
                f"({meta.input_tokens} → {meta.output_tokens} tokens, {meta.latency_ms}ms)"
            )
    print("=========================================")
