# ============================================================
# agent/graph_state.py — LangGraph State Definitions
# ============================================================
# ValidationState mirrors SessionState field-for-field so a
# session can be dumped into the graph and re-validated out of
# it. Nodes return partial updates; the cost ledger is always
# replaced with a new dict, never mutated in place.
# ============================================================

from typing import Any, TypedDict

from signline.agent.schemas import (
    AnnouncementScenario,
    FeedbackOutput,
    ScoringOutput,
    ValidationOutput,
)
from signline.costs import CostLedgerEntry, LLMInferenceMetadata
from signline.session import SessionStatus


class ValidationState(TypedDict, total=False):
    # ── Session Identity & Game Context ───────────────────────
    session_id: str
    created_at: str
    line_id: str
    word_id: str
    expected_word: str
    level: int
    status: SessionStatus

    # ── Streaming Artifacts (from the browser) ────────────────
    transcription_events: list[Any]
    final_transcription: str | None
    stream_started_at: int | None
    stream_ended_at: int | None
    duration_ms: int

    # ── Normalized Comparison Inputs ──────────────────────────
    normalized_expected: str
    normalized_transcription: str

    # ── Results ───────────────────────────────────────────────
    validation_result: ValidationOutput | None
    scoring_result: ScoringOutput | None
    feedback_result: FeedbackOutput | None
    score: int | None

    # ── Cost Ledger ───────────────────────────────────────────
    cost_tracking: dict[str, CostLedgerEntry]
    total_cost: float
    total_input_tokens: int
    total_output_tokens: int

    error: str | None
    output_dir: str | None


class AnnouncementState(TypedDict, total=False):
    # ── Input ─────────────────────────────────────────────────
    target: str
    transcription: str
    match_percentage: float
    output_dir: str | None

    # ── Narrative ─────────────────────────────────────────────
    scenario: AnnouncementScenario
    phonetic: str | None
    phonetic_metadata: LLMInferenceMetadata | None
    script: str
    message: str

    # ── Audio ─────────────────────────────────────────────────
    audio_base64: str
    audio_mime_type: str | None
    tts_input_tokens: int
    tts_output_tokens: int
    tts_cost: float
    error: str | None
