# ============================================================
# models.py — Pydantic Schemas for the Game API
# ============================================================

from typing import Any

from pydantic import Field

from signline.agent.schemas import (
    AnnouncementMetrics,
    AnnouncementScenario,
    FeedbackOutput,
    Percentage,
    ScoringOutput,
    ValidationOutput,
)
from signline.camel_model import CamelModel
from signline.costs import GEMINI_2_0_FLASH_LIVE
from signline.session import SessionState
from signline.vocabulary import MRTLine, VocabularyWord


# ── /game/start ───────────────────────────────────────────────
class StartRequest(CamelModel):
    line_id: str = Field(..., description="MRT line id, e.g. 'north-south'")
    word_id: str = Field(..., description="Vocabulary word id, e.g. 'ns-hello'")


class LineSummary(CamelModel):
    id: str
    name: str
    color: str


class StartResponse(CamelModel):
    session: SessionState
    word: VocabularyWord
    line: LineSummary


class CatalogueResponse(CamelModel):
    lines: list[MRTLine]
    vocabulary: dict[str, list[VocabularyWord]]


# ── /game/validate ────────────────────────────────────────────
class StreamingStats(CamelModel):
    """What the browser's realtime stream reports after it closes."""
    frame_count: int = Field(..., ge=0)
    transcription_count: int = Field(0, ge=0)
    model: str = GEMINI_2_0_FLASH_LIVE


class ValidateRequest(CamelModel):
    session: SessionState
    streaming_stats: StreamingStats | None = None


class ValidationMetrics(CamelModel):
    total_cost: float
    total_input_tokens: int
    total_output_tokens: int
    duration_ms: int


class ValidateResponse(CamelModel):
    success: bool
    session_id: str
    request_id: str
    score: int | None = None
    validation: ValidationOutput | None = None
    scoring: ScoringOutput | None = None
    feedback: FeedbackOutput | None = None
    metrics: ValidationMetrics
    error: str | None = None


# ── /game/announce ────────────────────────────────────────────
class AnnounceRequest(CamelModel):
    target: str = Field(..., min_length=1, description="Expected station name, e.g. 'Bishan'")
    transcription: str = Field(..., description="What the student signed, e.g. 'BYSHAT'")
    match_percentage: Percentage


class AnnounceResponse(CamelModel):
    success: bool
    request_id: str
    scenario: AnnouncementScenario | None = None
    message: str | None = None
    phonetic: str | None = None
    audio_base64: str = ""
    audio_mime_type: str | None = None
    metrics: AnnouncementMetrics | None = None
    error: str | None = None


# ── /game/recognize ───────────────────────────────────────────
class RecognizeRequest(CamelModel):
    image: str = Field(..., min_length=100, description="Base64-encoded JPEG snapshot")


class RecognitionMetrics(CamelModel):
    cost: float
    input_tokens: int
    output_tokens: int
    latency_ms: int
    model: str


class RecognizeResponse(CamelModel):
    success: bool
    letter: str = "?"
    metrics: RecognitionMetrics | None = None
    error: str | None = None


# ── Errors ────────────────────────────────────────────────────
class ErrorResponse(CamelModel):
    success: bool = False
    error: str
    request_id: str | None = None
    details: list[Any] | None = None
