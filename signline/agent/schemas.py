# ============================================================
# agent/schemas.py — Strict Output Contracts for Agent Replies
# ============================================================
# Model output is parsed leniently (JSON is dug out of whatever
# prose surrounds it) but validated strictly against these
# schemas. Field names are camelCase in the JSON the model emits.
# ============================================================

from typing import Annotated, Literal

from pydantic import Field, field_validator

from signline.camel_model import CamelModel

Percentage = Annotated[float, Field(ge=0, le=100)]


# ── Validation ────────────────────────────────────────────────
class LetterMatch(CamelModel):
    expected: str
    detected: str | None
    matched: bool


class ValidationOutput(CamelModel):
    is_valid: bool
    match_percentage: Percentage
    letter_by_letter_match: list[LetterMatch] | None = None
    reasoning: str


# ── Scoring ───────────────────────────────────────────────────
class ScoreBreakdown(CamelModel):
    accuracy: Percentage
    speed: Percentage
    clarity: Percentage


class ScoringOutput(CamelModel):
    score: Percentage
    breakdown: ScoreBreakdown
    reasoning: str


# ── Feedback ──────────────────────────────────────────────────
MAX_TECHNICAL_TIPS = 3


class FeedbackOutput(CamelModel):
    feedback_text: str
    technical_tips: list[str] = Field(min_length=1)
    encouragement: str
    next_challenge: str | None = None

    @field_validator("technical_tips")
    @classmethod
    def keep_top_tips(cls, tips: list[str]) -> list[str]:
        return tips[:MAX_TECHNICAL_TIPS]


class ValidationFeedbackOutput(CamelModel):
    validation: ValidationOutput
    feedback: FeedbackOutput


# ── Phonetic ──────────────────────────────────────────────────
class PhoneticOutput(CamelModel):
    phonetic: str = Field(min_length=1)
    reasoning: str = ""


# ── Recognition ───────────────────────────────────────────────
UNRECOGNIZED_LETTER = "?"


class RecognitionOutput(CamelModel):
    letter: str = Field(pattern=r"^[A-Z?]$")

    @field_validator("letter", mode="before")
    @classmethod
    def uppercase_letter(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value


# ── Announcement ──────────────────────────────────────────────
AnnouncementScenario = Literal["crash", "delayed", "safe"]


class AnnouncementMetrics(CamelModel):
    tts_cost: float = 0.0
    tts_input_tokens: int = 0
    tts_output_tokens: int = 0
    phonetic_cost: float | None = None
    phonetic_input_tokens: int | None = None
    phonetic_output_tokens: int | None = None
    total_cost: float = 0.0


class AnnouncementResult(CamelModel):
    scenario: AnnouncementScenario
    message: str
    phonetic: str | None = None
    audio_base64: str = ""
    audio_mime_type: str | None = None
    metrics: AnnouncementMetrics = Field(default_factory=AnnouncementMetrics)
    error: str | None = None


class AnnouncementInput(CamelModel):
    target: str = Field(..., min_length=1, description="Station the train was heading for")
    transcription: str
    match_percentage: Percentage
