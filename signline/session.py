# ============================================================
# session.py — Game Session State for One Practice Attempt
# ============================================================
# The central record threaded through the pipeline. The browser
# creates it via /game/start, fills in the streaming artifacts,
# and posts it back to /game/validate.
# ============================================================

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import Field

from signline.camel_model import CamelModel
from signline.agent.schemas import FeedbackOutput, ScoringOutput, ValidationOutput
from signline.costs import CostLedgerEntry


class SessionStatus(str, Enum):
    INITIALIZED = "initialized"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    RECOGNIZING = "recognizing"
    VALIDATING = "validating"
    COMPLETE = "complete"
    ERROR = "error"


_STATUS_ORDER = [
    SessionStatus.INITIALIZED,
    SessionStatus.CONNECTING,
    SessionStatus.STREAMING,
    SessionStatus.RECOGNIZING,
    SessionStatus.VALIDATING,
    SessionStatus.COMPLETE,
]


class SessionTransitionError(ValueError):
    """Raised when a status change would move a session backwards."""


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    """
    Status only moves forward. Any non-terminal status may move to
    ERROR; ERROR and COMPLETE are terminal.
    """
    current = SessionStatus(current)
    target = SessionStatus(target)
    if current in (SessionStatus.ERROR, SessionStatus.COMPLETE):
        return False
    if target == SessionStatus.ERROR:
        return True
    return _STATUS_ORDER.index(target) > _STATUS_ORDER.index(current)


def next_status(current: SessionStatus, target: SessionStatus) -> SessionStatus:
    if not can_transition(current, target):
        raise SessionTransitionError(
            f"Cannot move session from '{SessionStatus(current).value}' "
            f"to '{SessionStatus(target).value}'"
        )
    return SessionStatus(target)


class TranscriptionEvent(CamelModel):
    timestamp: int = Field(..., description="Milliseconds since stream start")
    text: str
    is_final: bool = False
    token_count: int | None = None


class SessionState(CamelModel):
    """Mutable state for one practice attempt."""

    # ── Identity ──────────────────────────────────────────────
    session_id: str
    created_at: str

    # ── Game Context ──────────────────────────────────────────
    line_id: str
    word_id: str
    expected_word: str
    level: Literal[1, 2]

    status: SessionStatus = SessionStatus.INITIALIZED

    # ── Streaming Artifacts ───────────────────────────────────
    transcription_events: list[TranscriptionEvent] = Field(default_factory=list)
    final_transcription: str | None = None
    stream_started_at: int | None = None
    stream_ended_at: int | None = None
    duration_ms: int = Field(0, ge=0)

    # ── Results (populated by the validation graph) ───────────
    validation_result: ValidationOutput | None = None
    scoring_result: ScoringOutput | None = None
    feedback_result: FeedbackOutput | None = None
    score: int | None = Field(None, ge=0, le=100)

    # ── Cost Ledger (key: <agent>_<step>) ─────────────────────
    cost_tracking: dict[str, CostLedgerEntry] = Field(default_factory=dict)
    total_cost: float = 0.0
    total_input_tokens: int = 0
    total_output_tokens: int = 0

    error: str | None = None

    # Agent debug log directory; never sent by the browser
    output_dir: str | None = Field(None, exclude=True)


def generate_session_id() -> str:
    """Generate a unique session ID."""
    return uuid.uuid4().hex


def create_initial_session(
    line_id: str,
    word_id: str,
    expected_word: str,
    level: int,
    output_dir: str | None = None,
) -> SessionState:
    return SessionState(
        session_id=generate_session_id(),
        created_at=datetime.now(timezone.utc).isoformat(),
        line_id=line_id,
        word_id=word_id,
        expected_word=expected_word,
        level=level,
        output_dir=output_dir,
    )
