# ============================================================
# agent/scoring.py — Deterministic Scoring & Scenario Bands
# ============================================================
# No model calls here, and no failure modes: the consolidated
# validation graph derives the score from the validation
# result alone, and the announcement graph picks its narrative
# from the match percentage.
# ============================================================

import math

from signline.agent.schemas import (
    UNRECOGNIZED_LETTER,
    AnnouncementScenario,
    ScoreBreakdown,
    ScoringOutput,
    ValidationOutput,
)
from signline.config import CRASH_MATCH_THRESHOLD, SAFE_MATCH_THRESHOLD

ACCURACY_WEIGHT = 0.6
SPEED_WEIGHT = 0.2
CLARITY_WEIGHT = 0.2

# (upper bound in seconds, speed score); 10s or slower scores 40
_SPEED_BANDS = [(2.0, 100), (5.0, 80), (10.0, 60)]
_SLOWEST_SPEED = 40


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def accuracy_score(match_percentage: float) -> int:
    return round_half_up(match_percentage)


def speed_score(duration_ms: int) -> int:
    """Step function of elapsed seconds: full marks under 2s, 40 at 10s or more."""
    seconds = duration_ms / 1000
    for upper_bound, score in _SPEED_BANDS:
        if seconds < upper_bound:
            return score
    return _SLOWEST_SPEED


def clarity_score(match_percentage: float) -> int:
    """Heuristic: 80% of the match plus 20, clamped to [30, 100]."""
    return min(100, max(30, round_half_up(match_percentage * 0.8 + 20)))


def compute_deterministic_score(validation: ValidationOutput, duration_ms: int) -> ScoringOutput:
    """
    Build a ScoringOutput from the validation result without a model call.

    Args:
        validation: The agent's validation result (only matchPercentage is used)
        duration_ms: How long the attempt took

    Returns:
        ScoringOutput with score = round(0.6*accuracy + 0.2*speed + 0.2*clarity)
    """
    match = validation.match_percentage
    accuracy = accuracy_score(match)
    speed = speed_score(duration_ms)
    clarity = clarity_score(match)
    score = round_half_up(
        ACCURACY_WEIGHT * accuracy + SPEED_WEIGHT * speed + CLARITY_WEIGHT * clarity
    )
    return ScoringOutput(
        score=score,
        breakdown=ScoreBreakdown(accuracy=accuracy, speed=speed, clarity=clarity),
        reasoning=(
            f"Accuracy {accuracy} from a {match:g}% match, speed {speed} for "
            f"{duration_ms / 1000:.1f}s, clarity {clarity}."
        ),
    )


def recognition_failed(transcription: str) -> bool:
    """True when the upstream letter classifier gave up on at least one snapshot."""
    return UNRECOGNIZED_LETTER in transcription


def classify_scenario(transcription: str, match_percentage: float) -> AnnouncementScenario:
    """
    Map an attempt onto the announcement narrative.

    crash   - recognition failed outright, or match below 30
    safe    - exact match (100)
    delayed - everything in between
    """
    if recognition_failed(transcription):
        return "crash"
    if match_percentage < CRASH_MATCH_THRESHOLD:
        return "crash"
    if match_percentage >= SAFE_MATCH_THRESHOLD:
        return "safe"
    return "delayed"
