# ============================================================
# agent/agents.py — Specialized Sign-Language Agents
# ============================================================
# Each agent supplies its prompts and output schema; BaseAgent
# handles the call, parsing, logging and the result envelope.
# ============================================================

from typing import Literal

from pydantic import Field

from signline.camel_model import CamelModel
from signline.agent.base import BaseAgent
from signline.agent.schemas import (
    FeedbackOutput,
    PhoneticOutput,
    RecognitionOutput,
    ScoringOutput,
    ValidationFeedbackOutput,
    ValidationOutput,
)
from signline.gemini_client import GeminiClient, GenerateResponse


def _level_label(level: int) -> str:
    if level == 1:
        return "Fingerspelling - each letter"
    return "Word Sign - single gesture"


def _seconds(duration_ms: int) -> str:
    return f"{duration_ms / 1000:.1f}"


def wrong_letters(validation: ValidationOutput, limit: int = 2) -> list[str]:
    """The first few expected letters the attempt got wrong."""
    if not validation.letter_by_letter_match:
        return []
    misses = [m.expected.upper() for m in validation.letter_by_letter_match if not m.matched]
    return misses[:limit]


# ── Agent Inputs ──────────────────────────────────────────────
class ValidationInput(CamelModel):
    expected_word: str
    level: Literal[1, 2]
    transcription: str
    duration_ms: int = 0


class ValidationFeedbackInput(ValidationInput):
    original_word: str | None = None


class ScoringInput(CamelModel):
    expected_word: str
    transcription: str
    validation_result: ValidationOutput
    duration_ms: int = 0


class FeedbackInput(CamelModel):
    expected_word: str
    original_word: str
    transcription: str
    score: float = Field(ge=0, le=100)
    validation_result: ValidationOutput
    scoring_result: ScoringOutput | None = None


class PhoneticInput(CamelModel):
    transcription: str


class RecognitionInput(CamelModel):
    image: str = Field(..., description="Base64-encoded JPEG snapshot")


# ── Validation Agent ──────────────────────────────────────────
class ValidationAgent(BaseAgent[ValidationInput, ValidationOutput]):
    """Is the sign correct, and how close was it?"""

    output_schema = ValidationOutput

    def __init__(self):
        super().__init__("validation_agent")

    def build_system_message(self) -> str:
        return """# Sign Language Validation Expert

You judge whether a sign-language recognition result matches the word the student was asked to sign.

## Steps
1. Compare the expected word and the detected transcription. Both are already normalized: lowercase letters only.
2. Decide whether the attempt is valid.
3. Give a match percentage from 0 to 100. Partial credit for partially correct spellings.
4. ONLY for Level 1 (fingerspelling): compare letter by letter. Omit the array for Level 2.
5. Explain your judgment in one or two sentences.

## Output Format (JSON)
{
  "isValid": true,
  "matchPercentage": 0-100,
  "letterByLetterMatch": [
    { "expected": "H", "detected": "H", "matched": true },
    { "expected": "E", "detected": null, "matched": false }
  ],
  "reasoning": "Short explanation"
}

Respond with ONLY valid JSON. No markdown, no text outside the JSON."""

    def build_human_message(self, input: ValidationInput) -> str:
        return f"""## Validation Request

Expected Word: "{input.expected_word}"
Level: {input.level} ({_level_label(input.level)})
Detected Transcription: "{input.transcription}"
Duration: {_seconds(input.duration_ms)} seconds

Validate this recognition result."""


# ── Scoring Agent ─────────────────────────────────────────────
class ScoringAgent(BaseAgent[ScoringInput, ScoringOutput]):
    """Composite 0-100 score with an accuracy/speed/clarity breakdown."""

    output_schema = ScoringOutput

    def __init__(self):
        super().__init__("scoring_agent")

    def build_system_message(self) -> str:
        return """# Sign Language Scoring Expert

Score a sign-language attempt from its validation result.

## Breakdown (each 0-100)
- accuracy: follows the match percentage.
- speed: under 2 seconds = 100, 2-5 seconds = 80, 5-10 seconds = 60, 10 seconds or more = 40.
- clarity: how clean and consistent the recognition was.

## Overall Score
score = 0.6 * accuracy + 0.2 * speed + 0.2 * clarity, rounded to the nearest integer.

## Output Format (JSON)
{
  "score": 0-100,
  "breakdown": { "accuracy": 0-100, "speed": 0-100, "clarity": 0-100 },
  "reasoning": "Short explanation of the scoring"
}

Respond with ONLY valid JSON."""

    def build_human_message(self, input: ScoringInput) -> str:
        validation = input.validation_result
        return f"""## Scoring Request

Expected Word: "{input.expected_word}"
Detected: "{input.transcription}"
Duration: {_seconds(input.duration_ms)} seconds

Validation Result:
- Valid: {validation.is_valid}
- Match Percentage: {validation.match_percentage}%
- Reasoning: {validation.reasoning}

Calculate the scores."""


# ── Feedback Agent ────────────────────────────────────────────
_FEEDBACK_RULES = """## Feedback Rules
- Be specific, never generic. Name the letter(s) or handshape that went wrong.
- Mention at most the top 1-2 incorrect letters, not every mistake.
- Scale length to how far off the attempt was: one short sentence for a near miss,
  a few sentences with handshape detail when the attempt was far off.
- technicalTips: 2-3 short tips, each targeting a specific wrong letter or movement.
- encouragement: positive, and about THIS attempt."""


class FeedbackAgent(BaseAgent[FeedbackInput, FeedbackOutput]):
    """Targeted coaching text for one attempt."""

    output_schema = FeedbackOutput

    def __init__(self):
        super().__init__("feedback_agent")

    def build_system_message(self) -> str:
        return f"""# Sign Language Coach

You coach a student learning sign language.

{_FEEDBACK_RULES}

## Output Format (JSON)
{{
  "feedbackText": "What went well and what to fix",
  "technicalTips": ["Tip for the wrong letter", "Another targeted tip"],
  "encouragement": "Motivating message about this attempt",
  "nextChallenge": "Optional: a similar word to practice"
}}

Respond with ONLY valid JSON."""

    def build_human_message(self, input: FeedbackInput) -> str:
        validation = input.validation_result
        misses = wrong_letters(validation)
        lines = [
            "## Feedback Request",
            "",
            f'Word Attempted: "{input.original_word}" (normalized: "{input.expected_word}")',
            f'What Was Detected: "{input.transcription}"',
            f"Score: {round(input.score)}/100",
            f"Valid: {validation.is_valid}",
            f"Match: {validation.match_percentage}%",
        ]
        if misses:
            lines.append(f"Most important wrong letters: {', '.join(misses)}")
        if input.scoring_result is not None:
            breakdown = input.scoring_result.breakdown
            lines.append(
                f"Breakdown: accuracy={breakdown.accuracy}, speed={breakdown.speed}, clarity={breakdown.clarity}"
            )
        lines += ["", "Give targeted feedback for this attempt."]
        return "\n".join(lines)


# ── Validation + Feedback Agent (consolidated) ────────────────
class ValidationFeedbackAgent(BaseAgent[ValidationFeedbackInput, ValidationFeedbackOutput]):
    """Validation and coaching in a single model call."""

    output_schema = ValidationFeedbackOutput

    def __init__(self):
        super().__init__("validation_feedback_agent")

    def build_system_message(self) -> str:
        return f"""# Sign Language Validation + Feedback Expert

You validate a sign-language recognition result and coach the student, in one reply.

## Steps
1. Compare the expected word and the detected transcription. Both are already normalized: lowercase letters only.
2. Decide validity and a match percentage (0-100).
3. Level 1 (fingerspelling) only: add a letter-by-letter comparison.
4. Write feedback based on that validation.

{_FEEDBACK_RULES}

## Output Format (JSON)
{{
  "validation": {{
    "isValid": true,
    "matchPercentage": 0-100,
    "letterByLetterMatch": [
      {{ "expected": "H", "detected": "H", "matched": true }}
    ],
    "reasoning": "Short explanation"
  }},
  "feedback": {{
    "feedbackText": "Specific analysis naming letters and handshapes",
    "technicalTips": ["Tip for the wrong letter", "Another targeted tip"],
    "encouragement": "Motivating message about this attempt",
    "nextChallenge": "Optional: a similar word to practice"
  }}
}}

Respond with ONLY valid JSON. No markdown, no text outside the JSON."""

    def build_human_message(self, input: ValidationFeedbackInput) -> str:
        return f"""## Validation + Feedback Request

Expected Word: "{input.expected_word}"
Original Word: "{input.original_word or input.expected_word}"
Level: {input.level} ({_level_label(input.level)})
Detected Transcription: "{input.transcription}"
Duration: {_seconds(input.duration_ms)} seconds

Validate this recognition result and coach the student."""


# ── Phonetic Agent ────────────────────────────────────────────
class PhoneticAgent(BaseAgent[PhoneticInput, PhoneticOutput]):
    """
    Turns a garbled transcription into a speakable respelling for the
    "delayed" announcement. Keeps the mistake on purpose: "TYSNG"
    should come out as "Tie-Seng", not be corrected to "Tai Seng".
    """

    output_schema = PhoneticOutput

    def __init__(self):
        super().__init__("phonetic_agent")

    def build_system_message(self) -> str:
        return """# Phonetic Pronunciation Generator

Turn a misspelled or garbled transcription into a funny but pronounceable respelling.
Do NOT correct it to the real MRT station name. Keep it wrong, just make it speakable.

## Rules
1. Pronounceable syllables only, never letter by letter ("T-Y-S-N-G" is wrong).
2. Hyphenate syllables for a staccato read, e.g. "Tie-Seng".
3. Keep the approximate sound of the transcription.
4. Spaces, punctuation and doubled consonants are syllable-boundary hints.
5. You may insert simple vowels to break up consonant clusters.
6. Usually 2-4 syllables.

## Preferences
- "SNG" clusters read as "Seng", not "Sang".
- Endings like "RIS"/"RIZ" read as "Rees".
- "BSHN" reads as "Bee-Shun".

## Examples
- "TYSNG" -> "Tie-Seng"
- "BYSHAT" -> "Bee-Shat"
- "KRNJY" -> "Kran-Jee"
- "PSIRRIZ" -> "Pah-Sir-Rees"

## Output Format (JSON)
{
  "phonetic": "Bee-Shat",
  "reasoning": "Short note on how it was syllabified"
}

Respond with ONLY valid JSON."""

    def build_human_message(self, input: PhoneticInput) -> str:
        return f"""Respell this word phonetically:

Word: "{input.transcription}"

Keep the "wrong" sound. Do NOT correct it to the real station name."""


# ── Recognition Agent ─────────────────────────────────────────
ASL_HANDSHAPES = {
    "A": "Fist with the thumb resting against the side of the index finger",
    "B": "Flat hand, fingers together pointing up, thumb folded across the palm",
    "C": "Fingers and thumb curved into a 'C'",
    "D": "Index finger up, other fingers curled to touch the thumb",
    "E": "Fingertips curled down to the palm, thumb tucked under them",
    "F": "Thumb and index finger touch in a circle, other three fingers up",
    "G": "Index finger and thumb pointing sideways, parallel",
    "H": "Index and middle fingers extended sideways together",
    "I": "Fist with the pinky up",
    "J": "Pinky up, traced in a 'J' (static: pinky up, hand tilted)",
    "K": "Index and middle fingers up in a V, thumb between them",
    "L": "Thumb and index finger form an 'L'",
    "M": "Thumb tucked under index, middle and ring fingers",
    "N": "Thumb tucked under index and middle fingers",
    "O": "All fingertips curved to meet the thumb in an 'O'",
    "P": "Like K, but pointing down",
    "Q": "Like G, but pointing down",
    "R": "Index and middle fingers crossed",
    "S": "Fist with the thumb across the front of the fingers",
    "T": "Thumb tucked between index and middle fingers of a fist",
    "U": "Index and middle fingers up together, touching",
    "V": "Index and middle fingers up and spread",
    "W": "Index, middle and ring fingers up and spread",
    "X": "Index finger hooked",
    "Y": "Thumb and pinky extended",
    "Z": "Index finger traces a 'Z' (static: index pointing)",
}


class RecognitionAgent(BaseAgent[RecognitionInput, RecognitionOutput]):
    """Classifies one ASL fingerspelling letter from a webcam snapshot."""

    output_schema = RecognitionOutput

    def __init__(self):
        super().__init__("recognition_agent")

    def build_system_message(self) -> str:
        reference = "\n".join(f"- {letter}: {shape}" for letter, shape in ASL_HANDSHAPES.items())
        return f"""You are an ASL (American Sign Language) fingerspelling recognition system.

Look at the image and identify which ASL letter is being signed.

ASL FINGERSPELLING REFERENCE:
{reference}

OUTPUT FORMAT:
A JSON object with a single "letter" field:
- Confident: {{"letter": "A"}}
- Unsure, no hand visible, or ambiguous sign: {{"letter": "?"}}

Output ONLY the JSON object. Only name a letter when you are confident."""

    def build_human_message(self, input: RecognitionInput) -> str:
        return "Identify the ASL letter being signed in this image. Output only the JSON."

    async def invoke_model(
        self, client: GeminiClient, system_message: str, human_message: str, input: RecognitionInput
    ) -> GenerateResponse:
        return await client.generate_with_image(system_message, human_message, input.image, "image/jpeg")

    def describe_input(self, input: RecognitionInput) -> str:
        return f"[Base64 image, {len(input.image)} characters]"
