# ============================================================
# agent/nodes.py — LangGraph Node Functions
# ============================================================
# Each node reads the graph state and returns a partial update.
# Agents never raise, so nodes branch on AgentResult.ok; every
# agent call lands in the cost ledger whether it succeeded or not.
# ============================================================

import asyncio

from signline.agent.agents import (
    FeedbackAgent,
    FeedbackInput,
    PhoneticAgent,
    PhoneticInput,
    ScoringAgent,
    ScoringInput,
    ValidationAgent,
    ValidationFeedbackAgent,
    ValidationFeedbackInput,
    ValidationInput,
)
from signline.agent.graph_state import AnnouncementState, ValidationState
from signline.agent.scoring import classify_scenario, compute_deterministic_score, round_half_up
from signline.audio_utils import pcm_b64_to_wav_b64
from signline.config import MODEL_TTS, TTS_VOICE_NAME
from signline.costs import calculate_cost, ledger_totals
from signline.gemini_client import GeminiClient, GeminiClientError
from signline.normalize import normalize
from signline.session import SessionStatus, can_transition, next_status

NO_TRANSCRIPTION_ERROR = "No transcription to validate"


def _ledger_with(state: ValidationState, key: str, entry) -> dict:
    return {**state.get("cost_tracking", {}), key: entry}


class ValidationNodes:
    """Nodes of the validation graph, bound to one client and its agents."""

    log_prefix = "[VALIDATION_GRAPH]"

    def __init__(
        self,
        client: GeminiClient,
        validation_feedback_agent: ValidationFeedbackAgent | None = None,
        validation_agent: ValidationAgent | None = None,
        scoring_agent: ScoringAgent | None = None,
        feedback_agent: FeedbackAgent | None = None,
    ):
        self.client = client
        self.validation_feedback_agent = validation_feedback_agent or ValidationFeedbackAgent()
        self.validation_agent = validation_agent or ValidationAgent()
        self.scoring_agent = scoring_agent or ScoringAgent()
        self.feedback_agent = feedback_agent or FeedbackAgent()

    # ── Node 1: Guard & Normalize ─────────────────────────────
    async def node_guard(self, state: ValidationState) -> dict:
        """
        Fast-fail before any model call: the session needs a final
        transcription and must still be able to move to VALIDATING.
        """
        transcription = state.get("final_transcription")
        if not transcription or not transcription.strip():
            print(f"{self.log_prefix} ❌ {NO_TRANSCRIPTION_ERROR} [node_guard]")
            return {"status": SessionStatus.ERROR, "error": NO_TRANSCRIPTION_ERROR}

        status = state.get("status", SessionStatus.INITIALIZED)
        if not can_transition(status, SessionStatus.VALIDATING):
            message = f"Session is already '{SessionStatus(status).value}' and cannot be validated again"
            print(f"{self.log_prefix} ❌ {message} [node_guard]")
            return {"status": SessionStatus.ERROR, "error": message}

        normalized_expected = normalize(state["expected_word"])
        normalized_transcription = normalize(transcription)
        print(
            f'{self.log_prefix} Normalized: expected="{normalized_expected}", '
            f'detected="{normalized_transcription}" [node_guard]'
        )
        return {
            "status": SessionStatus.VALIDATING,
            "normalized_expected": normalized_expected,
            "normalized_transcription": normalized_transcription,
        }

    # ── Node 2a: Consolidated Validation + Feedback ───────────
    async def node_validate_with_feedback(self, state: ValidationState) -> dict:
        result = await self.validation_feedback_agent.run(
            self.client,
            ValidationFeedbackInput(
                expected_word=state["normalized_expected"],
                original_word=state["expected_word"],
                level=state["level"],
                transcription=state["normalized_transcription"],
                duration_ms=state.get("duration_ms", 0),
            ),
            "validation_feedback_0",
            state.get("output_dir"),
        )
        update = {"cost_tracking": _ledger_with(state, "validation_feedback_0", result.metadata)}

        if not result.ok:
            update["status"] = SessionStatus.ERROR
            update["error"] = result.error.message if result.error else "Validation failed"
            return update

        update["validation_result"] = result.content.validation
        update["feedback_result"] = result.content.feedback
        return update

    # ── Node 3a: Deterministic Score ──────────────────────────
    async def node_score(self, state: ValidationState) -> dict:
        scoring = compute_deterministic_score(state["validation_result"], state.get("duration_ms", 0))
        print(
            f"{self.log_prefix} Score: {scoring.score} "
            f"(accuracy={scoring.breakdown.accuracy}, speed={scoring.breakdown.speed}, "
            f"clarity={scoring.breakdown.clarity}) [node_score]"
        )
        return {"scoring_result": scoring}

    # ── Node 2b: Multi-Agent Validation ───────────────────────
    async def node_validate(self, state: ValidationState) -> dict:
        result = await self.validation_agent.run(
            self.client,
            ValidationInput(
                expected_word=state["normalized_expected"],
                level=state["level"],
                transcription=state["normalized_transcription"],
                duration_ms=state.get("duration_ms", 0),
            ),
            "validation_0",
            state.get("output_dir"),
        )
        update = {"cost_tracking": _ledger_with(state, "validation_0", result.metadata)}

        if not result.ok:
            update["status"] = SessionStatus.ERROR
            update["error"] = result.error.message if result.error else "Validation failed"
            return update

        update["validation_result"] = result.content
        return update

    # ── Node 3b: Scoring + Feedback Fan-Out ───────────────────
    async def node_score_and_feedback(self, state: ValidationState) -> dict:
        """
        Scoring and feedback both depend only on the validation result,
        so they run concurrently. Feedback sees the match percentage as
        its provisional score.
        """
        validation = state["validation_result"]
        output_dir = state.get("output_dir")

        scoring_run, feedback_run = await asyncio.gather(
            self.scoring_agent.run(
                self.client,
                ScoringInput(
                    expected_word=state["normalized_expected"],
                    transcription=state["normalized_transcription"],
                    validation_result=validation,
                    duration_ms=state.get("duration_ms", 0),
                ),
                "scoring_0",
                output_dir,
            ),
            self.feedback_agent.run(
                self.client,
                FeedbackInput(
                    expected_word=state["normalized_expected"],
                    original_word=state["expected_word"],
                    transcription=state["normalized_transcription"],
                    score=validation.match_percentage,
                    validation_result=validation,
                ),
                "feedback_0",
                output_dir,
            ),
        )

        ledger = {
            **state.get("cost_tracking", {}),
            "scoring_0": scoring_run.metadata,
            "feedback_0": feedback_run.metadata,
        }
        if not scoring_run.ok:
            print(f"{self.log_prefix} ⚠️ Scoring failed, falling back to match percentage [node_score_and_feedback]")
        if not feedback_run.ok:
            print(f"{self.log_prefix} ⚠️ Feedback failed, continuing without it [node_score_and_feedback]")

        return {
            "cost_tracking": ledger,
            "scoring_result": scoring_run.content if scoring_run.ok else None,
            "feedback_result": feedback_run.content if feedback_run.ok else None,
        }

    # ── Node 4: Finalize ──────────────────────────────────────
    async def node_finalize(self, state: ValidationState) -> dict:
        scoring = state.get("scoring_result")
        if scoring is not None:
            score = round_half_up(scoring.score)
        else:
            score = round_half_up(state["validation_result"].match_percentage)
        return {
            "status": next_status(state["status"], SessionStatus.COMPLETE),
            "score": min(100, max(0, score)),
        }

    # ── Node 5: Cost Roll-Up (every path ends here) ───────────
    async def node_tally_costs(self, state: ValidationState) -> dict:
        totals = ledger_totals(state.get("cost_tracking", {}))
        return {
            "total_cost": totals.cost,
            "total_input_tokens": totals.input_tokens,
            "total_output_tokens": totals.output_tokens,
        }


# ── Announcement Persona Scripts ──────────────────────────────
CRASH_MESSAGE = "Train crash! Cannot even sign properly!"
DELAYED_MESSAGE = "Arrived late at {phonetic}. Bo bian."
SAFE_MESSAGE = "Steady lah! Arrived safely at {target}!"

_CRASH_SCRIPT = """
# AUDIO PROFILE: Angry Uncle
## "Morning Commuter, No Kopi Yet"

A Singaporean uncle on the 7am train who just watched someone get it
badly wrong. Hasn't had his coffee. Looking for someone to scold.

### DIRECTOR'S NOTES
Style:
* Sharp and accusing, every word lands like a poke in the chest.
* Starts annoyed and ends shouting.
* "Wah lao eh" disbelief throughout.

Pace: Fast, clipped, with a short pause before each insult.
Accent: Singaporean uncle, Hokkien-flavoured.

### TRANSCRIPT
Wah. lao. eh. Train. crash. al-rea-dy. Can-not. e-ven. sign. pro-per-ly. How. to. drive. train. like. that? Go. and. prac-tise. a-gain. lah!
"""

_DELAYED_SCRIPT = """
# AUDIO PROFILE: Sian Office Worker
## "Haiz, Bo Bian"

A worn-out Singaporean who stopped expecting anything to run on time
years ago. Not angry any more. Only tired.

### DIRECTOR'S NOTES
Style:
* Flat and resigned, like reading a notice nobody will read.
* Audible sighs and vocal fry, no enthusiasm at all.
* Draw out the station name exactly as it is spelled.

Pace: Slow and dragging, with long tired pauses.
Accent: Singaporean office worker, monotone.

### TRANSCRIPT
Haiz. At-ten-tion. pas-sen-gers. This. train. ar-rived. late. at. {phonetic}. De-lay. is. ex-pec-ted. Bo. bian. lah.
"""

_SAFE_SCRIPT = """
# AUDIO PROFILE: Steady Auntie
## "See! I Told You Can One!"

A proud Singaporean auntie cheering the driver home. Warm, loud and
genuinely delighted.

### DIRECTOR'S NOTES
Style:
* Bright and upbeat, real warmth in every line.
* Builds excitement phrase by phrase.
* "Steady lah" pride, like praising her own grandchild.

Pace: Quick and bouncy.
Accent: Singaporean auntie, sing-song.

### TRANSCRIPT
Wah! Stea-dy. lah! We. have. ar-rived. safe-ly. at. {target}! See! I. told. you. can. one! Please. mind. the. plat-form. gap. hor!
"""


class AnnouncementNodes:
    """Nodes of the announcement graph: classify, phonetic, compose, speak."""

    log_prefix = "[ANNOUNCEMENT_GRAPH]"

    def __init__(
        self,
        client: GeminiClient,
        phonetic_agent: PhoneticAgent | None = None,
        voice_name: str = TTS_VOICE_NAME,
        tts_model: str = MODEL_TTS,
    ):
        self.client = client
        self.phonetic_agent = phonetic_agent or PhoneticAgent()
        self.voice_name = voice_name
        self.tts_model = tts_model

    # ── Node 1: Scenario ──────────────────────────────────────
    async def node_classify(self, state: AnnouncementState) -> dict:
        scenario = classify_scenario(state["transcription"], state["match_percentage"])
        print(
            f"{self.log_prefix} Scenario: {scenario} "
            f"(match={state['match_percentage']:g}%) [node_classify]"
        )
        return {"scenario": scenario}

    # ── Node 2: Phonetic Spelling (delayed only) ──────────────
    async def node_phonetic(self, state: AnnouncementState) -> dict:
        result = await self.phonetic_agent.run(
            self.client,
            PhoneticInput(transcription=state["transcription"]),
            "phonetic_0",
            state.get("output_dir"),
        )
        if result.ok:
            return {"phonetic": result.content.phonetic, "phonetic_metadata": result.metadata}

        print(
            f"{self.log_prefix} ⚠️ Phonetic agent failed, using raw transcription: "
            f"{result.error.message if result.error else 'unknown error'} [node_phonetic]"
        )
        return {"phonetic": state["transcription"], "phonetic_metadata": result.metadata}

    # ── Node 3: Persona Script ────────────────────────────────
    async def node_compose(self, state: AnnouncementState) -> dict:
        scenario = state["scenario"]
        if scenario == "crash":
            return {"script": _CRASH_SCRIPT, "message": CRASH_MESSAGE}
        if scenario == "delayed":
            phonetic = state.get("phonetic") or state["transcription"]
            return {
                "script": _DELAYED_SCRIPT.format(phonetic=phonetic),
                "message": DELAYED_MESSAGE.format(phonetic=phonetic),
            }
        target = state["target"]
        return {
            "script": _SAFE_SCRIPT.format(target=target),
            "message": SAFE_MESSAGE.format(target=target),
        }

    # ── Node 4: Text-to-Speech ────────────────────────────────
    async def node_speak(self, state: AnnouncementState) -> dict:
        try:
            audio = await self.client.generate_audio(state["script"], self.voice_name, self.tts_model)
        except GeminiClientError as e:
            # Message and phonetic cost are already spent; only the audio is lost
            print(f"{self.log_prefix} ❌ TTS failed: {e} [node_speak]")
            return {
                "error": str(e) or type(e).__name__,
                "audio_base64": "",
                "audio_mime_type": None,
                "tts_input_tokens": 0,
                "tts_output_tokens": 0,
                "tts_cost": 0.0,
            }
        input_tokens = audio.usage.input_tokens if audio.usage else 0
        output_tokens = audio.usage.output_tokens if audio.usage else 0
        wav_b64, mime_type = pcm_b64_to_wav_b64(audio.audio_base64, audio.mime_type)
        return {
            "audio_base64": wav_b64,
            "audio_mime_type": mime_type,
            "tts_input_tokens": input_tokens,
            "tts_output_tokens": output_tokens,
            "tts_cost": calculate_cost(input_tokens, output_tokens, self.tts_model),
        }
