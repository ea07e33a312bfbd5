# ============================================================
# agent/graph.py — LangGraph StateGraph Wiring & Compilation
# ============================================================
# Two state machines:
#   validation    guard → validate(+feedback) → score → finalize
#   announcement  classify → [phonetic] → compose → speak
# The conditional edges short-circuit to the cost roll-up as soon
# as a node marks the session as errored. Neither graph's run()
# ever raises.
# ============================================================

from langgraph.graph import END, StateGraph

from signline.agent.agents import PhoneticAgent
from signline.agent.graph_state import AnnouncementState, ValidationState
from signline.agent.nodes import AnnouncementNodes, ValidationNodes
from signline.agent.schemas import AnnouncementInput, AnnouncementMetrics, AnnouncementResult
from signline.agent.scoring import classify_scenario
from signline.config import MODEL_TTS, TTS_VOICE_NAME, VALIDATION_STRATEGY
from signline.costs import ledger_totals
from signline.gemini_client import GeminiClient
from signline.session import SessionState, SessionStatus

CONSOLIDATED = "consolidated"
MULTI_AGENT = "multi_agent"
STRATEGIES = (CONSOLIDATED, MULTI_AGENT)


def _continue_unless_error(state: ValidationState) -> str:
    """Conditional edge after guard and validation nodes."""
    if state.get("status") == SessionStatus.ERROR:
        return "abort"
    return "continue"


def _phonetic_if_delayed(state: AnnouncementState) -> str:
    if state.get("scenario") == "delayed":
        return "phonetic"
    return "compose"


def build_validation_graph(nodes: ValidationNodes, strategy: str = CONSOLIDATED):
    """Build and compile the validation state machine for one strategy."""
    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown validation strategy '{strategy}', expected one of {STRATEGIES}")

    workflow = StateGraph(ValidationState)

    # ── Register Nodes ────────────────────────────────────────
    workflow.add_node("node_guard", nodes.node_guard)
    workflow.add_node("node_finalize", nodes.node_finalize)
    workflow.add_node("node_tally_costs", nodes.node_tally_costs)

    if strategy == CONSOLIDATED:
        validate_node, score_node = "node_validate_with_feedback", "node_score"
        workflow.add_node(validate_node, nodes.node_validate_with_feedback)
        workflow.add_node(score_node, nodes.node_score)
    else:
        validate_node, score_node = "node_validate", "node_score_and_feedback"
        workflow.add_node(validate_node, nodes.node_validate)
        workflow.add_node(score_node, nodes.node_score_and_feedback)

    # ── Wire Edges ────────────────────────────────────────────
    workflow.set_entry_point("node_guard")
    workflow.add_conditional_edges(
        "node_guard",
        _continue_unless_error,
        {"continue": validate_node, "abort": "node_tally_costs"},
    )
    workflow.add_conditional_edges(
        validate_node,
        _continue_unless_error,
        {"continue": score_node, "abort": "node_tally_costs"},
    )
    workflow.add_edge(score_node, "node_finalize")
    workflow.add_edge("node_finalize", "node_tally_costs")
    workflow.add_edge("node_tally_costs", END)

    return workflow.compile()


def build_announcement_graph(nodes: AnnouncementNodes):
    """Build and compile the announcement state machine."""
    workflow = StateGraph(AnnouncementState)

    workflow.add_node("node_classify", nodes.node_classify)
    workflow.add_node("node_phonetic", nodes.node_phonetic)
    workflow.add_node("node_compose", nodes.node_compose)
    workflow.add_node("node_speak", nodes.node_speak)

    workflow.set_entry_point("node_classify")
    workflow.add_conditional_edges(
        "node_classify",
        _phonetic_if_delayed,
        {"phonetic": "node_phonetic", "compose": "node_compose"},
    )
    workflow.add_edge("node_phonetic", "node_compose")
    workflow.add_edge("node_compose", "node_speak")
    workflow.add_edge("node_speak", END)

    return workflow.compile()


class ValidationGraph:
    """Runs a SessionState through validation, scoring and feedback."""

    log_prefix = "[VALIDATION_GRAPH]"

    def __init__(self, client: GeminiClient, strategy: str = VALIDATION_STRATEGY, nodes: ValidationNodes | None = None):
        self.client = client
        self.strategy = strategy
        self.nodes = nodes or ValidationNodes(client)
        self._graph = build_validation_graph(self.nodes, strategy)
        print(f"{self.log_prefix} Initialized with strategy: {strategy}")

    async def run(self, session: SessionState) -> SessionState:
        print(f"{self.log_prefix} Starting validation for session {session.session_id} [run]")
        # Field values as-is (not dumped), so nested results and ledger
        # entries stay pydantic objects inside the graph
        initial_state = {name: getattr(session, name) for name in SessionState.model_fields}

        # Streamed so a failing node still leaves the ledger entries
        # written before it
        last_state = initial_state
        try:
            async for state in self._graph.astream(initial_state, stream_mode="values"):
                last_state = state
            updated = SessionState.model_validate(last_state)
        except Exception as e:
            message = str(e) or type(e).__name__
            print(f"{self.log_prefix} ❌ Error: {message} [run]")
            ledger = dict(last_state.get("cost_tracking") or session.cost_tracking)
            totals = ledger_totals(ledger)
            updated = session.model_copy(
                update={
                    "cost_tracking": ledger,
                    "status": SessionStatus.ERROR,
                    "error": message,
                    "total_cost": totals.cost,
                    "total_input_tokens": totals.input_tokens,
                    "total_output_tokens": totals.output_tokens,
                }
            )

        print(
            f"{self.log_prefix} Complete: status={updated.status.value}, score={updated.score}, "
            f"cost=${updated.total_cost:.4f} [run]"
        )
        return updated


class AnnouncementGraph:
    """Turns an attempt into a themed train announcement with audio."""

    log_prefix = "[ANNOUNCEMENT_GRAPH]"

    def __init__(
        self,
        client: GeminiClient,
        phonetic_agent: PhoneticAgent | None = None,
        voice_name: str = TTS_VOICE_NAME,
        tts_model: str = MODEL_TTS,
    ):
        self.client = client
        self.nodes = AnnouncementNodes(client, phonetic_agent, voice_name, tts_model)
        self._graph = build_announcement_graph(self.nodes)

    async def run(self, input: AnnouncementInput, output_dir: str | None = None) -> AnnouncementResult:
        print(f'{self.log_prefix} Starting announcement for "{input.target}" [run]')
        initial_state: AnnouncementState = {
            "target": input.target,
            "transcription": input.transcription,
            "match_percentage": input.match_percentage,
            "output_dir": output_dir,
        }

        final_state = initial_state
        try:
            async for state in self._graph.astream(initial_state, stream_mode="values"):
                final_state = state
        except Exception as e:
            message = str(e) or type(e).__name__
            print(f"{self.log_prefix} ❌ Error: {message} [run]")
            final_state = {
                "scenario": classify_scenario(input.transcription, input.match_percentage),
                "message": "",
                **final_state,
                "audio_base64": "",
                "audio_mime_type": None,
                "error": message,
            }

        result = AnnouncementResult(
            scenario=final_state["scenario"],
            message=final_state["message"],
            phonetic=final_state.get("phonetic"),
            audio_base64=final_state.get("audio_base64", ""),
            audio_mime_type=final_state.get("audio_mime_type"),
            metrics=self._metrics(final_state),
            error=final_state.get("error"),
        )
        print(
            f"{self.log_prefix} Complete: scenario={result.scenario}, "
            f"cost=${result.metrics.total_cost:.4f} [run]"
        )
        return result

    @staticmethod
    def _metrics(state: AnnouncementState) -> AnnouncementMetrics:
        tts_cost = state.get("tts_cost", 0.0)
        phonetic = state.get("phonetic_metadata")
        if phonetic is None:
            return AnnouncementMetrics(
                tts_cost=tts_cost,
                tts_input_tokens=state.get("tts_input_tokens", 0),
                tts_output_tokens=state.get("tts_output_tokens", 0),
                total_cost=tts_cost,
            )
        return AnnouncementMetrics(
            tts_cost=tts_cost,
            tts_input_tokens=state.get("tts_input_tokens", 0),
            tts_output_tokens=state.get("tts_output_tokens", 0),
            phonetic_cost=phonetic.cost,
            phonetic_input_tokens=phonetic.input_tokens,
            phonetic_output_tokens=phonetic.output_tokens,
            total_cost=tts_cost + phonetic.cost,
        )
