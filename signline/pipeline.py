# ============================================================
# pipeline.py — Game Pipeline Entry Point
# ============================================================
# Thin orchestration over the validation graph: attach the
# debug log directory, run the graph, print the cost summary.
# Persistence hooks are accepted but do nothing yet.
# ============================================================

from dataclasses import dataclass

from signline.agent.graph import ValidationGraph
from signline.costs import print_cost_summary
from signline.session import SessionState, SessionStatus

LOG_PREFIX = "[GAME_PIPELINE]"


@dataclass
class PipelineConfig:
    line_id: str
    word_id: str
    expected_word: str
    level: int
    output_dir: str | None = None
    save_to_db: bool = False
    check_existing: bool = False


@dataclass
class PipelineResult:
    success: bool
    state: SessionState
    error: str | None = None


class GamePipeline:
    """Runs one practice attempt through validation and scoring."""

    def __init__(self, validation_graph: ValidationGraph):
        self.validation_graph = validation_graph

    async def run_validation(self, session: SessionState, config: PipelineConfig) -> PipelineResult:
        print(f"\n{'=' * 60}")
        print(f"{LOG_PREFIX} Starting validation pipeline")
        print(f"  session: {session.session_id}")
        print(f"  word: {config.expected_word} (level {config.level}, line {config.line_id})")
        print(f"{'=' * 60}")

        if config.check_existing:
            self._check_existing(session)

        if config.output_dir:
            session = session.model_copy(update={"output_dir": config.output_dir})

        final_state = await self.validation_graph.run(session)
        print_cost_summary(final_state.total_cost, final_state.cost_tracking)

        if config.save_to_db:
            self._save_to_db(final_state)

        success = final_state.status == SessionStatus.COMPLETE
        if success:
            print(f"{LOG_PREFIX} ✅ Validation complete: score={final_state.score}")
        else:
            print(f"{LOG_PREFIX} ❌ Validation failed: {final_state.error}")

        return PipelineResult(
            success=success,
            state=final_state,
            error=None if success else final_state.error,
        )

    # ── Persistence Hooks ─────────────────────────────────────
    def _check_existing(self, session: SessionState) -> None:
        print(f"{LOG_PREFIX} check_existing not implemented, skipping ({session.session_id})")

    def _save_to_db(self, session: SessionState) -> None:
        print(f"{LOG_PREFIX} save_to_db not implemented, skipping ({session.session_id})")
