# ============================================================
# main.py — FastAPI Backend for the SignLine Game
# ============================================================
# Starts sessions, validates finished attempts through the
# LangGraph pipeline, recognizes single fingerspelled letters
# and voices train announcements. Gemini clients, agents and
# graphs are built once at startup and injected per request.
# ============================================================

import time
import traceback
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from signline import __version__
from signline.agent.agents import RecognitionAgent, RecognitionInput
from signline.agent.graph import AnnouncementGraph, ValidationGraph
from signline.agent.schemas import UNRECOGNIZED_LETTER, AnnouncementInput
from signline.config import (
    AGENT_LOG_DIR,
    CORS_ORIGINS,
    MODEL_PHONETIC,
    MODEL_RECOGNITION,
    MODEL_VALIDATION,
    VALIDATION_STRATEGY,
    KeyRotator,
)
from signline.costs import estimate_streaming_cost
from signline.gemini_client import GeminiClient
from signline.models import (
    AnnounceRequest,
    AnnounceResponse,
    CatalogueResponse,
    ErrorResponse,
    LineSummary,
    RecognitionMetrics,
    RecognizeRequest,
    RecognizeResponse,
    StartRequest,
    StartResponse,
    ValidateRequest,
    ValidateResponse,
    ValidationMetrics,
)
from signline.pipeline import GamePipeline, PipelineConfig
from signline.session import create_initial_session
from signline.tracing import REQUEST_ID_HEADER, RequestTracer, get_or_create_request_id
from signline.vocabulary import MRT_LINES, VOCABULARY, get_line, get_word_by_id

LIVE_STREAM_KEY = "live_stream_0"


# ── Lifespan (startup/shutdown) ───────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    print("🚀 SignLine Backend starting...")
    rotator = KeyRotator()
    validation_client = GeminiClient(MODEL_VALIDATION, rotator)
    app.state.pipeline = GamePipeline(ValidationGraph(validation_client, VALIDATION_STRATEGY))
    app.state.announcement_graph = AnnouncementGraph(GeminiClient(MODEL_PHONETIC, rotator))
    app.state.recognition_client = GeminiClient(MODEL_RECOGNITION, rotator)
    app.state.recognition_agent = RecognitionAgent()
    yield
    print("🛑 Backend shutting down.")


app = FastAPI(
    title="SignLine",
    description="Sign-language practice game on Singapore MRT lines",
    version=__version__,
    lifespan=lifespan,
)

# ── CORS Middleware ────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER, "Server-Timing"],
)


# ── Request Tracing ───────────────────────────────────────────
@app.middleware("http")
async def attach_tracing_headers(request: Request, call_next):
    tracer = RequestTracer(get_or_create_request_id(request.headers))
    request.state.tracer = tracer
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = tracer.request_id
    response.headers["Server-Timing"] = tracer.server_timing()
    return response


@app.exception_handler(RequestValidationError)
async def invalid_request(request: Request, exc: RequestValidationError):
    tracer = getattr(request.state, "tracer", None)
    request_id = tracer.request_id if tracer else None
    print(f"[REQUEST] ❌ Invalid request to {request.url.path}: {len(exc.errors())} issue(s)")
    body = ErrorResponse(error="Invalid request", request_id=request_id, details=jsonable_encoder(exc.errors()))
    return JSONResponse(status_code=400, content=body.to_wire())


def _internal_error(tracer: RequestTracer, error: Exception) -> JSONResponse:
    traceback.print_exc()
    tracer.log("request_error", error=str(error))
    body = ErrorResponse(error=str(error) or "Internal server error", request_id=tracer.request_id)
    return JSONResponse(status_code=500, content=body.to_wire())


# ── Dependencies ──────────────────────────────────────────────
def get_tracer(request: Request) -> RequestTracer:
    return request.state.tracer


def get_pipeline(request: Request) -> GamePipeline:
    return request.app.state.pipeline


def get_announcement_graph(request: Request) -> AnnouncementGraph:
    return request.app.state.announcement_graph


def get_recognition_client(request: Request) -> GeminiClient:
    return request.app.state.recognition_client


def get_recognition_agent(request: Request) -> RecognitionAgent:
    return request.app.state.recognition_agent


# ── Catalogue & Session Start ─────────────────────────────────
@app.get("/game/start")
async def game_catalogue():
    """Available MRT lines and the vocabulary for each."""
    return CatalogueResponse(lines=MRT_LINES, vocabulary=VOCABULARY).to_wire()


@app.post("/game/start")
async def game_start(payload: StartRequest, tracer: RequestTracer = Depends(get_tracer)):
    print(f"[REQUEST] POST /game/start line={payload.line_id} word={payload.word_id}")

    line = get_line(payload.line_id)
    if line is None:
        body = ErrorResponse(error=f"Unknown MRT line: {payload.line_id}", request_id=tracer.request_id)
        return JSONResponse(status_code=400, content=body.to_wire())

    word = get_word_by_id(payload.line_id, payload.word_id)
    if word is None:
        body = ErrorResponse(
            error=f"Unknown word: {payload.word_id} in line {payload.line_id}",
            request_id=tracer.request_id,
        )
        return JSONResponse(status_code=400, content=body.to_wire())

    session = create_initial_session(line.id, word.id, word.word, word.level)
    tracer.session_id = session.session_id
    tracer.log("session_created", word=word.word, level=word.level)

    return StartResponse(
        session=session,
        word=word,
        line=LineSummary(id=line.id, name=line.name, color=line.color),
    ).to_wire()


# ── Validation ────────────────────────────────────────────────
@app.post("/game/validate")
async def game_validate(
    payload: ValidateRequest,
    tracer: RequestTracer = Depends(get_tracer),
    pipeline: GamePipeline = Depends(get_pipeline),
):
    session = payload.session
    tracer.session_id = session.session_id
    tracer.log(
        "request_parsed",
        word=session.expected_word,
        transcription=session.final_transcription,
    )

    stats = payload.streaming_stats
    if stats is not None and LIVE_STREAM_KEY not in session.cost_tracking:
        streaming_cost = estimate_streaming_cost(
            frame_count=stats.frame_count,
            final_transcription=session.final_transcription or "",
            duration_ms=session.duration_ms,
            model=stats.model,
            transcription_count=stats.transcription_count,
        )
        session = session.model_copy(
            update={"cost_tracking": {**session.cost_tracking, LIVE_STREAM_KEY: streaming_cost}}
        )

    config = PipelineConfig(
        line_id=session.line_id,
        word_id=session.word_id,
        expected_word=session.expected_word,
        level=session.level,
        output_dir=AGENT_LOG_DIR,
    )

    try:
        with tracer.stage("pipeline"):
            result = await pipeline.run_validation(session, config)
    except Exception as e:
        return _internal_error(tracer, e)

    state = result.state
    response = ValidateResponse(
        success=result.success,
        session_id=state.session_id,
        request_id=tracer.request_id,
        score=state.score,
        validation=state.validation_result,
        scoring=state.scoring_result,
        feedback=state.feedback_result,
        metrics=ValidationMetrics(
            total_cost=state.total_cost,
            total_input_tokens=state.total_input_tokens,
            total_output_tokens=state.total_output_tokens,
            duration_ms=state.duration_ms,
        ),
        error=result.error or state.error,
    )
    tracer.log(
        "request_complete",
        success=response.success,
        score=response.score,
        totalCost=state.total_cost,
        stages=tracer.timings,
    )
    return response.to_wire()


# ── Announcement ──────────────────────────────────────────────
@app.post("/game/announce")
async def game_announce(
    payload: AnnounceRequest,
    tracer: RequestTracer = Depends(get_tracer),
    graph: AnnouncementGraph = Depends(get_announcement_graph),
):
    tracer.log(
        "request_parsed",
        target=payload.target,
        transcription=payload.transcription,
        matchPercentage=payload.match_percentage,
    )

    try:
        with tracer.stage("announcement_graph"):
            result = await graph.run(
                AnnouncementInput(
                    target=payload.target,
                    transcription=payload.transcription,
                    match_percentage=payload.match_percentage,
                ),
                AGENT_LOG_DIR,
            )
    except Exception as e:
        return _internal_error(tracer, e)

    tracer.log("request_complete", scenario=result.scenario, totalCost=result.metrics.total_cost)
    return AnnounceResponse(
        success=result.error is None,
        request_id=tracer.request_id,
        scenario=result.scenario,
        message=result.message,
        phonetic=result.phonetic,
        audio_base64=result.audio_base64,
        audio_mime_type=result.audio_mime_type,
        metrics=result.metrics,
        error=result.error,
    ).to_wire()


# ── Single-Letter Recognition ─────────────────────────────────
@app.post("/game/recognize")
async def game_recognize(
    payload: RecognizeRequest,
    tracer: RequestTracer = Depends(get_tracer),
    client: GeminiClient = Depends(get_recognition_client),
    agent: RecognitionAgent = Depends(get_recognition_agent),
):
    print(f"[REQUEST] POST /game/recognize image={len(payload.image)} chars")

    try:
        with tracer.stage("recognition"):
            result = await agent.run(client, RecognitionInput(image=payload.image), "recognition_0", AGENT_LOG_DIR)
    except Exception as e:
        return _internal_error(tracer, e)

    meta = result.metadata
    response = RecognizeResponse(
        success=result.ok,
        letter=result.content.letter if result.ok else UNRECOGNIZED_LETTER,
        metrics=RecognitionMetrics(
            cost=meta.cost,
            input_tokens=meta.input_tokens,
            output_tokens=meta.output_tokens,
            latency_ms=meta.latency_ms,
            model=meta.model,
        ),
        error=result.error.message if result.error else None,
    )
    print(
        f'[REQUEST] Recognized: success={response.success}, letter="{response.letter}", '
        f"cost=${meta.cost:.4f}"
    )
    return response.to_wire()


# ── Connection Pre-Warm & Health ──────────────────────────────
@app.get("/game/ping")
async def game_ping():
    return JSONResponse(
        {"ok": True, "timestamp": int(time.time() * 1000)},
        headers={"Cache-Control": "no-store, no-cache, must-revalidate"},
    )


@app.get("/health")
async def health():
    return {"status": "ok", "service": "signline", "version": __version__}
