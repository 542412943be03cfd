import logging
import random
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from lingua.application.card_service import CardService
from lingua.application.config import AppConfig, resolve_config
from lingua.application.exercises import ExercisePrompt, answers_match, build_prompt
from lingua.application.factory import get_card_repository, get_preferences_repository
from lingua.application.preferences_service import ExercisePreferencesService
from lingua.application.queue_builder import filter_for_practice
from lingua.application.session import AnswerState, PracticeSession, SessionState
from lingua.consts import VERSION
from lingua.domain.errors import CardNotFoundError, LinguaError, PersistenceError, ValidationError
from lingua.domain.ports import CardRepository, PreferencesRepository

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("lingua.server")


@dataclass
class Runtime:
    """Services shared by every request, plus the single running practice session."""

    config: AppConfig
    cards: CardService
    preferences: ExercisePreferencesService
    session: PracticeSession
    rng: random.Random
    prompt: ExercisePrompt | None = None
    prompt_key: tuple | None = field(default=None, repr=False)


_runtime: Runtime | None = None


async def _log_completion(total: int) -> None:
    logger.info(f"Practice session finished after {total} exercises")


def configure(
    config: AppConfig | None = None,
    card_repository: CardRepository | None = None,
    preferences_repository: PreferencesRepository | None = None,
) -> Runtime:
    """Build the runtime, replacing any previous one."""
    global _runtime
    config = config or resolve_config()
    card_repository = card_repository or get_card_repository(config)
    preferences_repository = preferences_repository or get_preferences_repository(config)
    rng = random.Random(config.seed)

    _runtime = Runtime(
        config=config,
        cards=CardService(card_repository),
        preferences=ExercisePreferencesService(preferences_repository),
        session=PracticeSession(
            card_repository,
            on_session_complete=_log_completion,
            persist_timeout=config.persist_timeout,
            rng=rng,
        ),
        rng=rng,
    )
    return _runtime


def get_runtime() -> Runtime:
    return _runtime or configure()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Lingua Server v{VERSION} starting up...")
    yield
    # Shutdown
    rt = _runtime
    if rt is not None:
        rt.session.end_session()
    logger.info("Lingua Server shutting down...")


app = FastAPI(
    title="Lingua Server",
    description="Practice session daemon for lingua front ends.",
    version=VERSION,
    lifespan=lifespan,
)


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


start_time = time.time()


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


# --- Session models ---


class StartRequest(BaseModel):
    language: str | None = None  # overrides the configured language filter
    limit: int | None = None
    resume: bool = False


class CheckRequest(BaseModel):
    # Either a typed answer, or a self-assessed result for recall exercises.
    answer: str | None = None
    correct: bool | None = None


class OverrideRequest(BaseModel):
    correct: bool


class ConfirmRequest(BaseModel):
    correct: bool | None = None  # defaults to the checked result


class ExerciseView(BaseModel):
    card_id: str
    exercise_type: str
    display_name: str
    question: str
    options: list[str] | None = None
    hint: str | None = None
    self_graded: bool = False


class SessionResponse(BaseModel):
    status: str
    answer_state: str
    current_index: int
    total_count: int
    remaining_count: int
    correct_count: int
    incorrect_count: int
    accuracy: float
    progress: float
    last_error: str | None = None
    current: ExerciseView | None = None
    answer_correct: bool | None = None
    expected: str | None = None  # revealed once the answer is checked


def _current_prompt(rt: Runtime, state: SessionState) -> ExercisePrompt | None:
    item = state.current_item
    if item is None:
        rt.prompt, rt.prompt_key = None, None
        return None
    key = (state.current_index, item.key, state.options)
    if rt.prompt_key != key:
        rt.prompt = build_prompt(item, state.options, rng=rt.rng)
        rt.prompt_key = key
    return rt.prompt


def _session_response(rt: Runtime) -> SessionResponse:
    state = rt.session.state
    prompt = _current_prompt(rt, state)
    current = None
    if prompt is not None:
        current = ExerciseView(
            card_id=state.current_item.card.id,
            exercise_type=prompt.exercise_type.value,
            display_name=prompt.exercise_type.display_name,
            question=prompt.question,
            options=list(prompt.options) if prompt.options else None,
            hint=prompt.hint,
            self_graded=prompt.self_graded,
        )
    answered = state.answer_state is AnswerState.ANSWERED
    return SessionResponse(
        status=state.status.value,
        answer_state=state.answer_state.value,
        current_index=state.current_index,
        total_count=state.total_count,
        remaining_count=state.remaining_count,
        correct_count=state.correct_count,
        incorrect_count=state.incorrect_count,
        accuracy=state.accuracy,
        progress=state.progress,
        last_error=state.last_error,
        current=current,
        answer_correct=state.current_answer_correct if answered else None,
        expected=prompt.expected if (answered and prompt) else None,
    )


def _http_error(e: LinguaError) -> HTTPException:
    if isinstance(e, CardNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, PersistenceError):
        return HTTPException(status_code=503, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


def _require_active(rt: Runtime) -> SessionState:
    state = rt.session.state
    if not state.is_active:
        raise HTTPException(status_code=409, detail="No active practice session")
    return state


# --- Session endpoints ---


@app.post("/session/start", response_model=SessionResponse)
async def start_session(req: StartRequest):
    """
    Build a queue from the due cards and start practicing.
    """
    rt = get_runtime()
    logger.info(f"Session start requested via API: {req}")
    language = (req.language or rt.config.language or "").strip().lower() or None

    try:
        preferences = await rt.preferences.load()
        pool = await rt.cards.list_cards()
    except LinguaError as e:
        logger.error(f"Could not load practice data: {e}", exc_info=True)
        raise _http_error(e) from e

    cards = filter_for_practice(pool, preferences, language)
    if req.limit:
        cards = cards[: req.limit]
    rt.session.start_session(cards, preferences, pool=pool, resume=req.resume)
    return _session_response(rt)


@app.get("/session", response_model=SessionResponse)
async def get_session():
    return _session_response(get_runtime())


@app.post("/session/check", response_model=SessionResponse)
async def check_answer(req: CheckRequest):
    rt = get_runtime()
    state = _require_active(rt)
    if state.answer_state is not AnswerState.PENDING:
        raise HTTPException(status_code=409, detail="Answer already checked")

    prompt = _current_prompt(rt, state)
    if req.answer is not None:
        rt.session.update_user_input(req.answer)
        correct = answers_match(req.answer, prompt.expected)
    elif req.correct is not None:
        correct = req.correct
    else:
        raise HTTPException(status_code=400, detail="Provide 'answer' or 'correct'")

    rt.session.check_answer(correct)
    return _session_response(rt)


@app.post("/session/override", response_model=SessionResponse)
async def override_answer(req: OverrideRequest):
    rt = get_runtime()
    state = _require_active(rt)
    if state.answer_state is not AnswerState.ANSWERED:
        raise HTTPException(status_code=409, detail="Nothing to override yet")
    rt.session.override_answer(req.correct)
    return _session_response(rt)


@app.post("/session/confirm", response_model=SessionResponse)
async def confirm_answer(req: ConfirmRequest):
    """
    Persist the checked answer and advance to the next exercise.
    """
    rt = get_runtime()
    state = _require_active(rt)
    if state.answer_state is not AnswerState.ANSWERED:
        raise HTTPException(status_code=409, detail="Check an answer before confirming")

    correct = req.correct if req.correct is not None else bool(state.current_answer_correct)
    if not await rt.session.confirm_answer_and_advance(correct):
        raise HTTPException(status_code=503, detail=rt.session.state.last_error)
    return _session_response(rt)


@app.post("/session/skip", response_model=SessionResponse)
async def skip_exercise():
    rt = get_runtime()
    state = _require_active(rt)
    if state.answer_state is not AnswerState.PENDING:
        raise HTTPException(status_code=409, detail="Confirm the checked answer instead")
    if not await rt.session.skip_exercise():
        raise HTTPException(status_code=503, detail=rt.session.state.last_error)
    return _session_response(rt)


@app.post("/session/restart", response_model=SessionResponse)
async def restart_session():
    rt = get_runtime()
    rt.session.restart_session()
    return _session_response(rt)


@app.post("/session/end", response_model=SessionResponse)
async def end_session():
    rt = get_runtime()
    rt.session.end_session()
    return _session_response(rt)


# --- Cards ---


@app.delete("/cards/{card_id}")
async def delete_card(card_id: str):
    """
    Delete a card and drop it from the running session.
    """
    rt = get_runtime()
    try:
        await rt.cards.delete_card(card_id)
    except LinguaError as e:
        raise _http_error(e) from e

    await rt.session.remove_card_from_queue(card_id)
    return {"deleted": card_id}


class CardUpdateRequest(BaseModel):
    front_text: str | None = None
    back_text: str | None = None
    category: str | None = None
    tags: list[str] | None = None
    difficulty: int | None = None
    notes: str | None = None
    examples: list[str] | None = None
    german_article: str | None = None


@app.patch("/cards/{card_id}")
async def update_card(card_id: str, req: CardUpdateRequest):
    """
    Edit a card and swap the new version into the running session.
    """
    rt = get_runtime()
    changes = req.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="Nothing to update")
    try:
        updated = await rt.cards.update_card(card_id, **changes)
    except LinguaError as e:
        raise _http_error(e) from e

    rt.session.update_card_in_queue(updated)
    return updated.to_dict()
