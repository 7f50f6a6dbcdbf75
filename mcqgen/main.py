"""FastAPI application wiring for the MCQ generation backend."""

from __future__ import annotations

import logging

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .assistant import AssistantError, OpenAIAssistantClient
from .catalog import available_file_ids
from .config import Settings
from .metrics import METRICS
from .models import (
    AskRequest,
    AskResponse,
    ErrorResponse,
    LeaderboardEntry,
    LeaderboardResponse,
    ScoreSubmission,
)
from .repositories import StoreUnavailableError
from .services import (
    ConfigurationError,
    GenerationFailed,
    LeaderboardService,
    QuestionService,
)
from .storage import InMemoryStore, MongoStore


logger = logging.getLogger(__name__)

settings = Settings.from_env()

app = FastAPI(title="TrainWithMe MCQ Service", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    allow_credentials=True,
)


def get_question_service() -> QuestionService:
    return app.state.question_service


def get_leaderboard_service() -> LeaderboardService:
    return app.state.leaderboard_service


def _error(status_code: int, error: str, details: str) -> JSONResponse:
    payload = ErrorResponse(error=error, details=details)
    return JSONResponse(status_code=status_code, content=payload.model_dump())


@app.exception_handler(RequestValidationError)
async def request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    return _error(422, "Invalid request", details)


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return _error(500, "Internal server error", str(exc))


@app.on_event("startup")
async def startup() -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if settings.mongodb_uri:
        store = MongoStore(settings.mongodb_uri, settings.mongodb_db)
        try:
            await store.ensure_indexes()
        except StoreUnavailableError as exc:
            logger.warning("MongoDB unavailable at startup, continuing without indexes: %s", exc)
    else:
        logger.warning("MONGODB_URI is not set; questions are cached in memory only")
        store = InMemoryStore()

    assistant = OpenAIAssistantClient(settings.openai_api_key, settings.assistant_id)
    if settings.sync_files_on_startup:
        try:
            await assistant.sync_reference_files(available_file_ids())
        except AssistantError as exc:
            logger.error("Error updating assistant with file search: %s", exc)

    app.state.store = store
    app.state.question_service = QuestionService(assistant, store, store, settings=settings)
    app.state.leaderboard_service = LeaderboardService(store)


@app.on_event("shutdown")
def shutdown() -> None:
    store = getattr(app.state, "store", None)
    if store is not None:
        store.close()


@app.post("/ask", response_model=AskResponse)
async def ask(request: AskRequest, service: QuestionService = Depends(get_question_service)):
    try:
        records = await service.answer(request)
    except ConfigurationError as exc:
        logger.warning("Rejected request for session %s: %s", request.session_id, exc)
        return _error(400, "Invalid request", str(exc))
    except GenerationFailed as exc:
        logger.error(
            "Generation failed for session %s, category %s after %d retries: %s",
            exc.session_id,
            exc.category,
            exc.retry_count,
            exc,
        )
        return _error(503, "AI service error", str(exc))
    answers = records[0] if request.count == 1 else records
    return AskResponse(answers=answers)


@app.post("/leaderboard", response_model=LeaderboardEntry)
async def submit_score(
    submission: ScoreSubmission,
    service: LeaderboardService = Depends(get_leaderboard_service),
):
    try:
        return await service.submit(submission)
    except StoreUnavailableError as exc:
        logger.error("Could not record score for %s: %s", submission.username, exc)
        return _error(503, "Leaderboard unavailable", str(exc))


@app.get("/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(service: LeaderboardService = Depends(get_leaderboard_service)):
    try:
        entries = await service.top()
    except StoreUnavailableError as exc:
        logger.error("Could not load leaderboard: %s", exc)
        return _error(503, "Leaderboard unavailable", str(exc))
    return LeaderboardResponse(entries=entries)


@app.get("/metrics")
def metrics() -> dict:
    return METRICS.snapshot()



def run() -> None:
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()


__all__ = ["app", "run"]
