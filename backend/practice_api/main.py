"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the practice sessions
backend. Controllers are intentionally thin: they accept requests,
delegate to services, and return responses built by `mappers`.

Endpoints implemented:
- POST /auth/register
- POST /auth/login
- GET  /health
- POST /practices/quiz
- GET  /practices/quiz/categories
- GET  /practices/quiz/{id}
- POST /practices/quiz/{id}/answer-question
- POST /practices/reading
- GET  /practices/reading/{id}
- POST /practices/reading/{id}/update-progress
- POST /practices/reading/{id}/answer-comprehension
- POST /practices/reading/{id}/add-bookmark
- POST /practices/reading/{id}/add-vocabulary
- POST /practices/vocabulary
- GET  /practices/vocabulary/{id}
- POST /practices/vocabulary/{id}/study-word
- POST /practices/vocabulary/{id}/review-word
- POST /practices/{type}/{id}/complete and /abandon
- GET  /practices/{type}/user/{user_id}/sessions
- GET  /practices/{type}/user/{user_id}/stats
"""

import json
import logging
import time
import uuid
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlmodel import Session

from . import mappers, models, repositories, services
from .auth import get_current_user
from .config import settings
from .database import create_db_and_tables, get_session
from .errors import PracticeError
from .schemas import (
    AddBookmarkIn,
    AddVocabularyWordIn,
    AnswerComprehensionIn,
    AnswerQuizQuestionIn,
    CreateQuizPracticeIn,
    CreateReadingPracticeIn,
    CreateVocabularyPracticeIn,
    QuizCategoryOut,
    QuizPracticeOut,
    QuizStatsOut,
    ReadingPracticeOut,
    ReadingStatsOut,
    RegisterIn,
    ReviewWordIn,
    StudyWordIn,
    TokenOut,
    UpdateReadingProgressIn,
    VocabularyPracticeOut,
    VocabularyStatsOut,
)
from .utils.rate_limit import InMemoryRateLimiter

app = FastAPI(title="Language Practice Sessions API")
logger = logging.getLogger("practice_api.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)
_rate_limiter = InMemoryRateLimiter()

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    if request.url.path.startswith("/practices"):
        logger.info(
            "request_done %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                },
                ensure_ascii=True,
            ),
        )
    return response


@app.exception_handler(PracticeError)
async def practice_error_handler(request: Request, exc: PracticeError):
    """Map service errors onto their HTTP status with a stable `error` kind."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "error": exc.kind})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and path/query params keep 422 but share the `validation_error` kind."""
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors()), "error": "validation_error"})


def practice_user(request: Request, user: models.User = Depends(get_current_user)) -> models.User:
    """Authenticated user for practice routes, throttled per user and route.

    The key uses the route template, so every session id under one
    endpoint shares a single bucket.
    """
    route = request.scope.get("route")
    key = f"{user.id}:{request.method}:{getattr(route, 'path', request.url.path)}"
    allowed, retry_after = _rate_limiter.allow(key, settings.RATE_LIMIT_PER_MIN, settings.RATE_LIMIT_WINDOW_SECONDS)
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail=f"rate limit exceeded; retry after {retry_after}s",
            headers={"Retry-After": str(retry_after)},
        )
    return user


@app.post('/auth/register')
def register(payload: RegisterIn, db: Session = Depends(get_session)):
    """Register a new user (idempotent).

    Returns existing user if the username already exists to make the
    operation idempotent (useful for automation/tests).
    """
    existing = repositories.UserRepository(db).get_by_username(payload.username)
    if existing:
        return {'id': existing.id, 'username': existing.username}
    user = services.AuthService(db).register(payload.username, payload.password)
    return {'id': user.id, 'username': user.username}


@app.post('/auth/login', response_model=TokenOut)
def login(payload: RegisterIn, db: Session = Depends(get_session)):
    """Authenticate a user and return a short-lived JWT token."""
    token = services.AuthService(db).authenticate(payload.username, payload.password)
    if not token:
        raise HTTPException(status_code=401, detail='invalid credentials')
    return {'access_token': token}


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}


# --- quiz -------------------------------------------------------------------

@app.post('/practices/quiz', status_code=201, response_model=QuizPracticeOut, response_model_exclude_none=True)
def create_quiz_practice(payload: CreateQuizPracticeIn, db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    """Start a new quiz practice session for the authenticated user."""
    practice = services.QuizPracticeService(db).create(
        user.id,
        total_questions=payload.total_questions,
        chapter_id=payload.chapter_id,
        quiz_category=payload.quiz_category,
        difficulty_level=payload.difficulty_level,
        time_per_question=payload.time_per_question,
    )
    return mappers.quiz_to_response(practice)


@app.get('/practices/quiz/categories', response_model=List[QuizCategoryOut])
def quiz_categories(db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    """List quiz categories with the number of quizzes recorded in each."""
    return services.QuizPracticeService(db).categories()


@app.get('/practices/quiz/{practice_id}', response_model=QuizPracticeOut, response_model_exclude_none=True)
def get_quiz_practice(practice_id: uuid.UUID, db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    practice = services.QuizPracticeService(db).get(practice_id, user.id)
    return mappers.quiz_to_response(practice)


@app.post('/practices/quiz/{practice_id}/answer-question', response_model=QuizPracticeOut, response_model_exclude_none=True)
def answer_quiz_question(practice_id: uuid.UUID, payload: AnswerQuizQuestionIn, db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    """Record one answer; the quiz completes when every question is answered."""
    practice = services.QuizPracticeService(db).answer_question(
        practice_id,
        user.id,
        question_index=payload.question_index,
        answer=payload.answer,
        is_correct=payload.is_correct,
        time_spent_seconds=payload.time_spent_seconds,
    )
    return mappers.quiz_to_response(practice)


@app.post('/practices/quiz/{practice_id}/complete', response_model=QuizPracticeOut, response_model_exclude_none=True)
def complete_quiz_practice(practice_id: uuid.UUID, db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    return mappers.quiz_to_response(services.QuizPracticeService(db).complete(practice_id, user.id))


@app.post('/practices/quiz/{practice_id}/abandon', response_model=QuizPracticeOut, response_model_exclude_none=True)
def abandon_quiz_practice(practice_id: uuid.UUID, db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    return mappers.quiz_to_response(services.QuizPracticeService(db).abandon(practice_id, user.id))


@app.get('/practices/quiz/user/{user_id}/sessions', response_model=List[QuizPracticeOut], response_model_exclude_none=True)
def list_quiz_sessions(
    user_id: int,
    category: Optional[str] = None,
    difficulty: Optional[str] = None,
    completed: Optional[bool] = None,
    limit: Optional[int] = None,
    offset: int = 0,
    db: Session = Depends(get_session),
    user: models.User = Depends(practice_user),
):
    """Return the user's quiz sessions, newest first."""
    practices = services.QuizPracticeService(db).list_sessions(
        user_id, user.id, category=category, difficulty=difficulty, completed=completed, limit=limit, offset=offset
    )
    return mappers.quiz_to_response_array(practices)


@app.get('/practices/quiz/user/{user_id}/stats', response_model=QuizStatsOut)
def quiz_stats(user_id: int, db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    return services.QuizPracticeService(db).stats(user_id, user.id)


# --- reading ----------------------------------------------------------------

@app.post('/practices/reading', status_code=201, response_model=ReadingPracticeOut, response_model_exclude_none=True)
def create_reading_practice(payload: CreateReadingPracticeIn, db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    """Start a new reading practice session for the authenticated user."""
    practice = services.ReadingPracticeService(db).create(
        user.id,
        total_words=payload.total_words,
        comprehension_questions_total=payload.comprehension_questions_total,
        chapter_id=payload.chapter_id,
        text_id=payload.text_id,
        text_title=payload.text_title,
        difficulty_level=payload.difficulty_level,
        text_category=payload.text_category,
    )
    return mappers.reading_to_response(practice)


@app.get('/practices/reading/{practice_id}', response_model=ReadingPracticeOut, response_model_exclude_none=True)
def get_reading_practice(practice_id: uuid.UUID, db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    practice = services.ReadingPracticeService(db).get(practice_id, user.id)
    return mappers.reading_to_response(practice)


@app.post('/practices/reading/{practice_id}/update-progress', response_model=ReadingPracticeOut, response_model_exclude_none=True)
def update_reading_progress(practice_id: uuid.UUID, payload: UpdateReadingProgressIn, db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    """Store the new absolute `words_read` and add `elapsed_seconds` to reading time."""
    practice = services.ReadingPracticeService(db).update_progress(
        practice_id,
        user.id,
        words_read=payload.words_read,
        position=payload.position,
        elapsed_seconds=payload.elapsed_seconds,
    )
    return mappers.reading_to_response(practice)


@app.post('/practices/reading/{practice_id}/answer-comprehension', response_model=ReadingPracticeOut, response_model_exclude_none=True)
def answer_comprehension(practice_id: uuid.UUID, payload: AnswerComprehensionIn, db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    practice = services.ReadingPracticeService(db).answer_comprehension(
        practice_id, user.id, question_id=payload.question_id, is_correct=payload.is_correct
    )
    return mappers.reading_to_response(practice)


@app.post('/practices/reading/{practice_id}/add-bookmark', response_model=ReadingPracticeOut, response_model_exclude_none=True)
def add_bookmark(practice_id: uuid.UUID, payload: AddBookmarkIn, db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    practice = services.ReadingPracticeService(db).add_bookmark(
        practice_id, user.id, position=payload.position, note=payload.note
    )
    return mappers.reading_to_response(practice)


@app.post('/practices/reading/{practice_id}/add-vocabulary', response_model=ReadingPracticeOut, response_model_exclude_none=True)
def add_vocabulary_word(practice_id: uuid.UUID, payload: AddVocabularyWordIn, db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    practice = services.ReadingPracticeService(db).add_vocabulary_word(
        practice_id,
        user.id,
        word=payload.word,
        definition=payload.definition,
        translation=payload.translation,
        position=payload.position,
    )
    return mappers.reading_to_response(practice)


@app.post('/practices/reading/{practice_id}/complete', response_model=ReadingPracticeOut, response_model_exclude_none=True)
def complete_reading_practice(practice_id: uuid.UUID, db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    return mappers.reading_to_response(services.ReadingPracticeService(db).complete(practice_id, user.id))


@app.post('/practices/reading/{practice_id}/abandon', response_model=ReadingPracticeOut, response_model_exclude_none=True)
def abandon_reading_practice(practice_id: uuid.UUID, db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    return mappers.reading_to_response(services.ReadingPracticeService(db).abandon(practice_id, user.id))


@app.get('/practices/reading/user/{user_id}/sessions', response_model=List[ReadingPracticeOut], response_model_exclude_none=True)
def list_reading_sessions(
    user_id: int,
    category: Optional[str] = None,
    difficulty: Optional[str] = None,
    completed: Optional[bool] = None,
    limit: Optional[int] = None,
    offset: int = 0,
    db: Session = Depends(get_session),
    user: models.User = Depends(practice_user),
):
    """Return the user's reading sessions, newest first.

    `category` filters on the text category.
    """
    practices = services.ReadingPracticeService(db).list_sessions(
        user_id, user.id, category=category, difficulty=difficulty, completed=completed, limit=limit, offset=offset
    )
    return mappers.reading_to_response_array(practices)


@app.get('/practices/reading/user/{user_id}/stats', response_model=ReadingStatsOut, response_model_exclude_none=True)
def reading_stats(user_id: int, db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    return services.ReadingPracticeService(db).stats(user_id, user.id)


# --- vocabulary -------------------------------------------------------------

@app.post('/practices/vocabulary', status_code=201, response_model=VocabularyPracticeOut, response_model_exclude_none=True)
def create_vocabulary_practice(payload: CreateVocabularyPracticeIn, db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    """Start a new vocabulary practice session for the authenticated user."""
    practice = services.VocabularyPracticeService(db).create(
        user.id,
        chapter_id=payload.chapter_id,
        difficulty_level=payload.difficulty_level,
        target_words=payload.target_words,
    )
    return mappers.vocabulary_to_response(practice)


@app.get('/practices/vocabulary/{practice_id}', response_model=VocabularyPracticeOut, response_model_exclude_none=True)
def get_vocabulary_practice(practice_id: uuid.UUID, db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    practice = services.VocabularyPracticeService(db).get(practice_id, user.id)
    return mappers.vocabulary_to_response(practice)


@app.post('/practices/vocabulary/{practice_id}/study-word', response_model=VocabularyPracticeOut, response_model_exclude_none=True)
def study_word(practice_id: uuid.UUID, payload: StudyWordIn, db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    practice = services.VocabularyPracticeService(db).study_word(
        practice_id, user.id, word_id=payload.word_id, was_correct=payload.was_correct
    )
    return mappers.vocabulary_to_response(practice)


@app.post('/practices/vocabulary/{practice_id}/review-word', response_model=VocabularyPracticeOut, response_model_exclude_none=True)
def review_word(practice_id: uuid.UUID, payload: ReviewWordIn, db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    practice = services.VocabularyPracticeService(db).review_word(
        practice_id, user.id, word_id=payload.word_id, was_correct=payload.was_correct
    )
    return mappers.vocabulary_to_response(practice)


@app.post('/practices/vocabulary/{practice_id}/complete', response_model=VocabularyPracticeOut, response_model_exclude_none=True)
def complete_vocabulary_practice(practice_id: uuid.UUID, db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    return mappers.vocabulary_to_response(services.VocabularyPracticeService(db).complete(practice_id, user.id))


@app.post('/practices/vocabulary/{practice_id}/abandon', response_model=VocabularyPracticeOut, response_model_exclude_none=True)
def abandon_vocabulary_practice(practice_id: uuid.UUID, db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    return mappers.vocabulary_to_response(services.VocabularyPracticeService(db).abandon(practice_id, user.id))


@app.get('/practices/vocabulary/user/{user_id}/sessions', response_model=List[VocabularyPracticeOut], response_model_exclude_none=True)
def list_vocabulary_sessions(
    user_id: int,
    difficulty: Optional[str] = None,
    completed: Optional[bool] = None,
    limit: Optional[int] = None,
    offset: int = 0,
    db: Session = Depends(get_session),
    user: models.User = Depends(practice_user),
):
    """Return the user's vocabulary sessions, newest first."""
    practices = services.VocabularyPracticeService(db).list_sessions(
        user_id, user.id, difficulty=difficulty, completed=completed, limit=limit, offset=offset
    )
    return mappers.vocabulary_to_response_array(practices)


@app.get('/practices/vocabulary/user/{user_id}/stats', response_model=VocabularyStatsOut)
def vocabulary_stats(user_id: int, db: Session = Depends(get_session), user: models.User = Depends(practice_user)):
    return services.VocabularyPracticeService(db).stats(user_id, user.id)
