"""SQLModel data models.

This module defines the application's database tables using SQLModel.
A `PracticeSession` row carries the fields shared by every practice
type; each specialized table (quiz, reading, vocabulary) uses the
session id as its own primary key and loads the session through a
relationship, so the two are created and read as one record.

List-valued columns are stored as JSON. Mutators must assign a new
list rather than appending in place so SQLAlchemy sees the change.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field, Relationship


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PracticeType(str, Enum):
    QUIZ = "quiz"
    READING = "reading"
    VOCABULARY = "vocabulary"


class SessionStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


TERMINAL_STATUSES = (SessionStatus.COMPLETED, SessionStatus.ABANDONED)


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `username`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    """
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    created_at: datetime = Field(default_factory=utcnow)


class PracticeSession(SQLModel, table=True):
    """Fields common to every practice run.

    `completed_at` is set if and only if `status` is `completed`.
    `score` and `progress` are refreshed by the services after every
    mutation; `progress` is kept in the 0..100 range and never lowered.
    """
    __tablename__ = "practice_sessions"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    chapter_id: Optional[str] = Field(default=None, index=True)
    practice_type: PracticeType = Field(index=True)
    status: SessionStatus = Field(default=SessionStatus.IN_PROGRESS, index=True)
    score: float = 0
    progress: float = 0
    max_score: float = 100
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)


class QuizPractice(SQLModel, table=True):
    """Per-question counters of a quiz run.

    `question_results` holds one dict per answered question:
    `{question_index, answer, is_correct, time_spent_seconds, answered_at}`.
    """
    __tablename__ = "quiz_practices"

    session_id: uuid.UUID = Field(foreign_key="practice_sessions.id", primary_key=True)
    total_questions: int
    questions_answered: int = 0
    correct_answers: int = 0
    wrong_answers: int = 0
    last_question_index: Optional[int] = None
    average_time_per_question: Optional[float] = None
    quiz_category: Optional[str] = Field(default=None, index=True)
    difficulty_level: Optional[str] = Field(default=None, index=True)
    time_per_question: Optional[int] = None
    question_results: List[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    practice_session: PracticeSession = Relationship(sa_relationship_kwargs={"lazy": "joined", "innerjoin": True})


class ReadingPractice(SQLModel, table=True):
    """Progress through one text plus comprehension answers.

    `bookmarks` and `vocabulary_encountered` are append-only lists of
    dicts; duplicates are kept as submitted.
    """
    __tablename__ = "reading_practices"

    session_id: uuid.UUID = Field(foreign_key="practice_sessions.id", primary_key=True)
    text_id: Optional[str] = Field(default=None, index=True)
    text_title: Optional[str] = None
    total_words: int
    words_read: int = 0
    reading_speed_wpm: Optional[float] = None
    comprehension_questions_total: int = 0
    comprehension_questions_answered: int = 0
    comprehension_questions_correct: int = 0
    comprehension_answers: List[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    reading_time_seconds: int = 0
    difficulty_level: Optional[str] = Field(default=None, index=True)
    text_category: Optional[str] = Field(default=None, index=True)
    last_position: int = 0
    bookmarks: List[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    vocabulary_encountered: List[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    practice_session: PracticeSession = Relationship(sa_relationship_kwargs={"lazy": "joined", "innerjoin": True})


class VocabularyPractice(SQLModel, table=True):
    """Study and review counters for a word list."""
    __tablename__ = "vocabulary_practices"

    session_id: uuid.UUID = Field(foreign_key="practice_sessions.id", primary_key=True)
    words_studied: int = 0
    words_learned: int = 0
    correct_answers: int = 0
    incorrect_answers: int = 0
    total_attempts: int = 0
    last_word_studied: Optional[str] = None
    words_reviewed: int = 0
    streak_count: int = 0
    best_streak: int = 0
    difficulty_level: Optional[str] = Field(default=None, index=True)
    target_words: int = 0
    current_word_index: int = 0
    studied_words: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    reviewed_words: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    practice_session: PracticeSession = Relationship(sa_relationship_kwargs={"lazy": "joined", "innerjoin": True})
