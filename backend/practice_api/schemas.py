"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests. Request models only check shape; rules
that depend on the stored record (index bounds, monotonic counters)
are enforced by the services.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .models import PracticeType, SessionStatus


class RegisterIn(BaseModel):
    """Payload for user registration/login endpoints."""
    username: str = Field(min_length=1, max_length=128)
    password: str = Field(min_length=1)


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str


# --- requests ---------------------------------------------------------------

class CreateQuizPracticeIn(BaseModel):
    """Start a quiz practice session."""
    chapter_id: Optional[str] = None
    total_questions: int = Field(ge=1, le=500)
    quiz_category: Optional[str] = None
    difficulty_level: Optional[str] = None
    time_per_question: Optional[int] = Field(default=None, ge=1)


class AnswerQuizQuestionIn(BaseModel):
    """A single answered quiz question."""
    question_index: int
    answer: str
    is_correct: bool
    time_spent_seconds: Optional[float] = Field(default=None, ge=0)


class CreateReadingPracticeIn(BaseModel):
    """Start a reading practice session for one text."""
    chapter_id: Optional[str] = None
    text_id: Optional[str] = None
    text_title: Optional[str] = None
    total_words: int = Field(ge=1)
    comprehension_questions_total: int = Field(default=0, ge=0)
    difficulty_level: Optional[str] = None
    text_category: Optional[str] = None


class UpdateReadingProgressIn(BaseModel):
    words_read: int
    position: int
    elapsed_seconds: int = 0


class AnswerComprehensionIn(BaseModel):
    question_id: str
    is_correct: bool


class AddBookmarkIn(BaseModel):
    position: int
    note: Optional[str] = Field(default=None, max_length=500)


class AddVocabularyWordIn(BaseModel):
    word: str
    definition: Optional[str] = None
    translation: Optional[str] = None
    position: Optional[int] = None


class CreateVocabularyPracticeIn(BaseModel):
    """Start a vocabulary practice session.

    `target_words` is the number of words the learner intends to study;
    it only drives `progress` and may be left at 0.
    """
    chapter_id: Optional[str] = None
    difficulty_level: Optional[str] = None
    target_words: int = Field(default=0, ge=0)


class StudyWordIn(BaseModel):
    word_id: str
    was_correct: bool


class ReviewWordIn(BaseModel):
    word_id: str
    was_correct: bool


# --- responses --------------------------------------------------------------

class PracticeSessionOut(BaseModel):
    """Session fields shared by every practice response."""
    id: uuid.UUID
    user_id: int
    chapter_id: Optional[str] = None
    practice_type: PracticeType
    status: SessionStatus
    score: float
    progress: float
    max_score: float
    started_at: datetime
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class QuestionResultOut(BaseModel):
    question_index: int
    answer: str
    is_correct: bool
    time_spent_seconds: Optional[float] = None
    answered_at: datetime


class QuizPracticeOut(PracticeSessionOut):
    total_questions: int
    questions_answered: int
    correct_answers: int
    wrong_answers: int
    accuracy_percentage: float
    completion_percentage: float
    last_question_index: Optional[int] = None
    average_time_per_question: Optional[float] = None
    quiz_category: Optional[str] = None
    difficulty_level: Optional[str] = None
    time_per_question: Optional[int] = None
    question_results: List[QuestionResultOut]


class BookmarkOut(BaseModel):
    position: int
    note: Optional[str] = None
    created_at: Optional[datetime] = None


class VocabularyWordOut(BaseModel):
    word: str
    definition: Optional[str] = None
    translation: Optional[str] = None
    position: Optional[int] = None
    added_at: Optional[datetime] = None


class ReadingPracticeOut(PracticeSessionOut):
    text_id: Optional[str] = None
    text_title: Optional[str] = None
    total_words: int
    words_read: int
    reading_progress: float
    reading_speed_wpm: Optional[float] = None
    comprehension_questions_total: int
    comprehension_questions_answered: int
    comprehension_questions_correct: int
    comprehension_score: float
    reading_time_seconds: int
    difficulty_level: Optional[str] = None
    text_category: Optional[str] = None
    last_position: int
    estimated_time_to_complete: int
    bookmarks: List[BookmarkOut]
    vocabulary_encountered: List[VocabularyWordOut]


class VocabularyPracticeOut(PracticeSessionOut):
    words_studied: int
    words_learned: int
    correct_answers: int
    incorrect_answers: int
    total_attempts: int
    accuracy_percentage: float
    last_word_studied: Optional[str] = None
    words_reviewed: int
    streak_count: int
    best_streak: int
    difficulty_level: Optional[str] = None
    target_words: int
    learning_rate: float
    current_word_index: int
    studied_words: List[str]
    reviewed_words: List[str]


class QuizCategoryOut(BaseModel):
    category: str
    display_name: str
    description: str
    total_quizzes: int


class QuizStatsOut(BaseModel):
    total_sessions: int
    completed_sessions: int
    completion_rate: float
    total_questions_answered: int
    total_correct_answers: int
    accuracy_percentage: float
    average_score: float


class ReadingStatsOut(BaseModel):
    total_sessions: int
    completed_sessions: int
    completion_rate: float
    total_words_read: int
    total_reading_time_seconds: int
    average_reading_speed_wpm: Optional[float] = None
    comprehension_score: float


class VocabularyStatsOut(BaseModel):
    total_sessions: int
    completed_sessions: int
    completion_rate: float
    total_words_studied: int
    total_words_learned: int
    total_attempts: int
    accuracy_percentage: float
    learning_rate: float
    best_streak: int
