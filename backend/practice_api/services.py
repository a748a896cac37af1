"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and the metric helpers. Services are intentionally thin: every
practice use case loads one record, checks ownership and state,
validates the payload, applies its counter updates and persists the
result through a single `save` call.

Checks run in a fixed order: missing record (`NotFoundError`), owner
mismatch (`ForbiddenError`), finished session (`ConflictError`), bad
payload (`ValidationError`). Nothing is modified before all checks
pass, so a rejected call leaves the stored record untouched.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import jwt
from passlib.context import CryptContext
from sqlmodel import Session

from . import metrics, models, repositories
from .config import settings
from .errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from .models import SessionStatus, utcnow

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
logger = logging.getLogger("practice_api.services")

QUIZ_CATEGORIES = [
    {"category": "grammar", "display_name": "Grammar", "description": "English grammar exercises"},
    {"category": "vocabulary", "display_name": "Vocabulary", "description": "Word meaning and usage questions"},
    {"category": "reading", "display_name": "Reading", "description": "Questions about short reading passages"},
    {"category": "listening", "display_name": "Listening", "description": "Questions based on audio clips"},
    {"category": "idioms", "display_name": "Idioms", "description": "Common idioms and phrasal verbs"},
]


class AuthService:
    """Authentication related operations (register + authenticate)."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, username: str, password: str) -> models.User:
        """Create a new user with a hashed password.

        Returns the persisted `User` instance.
        """
        hashed = PWD_CTX.hash(password)
        u = models.User(username=username, password_hash=hashed)
        return self.user_repo.create(u)

    def authenticate(self, username: str, password: str):
        """Verify credentials and return a signed JWT token on success.

        Returns `None` if authentication fails.
        """
        user = self.user_repo.get_by_username(username)
        if not user:
            return None
        if not PWD_CTX.verify(password, user.password_hash):
            return None
        expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
        payload = {"user_id": user.id, "username": user.username, "exp": int(expire.timestamp())}
        return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} must not be empty")
    return value.strip()


def _require_non_negative(value, field: str):
    if value is None or value < 0:
        raise ValidationError(f"{field} must be >= 0")
    return value


def _raise_progress(session: models.PracticeSession, value: float) -> None:
    # progress only moves forward
    session.progress = max(float(session.progress or 0), min(100.0, float(value)))


def _mark_completed(session: models.PracticeSession) -> None:
    session.status = SessionStatus.COMPLETED
    session.completed_at = utcnow()


class PracticeService:
    """Use cases shared by the three practice types.

    Subclasses provide `repository_class` and `practice_type` and add
    their own create and mutation methods.
    """
    repository_class = repositories.PracticeRepository
    practice_type: models.PracticeType = None

    def __init__(self, session: Session):
        self.session = session
        self.repo = self.repository_class(session)

    def _new_session(self, user_id: int, chapter_id: Optional[str]) -> models.PracticeSession:
        return models.PracticeSession(
            user_id=user_id,
            chapter_id=chapter_id,
            practice_type=self.practice_type,
            status=SessionStatus.IN_PROGRESS,
            max_score=100,
        )

    def _load(self, practice_id: uuid.UUID, user_id: int, for_update: bool = False):
        practice = self.repo.get(practice_id, for_update=for_update)
        if practice is None:
            raise NotFoundError(f"{self.practice_type.value} practice not found: {practice_id}")
        if practice.practice_session.user_id != user_id:
            raise ForbiddenError("practice belongs to another user")
        return practice

    def _load_mutable(self, practice_id: uuid.UUID, user_id: int):
        """Load a practice for a state change and reject finished sessions."""
        practice = self._load(practice_id, user_id, for_update=True)
        status = practice.practice_session.status
        if status in models.TERMINAL_STATUSES:
            raise ConflictError(f"practice is already {status.value}")
        return practice

    def _persist(self, practice):
        practice.practice_session.updated_at = utcnow()
        return self.repo.save(practice)

    @staticmethod
    def _check_owner(user_id: int, requesting_user_id: int) -> None:
        if user_id != requesting_user_id:
            raise ForbiddenError("cannot read practice sessions of another user")

    def get(self, practice_id: uuid.UUID, user_id: int):
        """Return the user's practice or raise `NotFoundError`/`ForbiddenError`."""
        logger.info("Getting %s practice %s for user: %s", self.practice_type.value, practice_id, user_id)
        return self._load(practice_id, user_id)

    def list_sessions(self, user_id: int, requesting_user_id: int, category: Optional[str] = None,
                      difficulty: Optional[str] = None, completed: Optional[bool] = None,
                      limit: Optional[int] = None, offset: int = 0) -> List:
        """Return a page of `user_id`'s sessions, newest first.

        `limit` defaults to `DEFAULT_PAGE_SIZE` and is capped at
        `MAX_PAGE_SIZE`.
        """
        self._check_owner(user_id, requesting_user_id)
        if limit is None:
            limit = settings.DEFAULT_PAGE_SIZE
        if limit < 1:
            raise ValidationError("limit must be >= 1")
        _require_non_negative(offset, "offset")
        limit = min(limit, settings.MAX_PAGE_SIZE)
        logger.info("Getting %s sessions for user: %s", self.practice_type.value, user_id)
        return self.repo.list_for_user(
            user_id, category=category, difficulty=difficulty, completed=completed, limit=limit, offset=offset
        )

    def complete(self, practice_id: uuid.UUID, user_id: int):
        """Finish an in-progress session early."""
        practice = self._load_mutable(practice_id, user_id)
        logger.info("Completing %s practice %s for user: %s", self.practice_type.value, practice_id, user_id)
        _mark_completed(practice.practice_session)
        return self._persist(practice)

    def abandon(self, practice_id: uuid.UUID, user_id: int):
        """Stop a session without completing it; it accepts no further changes."""
        practice = self._load_mutable(practice_id, user_id)
        logger.info("Abandoning %s practice %s for user: %s", self.practice_type.value, practice_id, user_id)
        practice.practice_session.status = SessionStatus.ABANDONED
        return self._persist(practice)

    def _session_totals(self, practices) -> dict:
        total = len(practices)
        completed = sum(1 for p in practices if p.practice_session.status == SessionStatus.COMPLETED)
        return {
            "total_sessions": total,
            "completed_sessions": completed,
            "completion_rate": metrics.completion_percentage(completed, total),
        }


class QuizPracticeService(PracticeService):
    """Quiz sessions: one answer per question index."""
    repository_class = repositories.QuizPracticeRepository
    practice_type = models.PracticeType.QUIZ

    def create(self, user_id: int, total_questions: int, chapter_id: Optional[str] = None,
               quiz_category: Optional[str] = None, difficulty_level: Optional[str] = None,
               time_per_question: Optional[int] = None) -> models.QuizPractice:
        if total_questions is None or total_questions < 1:
            raise ValidationError("total_questions must be >= 1")
        logger.info("Creating quiz practice for user: %s", user_id)
        practice = models.QuizPractice(
            practice_session=self._new_session(user_id, chapter_id),
            total_questions=total_questions,
            quiz_category=quiz_category,
            difficulty_level=difficulty_level,
            time_per_question=time_per_question,
        )
        return self.repo.add(practice)

    def answer_question(self, practice_id: uuid.UUID, user_id: int, question_index: int, answer: str,
                        is_correct: bool, time_spent_seconds: Optional[float] = None) -> models.QuizPractice:
        """Record the answer to one question and refresh score/progress.

        The session completes once every question has been answered.
        """
        logger.info("Recording answer for quiz %s, question %s, user: %s", practice_id, question_index, user_id)
        practice = self._load_mutable(practice_id, user_id)
        if question_index is None or not 0 <= question_index < practice.total_questions:
            raise ValidationError(
                f"question_index must be between 0 and {practice.total_questions - 1}"
            )
        results = list(practice.question_results or [])
        if any(r.get("question_index") == question_index for r in results):
            raise ValidationError(f"question {question_index} already answered")
        if time_spent_seconds is not None:
            _require_non_negative(time_spent_seconds, "time_spent_seconds")

        results.append({
            "question_index": question_index,
            "answer": answer,
            "is_correct": bool(is_correct),
            "time_spent_seconds": time_spent_seconds,
            "answered_at": utcnow().isoformat(),
        })
        practice.question_results = results
        practice.questions_answered += 1
        if is_correct:
            practice.correct_answers += 1
        else:
            practice.wrong_answers += 1
        practice.last_question_index = question_index
        avg = metrics.average(r["time_spent_seconds"] for r in results if r.get("time_spent_seconds") is not None)
        practice.average_time_per_question = round(avg, 2) if avg is not None else None

        session = practice.practice_session
        session.score = metrics.accuracy_percentage(practice.correct_answers, practice.questions_answered)
        _raise_progress(session, metrics.completion_percentage(practice.questions_answered, practice.total_questions))
        if practice.questions_answered == practice.total_questions:
            _mark_completed(session)
        return self._persist(practice)

    def categories(self) -> List[dict]:
        """Return the quiz category catalog with recorded quiz counts.

        Categories that only appear on stored quizzes are appended after
        the catalog entries.
        """
        logger.info("Getting quiz categories")
        counts = self.repo.count_by_category()
        out = [{**c, "total_quizzes": counts.pop(c["category"], 0)} for c in QUIZ_CATEGORIES]
        for category in sorted(counts):
            out.append({
                "category": category,
                "display_name": category.replace("_", " ").title(),
                "description": "",
                "total_quizzes": counts[category],
            })
        return out

    def stats(self, user_id: int, requesting_user_id: int) -> dict:
        self._check_owner(user_id, requesting_user_id)
        practices = self.repo.all_for_user(user_id)
        answered = sum(p.questions_answered for p in practices)
        correct = sum(p.correct_answers for p in practices)
        return {
            **self._session_totals(practices),
            "total_questions_answered": answered,
            "total_correct_answers": correct,
            "accuracy_percentage": metrics.accuracy_percentage(correct, answered),
            "average_score": metrics.average(p.practice_session.score for p in practices) or 0,
        }


class ReadingPracticeService(PracticeService):
    """Reading sessions: progress through a text plus comprehension answers."""
    repository_class = repositories.ReadingPracticeRepository
    practice_type = models.PracticeType.READING

    def create(self, user_id: int, total_words: int, comprehension_questions_total: int = 0,
               chapter_id: Optional[str] = None, text_id: Optional[str] = None,
               text_title: Optional[str] = None, difficulty_level: Optional[str] = None,
               text_category: Optional[str] = None) -> models.ReadingPractice:
        if total_words is None or total_words < 1:
            raise ValidationError("total_words must be >= 1")
        _require_non_negative(comprehension_questions_total, "comprehension_questions_total")
        logger.info("Creating reading practice for user: %s", user_id)
        practice = models.ReadingPractice(
            practice_session=self._new_session(user_id, chapter_id),
            text_id=text_id,
            text_title=text_title,
            total_words=total_words,
            comprehension_questions_total=comprehension_questions_total,
            difficulty_level=difficulty_level,
            text_category=text_category,
        )
        return self.repo.add(practice)

    @staticmethod
    def _maybe_complete(practice: models.ReadingPractice) -> None:
        # all words read and every comprehension question answered
        if (practice.words_read >= practice.total_words
                and practice.comprehension_questions_answered >= practice.comprehension_questions_total):
            _mark_completed(practice.practice_session)

    def update_progress(self, practice_id: uuid.UUID, user_id: int, words_read: int, position: int,
                        elapsed_seconds: int = 0) -> models.ReadingPractice:
        """Move the reader forward and refresh the reading speed.

        `words_read` is an absolute count and may not go backwards;
        `elapsed_seconds` is added to the accumulated reading time.
        """
        logger.info("Updating reading progress for practice %s, user: %s", practice_id, user_id)
        practice = self._load_mutable(practice_id, user_id)
        _require_non_negative(words_read, "words_read")
        if words_read < practice.words_read:
            raise ValidationError(f"words_read cannot decrease (currently {practice.words_read})")
        if words_read > practice.total_words:
            raise ValidationError(f"words_read cannot exceed total_words ({practice.total_words})")
        _require_non_negative(position, "position")
        _require_non_negative(elapsed_seconds, "elapsed_seconds")

        practice.words_read = words_read
        practice.last_position = position
        practice.reading_time_seconds += elapsed_seconds
        speed = metrics.reading_speed_wpm(practice.words_read, practice.reading_time_seconds)
        if speed is not None:
            practice.reading_speed_wpm = speed
        _raise_progress(
            practice.practice_session, metrics.completion_percentage(practice.words_read, practice.total_words)
        )
        self._maybe_complete(practice)
        return self._persist(practice)

    def answer_comprehension(self, practice_id: uuid.UUID, user_id: int, question_id: str,
                             is_correct: bool) -> models.ReadingPractice:
        logger.info("Recording comprehension answer for practice %s, user: %s", practice_id, user_id)
        practice = self._load_mutable(practice_id, user_id)
        question_id = _require_text(question_id, "question_id")
        if practice.comprehension_questions_answered >= practice.comprehension_questions_total:
            raise ValidationError(
                f"all {practice.comprehension_questions_total} comprehension questions already answered"
            )
        answers = list(practice.comprehension_answers or [])
        if any(a.get("question_id") == question_id for a in answers):
            raise ValidationError(f"comprehension question {question_id} already answered")

        answers.append({"question_id": question_id, "is_correct": bool(is_correct), "answered_at": utcnow().isoformat()})
        practice.comprehension_answers = answers
        practice.comprehension_questions_answered += 1
        if is_correct:
            practice.comprehension_questions_correct += 1
        practice.practice_session.score = metrics.accuracy_percentage(
            practice.comprehension_questions_correct, practice.comprehension_questions_answered
        )
        self._maybe_complete(practice)
        return self._persist(practice)

    def add_bookmark(self, practice_id: uuid.UUID, user_id: int, position: int,
                     note: Optional[str] = None) -> models.ReadingPractice:
        """Append a bookmark. Identical bookmarks are stored again."""
        logger.info("Adding bookmark for practice %s, user: %s", practice_id, user_id)
        practice = self._load_mutable(practice_id, user_id)
        _require_non_negative(position, "position")
        practice.bookmarks = [
            *(practice.bookmarks or []),
            {"position": position, "note": note, "created_at": utcnow().isoformat()},
        ]
        return self._persist(practice)

    def add_vocabulary_word(self, practice_id: uuid.UUID, user_id: int, word: str,
                            definition: Optional[str] = None, translation: Optional[str] = None,
                            position: Optional[int] = None) -> models.ReadingPractice:
        """Append a word met in the text. Repeated words are stored again."""
        logger.info("Adding vocabulary word for practice %s, user: %s", practice_id, user_id)
        practice = self._load_mutable(practice_id, user_id)
        word = _require_text(word, "word")
        if position is not None:
            _require_non_negative(position, "position")
        practice.vocabulary_encountered = [
            *(practice.vocabulary_encountered or []),
            {
                "word": word,
                "definition": definition,
                "translation": translation,
                "position": position,
                "added_at": utcnow().isoformat(),
            },
        ]
        return self._persist(practice)

    def stats(self, user_id: int, requesting_user_id: int) -> dict:
        self._check_owner(user_id, requesting_user_id)
        practices = self.repo.all_for_user(user_id)
        answered = sum(p.comprehension_questions_answered for p in practices)
        correct = sum(p.comprehension_questions_correct for p in practices)
        avg_speed = metrics.average(p.reading_speed_wpm for p in practices if p.reading_speed_wpm is not None)
        return {
            **self._session_totals(practices),
            "total_words_read": sum(p.words_read for p in practices),
            "total_reading_time_seconds": sum(p.reading_time_seconds for p in practices),
            "average_reading_speed_wpm": round(avg_speed, 2) if avg_speed is not None else None,
            "comprehension_score": metrics.accuracy_percentage(correct, answered),
        }


class VocabularyPracticeService(PracticeService):
    """Vocabulary sessions: studying new words and reviewing known ones."""
    repository_class = repositories.VocabularyPracticeRepository
    practice_type = models.PracticeType.VOCABULARY

    def create(self, user_id: int, chapter_id: Optional[str] = None, difficulty_level: Optional[str] = None,
               target_words: int = 0) -> models.VocabularyPractice:
        _require_non_negative(target_words, "target_words")
        logger.info("Creating vocabulary practice for user: %s", user_id)
        practice = models.VocabularyPractice(
            practice_session=self._new_session(user_id, chapter_id),
            difficulty_level=difficulty_level,
            target_words=target_words,
        )
        return self.repo.add(practice)

    def study_word(self, practice_id: uuid.UUID, user_id: int, word_id: str,
                   was_correct: bool) -> models.VocabularyPractice:
        """Record one studied word; a correct answer counts it as learned.

        Correct answers extend the streak, a wrong one resets it to 0.
        """
        logger.info("Recording word study for practice %s, user: %s", practice_id, user_id)
        practice = self._load_mutable(practice_id, user_id)
        word_id = _require_text(word_id, "word_id")

        practice.words_studied += 1
        if was_correct:
            practice.words_learned += 1
            practice.streak_count += 1
            practice.best_streak = max(practice.best_streak, practice.streak_count)
        else:
            practice.streak_count = 0
        practice.last_word_studied = word_id
        practice.studied_words = [*(practice.studied_words or []), word_id]
        practice.current_word_index += 1
        _raise_progress(
            practice.practice_session, metrics.completion_percentage(practice.words_studied, practice.target_words)
        )
        return self._persist(practice)

    def review_word(self, practice_id: uuid.UUID, user_id: int, word_id: str,
                    was_correct: bool) -> models.VocabularyPractice:
        logger.info("Recording word review for practice %s, user: %s", practice_id, user_id)
        practice = self._load_mutable(practice_id, user_id)
        word_id = _require_text(word_id, "word_id")

        practice.total_attempts += 1
        if was_correct:
            practice.correct_answers += 1
        else:
            practice.incorrect_answers += 1
        practice.words_reviewed += 1
        practice.reviewed_words = [*(practice.reviewed_words or []), word_id]
        practice.practice_session.score = metrics.accuracy_percentage(
            practice.correct_answers, practice.total_attempts
        )
        return self._persist(practice)

    def stats(self, user_id: int, requesting_user_id: int) -> dict:
        self._check_owner(user_id, requesting_user_id)
        practices = self.repo.all_for_user(user_id)
        studied = sum(p.words_studied for p in practices)
        learned = sum(p.words_learned for p in practices)
        attempts = sum(p.total_attempts for p in practices)
        correct = sum(p.correct_answers for p in practices)
        return {
            **self._session_totals(practices),
            "total_words_studied": studied,
            "total_words_learned": learned,
            "total_attempts": attempts,
            "accuracy_percentage": metrics.accuracy_percentage(correct, attempts),
            "learning_rate": metrics.learning_rate(learned, studied),
            "best_streak": max((p.best_streak for p in practices), default=0),
        }
