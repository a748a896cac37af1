"""Convert stored practice records into API response models.

Each mapper flattens the owned `PracticeSession` next to the
practice-specific counters and adds the derived metrics from
`metrics`. Optional numbers that were never recorded stay `None`
so the HTTP layer can omit them instead of reporting zero.
"""

from typing import Iterable, List

from . import metrics, models
from .schemas import (
    QuizPracticeOut,
    ReadingPracticeOut,
    VocabularyPracticeOut,
)


def _session_fields(session: models.PracticeSession) -> dict:
    return {
        "id": session.id,
        "user_id": session.user_id,
        "chapter_id": session.chapter_id,
        "practice_type": session.practice_type,
        "status": session.status,
        "score": float(session.score),
        "progress": float(session.progress),
        "max_score": float(session.max_score or 0),
        "started_at": session.started_at,
        "completed_at": session.completed_at,
        "created_at": session.created_at,
        "updated_at": session.updated_at,
    }


def quiz_to_response(practice: models.QuizPractice) -> QuizPracticeOut:
    return QuizPracticeOut(
        **_session_fields(practice.practice_session),
        total_questions=practice.total_questions,
        questions_answered=practice.questions_answered,
        correct_answers=practice.correct_answers,
        wrong_answers=practice.wrong_answers,
        accuracy_percentage=metrics.accuracy_percentage(practice.correct_answers, practice.questions_answered),
        completion_percentage=metrics.completion_percentage(practice.questions_answered, practice.total_questions),
        last_question_index=practice.last_question_index,
        average_time_per_question=practice.average_time_per_question,
        quiz_category=practice.quiz_category,
        difficulty_level=practice.difficulty_level,
        time_per_question=practice.time_per_question,
        question_results=list(practice.question_results or []),
    )


def reading_to_response(practice: models.ReadingPractice) -> ReadingPracticeOut:
    return ReadingPracticeOut(
        **_session_fields(practice.practice_session),
        text_id=practice.text_id,
        text_title=practice.text_title,
        total_words=practice.total_words,
        words_read=practice.words_read,
        reading_progress=metrics.completion_percentage(practice.words_read, practice.total_words),
        reading_speed_wpm=practice.reading_speed_wpm,
        comprehension_questions_total=practice.comprehension_questions_total,
        comprehension_questions_answered=practice.comprehension_questions_answered,
        comprehension_questions_correct=practice.comprehension_questions_correct,
        comprehension_score=metrics.accuracy_percentage(
            practice.comprehension_questions_correct, practice.comprehension_questions_total
        ),
        reading_time_seconds=practice.reading_time_seconds,
        difficulty_level=practice.difficulty_level,
        text_category=practice.text_category,
        last_position=practice.last_position,
        estimated_time_to_complete=metrics.estimated_time_remaining(
            practice.total_words, practice.words_read, practice.reading_speed_wpm
        ),
        bookmarks=list(practice.bookmarks or []),
        vocabulary_encountered=list(practice.vocabulary_encountered or []),
    )


def vocabulary_to_response(practice: models.VocabularyPractice) -> VocabularyPracticeOut:
    return VocabularyPracticeOut(
        **_session_fields(practice.practice_session),
        words_studied=practice.words_studied,
        words_learned=practice.words_learned,
        correct_answers=practice.correct_answers,
        incorrect_answers=practice.incorrect_answers,
        total_attempts=practice.total_attempts,
        accuracy_percentage=metrics.accuracy_percentage(practice.correct_answers, practice.total_attempts),
        last_word_studied=practice.last_word_studied,
        words_reviewed=practice.words_reviewed,
        streak_count=practice.streak_count,
        best_streak=practice.best_streak,
        difficulty_level=practice.difficulty_level,
        target_words=practice.target_words,
        learning_rate=metrics.learning_rate(practice.words_learned, practice.words_studied),
        current_word_index=practice.current_word_index,
        studied_words=list(practice.studied_words or []),
        reviewed_words=list(practice.reviewed_words or []),
    )


def quiz_to_response_array(practices: Iterable[models.QuizPractice]) -> List[QuizPracticeOut]:
    return [quiz_to_response(p) for p in practices]


def reading_to_response_array(practices: Iterable[models.ReadingPractice]) -> List[ReadingPracticeOut]:
    return [reading_to_response(p) for p in practices]


def vocabulary_to_response_array(practices: Iterable[models.VocabularyPractice]) -> List[VocabularyPracticeOut]:
    return [vocabulary_to_response(p) for p in practices]
