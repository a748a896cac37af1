import uuid
from datetime import datetime, timezone

import pytest

from practice_api import models
from practice_api.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from practice_api.services import QUIZ_CATEGORIES, QuizPracticeService


def _create(db, user, total=3, **kwargs):
    return QuizPracticeService(db).create(user.id, total_questions=total, **kwargs)


def test_create_starts_in_progress(db, user):
    practice = _create(db, user, quiz_category="grammar", difficulty_level="easy")
    session = practice.practice_session
    assert session.status == models.SessionStatus.IN_PROGRESS
    assert session.practice_type == models.PracticeType.QUIZ
    assert session.completed_at is None
    assert practice.questions_answered == 0


def test_create_rejects_empty_quiz(db, user):
    with pytest.raises(ValidationError):
        _create(db, user, total=0)


def test_answering_all_questions_completes_quiz(db, user):
    svc = QuizPracticeService(db)
    practice = _create(db, user, total=3)
    pid = practice.session_id
    svc.answer_question(pid, user.id, question_index=0, answer="a", is_correct=True)
    svc.answer_question(pid, user.id, question_index=2, answer="c", is_correct=False)
    assert svc.get(pid, user.id).practice_session.status == models.SessionStatus.IN_PROGRESS

    practice = svc.answer_question(pid, user.id, question_index=1, answer="b", is_correct=True)
    session = practice.practice_session
    assert practice.questions_answered == 3
    assert practice.correct_answers + practice.wrong_answers == practice.questions_answered
    assert practice.last_question_index == 1
    assert session.status == models.SessionStatus.COMPLETED
    assert session.completed_at is not None
    assert session.progress == 100
    assert session.score == pytest.approx(200 / 3)
    assert [r["question_index"] for r in practice.question_results] == [0, 2, 1]


def test_answer_out_of_range_is_rejected_without_changes(db, user):
    svc = QuizPracticeService(db)
    pid = _create(db, user, total=2).session_id
    for bad in (-1, 2, 10):
        with pytest.raises(ValidationError):
            svc.answer_question(pid, user.id, question_index=bad, answer="x", is_correct=True)
    practice = svc.get(pid, user.id)
    assert practice.questions_answered == 0
    assert practice.question_results == []


def test_same_question_cannot_be_answered_twice(db, user):
    svc = QuizPracticeService(db)
    pid = _create(db, user, total=3).session_id
    svc.answer_question(pid, user.id, question_index=0, answer="a", is_correct=True)
    with pytest.raises(ValidationError):
        svc.answer_question(pid, user.id, question_index=0, answer="b", is_correct=False)
    assert svc.get(pid, user.id).questions_answered == 1


def test_average_time_uses_timed_answers_only(db, user):
    svc = QuizPracticeService(db)
    pid = _create(db, user, total=4).session_id
    svc.answer_question(pid, user.id, question_index=0, answer="a", is_correct=True, time_spent_seconds=10)
    practice = svc.answer_question(pid, user.id, question_index=1, answer="b", is_correct=True)
    assert practice.average_time_per_question == 10
    practice = svc.answer_question(pid, user.id, question_index=2, answer="c", is_correct=True, time_spent_seconds=21)
    assert practice.average_time_per_question == 15.5


def test_completed_quiz_rejects_answers(db, user):
    svc = QuizPracticeService(db)
    pid = _create(db, user, total=1).session_id
    svc.answer_question(pid, user.id, question_index=0, answer="a", is_correct=True)
    with pytest.raises(ConflictError):
        svc.answer_question(pid, user.id, question_index=0, answer="a", is_correct=True)


def test_missing_and_foreign_sessions(db, user, other_user):
    svc = QuizPracticeService(db)
    with pytest.raises(NotFoundError):
        svc.get(uuid.uuid4(), user.id)
    pid = _create(db, user).session_id
    with pytest.raises(ForbiddenError):
        svc.get(pid, other_user.id)
    with pytest.raises(ForbiddenError):
        svc.answer_question(pid, other_user.id, question_index=0, answer="a", is_correct=True)


def test_progress_never_decreases_and_abandon_is_terminal(db, user):
    svc = QuizPracticeService(db)
    pid = _create(db, user, total=2).session_id
    svc.answer_question(pid, user.id, question_index=0, answer="a", is_correct=False)
    practice = svc.abandon(pid, user.id)
    assert practice.practice_session.status == models.SessionStatus.ABANDONED
    assert practice.practice_session.completed_at is None
    assert practice.practice_session.progress == 50
    with pytest.raises(ConflictError):
        svc.complete(pid, user.id)


def test_list_sessions_filters_and_pages(db, user, other_user):
    svc = QuizPracticeService(db)
    first = _create(db, user, quiz_category="grammar", difficulty_level="easy")
    second = _create(db, user, total=1, quiz_category="idioms", difficulty_level="hard")
    third = _create(db, user, quiz_category="grammar", difficulty_level="hard")
    _create(db, other_user, quiz_category="grammar")
    svc.answer_question(second.session_id, user.id, question_index=0, answer="a", is_correct=True)

    all_ids = [p.session_id for p in svc.list_sessions(user.id, user.id)]
    assert all_ids == [third.session_id, second.session_id, first.session_id]
    assert [p.session_id for p in svc.list_sessions(user.id, user.id, category="grammar")] == [
        third.session_id, first.session_id
    ]
    assert [p.session_id for p in svc.list_sessions(user.id, user.id, difficulty="hard", completed=False)] == [
        third.session_id
    ]
    assert [p.session_id for p in svc.list_sessions(user.id, user.id, completed=True)] == [second.session_id]
    assert [p.session_id for p in svc.list_sessions(user.id, user.id, limit=1, offset=1)] == [second.session_id]


def test_list_sessions_pages_are_stable_for_equal_timestamps(db, user):
    svc = QuizPracticeService(db)
    created_at = datetime(2024, 1, 1, tzinfo=timezone.utc)
    ids = []
    for _ in range(5):
        practice = _create(db, user)
        practice.practice_session.created_at = created_at
        db.add(practice.practice_session)
        ids.append(practice.session_id)
    db.commit()

    pages = [
        [p.session_id for p in svc.list_sessions(user.id, user.id, limit=2, offset=offset)]
        for offset in (0, 2, 4)
    ]
    flattened = [pid for page in pages for pid in page]
    assert [len(page) for page in pages] == [2, 2, 1]
    assert flattened == sorted(ids, reverse=True)


def test_list_sessions_validation(db, user, other_user):
    svc = QuizPracticeService(db)
    with pytest.raises(ForbiddenError):
        svc.list_sessions(other_user.id, user.id)
    with pytest.raises(ValidationError):
        svc.list_sessions(user.id, user.id, limit=0)
    with pytest.raises(ValidationError):
        svc.list_sessions(user.id, user.id, offset=-1)


def test_categories_count_recorded_quizzes(db, user):
    _create(db, user, quiz_category="grammar")
    _create(db, user, quiz_category="grammar")
    _create(db, user, quiz_category="phrasal_verbs")
    _create(db, user)
    categories = QuizPracticeService(db).categories()
    by_name = {c["category"]: c for c in categories}
    assert [c["category"] for c in categories[:len(QUIZ_CATEGORIES)]] == [c["category"] for c in QUIZ_CATEGORIES]
    assert by_name["grammar"]["total_quizzes"] == 2
    assert by_name["listening"]["total_quizzes"] == 0
    assert by_name["phrasal_verbs"]["display_name"] == "Phrasal Verbs"


def test_stats(db, user, other_user):
    svc = QuizPracticeService(db)
    a = _create(db, user, total=2).session_id
    _create(db, user, total=5)
    svc.answer_question(a, user.id, question_index=0, answer="a", is_correct=True)
    svc.answer_question(a, user.id, question_index=1, answer="b", is_correct=False)
    stats = svc.stats(user.id, user.id)
    assert stats["total_sessions"] == 2
    assert stats["completed_sessions"] == 1
    assert stats["completion_rate"] == 50
    assert stats["total_questions_answered"] == 2
    assert stats["accuracy_percentage"] == 50
    assert stats["average_score"] == 25
    with pytest.raises(ForbiddenError):
        svc.stats(user.id, other_user.id)
