"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users and
the three practice types). Repositories return SQLModel objects and
perform commits/refreshes where appropriate; the practice services
decide what to change and call `save` once per use case.
"""

import uuid
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from . import models


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_by_username(self, username: str) -> Optional[models.User]:
        """Return a `User` by username or `None` if not found."""
        stmt = select(models.User).where(models.User.username == username)
        return self.session.exec(stmt).first()

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)


class PracticeRepository:
    """Shared persistence for a specialized practice and its session.

    Subclasses set `model` to the specialized table and, where the
    practice has one, `category_field` to the column filtered by the
    `category` listing parameter.
    """
    model = None
    category_field: Optional[str] = None

    def __init__(self, session: Session):
        self.session = session

    def add(self, practice):
        """Insert a new practice together with its `PracticeSession`."""
        self.session.add(practice.practice_session)
        self.session.add(practice)
        self.session.commit()
        self.session.refresh(practice)
        return practice

    def get(self, practice_id: uuid.UUID, for_update: bool = False):
        """Fetch a practice by its session id, or `None`.

        With `for_update` the row is locked until the surrounding
        transaction ends (a no-op on SQLite).
        """
        stmt = select(self.model).where(self.model.session_id == practice_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.exec(stmt).first()

    def save(self, practice):
        """Commit pending changes on a practice and its session."""
        self.session.add(practice.practice_session)
        self.session.add(practice)
        self.session.commit()
        self.session.refresh(practice)
        return practice

    def _user_query(self, user_id: int, category: Optional[str] = None, difficulty: Optional[str] = None, completed: Optional[bool] = None):
        stmt = (
            select(self.model)
            .join(models.PracticeSession, models.PracticeSession.id == self.model.session_id)
            .where(models.PracticeSession.user_id == user_id)
        )
        if category is not None and self.category_field:
            stmt = stmt.where(getattr(self.model, self.category_field) == category)
        if difficulty is not None:
            stmt = stmt.where(self.model.difficulty_level == difficulty)
        if completed is True:
            stmt = stmt.where(models.PracticeSession.status == models.SessionStatus.COMPLETED)
        elif completed is False:
            stmt = stmt.where(models.PracticeSession.status != models.SessionStatus.COMPLETED)
        return stmt

    def list_for_user(self, user_id: int, category: Optional[str] = None, difficulty: Optional[str] = None,
                      completed: Optional[bool] = None, limit: int = 10, offset: int = 0) -> List:
        """Return a page of the user's practices, newest first."""
        stmt = self._user_query(user_id, category, difficulty, completed)
        # id breaks ties between sessions created in the same instant
        stmt = stmt.order_by(
            models.PracticeSession.created_at.desc(), models.PracticeSession.id.desc()
        ).offset(offset).limit(limit)
        return self.session.exec(stmt).all()

    def all_for_user(self, user_id: int) -> List:
        """Return every practice of this type owned by `user_id`."""
        return self.session.exec(self._user_query(user_id)).all()


class QuizPracticeRepository(PracticeRepository):
    """Persistence for `QuizPractice` records."""
    model = models.QuizPractice
    category_field = "quiz_category"

    def count_by_category(self) -> Dict[str, int]:
        """Return how many quiz practices exist per `quiz_category`."""
        stmt = (
            select(models.QuizPractice.quiz_category, func.count())
            .where(models.QuizPractice.quiz_category.is_not(None))
            .group_by(models.QuizPractice.quiz_category)
        )
        return {category: count for category, count in self.session.exec(stmt).all()}


class ReadingPracticeRepository(PracticeRepository):
    """Persistence for `ReadingPractice` records."""
    model = models.ReadingPractice
    category_field = "text_category"


class VocabularyPracticeRepository(PracticeRepository):
    """Persistence for `VocabularyPractice` records."""
    model = models.VocabularyPractice
