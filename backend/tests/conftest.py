import os
import tempfile
import uuid
from pathlib import Path

import pytest

# The app reads DATABASE_URL when it is first imported, so point it at a
# throwaway SQLite file before any test module imports `practice_api.main`.
_TMP_DIR = Path(tempfile.mkdtemp(prefix="practice-api-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR / 'app.db'}"
os.environ.setdefault("ENV", "dev")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, create_engine  # noqa: E402

from practice_api import models  # noqa: E402
from practice_api.database import create_db_and_tables  # noqa: E402
from practice_api.main import _rate_limiter, app  # noqa: E402


@pytest.fixture
def db():
    """Fresh in-memory database session for service-level tests."""
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    create_db_and_tables(engine)
    with Session(engine) as session:
        yield session


def _add_user(db, username):
    user = models.User(username=username, password_hash="not-a-real-hash")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def user(db):
    return _add_user(db, "alice")


@pytest.fixture
def other_user(db):
    return _add_user(db, "bob")


@pytest.fixture(scope="session")
def client():
    return TestClient(app)


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    _rate_limiter.reset()
    yield
    _rate_limiter.reset()


@pytest.fixture
def make_user(client):
    """Register and log in a fresh user; returns `(user_id, headers)`."""
    def _make(password="pw"):
        username = f"user-{uuid.uuid4().hex[:10]}"
        r = client.post('/auth/register', json={'username': username, 'password': password})
        assert r.status_code == 200
        login = client.post('/auth/login', json={'username': username, 'password': password})
        assert login.status_code == 200
        return r.json()['id'], {'Authorization': f"Bearer {login.json()['access_token']}"}
    return _make
