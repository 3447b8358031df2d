"""Pytest configuration and shared fixtures.

Provides:
- Users of every role wrapped in UserContext
- A FastAPI TestClient with authentication overridden per test
- Helpers that fake motor collections and cursors
"""

import os
from typing import Any, Callable, Iterator, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-testing-only")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from fastapi.testclient import TestClient  # noqa: E402

from app.auth.auth_permissions import UserContext, get_current_user  # noqa: E402
from app.main import app  # noqa: E402


# =============================================================================
# Users
# =============================================================================


def make_user(role: str, user_id: Optional[str] = None, **extra: Any) -> UserContext:
    """Build a UserContext the way the auth dependency would.

    Role values are upper case strings, e.g. "FACULTY_ADMIN".
    """
    user_id = user_id or f"USR_{role}"
    doc = {
        "user_id": user_id,
        "unique_id": f"UID_{role}",
        "name": f"Test {role.title()}",
        "email": f"{role.lower()}@example.com",
        "role": role,
        "is_active": True,
    }
    doc.update(extra)
    return UserContext(doc)


@pytest.fixture
def admin_user() -> UserContext:
    return make_user("ADMIN")


@pytest.fixture
def faculty_admin_user() -> UserContext:
    return make_user("FACULTY_ADMIN")


@pytest.fixture
def teacher_user() -> UserContext:
    return make_user("TEACHER")


@pytest.fixture
def student_user() -> UserContext:
    return make_user("STUDENT")


# =============================================================================
# HTTP client
# =============================================================================


@pytest.fixture
def client() -> Iterator[TestClient]:
    """TestClient without startup events, so no indexes or scheduler are touched."""
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login_as(client: TestClient) -> Callable[[UserContext], TestClient]:
    """Authenticate every request of the client as the given user."""

    def _login(user: UserContext) -> TestClient:
        app.dependency_overrides[get_current_user] = lambda: user
        return client

    return _login


# =============================================================================
# Motor fakes
# =============================================================================


def fake_cursor(docs: List[dict]) -> MagicMock:
    """Chainable cursor whose to_list returns the given documents."""
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=docs)
    return cursor


def fake_collection(find_docs: Optional[List[dict]] = None, find_one: Any = None) -> MagicMock:
    collection = MagicMock()
    collection.find.return_value = fake_cursor(find_docs or [])
    collection.aggregate.return_value = fake_cursor(find_docs or [])
    collection.find_one = AsyncMock(return_value=find_one)
    collection.insert_one = AsyncMock()
    collection.update_one = AsyncMock()
    collection.update_many = AsyncMock()
    collection.delete_one = AsyncMock()
    collection.delete_many = AsyncMock()
    collection.create_index = AsyncMock()
    collection.count_documents = AsyncMock(return_value=0)
    collection.distinct = AsyncMock(return_value=[])
    return collection


class FakeDatabase:
    """Database double; each collection name maps to one fake collection."""

    def __init__(self) -> None:
        self._collections: dict = {}
        self.command = AsyncMock(return_value={"ok": 1.0})

    def __getattr__(self, name: str) -> MagicMock:
        if name.startswith("__"):
            raise AttributeError(name)
        if name not in self._collections:
            self._collections[name] = fake_collection()
        return self._collections[name]

    def __getitem__(self, name: str) -> MagicMock:
        return getattr(self, name)


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def cursor_of() -> Callable[[List[dict]], MagicMock]:
    return fake_cursor


@pytest.fixture
def user_factory() -> Callable[..., UserContext]:
    return make_user
