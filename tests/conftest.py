"""
Pytest fixtures for lecture mastery tests.

Every test runs against a temp-file SQLite database (in-memory SQLite is
per-connection, and the app opens one connection per session).
"""

import os
import tempfile
import uuid
from typing import AsyncGenerator, Callable, Optional

_tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_tmp.close()
TEST_DB_PATH = _tmp.name
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only-32-chars"

from src.config import get_settings

get_settings.cache_clear()

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import async_session_maker, engine
from src.kernel.identity.jwt import JWTManager
from src.kernel.models import (
    Base,
    Lecture,
    LecturePrerequisite,
    LectureProgress,
    ProgressStatus,
    User,
    UserRole,
)


@pytest_asyncio.fixture
async def db_engine():
    """Fresh schema per test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Session on the test database; callers commit what the API must see."""
    async with async_session_maker() as session:
        yield session
        await session.rollback()


async def _create_user(session: AsyncSession, email: str, role: UserRole) -> User:
    user = User(
        id=uuid.uuid4(),
        email=email,
        full_name=email.split("@")[0].title(),
        role=role,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """A student."""
    return await _create_user(db_session, "student@example.com", UserRole.STUDENT)


@pytest_asyncio.fixture
async def test_admin(db_session: AsyncSession) -> User:
    """An admin who manages the prerequisite graph."""
    return await _create_user(db_session, "admin@example.com", UserRole.ADMIN)


@pytest.fixture
def make_lecture(db_session: AsyncSession) -> Callable:
    """Factory: await make_lecture("Title", category="math", order=1)."""
    counter = {"order": 0}

    async def _make(title: str, category: str = "general", order: Optional[int] = None) -> Lecture:
        if order is None:
            counter["order"] += 1
            order = counter["order"]
        lecture = Lecture(
            id=uuid.uuid4(),
            title=title,
            description=f"{title} description",
            category=category,
            order=order,
        )
        db_session.add(lecture)
        await db_session.commit()
        await db_session.refresh(lecture)
        return lecture

    return _make


@pytest.fixture
def make_edge(db_session: AsyncSession) -> Callable:
    """Factory inserting an edge directly, bypassing the cycle check."""

    async def _make(
        lecture: Lecture,
        prerequisite: Lecture,
        is_required: bool = True,
        importance_level: int = 3,
    ) -> LecturePrerequisite:
        edge = LecturePrerequisite(
            id=uuid.uuid4(),
            lecture_id=lecture.id,
            prerequisite_lecture_id=prerequisite.id,
            is_required=is_required,
            importance_level=importance_level,
        )
        db_session.add(edge)
        await db_session.commit()
        await db_session.refresh(edge)
        return edge

    return _make


@pytest.fixture
def set_progress(db_session: AsyncSession) -> Callable:
    """Factory writing a progress record in the given status."""

    async def _set(user: User, lecture: Lecture, status: ProgressStatus) -> LectureProgress:
        record = LectureProgress(
            id=uuid.uuid4(),
            user_id=user.id,
            lecture_id=lecture.id,
            status=status.value,
        )
        db_session.add(record)
        await db_session.commit()
        await db_session.refresh(record)
        return record

    return _set


@pytest.fixture
def jwt_manager() -> JWTManager:
    """JWT manager sharing the app's secret."""
    settings = get_settings()
    return JWTManager(
        secret_key=settings.secret_key,
        algorithm=settings.algorithm,
        access_token_expire_minutes=30,
    )


def _headers(user: User, jwt_manager: JWTManager) -> dict:
    role = getattr(user.role, "value", user.role)
    token, _, _ = jwt_manager.create_access_token(
        user_id=user.id,
        email=user.email,
        role=role,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(test_user: User, jwt_manager: JWTManager) -> dict:
    return _headers(test_user, jwt_manager)


@pytest.fixture
def admin_headers(test_admin: User, jwt_manager: JWTManager) -> dict:
    return _headers(test_admin, jwt_manager)


@pytest_asyncio.fixture
async def client(db_engine) -> AsyncGenerator[AsyncClient, None]:
    """In-process client; the app's get_db already points at the test database."""
    from src.main import app

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
