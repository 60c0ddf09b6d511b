import os

# Settings are read at import time; point them at throwaway values before app imports.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from datetime import datetime, timezone
from typing import AsyncGenerator, Dict, List, Optional
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.auth.schemas import CurrentUser
from app.auth.security import create_access_token
from app.core.class_key import make_class_key
from app.core.enums import UserRole
from app.core.models import Faculty, Student
from app.db.session import build_engine, build_session_factory, create_all, get_db
from app.main import app

DEPARTMENT = "CSE"
CLASS_FIELDS = {"batch": "2023-2027", "year": "2nd Year", "semester": "Sem 3", "section": "A"}
CLASS_KEY = make_class_key("2023-2027", "2nd Year", "Sem 3", "A")
ROLL_NUMBERS = ["23CS001", "23CS002", "23CS003", "23CS004", "23CS005"]

# 10:00 at +05:30 on 2026-10-18
NOW = datetime(2026, 10, 18, 4, 30, tzinfo=timezone.utc)
TODAY = "2026-10-18"


@pytest.fixture()
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """A file-backed SQLite database per test, so concurrent sessions share it."""
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_all(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return build_session_factory(engine)


@pytest.fixture()
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
async def client(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app; one session per request."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture()
async def students(db_session: AsyncSession) -> List[Student]:
    rows = [
        Student(
            roll_number=roll,
            name=f"Student {roll[-1]}",
            email=f"{roll.lower()}@example.edu",
            department=DEPARTMENT,
            batch=CLASS_FIELDS["batch"],
            level=CLASS_FIELDS["year"],
            term=CLASS_FIELDS["semester"],
            section=CLASS_FIELDS["section"],
            class_key=CLASS_KEY,
        )
        for roll in ROLL_NUMBERS
    ]
    db_session.add_all(rows)
    await db_session.commit()
    return rows


@pytest.fixture()
async def faculty(db_session: AsyncSession) -> List[Faculty]:
    rows = [
        Faculty(name="Anita Rao", email="anita@example.edu", department=DEPARTMENT, assigned_classes=[]),
        Faculty(name="Vikram Iyer", email="vikram@example.edu", department=DEPARTMENT, assigned_classes=[]),
    ]
    db_session.add_all(rows)
    await db_session.commit()
    return rows


def make_user(user_id: UUID, role: UserRole, department: Optional[str] = DEPARTMENT) -> CurrentUser:
    return CurrentUser(id=user_id, role=role, department=department)


def auth_headers(user_id: UUID, role: UserRole, department: Optional[str] = DEPARTMENT) -> Dict[str, str]:
    claims = {"sub": str(user_id), "role": role.value}
    if department:
        claims["department"] = department
    return {"Authorization": f"Bearer {create_access_token(subject=claims)}"}
