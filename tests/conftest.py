"""Shared test fixtures — async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from leavedesk.common.constants import UserRole
from leavedesk.common.rate_limit import limiter
from leavedesk.config import settings
from leavedesk.database import Base, get_db
from leavedesk.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import leavedesk.common.audit  # noqa: F401
import leavedesk.files.models  # noqa: F401
import leavedesk.leave.models  # noqa: F401
import leavedesk.notifications.models  # noqa: F401
import leavedesk.users.models  # noqa: F401

# ── SQLite compat: compile PG-specific types to TEXT/CHAR ───────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Register PG-compatible functions for SQLite
@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() and uuid_generate_v4() as SQLite custom functions."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )
    dbapi_conn.create_function(
        "uuid_generate_v4", 0, lambda: str(uuid.uuid4()),
    )


TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    limiter.reset()
    yield


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    """Store attachments under a per-test temporary directory."""
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    return tmp_path / "leave_attachments"


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

@pytest.fixture
def make_user(db):
    """Insert a committed user with one balance row per leave type.

    ``balances`` overrides the configured defaults per key.
    """
    from leavedesk.leave.service import LeaveService
    from leavedesk.users.models import User

    async def _make(
        *,
        role: UserRole = UserRole.employee,
        name: Optional[str] = None,
        email: Optional[str] = None,
        balances: Optional[dict[str, int]] = None,
        is_active: bool = True,
    ) -> User:
        suffix = uuid.uuid4().hex[:6]
        user = User(
            name=name or f"{role.value.title()} {suffix}",
            email=email or f"{role.value}.{suffix}@example.com",
            department="Operations",
            position="Analyst",
            role=role,
            is_active=is_active,
        )
        db.add(user)
        await db.flush()
        await LeaveService.seed_balances(db, user.id, overrides=balances)
        await db.commit()
        return user

    return _make


@pytest.fixture
async def employee(make_user):
    return await make_user(name="Thandi Employee", email="thandi@example.com")


@pytest.fixture
async def admin(make_user):
    return await make_user(role=UserRole.admin, name="Ada Admin", email="ada@example.com")


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    user_id: uuid.UUID,
    role: UserRole = UserRole.employee,
    expired: bool = False,
    token_type: str = "access",
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
    payload = {
        "sub": str(user_id),
        "role": role.value,
        "type": token_type,
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_for(user) -> dict[str, str]:
    """Bearer headers for a persisted user."""
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


# ── Database constraint stand-ins ───────────────────────────────────

OVERLAP_VIOLATION = (
    'conflicting key value violates exclusion constraint "ex_leave_requests_no_overlap"'
)


async def fail_leave_writes(db: AsyncSession, operation: str, message: str = OVERLAP_VIOLATION) -> None:
    """Make SQLite refuse leave rows whose reason starts with "Racing".

    SQLite has no exclusion constraints, so a trigger raising the same
    message stands in for the PostgreSQL one.
    """
    await db.execute(text(f"""
        CREATE TRIGGER refuse_racing_leave_{operation.lower()}
        BEFORE {operation} ON leave_requests
        WHEN NEW.reason LIKE 'Racing%'
        BEGIN
            SELECT RAISE(ABORT, '{message}');
        END
    """))
    await db.commit()
