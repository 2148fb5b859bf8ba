"""
Pytest configuration and fixtures for the moderation tests
"""
import os

# Settings are read at import time
os.environ.setdefault("POSTGRES_PASSWORD", "test")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.db import Base, get_db
from app.core.permissions import AllowListPolicy
from app.core.security import create_access_token
from app.modules.auth.models import User
from app.modules.moderation import models
from app.modules.moderation.enforcement import EnforcementDispatcher

ADMIN_EMAIL = "moderator@campus.example"


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def policy():
    """Allow-list with only the moderator email configured"""
    return AllowListPolicy(admin_email=ADMIN_EMAIL)


async def make_user(db, username, email):
    user = User(username=username, email=email, full_name=username.title())
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def admin(db):
    # Upper-cased on purpose: the allow-list compares emails case-insensitively
    return await make_user(db, "moderator", ADMIN_EMAIL.upper())


@pytest_asyncio.fixture
async def student(db):
    return await make_user(db, "amina", "amina@campus.example")


@pytest_asyncio.fixture
async def other_student(db):
    return await make_user(db, "brian", "brian@campus.example")


@pytest_asyncio.fixture
async def pending_report(db, student):
    report = models.Report(
        reporter_id=student.id,
        report_type=models.ReportType.CONTENT,
        target_id="post-42",
        reason="spam",
        description="Same link posted in every group",
        status=models.ReportStatus.PENDING,
    )
    db.add(report)
    await db.commit()
    await db.refresh(report)
    return report


async def count_logs(db, action_type=None):
    stmt = select(func.count()).select_from(models.ModerationLog)
    if action_type is not None:
        stmt = stmt.where(models.ModerationLog.action_type == action_type)
    return await db.scalar(stmt)


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest_asyncio.fixture
async def client(session_factory, policy):
    """HTTP client for the real app, wired to the test database"""
    from app.main import app
    from app.modules.worker.runner import worker

    async def override_get_db():
        async with session_factory() as session:
            yield session

    original_factory = worker.session_factory
    app.dependency_overrides[get_db] = override_get_db
    app.state.authorization_policy = policy
    app.state.enforcement_dispatcher = EnforcementDispatcher()
    worker.session_factory = session_factory
    await worker.start()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    await worker.stop()
    worker.session_factory = original_factory
    app.dependency_overrides.clear()
