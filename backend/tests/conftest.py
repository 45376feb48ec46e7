"""Pytest configuration and fixtures for access-control tests.

Each test gets its own on-disk SQLite database (aiosqlite, NullPool) so the
service, its per-call sessions and the background audit writer all see the
same committed state.
"""

import uuid
from datetime import datetime, timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from jewelcrm.auth.deps import get_rbac_service
from jewelcrm.config import settings
from jewelcrm.database import Base
from jewelcrm.main import app
from jewelcrm.models import (
    Department,
    DepartmentPermission,
    Permission,
    Team,
    TeamMember,
    TeamPermission,
    User,
    UserProfile,
)
from jewelcrm.services.audit import AuditLogger
from jewelcrm.services.identity import DatabaseIdentityProvider
from jewelcrm.services.rbac import RBACService
from jewelcrm.services.seed import seed_rbac


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'jewelcrm_test.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def broken_session_factory(tmp_path) -> async_sessionmaker[AsyncSession]:
    """Sessions whose first statement fails: the database file cannot be opened."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'nowhere.db'}",
        poolclass=NullPool,
    )
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ── Service Fixtures ─────────────────────────────────────────────

@pytest_asyncio.fixture
async def audit(session_factory) -> AsyncGenerator[AuditLogger, None]:
    writer = AuditLogger(session_factory)
    yield writer
    await writer.stop()


@pytest.fixture
def rbac(session_factory, audit) -> RBACService:
    return RBACService(
        session_factory=session_factory,
        audit=audit,
        identity=DatabaseIdentityProvider(session_factory),
        group_permission_source="bindings",
    )


@pytest_asyncio.fixture
async def catalog(db_session: AsyncSession) -> dict[str, Permission]:
    """Seeded permission catalog, keyed by name."""
    await seed_rbac(db_session)
    result = await db_session.execute(select(Permission))
    return {p.name: p for p in result.scalars().all()}


# ── Test Data Fixtures ───────────────────────────────────────────

@pytest.fixture
def make_user(session_factory):
    """Create an account and profile directly; returns the user id."""

    async def _make(
        role: str = "sales_associate",
        *,
        department_id: str | None = None,
        employee_id: str | None = None,
        is_active: bool = True,
    ) -> str:
        async with session_factory() as db:
            user = User(
                email=f"{uuid.uuid4().hex[:12]}@example.com",
                full_name="Test User",
                is_active=True,
            )
            db.add(user)
            await db.flush()
            user_id = user.id
            db.add(
                UserProfile(
                    user_id=user_id,
                    role=role,
                    department_id=department_id,
                    employee_id=employee_id,
                    is_active=is_active,
                )
            )
            await db.commit()
        return user_id

    return _make


@pytest.fixture
def make_department(session_factory):
    async def _make(
        permissions: list[Permission] = (),
        *,
        name: str = "Showroom",
        is_active: bool = True,
        expires_at: datetime | None = None,
    ) -> str:
        async with session_factory() as db:
            department = Department(name=name, is_active=is_active)
            db.add(department)
            await db.flush()
            department_id = department.id
            for perm in permissions:
                db.add(
                    DepartmentPermission(
                        department_id=department_id,
                        permission_id=perm.id,
                        expires_at=expires_at,
                        is_active=True,
                    )
                )
            await db.commit()
        return department_id

    return _make


@pytest.fixture
def make_team(session_factory):
    async def _make(
        member_ids: list[str],
        permissions: list[Permission] = (),
        *,
        name: str = "Bridal",
    ) -> str:
        async with session_factory() as db:
            team = Team(name=name, is_active=True, members=[])
            db.add(team)
            await db.flush()
            team_id = team.id
            for user_id in member_ids:
                db.add(TeamMember(team_id=team_id, user_id=user_id, is_active=True))
            for perm in permissions:
                db.add(TeamPermission(team_id=team_id, permission_id=perm.id, is_active=True))
            await db.commit()
        return team_id

    return _make


@pytest.fixture
def yesterday() -> datetime:
    return datetime.utcnow() - timedelta(days=1)


@pytest.fixture
def tomorrow() -> datetime:
    return datetime.utcnow() + timedelta(days=1)


# ── HTTP Client ──────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(rbac) -> AsyncGenerator[AsyncClient, None]:
    """Test client whose routes resolve against the per-test service."""
    app.dependency_overrides[get_rbac_service] = lambda: rbac

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Auth Fixtures ────────────────────────────────────────────────

@pytest.fixture
def token_for():
    def _token(user_id: str) -> dict:
        token = jwt.encode(
            {
                "sub": user_id,
                "type": "access",
                "exp": datetime.utcnow() + timedelta(minutes=15),
            },
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )
        return {"Authorization": f"Bearer {token}"}

    return _token


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: HTTP layer tests")
