"""
Shared fixtures for the role service tests.

Every test gets its own SQLite file (aiosqlite) with the full schema.
NullPool keeps connections from leaking between event loops: async tests
run on pytest-asyncio's loop, the TestClient runs the app on its own.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import adroles.models  # noqa: F401
from adroles.config import Settings, get_settings
from adroles.db.postgres import Base, get_db
from adroles.main import app
from adroles.models.role import Role
from adroles.security import create_access_token
from adroles.services.role_store import RoleStore

TEST_SECRET = "test-secret-key"


def make_settings(**overrides) -> Settings:
    values = {
        "environment": "production",
        "secret_key": TEST_SECRET,
        "database_url": "sqlite+aiosqlite://",
    }
    values.update(overrides)
    return Settings(**values)


async def seed_user(store: RoleStore, pubkey: str, roles=(Role.VIEWER,), current: Role | None = Role.VIEWER):
    """Create a user holding *roles*, with *current* as the stored current role."""
    user = await store.create_user(pubkey)
    for role in roles:
        await store.grant_role(user.id, role)
    if current is not None:
        # Written directly so tests can seed drifted state
        user.current_role = Role(current).value
        await store.db.commit()
    return user


class Database:
    """Synchronous seeding helper for API tests."""

    def __init__(self, url: str):
        self.engine = create_async_engine(url, poolclass=NullPool)
        self.sessions = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

    def create_schema(self):
        async def create():
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        asyncio.run(create())

    def run(self, fn):
        """Run ``fn(store)`` in a fresh session and return its result."""
        async def runner():
            async with self.sessions() as session:
                return await fn(RoleStore(session))
        return asyncio.run(runner())

    def seed_user(self, pubkey: str, roles=(Role.VIEWER,), current: Role | None = Role.VIEWER):
        return self.run(lambda store: seed_user(store, pubkey, roles, current))


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'roles.db'}"


# ── Async fixtures (store / resolver tests) ──────────────────────────

@pytest.fixture
async def session(db_url):
    engine = create_async_engine(db_url, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
async def store(session):
    return RoleStore(session)


@pytest.fixture
def dev_settings():
    return make_settings(environment="development")


@pytest.fixture
def prod_settings():
    return make_settings()


# ── API fixtures ─────────────────────────────────────────────────────

@pytest.fixture
def app_settings():
    """Settings seen by the app. Override in a module to change environment."""
    return make_settings()


@pytest.fixture
def database(db_url):
    db = Database(db_url)
    db.create_schema()
    return db


@pytest.fixture
def client(database, app_settings):
    async def _get_test_db():
        async with database.sessions() as session:
            yield session

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_settings] = lambda: app_settings
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(app_settings):
    def _headers(user, **extra) -> dict:
        token = create_access_token({"sub": str(user.id)}, settings=app_settings)
        return {"Authorization": f"Bearer {token}", **extra}
    return _headers
