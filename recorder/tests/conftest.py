"""
Test configuration for the session recorder.

sys.path is configured so 'from recorder...' resolves when pytest is run from
the project root without an editable install.

Environment is pinned BEFORE recorder.config is imported: the settings object
is a module-level singleton. Each test gets its own SQLite file, created with
Base.metadata.create_all and injected by overriding get_db.
"""
import os
import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent.parent

if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["BASIC_AUTH_USER"] = "admin"
os.environ["BASIC_AUTH_PASS"] = "test-secret"
os.environ["AUTO_MIGRATE"] = "false"
os.environ["REDIS_URL"] = ""

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from recorder.database import Base, get_db, make_engine  # noqa: E402
from recorder.locks import SessionLocks  # noqa: E402
from recorder.main import app  # noqa: E402
import recorder.models  # noqa: E402,F401

ADMIN_AUTH = ("admin", "test-secret")


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh SQLite database file per test, same engine recipe as production."""
    test_engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'sessions.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    """Async httpx client over ASGI transport; no live server needed."""

    async def _get_test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    app.state.session_locks = SessionLocks()
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
