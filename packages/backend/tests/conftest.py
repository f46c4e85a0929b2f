"""Test fixtures — a throwaway SQLite database rebuilt for every test.

The environment is pinned before instaflix is imported, because settings
(and the engine built from them) are loaded once at import time:
- a temp-file SQLite database (aiosqlite), so no Postgres is needed
- bcrypt at its minimum cost, so hashing doesn't dominate test time
- a fixed signing key

Each test gets freshly created tables. HTTP tests go through the real app
via ASGITransport; every request opens its own session, as in production.
"""

import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="instaflix-tests-")
os.environ["INSTAFLIX_DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR}/test.db"
os.environ["INSTAFLIX_BCRYPT_ROUNDS"] = "4"
os.environ["INSTAFLIX_ENVIRONMENT"] = "development"
os.environ["INSTAFLIX_JWT_SECRET"] = "test-signing-key"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from instaflix.db.engine import async_session_factory, engine  # noqa: E402
from instaflix.db.models import Base  # noqa: E402
from instaflix.main import app  # noqa: E402


@pytest_asyncio.fixture()
async def db_session():
    """Session on a freshly created schema."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


@pytest_asyncio.fixture()
async def client(db_session):
    """HTTP client against the real app and real auth pipeline."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def tokens():
    """The app's session token service (signed with the test key)."""
    return app.state.token_service


@pytest.fixture()
def session_factory(db_session):
    """New sessions, for reading what other sessions committed."""
    return async_session_factory
