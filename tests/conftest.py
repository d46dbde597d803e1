"""Shared test fixtures."""

from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from readtrack.auth.jwt import create_access_token, reset_keys
from readtrack.config import get_settings
from readtrack.database import close_db, get_engine, get_session_factory, init_db
from readtrack.db import models  # noqa: F401
from readtrack.db.base import Base
from readtrack.main import create_app

_key_dir: str | None = None


def _ensure_test_keys() -> tuple[str, str]:
    """Generate an RSA key pair once per test session and point settings at it."""
    global _key_dir  # noqa: PLW0603
    if _key_dir is None:
        _key_dir = tempfile.mkdtemp(prefix="readtrack_test_keys_")
        key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        Path(_key_dir, "jwt_private.pem").write_bytes(
            key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
        )
        Path(_key_dir, "jwt_public.pem").write_bytes(
            key.public_key().public_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PublicFormat.SubjectPublicKeyInfo,
            )
        )

    private_path = os.path.join(_key_dir, "jwt_private.pem")
    public_path = os.path.join(_key_dir, "jwt_public.pem")
    os.environ["RT_JWT_PRIVATE_KEY_PATH"] = private_path
    os.environ["RT_JWT_PUBLIC_KEY_PATH"] = public_path
    get_settings.cache_clear()
    reset_keys()
    return private_path, public_path


def auth_headers(reader_id: int) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(reader_id)}"}


@pytest.fixture(autouse=True)
def _test_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Fresh SQLite file and no retry backoff for every test."""
    monkeypatch.setenv("RT_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'readtrack.db'}")
    monkeypatch.setenv("RT_GOAL_UPDATE_RETRY_BACKOFF_SECONDS", "0")
    monkeypatch.setenv("RT_LOG_FORMAT", "console")
    _ensure_test_keys()
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Initialize the engine on the test database and create the schema."""
    await init_db(get_settings().database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield get_session_factory()
    await close_db()


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the app; the engine comes from session_factory."""
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
