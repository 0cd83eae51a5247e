"""
Epic Notes Backend - Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Service and API tests run against a real in-memory SQLite database
       (aiosqlite) built fresh for every test; a few failure-path tests use
       a mocked AsyncSession instead.

Fixture Hierarchy (all function-scoped):
    ├── mock_db_session:  AsyncMock standing in for AsyncSession
    ├── database:         In-memory Database with every table created
    ├── seeded:           kody + one note "n1" with images i1 and i2
    ├── build_multipart:  Builds (body, content_type) for decoder tests
    └── test_client:      HTTPX AsyncClient bound to create_app(database)
"""

import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Tuple, Union
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Override settings for testing BEFORE any epicnotes imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_LEVEL"] = "WARNING"

from epicnotes.database import Database  # noqa: E402
from epicnotes.models import Note, NoteImage, User, UserImage  # noqa: E402

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00\xff\xd9"

MultipartValue = Union[str, Tuple[str, bytes, str]]


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    A MagicMock that simulates AsyncSession behavior.

    Usage:
        mock_db_session.execute.side_effect = [first_result, OperationalError(...)]
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest_asyncio.fixture
async def database():
    """Fresh in-memory SQLite database per test (StaticPool keeps it alive)."""
    db = Database("sqlite+aiosqlite:///:memory:")
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def seeded(database) -> Dict[str, str]:
    """
    One user with a profile image, one note `n1` with images i1 and i2, and
    a second user without notes.
    """
    now = datetime.now(timezone.utc)
    async with database.session() as session:
        kody = User(id="u1", email="kody@example.com", username="kody", name="Kody", created_at=now)
        kody.image = UserImage(id="avatar1", content_type="image/jpeg", blob=JPEG_BYTES)
        session.add(kody)
        session.add(User(id="u2", email="alex@example.com", username="alex", name=None))
        session.add(
            Note(
                id="n1",
                title="Koalas",
                content="Koalas are great at climbing trees.",
                owner_id="u1",
                created_at=now - timedelta(days=1),
                updated_at=now - timedelta(days=1),
                images=[
                    NoteImage(id="i1", alt_text="a koala", content_type="image/png", blob=PNG_BYTES, position=0),
                    NoteImage(id="i2", alt_text="a tree", content_type="image/jpeg", blob=JPEG_BYTES, position=1),
                ],
            )
        )
        await session.commit()
    return {"username": "kody", "note_id": "n1", "image_ids": ["i1", "i2"]}


@pytest.fixture
def build_multipart():
    """
    Returns a builder: fields → (body, content_type).

    A field value is either text, or (filename, data, content_type) for a
    file part. Order and duplicate names are preserved.
    """

    def _build(fields: List[Tuple[str, MultipartValue]], boundary: str = "") -> Tuple[bytes, str]:
        boundary = boundary or uuid.uuid4().hex
        chunks: List[bytes] = []
        for name, value in fields:
            chunks.append(f"--{boundary}\r\n".encode())
            if isinstance(value, tuple):
                filename, data, content_type = value
                chunks.append(
                    f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'.encode()
                )
                if content_type:
                    chunks.append(f"Content-Type: {content_type}\r\n".encode())
                chunks.append(b"\r\n")
                chunks.append(data)
            else:
                chunks.append(f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode())
                chunks.append(value.encode())
            chunks.append(b"\r\n")
        chunks.append(f"--{boundary}--\r\n".encode())
        return b"".join(chunks), f"multipart/form-data; boundary={boundary}"

    return _build


@pytest_asyncio.fixture
async def test_client(database):
    """
    HTTPX AsyncClient talking to an app built around the test database.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from epicnotes.main import create_app

    app = create_app(database=database)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
