"""
NoteShare Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy (all function-scoped):
    ├── mock_db_session:  AsyncMock session for pure unit tests
    ├── engine:           aiosqlite database file in tmp_path, tables created
    ├── session_factory:  async_sessionmaker bound to that engine
    ├── db_session:       one AsyncSession for service-level tests
    ├── make_user:        inserts a users row and returns it
    ├── alice / bob:      two ready-made users
    ├── blob_store:       LocalBlobStore under tmp_path
    ├── mock_blob_store:  AsyncMock BlobStore that records calls
    └── test_client:      HTTPX AsyncClient against the app, DB and blob
                          store dependencies overridden
"""

import os
import tempfile

# Override settings for testing BEFORE any noteshare imports
_TEST_DIR = tempfile.mkdtemp(prefix="noteshare_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/app.db"
os.environ["STORAGE_ROOT"] = os.path.join(_TEST_DIR, "storage")
os.environ["BLOB_BACKEND"] = "local"
os.environ["PUBLIC_BASE_URL"] = "http://test"
os.environ["LOG_LEVEL"] = "WARNING"

import itertools  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from noteshare.database import Base, build_engine, get_db_session  # noqa: E402
from noteshare.models.note import Note, NoteComment, NoteLike  # noqa: E402,F401
from noteshare.models.user import User, UserArchivedNote  # noqa: E402,F401
from noteshare.schemas.note import NoteFields  # noqa: E402
from noteshare.services.blob_store import (  # noqa: E402
    BlobStore,
    LocalBlobStore,
    StoredBlob,
    get_blob_store,
)
from noteshare.services.file_service import UploadedDocument  # noqa: E402

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n<< /Root 1 0 R >>\n%%EOF\n"
PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR" + b"\x00" * 32
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00" + b"\x00" * 32 + b"\xff\xd9"
TEXT_BYTES = b"just plain text, renamed to look like a document\n"


def note_fields(**overrides) -> NoteFields:
    """All seven metadata fields filled in; overrides replace single values."""
    values = {
        "title": "Thermodynamics Unit 3",
        "description": "Entropy and the second law",
        "college_name": "Govt Engineering College",
        "course_name": "B.Tech Mechanical",
        "batch": "2022-2026",
        "subject_name": "Thermodynamics",
        "semester": "4",
    }
    values.update(overrides)
    return NoteFields(**values)


def pdf_upload(filename: str = "unit3.pdf", content: bytes = PDF_BYTES) -> UploadedDocument:
    return UploadedDocument(filename=filename, content_type="application/pdf", content=content)


# ══════════════════════════════════════════════════════════════════════════
# Unit-Test Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    A MagicMock that simulates AsyncSession behavior.

    Usage:
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = None
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def mock_blob_store():
    """
    AsyncMock blob store. store() hands out sequential blob ids
    (mock/1.pdf, mock/2.pdf, ...) so ordering can be asserted.
    """
    counter = itertools.count(1)

    def _store(content, original_name, content_type):
        blob_id = f"mock/{next(counter)}.pdf"
        return StoredBlob(url=f"https://blobs.test/{blob_id}", blob_id=blob_id)

    store = AsyncMock(spec=BlobStore)
    store.name = "mock"
    store.store.side_effect = _store
    store.remove.return_value = None
    return store


@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def blob_store(temp_storage):
    return LocalBlobStore(storage_root=temp_storage, public_base_url="http://test")


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def engine(tmp_path):
    """A fresh SQLite database file per test, all tables created."""
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(session_factory):
    """Factory fixture: await make_user("alice") → committed User row."""

    async def _make(username: str) -> User:
        async with session_factory() as session:
            user = User(username=username, email=f"{username}@example.com")
            session.add(user)
            await session.commit()
            return user

    return _make


@pytest_asyncio.fixture
async def alice(make_user):
    return await make_user("alice")


@pytest_asyncio.fixture
async def bob(make_user):
    return await make_user("bob")


# ══════════════════════════════════════════════════════════════════════════
# API Client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(session_factory, blob_store):
    """
    HTTPX AsyncClient talking to the FastAPI app through ASGITransport,
    with the database and blob store dependencies pointed at test fixtures.

    Usage:
        response = await test_client.get("/health")
    """
    from noteshare.main import app

    async def _override_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _override_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
