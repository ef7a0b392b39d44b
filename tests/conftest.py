"""Shared fixtures for filevault tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import Session, SQLModel, create_engine

from filevault import FileVaultAsync, Identity, LocalObjectStorage
from filevault.access.records import RecordStore
from filevault.models import FileGrant, StoredFile

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator
    from pathlib import Path

    from sqlalchemy import Engine
    from sqlalchemy.ext.asyncio import AsyncEngine

SIGNING_SECRET = "test-signing-secret"


class FakeClock:
    """Settable clock for signed-URL expiry tests."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def engine() -> Engine:
    """In-memory SQLite engine with all tables created."""
    eng = create_engine("sqlite://", echo=False)
    SQLModel.metadata.create_all(eng)
    return eng


@pytest.fixture
def session(engine: Engine) -> Iterator[Session]:
    """SQLModel session bound to the in-memory engine, rolled back after each test."""
    with Session(engine) as s:
        s.begin()
        yield s
        s.rollback()


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with all tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def async_session(async_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Async SQLModel session."""
    factory = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with factory() as session:
        yield session


@pytest.fixture
def records() -> RecordStore:
    return RecordStore(StoredFile, FileGrant)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def storage(tmp_path: Path, clock: FakeClock) -> LocalObjectStorage:
    """Local object storage rooted in a temp dir with a fake clock."""
    store = LocalObjectStorage(
        tmp_path / "objects",
        signing_secret=SIGNING_SECRET,
        base_url="http://files.test/storage",
        clock=clock,
    )
    await store.open()
    return store


@pytest.fixture
async def vault(async_engine: AsyncEngine, storage: LocalObjectStorage) -> FileVaultAsync:
    """Vault over the shared in-memory engine."""
    factory = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    v = FileVaultAsync(storage=storage, session_factory=factory)
    await v.open()
    return v


@pytest.fixture
def alice() -> Identity:
    return Identity(id="alice", email="alice@example.com")


@pytest.fixture
def bob() -> Identity:
    return Identity(id="bob", email="b@example.com")


@pytest.fixture
def carol() -> Identity:
    return Identity(id="carol", email="carol@example.com")
