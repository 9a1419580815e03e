"""Shared fixtures for filegate tests."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from filegate.models import File, Folder  # registers tables on SQLModel.metadata

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with all tables created.

    ``StaticPool`` keeps a single connection so every session sees the
    same in-memory database.
    """
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> Callable[..., AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_session(
    session_factory: Callable[..., AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Async SQLModel session for service-level tests."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Row builders
# ---------------------------------------------------------------------------


@pytest.fixture
def make_folder(async_session: AsyncSession) -> Callable[..., Any]:
    """Insert a folder row; returns the flushed ``Folder``."""

    async def _make(
        name: str,
        owner_id: str = "alice",
        parent: Folder | None = None,
    ) -> Folder:
        return await _add_folder(async_session, name, owner_id, parent)

    return _make


@pytest.fixture
def make_file(async_session: AsyncSession) -> Callable[..., Any]:
    """Insert a file row; returns the flushed ``File``."""

    async def _make(
        name: str,
        owner_id: str = "alice",
        folder: Folder | None = None,
        locator: str | None = None,
    ) -> File:
        return await _add_file(async_session, name, owner_id, folder, locator)

    return _make


async def _add_folder(
    session: AsyncSession,
    name: str,
    owner_id: str = "alice",
    parent: Folder | None = None,
) -> Folder:
    folder = Folder(owner_id=owner_id, name=name, parent_id=parent.id if parent else None)
    session.add(folder)
    await session.flush()
    return folder


async def _add_file(
    session: AsyncSession,
    name: str,
    owner_id: str = "alice",
    folder: Folder | None = None,
    locator: str | None = None,
) -> File:
    file = File(
        owner_id=owner_id,
        folder_id=folder.id if folder else None,
        name=name,
        mime_type="text/plain",
        size_bytes=5,
        storage_locator=locator or f"{owner_id}/{name}",
    )
    session.add(file)
    await session.flush()
    return file
