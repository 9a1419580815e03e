"""Folder and File models — the two resource variants.

Provides ``FolderBase`` / ``FileBase`` non-table base classes and the
concrete ``Folder`` / ``File`` tables.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, Index
from sqlmodel import Field, SQLModel


class FolderBase(SQLModel):
    """Base fields for a folder. ``parent_id`` of ``None`` means root level."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    owner_id: str = Field(index=True)
    parent_id: str | None = Field(default=None, index=True)
    name: str
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )


class Folder(FolderBase, table=True):
    """Folder table — ``filegate_folders``."""

    __tablename__ = "filegate_folders"
    __table_args__ = (
        Index("filegate_folders_owner_parent_name_idx", "owner_id", "parent_id", "name"),
    )


class FileBase(SQLModel):
    """Base fields for a stored file. Content lives in the storage backend."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    owner_id: str = Field(index=True)
    folder_id: str | None = Field(default=None, index=True)
    name: str
    mime_type: str = Field(default="application/octet-stream")
    size_bytes: int = Field(default=0, ge=0)
    storage_locator: str
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )


class File(FileBase, table=True):
    """File table — ``filegate_files``."""

    __tablename__ = "filegate_files"
