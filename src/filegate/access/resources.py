"""ResourceService — file/folder lookup and info conversion."""

from __future__ import annotations

from typing import TYPE_CHECKING, assert_never

from sqlalchemy import delete
from sqlmodel import select

from filegate.exceptions import NotFoundError
from filegate.models.resources import File, Folder
from filegate.permissions import ResourceType
from filegate.types import FileInfo, FolderInfo

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from filegate.permissions import ResourceRef


class ResourceService:
    """Stateless lookups over the file and folder tables."""

    async def get(self, session: AsyncSession, ref: ResourceRef) -> File | Folder | None:
        """Return the row for *ref*, dispatching on its variant."""
        match ref.type:
            case ResourceType.FILE:
                return await self.get_file(session, ref.id)
            case ResourceType.FOLDER:
                return await self.get_folder(session, ref.id)
            case _:
                assert_never(ref.type)

    async def get_file(self, session: AsyncSession, file_id: str) -> File | None:
        return await session.get(File, file_id)

    async def get_folder(self, session: AsyncSession, folder_id: str) -> Folder | None:
        return await session.get(Folder, folder_id)

    async def require_file(self, session: AsyncSession, file_id: str) -> File:
        file = await self.get_file(session, file_id)
        if file is None:
            raise NotFoundError(f"File not found: {file_id}")
        return file

    async def require_folder(self, session: AsyncSession, folder_id: str) -> Folder:
        folder = await self.get_folder(session, folder_id)
        if folder is None:
            raise NotFoundError(f"Folder not found: {folder_id}")
        return folder

    async def list_children(
        self,
        session: AsyncSession,
        owner_id: str,
        parent_id: str | None,
    ) -> tuple[list[Folder], list[File]]:
        """Return the folders and files directly inside *parent_id* for *owner_id*."""
        folder_q = select(Folder).where(Folder.owner_id == owner_id)
        file_q = select(File).where(File.owner_id == owner_id)
        if parent_id is None:
            folder_q = folder_q.where(Folder.parent_id.is_(None))  # type: ignore[union-attr]
            file_q = file_q.where(File.folder_id.is_(None))  # type: ignore[union-attr]
        else:
            folder_q = folder_q.where(Folder.parent_id == parent_id)
            file_q = file_q.where(File.folder_id == parent_id)

        folders = (await session.execute(folder_q.order_by(Folder.name))).scalars().all()
        files = (await session.execute(file_q.order_by(File.name))).scalars().all()
        return list(folders), list(files)

    async def search(
        self,
        session: AsyncSession,
        owner_id: str,
        term: str,
        limit: int,
    ) -> tuple[list[Folder], list[File]]:
        """Case-insensitive substring match on names of *owner_id*'s resources."""
        escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        folders = (
            await session.execute(
                select(Folder)
                .where(
                    Folder.owner_id == owner_id,
                    Folder.name.ilike(pattern, escape="\\"),  # type: ignore[attr-defined]
                )
                .order_by(Folder.name)
                .limit(limit)
            )
        ).scalars().all()
        files = (
            await session.execute(
                select(File)
                .where(
                    File.owner_id == owner_id,
                    File.name.ilike(pattern, escape="\\"),  # type: ignore[attr-defined]
                )
                .order_by(File.name)
                .limit(limit)
            )
        ).scalars().all()
        return list(folders), list(files)

    async def delete_files(self, session: AsyncSession, file_ids: Iterable[str]) -> int:
        ids = list(file_ids)
        if not ids:
            return 0
        result = await session.execute(
            delete(File)
            .where(File.id.in_(ids))  # type: ignore[union-attr]
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    async def delete_folders(self, session: AsyncSession, folder_ids: Iterable[str]) -> int:
        """Delete folders one at a time, in the order given.

        Callers pass deepest-first so no folder outlives its children.
        """
        deleted = 0
        for folder_id in folder_ids:
            result = await session.execute(
                delete(Folder)
                .where(Folder.id == folder_id)
                .execution_options(synchronize_session="fetch")
            )
            deleted += result.rowcount or 0
        return deleted

    @staticmethod
    def folder_to_info(f: Folder) -> FolderInfo:
        return FolderInfo(
            id=f.id,
            name=f.name,
            owner_id=f.owner_id,
            parent_id=f.parent_id,
            created_at=f.created_at,
            updated_at=f.updated_at,
        )

    @staticmethod
    def file_to_info(f: File) -> FileInfo:
        return FileInfo(
            id=f.id,
            name=f.name,
            owner_id=f.owner_id,
            folder_id=f.folder_id,
            mime_type=f.mime_type,
            size_bytes=f.size_bytes,
            created_at=f.created_at,
            updated_at=f.updated_at,
        )
