"""GrantService — direct grant CRUD.

Stateless service that receives a session at call time, following the
same pattern as the other access services.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from filegate.exceptions import ConflictError
from filegate.models.grants import Grant
from filegate.permissions import PermissionLevel, ResourceRef, ResourceType
from filegate.types import GrantInfo
from filegate.utils import utc_now

from .cascade import delete_resource_rows

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession


class GrantService:
    """Manages per-principal grants on files and folders."""

    async def get(
        self,
        session: AsyncSession,
        ref: ResourceRef,
        grantee_id: str,
    ) -> Grant | None:
        result = await session.execute(
            select(Grant).where(
                Grant.resource_type == ref.type.value,
                Grant.resource_id == ref.id,
                Grant.grantee_id == grantee_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, session: AsyncSession, grant_id: str) -> Grant | None:
        return await session.get(Grant, grant_id)

    async def upsert(
        self,
        session: AsyncSession,
        ref: ResourceRef,
        grantee_id: str,
        level: PermissionLevel,
        granted_by: str,
    ) -> tuple[Grant, bool, PermissionLevel | None]:
        """Create a grant, or update the level of the existing one.

        Returns ``(grant, created, previous_level)``.  Flushes but does
        not commit.  Raises ``ConflictError`` if another transaction
        inserted the same grant between the lookup and the insert; the
        session must then be rolled back.
        """
        existing = await self.get(session, ref, grantee_id)
        if existing is not None:
            previous = PermissionLevel(existing.level)
            existing.level = level.value
            existing.updated_at = utc_now()
            await session.flush()
            return existing, False, previous

        grant = Grant(
            resource_type=ref.type.value,
            resource_id=ref.id,
            grantee_id=grantee_id,
            level=level.value,
            granted_by=granted_by,
        )
        session.add(grant)
        try:
            await session.flush()
        except IntegrityError:
            raise ConflictError(
                f"A grant for {grantee_id!r} on {ref.type.value} {ref.id} was created concurrently"
            ) from None
        return grant, True, None

    async def set_level(
        self, session: AsyncSession, grant: Grant, level: PermissionLevel
    ) -> PermissionLevel:
        """Change *grant*'s level; returns the previous one."""
        previous = PermissionLevel(grant.level)
        grant.level = level.value
        grant.updated_at = utc_now()
        await session.flush()
        return previous

    async def remove(self, session: AsyncSession, grant: Grant) -> None:
        await session.delete(grant)
        await session.flush()

    async def list_for_resource(
        self, session: AsyncSession, ref: ResourceRef
    ) -> list[Grant]:
        result = await session.execute(
            select(Grant)
            .where(
                Grant.resource_type == ref.type.value,
                Grant.resource_id == ref.id,
            )
            .order_by(Grant.created_at)
        )
        return list(result.scalars().all())

    async def delete_for_resources(
        self,
        session: AsyncSession,
        file_ids: Iterable[str] = (),
        folder_ids: Iterable[str] = (),
    ) -> int:
        """Cascade-delete every grant on the given resources."""
        return await delete_resource_rows(session, Grant, file_ids, folder_ids)

    @staticmethod
    def to_info(grant: Grant) -> GrantInfo:
        return GrantInfo(
            id=grant.id,
            resource=ResourceRef(ResourceType(grant.resource_type), grant.resource_id),
            grantee_id=grant.grantee_id,
            level=PermissionLevel(grant.level),
            granted_by=grant.granted_by,
            created_at=grant.created_at,
        )

