"""PermissionResolver — effective permission of a principal on a resource."""

from __future__ import annotations

from typing import TYPE_CHECKING, assert_never

from filegate.models.resources import File, Folder
from filegate.permissions import PermissionLevel, ResourceRef

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from .grants import GrantService
    from .resources import ResourceService


class PermissionResolver:
    """Combines ownership, direct grants and one-hop folder inheritance.

    Resolution order:

    1. The owner always has ``ADMIN``.
    2. A direct grant on the resource yields its level.
    3. A file without a direct grant takes the principal's level on its
       immediate parent folder (owner or direct grant there).  Grants on
       grandparent folders are never consulted.

    Every call re-reads the current rows; nothing is cached.
    """

    def __init__(self, resources: ResourceService, grants: GrantService) -> None:
        self._resources = resources
        self._grants = grants

    async def effective_permission(
        self,
        session: AsyncSession,
        principal_id: str,
        ref: ResourceRef,
    ) -> PermissionLevel | None:
        resource = await self._resources.get(session, ref)
        if resource is None:
            return None

        direct = await self._direct_permission(session, principal_id, ref, resource)
        if direct is not None:
            return direct

        match resource:
            case File(folder_id=str() as parent_id):
                parent = await self._resources.get_folder(session, parent_id)
                if parent is None:
                    return None
                return await self._direct_permission(
                    session, principal_id, ResourceRef.folder(parent_id), parent
                )
            case File() | Folder():
                return None
            case _:
                assert_never(resource)

    async def check_access(
        self,
        session: AsyncSession,
        principal_id: str,
        ref: ResourceRef,
        required: PermissionLevel,
    ) -> bool:
        effective = await self.effective_permission(session, principal_id, ref)
        if effective is None:
            return False
        return effective.meets(required)

    async def _direct_permission(
        self,
        session: AsyncSession,
        principal_id: str,
        ref: ResourceRef,
        resource: File | Folder,
    ) -> PermissionLevel | None:
        if resource.owner_id == principal_id:
            return PermissionLevel.ADMIN
        grant = await self._grants.get(session, ref, principal_id)
        if grant is not None:
            return PermissionLevel(grant.level)
        return None

