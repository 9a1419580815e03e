"""Tests for GrantService — upsert, level changes and cascade deletes."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from filegate.access import GrantService
from filegate.exceptions import ConflictError
from filegate.permissions import PermissionLevel, ResourceRef

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


@pytest.fixture
def grants() -> GrantService:
    return GrantService()


class TestUpsert:
    async def test_create(self, grants: GrantService, async_session: AsyncSession):
        ref = ResourceRef.folder("f1")
        grant, created, previous = await grants.upsert(
            async_session, ref, "bob", PermissionLevel.READ, "alice"
        )
        assert created is True
        assert previous is None
        assert grant.level == "read"
        assert grant.granted_by == "alice"
        assert grant.id

    async def test_second_grant_updates_level(
        self, grants: GrantService, async_session: AsyncSession
    ):
        ref = ResourceRef.folder("f1")
        first, _, _ = await grants.upsert(async_session, ref, "bob", PermissionLevel.READ, "alice")
        second, created, previous = await grants.upsert(
            async_session, ref, "bob", PermissionLevel.WRITE, "alice"
        )
        assert created is False
        assert previous is PermissionLevel.READ
        assert second.id == first.id
        assert len(await grants.list_for_resource(async_session, ref)) == 1
        assert second.level == "write"

    async def test_same_id_different_type_is_separate(
        self, grants: GrantService, async_session: AsyncSession
    ):
        await grants.upsert(async_session, ResourceRef.folder("x"), "bob", PermissionLevel.READ, "a")
        _, created, _ = await grants.upsert(
            async_session, ResourceRef.file("x"), "bob", PermissionLevel.READ, "a"
        )
        assert created is True

    async def test_concurrent_insert_is_conflict(
        self, grants: GrantService, async_session: AsyncSession, monkeypatch
    ):
        ref = ResourceRef.folder("f1")
        await grants.upsert(async_session, ref, "bob", PermissionLevel.READ, "alice")
        await async_session.commit()

        async def lookup_misses(*args, **kwargs):
            return None

        monkeypatch.setattr(grants, "get", lookup_misses)
        with pytest.raises(ConflictError):
            await grants.upsert(async_session, ref, "bob", PermissionLevel.WRITE, "carol")
        await async_session.rollback()

        monkeypatch.undo()
        grant = await grants.get(async_session, ref, "bob")
        assert grant is not None
        assert grant.level == "read"


class TestLookup:
    async def test_get_missing(self, grants: GrantService, async_session: AsyncSession):
        assert await grants.get(async_session, ResourceRef.file("f"), "bob") is None

    async def test_get_by_id(self, grants: GrantService, async_session: AsyncSession):
        grant, _, _ = await grants.upsert(
            async_session, ResourceRef.file("f"), "bob", PermissionLevel.ADMIN, "alice"
        )
        found = await grants.get_by_id(async_session, grant.id)
        assert found is not None
        assert found.grantee_id == "bob"

    async def test_to_info(self, grants: GrantService, async_session: AsyncSession):
        grant, _, _ = await grants.upsert(
            async_session, ResourceRef.file("f"), "bob", PermissionLevel.WRITE, "alice"
        )
        info = grants.to_info(grant)
        assert info.resource == ResourceRef.file("f")
        assert info.level is PermissionLevel.WRITE


class TestSetLevelAndRemove:
    async def test_set_level_returns_previous(
        self, grants: GrantService, async_session: AsyncSession
    ):
        grant, _, _ = await grants.upsert(
            async_session, ResourceRef.file("f"), "bob", PermissionLevel.READ, "alice"
        )
        previous = await grants.set_level(async_session, grant, PermissionLevel.ADMIN)
        assert previous is PermissionLevel.READ
        assert grant.level == "admin"

    async def test_remove(self, grants: GrantService, async_session: AsyncSession):
        ref = ResourceRef.file("f")
        grant, _, _ = await grants.upsert(async_session, ref, "bob", PermissionLevel.READ, "alice")
        await grants.remove(async_session, grant)
        assert await grants.get(async_session, ref, "bob") is None


class TestDeleteForResources:
    async def test_cascade(self, grants: GrantService, async_session: AsyncSession):
        await grants.upsert(async_session, ResourceRef.file("f1"), "bob", PermissionLevel.READ, "a")
        await grants.upsert(async_session, ResourceRef.folder("d1"), "bob", PermissionLevel.READ, "a")
        await grants.upsert(async_session, ResourceRef.folder("d2"), "bob", PermissionLevel.READ, "a")

        deleted = await grants.delete_for_resources(
            async_session, file_ids=["f1"], folder_ids=["d1"]
        )
        assert deleted == 2
        assert await grants.get(async_session, ResourceRef.folder("d2"), "bob") is not None

    async def test_nothing_to_delete(self, grants: GrantService, async_session: AsyncSession):
        assert await grants.delete_for_resources(async_session) == 0
