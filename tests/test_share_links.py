"""Tests for ShareLinkService — creation, validation, expiry and updates."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest

from filegate.access import ShareLinkService
from filegate.exceptions import ExpiredError, NotFoundError
from filegate.permissions import PermissionLevel, ResourceRef, ResourceType

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


@pytest.fixture
def links() -> ShareLinkService:
    return ShareLinkService()


def _past() -> datetime:
    return datetime.now(UTC) - timedelta(days=1)


def _future() -> datetime:
    return datetime.now(UTC) + timedelta(days=7)


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


class TestCreate:
    async def test_token_is_random_and_long(
        self, links: ShareLinkService, async_session: AsyncSession
    ):
        a = await links.create(async_session, ResourceRef.file("f"), "alice", PermissionLevel.READ)
        b = await links.create(async_session, ResourceRef.file("f"), "alice", PermissionLevel.READ)
        assert a.token != b.token
        # 24 random bytes -> 32 url-safe characters
        assert len(a.token) >= 32

    async def test_fields(self, links: ShareLinkService, async_session: AsyncSession):
        expires = _future()
        link = await links.create(
            async_session, ResourceRef.folder("d"), "alice", PermissionLevel.WRITE,
            expires_at=expires,
        )
        info = links.to_info(link)
        assert info.resource == ResourceRef.folder("d")
        assert info.level is PermissionLevel.WRITE
        assert info.issuer_id == "alice"
        assert info.expires_at == expires
        assert info.is_expired is False


# ---------------------------------------------------------------------------
# validate / inspect
# ---------------------------------------------------------------------------


class TestValidate:
    async def test_valid(self, links: ShareLinkService, async_session: AsyncSession):
        link = await links.create(async_session, ResourceRef.file("f"), "alice", PermissionLevel.READ)
        grant = await links.validate(async_session, link.token, ResourceType.FILE, "f")
        assert grant is not None
        assert grant.level is PermissionLevel.READ
        assert grant.resource == ResourceRef.file("f")

    async def test_unknown_token(self, links: ShareLinkService, async_session: AsyncSession):
        assert await links.validate(async_session, "nope") is None

    async def test_empty_token(self, links: ShareLinkService, async_session: AsyncSession):
        assert await links.validate(async_session, "") is None

    async def test_expired(self, links: ShareLinkService, async_session: AsyncSession):
        link = await links.create(
            async_session, ResourceRef.file("f"), "alice", PermissionLevel.READ,
            expires_at=_past(),
        )
        assert await links.validate(async_session, link.token) is None

    async def test_wrong_resource(self, links: ShareLinkService, async_session: AsyncSession):
        link = await links.create(async_session, ResourceRef.file("f"), "alice", PermissionLevel.READ)
        assert await links.validate(async_session, link.token, ResourceType.FILE, "other") is None
        assert await links.validate(async_session, link.token, ResourceType.FOLDER, "f") is None

    async def test_inspect_missing(self, links: ShareLinkService, async_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await links.inspect(async_session, "nope")

    async def test_inspect_expired(self, links: ShareLinkService, async_session: AsyncSession):
        link = await links.create(
            async_session, ResourceRef.file("f"), "alice", PermissionLevel.READ,
            expires_at=_past(),
        )
        with pytest.raises(ExpiredError):
            await links.inspect(async_session, link.token)


# ---------------------------------------------------------------------------
# Folder links reaching files
# ---------------------------------------------------------------------------


class TestFolderShareLinkFiles:
    async def test_direct_child(
        self, links: ShareLinkService, async_session: AsyncSession, make_folder, make_file
    ):
        f1 = await make_folder("F1")
        doc = await make_file("doc.txt", folder=f1)
        link = await links.create(async_session, ResourceRef.folder(f1.id), "alice", PermissionLevel.READ)

        grant = await links.can_access_file_via_folder_share_link(async_session, link.token, doc.id)
        assert grant is not None

    async def test_subfolder_file_denied(
        self, links: ShareLinkService, async_session: AsyncSession, make_folder, make_file
    ):
        f1 = await make_folder("F1")
        sub = await make_folder("Sub", parent=f1)
        deep = await make_file("deep.txt", folder=sub)
        link = await links.create(async_session, ResourceRef.folder(f1.id), "alice", PermissionLevel.READ)

        assert await links.can_access_file_via_folder_share_link(
            async_session, link.token, deep.id
        ) is None

    async def test_file_link_does_not_apply(
        self, links: ShareLinkService, async_session: AsyncSession, make_folder, make_file
    ):
        f1 = await make_folder("F1")
        doc = await make_file("doc.txt", folder=f1)
        link = await links.create(async_session, ResourceRef.file(doc.id), "alice", PermissionLevel.READ)

        assert await links.can_access_file_via_folder_share_link(
            async_session, link.token, doc.id
        ) is None

    async def test_expired_folder_link(
        self, links: ShareLinkService, async_session: AsyncSession, make_folder, make_file
    ):
        f1 = await make_folder("F1")
        doc = await make_file("doc.txt", folder=f1)
        link = await links.create(
            async_session, ResourceRef.folder(f1.id), "alice", PermissionLevel.READ,
            expires_at=_past(),
        )
        assert await links.can_access_file_via_folder_share_link(
            async_session, link.token, doc.id
        ) is None


# ---------------------------------------------------------------------------
# update / revoke
# ---------------------------------------------------------------------------


class TestUpdate:
    async def test_extend_expired_link(self, links: ShareLinkService, async_session: AsyncSession):
        link = await links.create(
            async_session, ResourceRef.file("f"), "alice", PermissionLevel.READ,
            expires_at=_past(),
        )
        changes = await links.update(async_session, link, expires_at=_future())
        assert "expires_at" in changes
        assert await links.validate(async_session, link.token) is not None

    async def test_level_change_does_not_revive_expired_link(
        self, links: ShareLinkService, async_session: AsyncSession
    ):
        link = await links.create(
            async_session, ResourceRef.file("f"), "alice", PermissionLevel.READ,
            expires_at=_past(),
        )
        changes = await links.update(async_session, link, level=PermissionLevel.WRITE)
        assert changes == {"level": "write"}
        assert await links.validate(async_session, link.token) is None

        await links.update(async_session, link, expires_at=_future())
        grant = await links.validate(async_session, link.token)
        assert grant is not None
        assert grant.level is PermissionLevel.WRITE

    async def test_clear_expiry(self, links: ShareLinkService, async_session: AsyncSession):
        link = await links.create(
            async_session, ResourceRef.file("f"), "alice", PermissionLevel.READ,
            expires_at=_future(),
        )
        changes = await links.update(async_session, link, clear_expiry=True)
        assert changes == {"expires_at": None}
        assert link.expires_at is None

    async def test_level_unchanged_is_no_change(
        self, links: ShareLinkService, async_session: AsyncSession
    ):
        link = await links.create(async_session, ResourceRef.file("f"), "alice", PermissionLevel.READ)
        assert await links.update(async_session, link, level=PermissionLevel.READ) == {}

    async def test_level_change(self, links: ShareLinkService, async_session: AsyncSession):
        link = await links.create(async_session, ResourceRef.file("f"), "alice", PermissionLevel.READ)
        changes = await links.update(async_session, link, level=PermissionLevel.WRITE)
        assert changes == {"level": "write"}

    async def test_revoke(self, links: ShareLinkService, async_session: AsyncSession):
        link = await links.create(async_session, ResourceRef.file("f"), "alice", PermissionLevel.READ)
        token = link.token
        await links.revoke(async_session, link)
        assert await links.get(async_session, token) is None

    async def test_delete_for_resources(
        self, links: ShareLinkService, async_session: AsyncSession
    ):
        await links.create(async_session, ResourceRef.file("f"), "alice", PermissionLevel.READ)
        keep = await links.create(async_session, ResourceRef.folder("d"), "alice", PermissionLevel.READ)
        assert await links.delete_for_resources(async_session, file_ids=["f"]) == 1
        assert await links.list_for_resource(async_session, ResourceRef.folder("d")) == [keep]
