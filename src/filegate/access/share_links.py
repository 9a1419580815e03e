"""ShareLinkService — bearer-token share links and their validation.

Stateless service that receives a session at call time.  Validity is
re-evaluated on every call; a link is never remembered as valid.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlmodel import select

from filegate.exceptions import ExpiredError, NotFoundError
from filegate.models.resources import File
from filegate.models.shares import ShareLink
from filegate.permissions import PermissionLevel, ResourceRef, ResourceType
from filegate.types import ShareLinkGrant, ShareLinkInfo
from filegate.utils import as_utc, generate_token, is_expired

from .cascade import delete_resource_rows

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class ShareLinkService:
    """Creates, updates, revokes and validates share links."""

    def __init__(self, token_bytes: int = 24) -> None:
        self._token_bytes = token_bytes

    # ------------------------------------------------------------------
    # Lookup & validation
    # ------------------------------------------------------------------

    async def get(self, session: AsyncSession, token: str) -> ShareLink | None:
        if not token:
            return None
        result = await session.execute(select(ShareLink).where(ShareLink.token == token))
        return result.scalar_one_or_none()

    async def inspect(self, session: AsyncSession, token: str) -> ShareLink:
        """Return the link for *token*, raising if it is missing or expired."""
        link = await self.get(session, token)
        if link is None:
            raise NotFoundError("Share link not found")
        if is_expired(link.expires_at):
            raise ExpiredError("Share link has expired")
        return link

    async def validate(
        self,
        session: AsyncSession,
        token: str,
        expected_type: ResourceType | None = None,
        expected_id: str | None = None,
    ) -> ShareLinkGrant | None:
        """Return what *token* grants, or ``None`` if it is not usable.

        Unusable means: no such token, ``expires_at`` strictly in the past,
        or bound to a different resource than the one expected.
        """
        link = await self.get(session, token)
        if link is None:
            return None
        if is_expired(link.expires_at):
            logger.debug("Share link %s... rejected: expired", token[:6])
            return None
        if expected_type is not None and link.resource_type != expected_type.value:
            return None
        if expected_id is not None and link.resource_id != expected_id:
            return None
        return self.to_grant(link)

    async def can_access_file_via_folder_share_link(
        self,
        session: AsyncSession,
        token: str,
        file_id: str,
    ) -> ShareLinkGrant | None:
        """Grant access to a file sitting directly inside a shared folder.

        Files in subfolders of the shared folder are not covered.
        """
        link = await self.get(session, token)
        if link is None or is_expired(link.expires_at):
            return None
        if link.resource_type != ResourceType.FOLDER.value:
            return None

        file = await session.get(File, file_id)
        if file is None or file.folder_id != link.resource_id:
            return None
        return self.to_grant(link)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def create(
        self,
        session: AsyncSession,
        ref: ResourceRef,
        issuer_id: str,
        level: PermissionLevel,
        *,
        expires_at: datetime | None = None,
    ) -> ShareLink:
        """Create a link with a fresh random token. Flushes but does not commit."""
        link = ShareLink(
            token=generate_token(self._token_bytes),
            resource_type=ref.type.value,
            resource_id=ref.id,
            issuer_id=issuer_id,
            level=level.value,
            expires_at=as_utc(expires_at) if expires_at is not None else None,
        )
        session.add(link)
        await session.flush()
        return link

    async def update(
        self,
        session: AsyncSession,
        link: ShareLink,
        *,
        level: PermissionLevel | None = None,
        expires_at: datetime | None = None,
        clear_expiry: bool = False,
    ) -> dict[str, object]:
        """Apply changes to *link*; returns the fields that changed."""
        changes: dict[str, object] = {}
        if level is not None and level.value != link.level:
            link.level = level.value
            changes["level"] = level.value
        if clear_expiry:
            if link.expires_at is not None:
                link.expires_at = None
                changes["expires_at"] = None
        elif expires_at is not None:
            link.expires_at = as_utc(expires_at)
            changes["expires_at"] = link.expires_at.isoformat()
        if changes:
            await session.flush()
        return changes

    async def revoke(self, session: AsyncSession, link: ShareLink) -> None:
        await session.delete(link)
        await session.flush()

    async def list_for_resource(
        self, session: AsyncSession, ref: ResourceRef
    ) -> list[ShareLink]:
        result = await session.execute(
            select(ShareLink)
            .where(
                ShareLink.resource_type == ref.type.value,
                ShareLink.resource_id == ref.id,
            )
            .order_by(ShareLink.created_at)
        )
        return list(result.scalars().all())

    async def delete_for_resources(
        self,
        session: AsyncSession,
        file_ids: Iterable[str] = (),
        folder_ids: Iterable[str] = (),
    ) -> int:
        """Cascade-delete every link on the given resources."""
        return await delete_resource_rows(session, ShareLink, file_ids, folder_ids)

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    @staticmethod
    def to_grant(link: ShareLink) -> ShareLinkGrant:
        return ShareLinkGrant(
            level=PermissionLevel(link.level),
            resource=ResourceRef(ResourceType(link.resource_type), link.resource_id),
            token=link.token,
        )

    @staticmethod
    def to_info(link: ShareLink) -> ShareLinkInfo:
        return ShareLinkInfo(
            id=link.id,
            token=link.token,
            resource=ResourceRef(ResourceType(link.resource_type), link.resource_id),
            issuer_id=link.issuer_id,
            level=PermissionLevel(link.level),
            expires_at=as_utc(link.expires_at) if link.expires_at is not None else None,
            created_at=link.created_at,
            is_expired=is_expired(link.expires_at),
        )
