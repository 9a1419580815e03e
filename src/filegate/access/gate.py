"""AccessGate — the single authorization decision for resource operations."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from filegate.exceptions import ForbiddenError, NotFoundError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from filegate.permissions import PermissionLevel, ResourceRef

    from .resolver import PermissionResolver
    from .share_links import ShareLinkService

logger = logging.getLogger(__name__)


class AccessGate:
    """Combines share-link validation with the permission resolver.

    A valid share link bound to exactly the requested resource is checked
    first and decides on its own: its level either meets the requirement
    or the request is refused, whoever the principal is.  Without such a
    link the principal's effective permission decides.
    """

    def __init__(self, resolver: PermissionResolver, share_links: ShareLinkService) -> None:
        self._resolver = resolver
        self._share_links = share_links

    async def can_access_resource(
        self,
        session: AsyncSession,
        principal_id: str | None,
        ref: ResourceRef,
        required: PermissionLevel,
        share_token: str | None = None,
    ) -> bool:
        if share_token:
            grant = await self._share_links.validate(session, share_token, ref.type, ref.id)
            if grant is not None:
                return grant.level.meets(required)

        if principal_id is None:
            return False

        return await self._resolver.check_access(session, principal_id, ref, required)

    async def require(
        self,
        session: AsyncSession,
        principal_id: str | None,
        ref: ResourceRef,
        required: PermissionLevel,
        share_token: str | None = None,
    ) -> PermissionLevel:
        """Return the level that authorizes the call, or raise.

        Raises ``NotFoundError`` when the resource is missing or the caller
        has no access to it at all, and ``ForbiddenError`` when the caller
        has some access but below *required*.
        """
        if share_token:
            grant = await self._share_links.validate(session, share_token, ref.type, ref.id)
            if grant is not None:
                if not grant.level.meets(required):
                    logger.debug(
                        "Denied share link on %s %s: grants %s, needs %s",
                        ref.type.value, ref.id, grant.level.value, required.value,
                    )
                    raise ForbiddenError(
                        f"Share link does not grant {required.value!r} on {ref.type.value} {ref.id}"
                    )
                return grant.level

        best: PermissionLevel | None = None
        if principal_id is not None:
            best = await self._resolver.effective_permission(session, principal_id, ref)

        if best is None:
            logger.debug("Denied %s on %s %s: no access", principal_id, ref.type.value, ref.id)
            raise NotFoundError(f"{ref.type.value.capitalize()} not found: {ref.id}")
        if not best.meets(required):
            logger.debug(
                "Denied %s on %s %s: has %s, needs %s",
                principal_id, ref.type.value, ref.id, best.value, required.value,
            )
            raise ForbiddenError(
                f"{required.value!r} permission required on {ref.type.value} {ref.id}"
            )
        return best

