"""ShareLink model — bearer-token grants on a single resource."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, Index
from sqlmodel import Field, SQLModel


class ShareLinkBase(SQLModel):
    """Base fields for a share link. ``expires_at`` of ``None`` never expires."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    token: str = Field(unique=True, index=True)
    resource_type: str
    resource_id: str
    issuer_id: str = Field(index=True)
    level: str = Field(default="read")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
    expires_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),
    )


class ShareLink(ShareLinkBase, table=True):
    """Share link table — ``filegate_share_links``."""

    __tablename__ = "filegate_share_links"
    __table_args__ = (
        Index("filegate_share_links_resource_idx", "resource_type", "resource_id"),
    )
