"""Grant model — a stored permission tying a principal to a resource."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, Index, UniqueConstraint
from sqlmodel import Field, SQLModel


class GrantBase(SQLModel):
    """Base fields for a grant. At most one grant per (resource, grantee)."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    resource_type: str
    resource_id: str
    grantee_id: str = Field(index=True)
    level: str = Field(default="read")
    granted_by: str = Field(default="")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )


class Grant(GrantBase, table=True):
    """Grant table — ``filegate_grants``."""

    __tablename__ = "filegate_grants"
    __table_args__ = (
        UniqueConstraint(
            "resource_type", "resource_id", "grantee_id",
            name="filegate_grants_resource_grantee_uq",
        ),
        Index("filegate_grants_resource_idx", "resource_type", "resource_id"),
    )
