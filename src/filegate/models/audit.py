"""AuditLog model — append-only record of security-relevant actions."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime
from sqlmodel import Field, SQLModel


class AuditLogBase(SQLModel):
    """Base fields for an audit row. Rows are never updated or deleted."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    principal_id: str | None = Field(default=None, index=True)
    action: str = Field(index=True)
    resource_type: str | None = Field(default=None)
    resource_id: str | None = Field(default=None)
    ip_address: str | None = Field(default=None)
    details: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
        index=True,
    )


class AuditLog(AuditLogBase, table=True):
    """Audit table — ``filegate_audit_events``."""

    __tablename__ = "filegate_audit_events"
