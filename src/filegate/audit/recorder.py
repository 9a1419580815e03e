"""AuditRecorder and audit event types."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from filegate.permissions import ResourceRef
    from filegate.protocols import AuditSink

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    """Closed set of audited actions."""

    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    FILE_UPLOAD = "FILE_UPLOAD"
    FILE_DOWNLOAD = "FILE_DOWNLOAD"
    FILE_DELETE = "FILE_DELETE"
    FILE_MOVE = "FILE_MOVE"
    FILE_RENAME = "FILE_RENAME"
    FOLDER_CREATE = "FOLDER_CREATE"
    FOLDER_DELETE = "FOLDER_DELETE"
    FOLDER_MOVE = "FOLDER_MOVE"
    FOLDER_RENAME = "FOLDER_RENAME"
    PERMISSION_CREATE = "PERMISSION_CREATE"
    PERMISSION_UPDATE = "PERMISSION_UPDATE"
    PERMISSION_REVOKE = "PERMISSION_REVOKE"
    SHARE_LINK_CREATE = "SHARE_LINK_CREATE"
    SHARE_LINK_UPDATE = "SHARE_LINK_UPDATE"
    SHARE_LINK_REVOKE = "SHARE_LINK_REVOKE"


@dataclass(frozen=True, slots=True)
class AuditEvent:
    """Immutable record of a security-relevant action.

    Attributes:
        action: What happened.
        principal_id: Who did it; ``None`` for anonymous share-link access.
        resource_type: ``"file"`` or ``"folder"`` when a resource is involved.
        resource_id: Id of the affected resource.
        ip_address: Client address, when the transport supplies one.
        metadata: Action-specific details (names, sizes, from/to ids).
        timestamp: When the action completed (UTC).
    """

    action: AuditAction
    principal_id: str | None = None
    resource_type: str | None = None
    resource_id: str | None = None
    ip_address: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def for_resource(
        cls,
        action: AuditAction,
        principal_id: str | None,
        ref: ResourceRef,
        *,
        ip_address: str | None = None,
        **metadata: Any,
    ) -> AuditEvent:
        return cls(
            action=action,
            principal_id=principal_id,
            resource_type=ref.type.value,
            resource_id=ref.id,
            ip_address=ip_address,
            metadata=metadata,
        )


class AuditRecorder:
    """Hands audit events to a sink, best-effort.

    Recording never fails the caller: a sink that raises is logged and
    ignored, so a lost audit row never undoes a completed operation.
    """

    def __init__(self, sink: AuditSink | None) -> None:
        self._sink = sink

    @property
    def enabled(self) -> bool:
        return self._sink is not None

    async def record(self, event: AuditEvent) -> None:
        if self._sink is None:
            return
        try:
            await self._sink.append(event)
        except Exception:
            logger.warning(
                "Audit sink %r failed for %s on %s %s",
                self._sink,
                event.action.value,
                event.resource_type,
                event.resource_id,
                exc_info=True,
            )
