"""Audit sinks — where recorded events end up."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from filegate.exceptions import AuditWriteError
from filegate.models.audit import AuditLog

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from .recorder import AuditEvent

logger = logging.getLogger(__name__)


class DatabaseAuditSink:
    """Appends events to ``filegate_audit_events`` in a session of its own.

    The operation has already committed when the event is written, so a
    failed insert cannot roll it back.  Persistence errors are re-raised
    as ``AuditWriteError`` for the recorder to log.
    """

    def __init__(self, session_factory: Callable[..., AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append(self, event: AuditEvent) -> None:
        row = AuditLog(
            principal_id=event.principal_id,
            action=event.action.value,
            resource_type=event.resource_type,
            resource_id=event.resource_id,
            ip_address=event.ip_address,
            details=dict(event.metadata),
            created_at=event.timestamp,
        )
        try:
            async with self._session_factory() as session:
                session.add(row)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.debug("Audit insert failed for %s", event.action.value)
            raise AuditWriteError(f"Could not persist {event.action.value} event") from exc


class MemoryAuditSink:
    """Keeps events in a list. Useful in tests and for local inspection."""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    async def append(self, event: AuditEvent) -> None:
        self.events.append(event)

    def actions(self) -> list[str]:
        return [e.action.value for e in self.events]
