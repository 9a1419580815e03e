"""AuditQueryService — filtered, paginated reads and exports of the audit log."""

from __future__ import annotations

import csv
import io
import json
from datetime import UTC, date, datetime, time, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import func
from sqlmodel import select

from filegate.exceptions import ValidationError
from filegate.models.audit import AuditLog
from filegate.models.resources import File, Folder
from filegate.permissions import ResourceType
from filegate.types import AuditEntry, AuditPage
from filegate.utils import as_utc

from .recorder import AuditAction

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

EXPORT_FORMATS = ("csv", "json")

_CSV_HEADERS = [
    "id",
    "action",
    "resource_type",
    "resource_id",
    "resource_name",
    "ip_address",
    "created_at",
]


class AuditQueryService:
    """Reads a principal's own audit trail."""

    def __init__(self, page_limit_max: int = 100, export_limit: int = 10_000) -> None:
        self._page_limit_max = page_limit_max
        self._export_limit = export_limit

    async def query(
        self,
        session: AsyncSession,
        principal_id: str,
        *,
        action: AuditAction | str | None = None,
        date_from: date | datetime | None = None,
        date_to: date | datetime | None = None,
        resource_id: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> AuditPage:
        """Return one page of events, newest first.

        *date_to* includes the whole of that day.
        """
        if page < 1:
            raise ValidationError("page must be >= 1")
        if not 1 <= limit <= self._page_limit_max:
            raise ValidationError(f"limit must be between 1 and {self._page_limit_max}")

        conditions = self._conditions(principal_id, action, date_from, date_to, resource_id)
        total = await session.scalar(select(func.count()).select_from(AuditLog).where(*conditions))

        result = await session.execute(
            select(AuditLog)
            .where(*conditions)
            .order_by(AuditLog.created_at.desc())  # type: ignore[attr-defined]
            .offset((page - 1) * limit)
            .limit(limit)
        )
        entries = await self._enrich(session, result.scalars().all())
        return AuditPage(entries=entries, page=page, limit=limit, total_count=int(total or 0))

    async def recent(
        self, session: AsyncSession, principal_id: str, limit: int = 10
    ) -> list[AuditEntry]:
        result = await session.execute(
            select(AuditLog)
            .where(AuditLog.principal_id == principal_id)
            .order_by(AuditLog.created_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        return await self._enrich(session, result.scalars().all())

    async def export(
        self,
        session: AsyncSession,
        principal_id: str,
        fmt: str = "csv",
        *,
        action: AuditAction | str | None = None,
        date_from: date | datetime | None = None,
        date_to: date | datetime | None = None,
    ) -> str:
        """Render the filtered trail as CSV or JSON text (no pagination)."""
        if fmt not in EXPORT_FORMATS:
            raise ValidationError(f"Unsupported export format: {fmt!r}")

        conditions = self._conditions(principal_id, action, date_from, date_to, None)
        result = await session.execute(
            select(AuditLog)
            .where(*conditions)
            .order_by(AuditLog.created_at.desc())  # type: ignore[attr-defined]
            .limit(self._export_limit)
        )
        entries = await self._enrich(session, result.scalars().all())

        if fmt == "json":
            return json.dumps([_entry_to_dict(e) for e in entries], indent=2)

        buf = io.StringIO()
        writer = csv.writer(buf)
        writer.writerow(_CSV_HEADERS)
        for e in entries:
            row = _entry_to_dict(e)
            writer.writerow([row[h] if row[h] is not None else "" for h in _CSV_HEADERS])
        return buf.getvalue()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _conditions(
        principal_id: str,
        action: AuditAction | str | None,
        date_from: date | datetime | None,
        date_to: date | datetime | None,
        resource_id: str | None,
    ) -> list[Any]:
        conditions: list[Any] = [AuditLog.principal_id == principal_id]
        if action is not None and action != "all":
            try:
                action = AuditAction(action)
            except ValueError:
                raise ValidationError(f"Unknown audit action: {action!r}") from None
            conditions.append(AuditLog.action == action.value)
        if date_from is not None:
            conditions.append(AuditLog.created_at >= _start_of(date_from))
        if date_to is not None:
            conditions.append(AuditLog.created_at < _start_of(date_to) + timedelta(days=1))
        if resource_id is not None:
            conditions.append(AuditLog.resource_id == resource_id)
        return conditions

    @staticmethod
    async def _enrich(session: AsyncSession, rows: Sequence[AuditLog]) -> list[AuditEntry]:
        """Attach the current name of each referenced file or folder."""
        file_ids = {r.resource_id for r in rows if r.resource_type == ResourceType.FILE.value}
        folder_ids = {r.resource_id for r in rows if r.resource_type == ResourceType.FOLDER.value}

        names: dict[tuple[str, str], str] = {}
        if file_ids:
            result = await session.execute(
                select(File.id, File.name).where(File.id.in_(file_ids))  # type: ignore[union-attr]
            )
            names.update({(ResourceType.FILE.value, i): n for i, n in result.tuples().all()})
        if folder_ids:
            result = await session.execute(
                select(Folder.id, Folder.name).where(Folder.id.in_(folder_ids))  # type: ignore[union-attr]
            )
            names.update({(ResourceType.FOLDER.value, i): n for i, n in result.tuples().all()})

        return [
            AuditEntry(
                id=r.id,
                action=r.action,
                principal_id=r.principal_id,
                resource_type=r.resource_type,
                resource_id=r.resource_id,
                resource_name=names.get((r.resource_type or "", r.resource_id or "")),
                ip_address=r.ip_address,
                metadata=dict(r.details or {}),
                created_at=as_utc(r.created_at),
            )
            for r in rows
        ]


def _start_of(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    return datetime.combine(value, time.min, tzinfo=UTC)


def _entry_to_dict(e: AuditEntry) -> dict[str, Any]:
    return {
        "id": e.id,
        "action": e.action,
        "resource_type": e.resource_type,
        "resource_id": e.resource_id,
        "resource_name": e.resource_name,
        "ip_address": e.ip_address,
        "created_at": e.created_at.isoformat(),
    }
