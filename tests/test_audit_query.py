"""Tests for AuditQueryService — filters, pagination, enrichment and export."""

from __future__ import annotations

import csv
import io
import json
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING

import pytest

from filegate.audit import AuditAction, AuditQueryService
from filegate.exceptions import ValidationError
from filegate.models import AuditLog

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


@pytest.fixture
def audit_query() -> AuditQueryService:
    return AuditQueryService()


async def _log(
    session: AsyncSession,
    action: AuditAction,
    principal_id: str = "alice",
    *,
    when: datetime,
    resource_type: str | None = None,
    resource_id: str | None = None,
) -> AuditLog:
    row = AuditLog(
        principal_id=principal_id,
        action=action.value,
        resource_type=resource_type,
        resource_id=resource_id,
        ip_address="10.0.0.1",
        details={"k": "v"},
        created_at=when,
    )
    session.add(row)
    await session.flush()
    return row


_BASE = datetime(2024, 3, 10, 12, 0, tzinfo=UTC)


class TestQuery:
    async def test_scoped_to_principal(
        self, audit_query: AuditQueryService, async_session: AsyncSession
    ):
        await _log(async_session, AuditAction.LOGIN, "alice", when=_BASE)
        await _log(async_session, AuditAction.LOGIN, "bob", when=_BASE)
        page = await audit_query.query(async_session, "alice")
        assert page.total_count == 1
        assert page.entries[0].principal_id == "alice"

    async def test_newest_first(self, audit_query: AuditQueryService, async_session: AsyncSession):
        await _log(async_session, AuditAction.LOGIN, when=_BASE)
        await _log(async_session, AuditAction.LOGOUT, when=_BASE + timedelta(hours=1))
        page = await audit_query.query(async_session, "alice")
        assert [e.action for e in page.entries] == ["LOGOUT", "LOGIN"]

    async def test_action_filter(self, audit_query: AuditQueryService, async_session: AsyncSession):
        await _log(async_session, AuditAction.LOGIN, when=_BASE)
        await _log(async_session, AuditAction.LOGOUT, when=_BASE)
        page = await audit_query.query(async_session, "alice", action="LOGOUT")
        assert [e.action for e in page.entries] == ["LOGOUT"]

    async def test_action_all(self, audit_query: AuditQueryService, async_session: AsyncSession):
        await _log(async_session, AuditAction.LOGIN, when=_BASE)
        await _log(async_session, AuditAction.LOGOUT, when=_BASE)
        page = await audit_query.query(async_session, "alice", action="all")
        assert page.total_count == 2

    async def test_unknown_action(self, audit_query: AuditQueryService, async_session: AsyncSession):
        with pytest.raises(ValidationError):
            await audit_query.query(async_session, "alice", action="FILE_SHRED")

    async def test_date_to_is_inclusive(
        self, audit_query: AuditQueryService, async_session: AsyncSession
    ):
        await _log(async_session, AuditAction.LOGIN, when=datetime(2024, 3, 10, 23, 59, tzinfo=UTC))
        await _log(async_session, AuditAction.LOGIN, when=datetime(2024, 3, 11, 0, 1, tzinfo=UTC))
        page = await audit_query.query(async_session, "alice", date_to=date(2024, 3, 10))
        assert page.total_count == 1

    async def test_date_from(self, audit_query: AuditQueryService, async_session: AsyncSession):
        await _log(async_session, AuditAction.LOGIN, when=datetime(2024, 3, 9, 23, 0, tzinfo=UTC))
        await _log(async_session, AuditAction.LOGIN, when=datetime(2024, 3, 10, 1, 0, tzinfo=UTC))
        page = await audit_query.query(async_session, "alice", date_from=date(2024, 3, 10))
        assert page.total_count == 1

    async def test_resource_filter(self, audit_query: AuditQueryService, async_session: AsyncSession):
        await _log(async_session, AuditAction.FILE_UPLOAD, when=_BASE, resource_type="file", resource_id="f1")
        await _log(async_session, AuditAction.FILE_UPLOAD, when=_BASE, resource_type="file", resource_id="f2")
        page = await audit_query.query(async_session, "alice", resource_id="f2")
        assert [e.resource_id for e in page.entries] == ["f2"]

    async def test_pagination(self, audit_query: AuditQueryService, async_session: AsyncSession):
        for i in range(5):
            await _log(async_session, AuditAction.LOGIN, when=_BASE + timedelta(minutes=i))
        page = await audit_query.query(async_session, "alice", page=2, limit=2)
        assert len(page.entries) == 2
        assert page.total_count == 5
        assert page.total_pages == 3
        assert page.has_more is True

        last = await audit_query.query(async_session, "alice", page=3, limit=2)
        assert len(last.entries) == 1
        assert last.has_more is False

    @pytest.mark.parametrize(("page", "limit"), [(0, 20), (1, 0), (1, 101)])
    async def test_bad_paging(
        self, audit_query: AuditQueryService, async_session: AsyncSession, page: int, limit: int
    ):
        with pytest.raises(ValidationError):
            await audit_query.query(async_session, "alice", page=page, limit=limit)

    async def test_enriched_with_resource_name(
        self, audit_query: AuditQueryService, async_session: AsyncSession, make_file, make_folder
    ):
        doc = await make_file("report.pdf")
        docs = await make_folder("Docs")
        await _log(async_session, AuditAction.FILE_UPLOAD, when=_BASE, resource_type="file", resource_id=doc.id)
        await _log(
            async_session, AuditAction.FOLDER_CREATE, when=_BASE + timedelta(seconds=1),
            resource_type="folder", resource_id=docs.id,
        )
        await _log(
            async_session, AuditAction.FILE_DELETE, when=_BASE + timedelta(seconds=2),
            resource_type="file", resource_id="gone",
        )
        page = await audit_query.query(async_session, "alice")
        names = {e.resource_id: e.resource_name for e in page.entries}
        assert names == {doc.id: "report.pdf", docs.id: "Docs", "gone": None}

    async def test_entry_fields(self, audit_query: AuditQueryService, async_session: AsyncSession):
        await _log(async_session, AuditAction.LOGIN, when=_BASE)
        entry = (await audit_query.query(async_session, "alice")).entries[0]
        assert entry.metadata == {"k": "v"}
        assert entry.ip_address == "10.0.0.1"
        assert entry.created_at == _BASE


class TestExport:
    async def test_csv(self, audit_query: AuditQueryService, async_session: AsyncSession):
        await _log(async_session, AuditAction.LOGIN, when=_BASE)
        text = await audit_query.export(async_session, "alice", "csv")
        rows = list(csv.DictReader(io.StringIO(text)))
        assert len(rows) == 1
        assert rows[0]["action"] == "LOGIN"
        assert rows[0]["resource_name"] == ""

    async def test_json(self, audit_query: AuditQueryService, async_session: AsyncSession):
        await _log(async_session, AuditAction.LOGOUT, when=_BASE)
        data = json.loads(await audit_query.export(async_session, "alice", "json"))
        assert data[0]["action"] == "LOGOUT"
        assert data[0]["created_at"].startswith("2024-03-10T12:00:00")

    async def test_capped(self, async_session: AsyncSession):
        capped = AuditQueryService(export_limit=3)
        for i in range(5):
            await _log(async_session, AuditAction.LOGIN, when=_BASE + timedelta(minutes=i))
        data = json.loads(await capped.export(async_session, "alice", "json"))
        assert len(data) == 3

    async def test_unknown_format(self, audit_query: AuditQueryService, async_session: AsyncSession):
        with pytest.raises(ValidationError):
            await audit_query.export(async_session, "alice", "xml")


class TestRecent:
    async def test_newest_first_and_limited(
        self, audit_query: AuditQueryService, async_session: AsyncSession
    ):
        for i in range(5):
            await _log(async_session, AuditAction.LOGIN, when=_BASE + timedelta(minutes=i))
        await _log(async_session, AuditAction.LOGOUT, when=_BASE + timedelta(hours=1))
        await _log(async_session, AuditAction.LOGOUT, "bob", when=_BASE + timedelta(hours=2))

        entries = await audit_query.recent(async_session, "alice", limit=3)
        assert [e.action for e in entries] == ["LOGOUT", "LOGIN", "LOGIN"]
        assert entries[1].created_at == _BASE + timedelta(minutes=4)
