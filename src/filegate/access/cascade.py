"""Bulk delete of rows keyed by ``(resource_type, resource_id)``."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, delete, or_

from filegate.permissions import ResourceType

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession


async def delete_resource_rows(
    session: AsyncSession,
    model: Any,
    file_ids: Iterable[str] = (),
    folder_ids: Iterable[str] = (),
) -> int:
    """Delete every *model* row attached to the given files and folders."""
    conditions = []
    file_ids = list(file_ids)
    folder_ids = list(folder_ids)
    if file_ids:
        conditions.append(
            and_(
                model.resource_type == ResourceType.FILE.value,
                model.resource_id.in_(file_ids),
            )
        )
    if folder_ids:
        conditions.append(
            and_(
                model.resource_type == ResourceType.FOLDER.value,
                model.resource_id.in_(folder_ids),
            )
        )
    if not conditions:
        return 0
    result = await session.execute(
        delete(model).where(or_(*conditions)).execution_options(synchronize_session="fetch")
    )
    return result.rowcount or 0
