"""Folder hierarchy: path resolution, cycle detection, descendant collection.

Traversals run over a ``FolderIndex`` — the owner's ``id -> parent``
mapping loaded with one query — so every walk is an explicit loop with
a visible bound instead of a chain of per-hop lookups.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlmodel import select

from filegate.exceptions import ConflictError
from filegate.models.resources import File, Folder
from filegate.types import DeletionPlan, PathEntry

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

DEFAULT_MAX_PATH_DEPTH = 20
DEFAULT_MAX_CYCLE_HOPS = 50


@dataclass
class FolderIndex:
    """In-memory snapshot of one owner's folder hierarchy."""

    parents: dict[str, str | None] = field(default_factory=dict)
    names: dict[str, str] = field(default_factory=dict)
    children: dict[str | None, list[str]] = field(default_factory=dict)

    @classmethod
    def from_rows(cls, rows: Iterable[tuple[str, str | None, str]]) -> FolderIndex:
        """Build from ``(id, parent_id, name)`` triples."""
        index = cls()
        for folder_id, parent_id, name in rows:
            index.parents[folder_id] = parent_id
            index.names[folder_id] = name
            index.children.setdefault(parent_id, []).append(folder_id)
        return index

    def __contains__(self, folder_id: object) -> bool:
        return folder_id in self.parents

    def resolve_path(
        self, folder_id: str, max_depth: int = DEFAULT_MAX_PATH_DEPTH
    ) -> list[PathEntry]:
        """Return root-to-leaf breadcrumbs ending at *folder_id*.

        Follows at most *max_depth* parent links.  A longer chain, a
        dangling parent, or a cycle truncates the path instead of looping.
        """
        if folder_id not in self.parents:
            return []

        path = [PathEntry(folder_id, self.names[folder_id])]
        seen = {folder_id}
        current = self.parents[folder_id]
        hops = 0
        while current is not None and hops < max_depth:
            if current not in self.parents or current in seen:
                break
            path.append(PathEntry(current, self.names[current]))
            seen.add(current)
            current = self.parents[current]
            hops += 1

        if current is not None and hops >= max_depth:
            logger.warning("Folder path for %s truncated at depth %d", folder_id, max_depth)
        path.reverse()
        return path

    def would_create_cycle(
        self,
        folder_id: str,
        proposed_parent_id: str | None,
        max_hops: int = DEFAULT_MAX_CYCLE_HOPS,
    ) -> bool:
        """True if *proposed_parent_id* is *folder_id* or one of its descendants.

        Walks upward from the proposed parent for at most *max_hops* links.
        """
        current = proposed_parent_id
        hops = 0
        while current is not None and hops < max_hops:
            if current == folder_id:
                return True
            current = self.parents.get(current)
            hops += 1
        return False

    def descendants(self, folder_id: str) -> list[str]:
        """Return *folder_id* and every folder below it, depth-first preorder."""
        ordered: list[str] = []
        seen: set[str] = set()
        stack = [folder_id]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            ordered.append(current)
            # reversed so children are visited in stored order
            stack.extend(reversed(self.children.get(current, [])))
        return ordered


class FolderTreeService:
    """Loads folder indexes and enforces hierarchy invariants."""

    def __init__(
        self,
        max_path_depth: int = DEFAULT_MAX_PATH_DEPTH,
        max_cycle_hops: int = DEFAULT_MAX_CYCLE_HOPS,
    ) -> None:
        self.max_path_depth = max_path_depth
        self.max_cycle_hops = max_cycle_hops

    async def load_index(self, session: AsyncSession, owner_id: str) -> FolderIndex:
        result = await session.execute(
            select(Folder.id, Folder.parent_id, Folder.name).where(Folder.owner_id == owner_id)
        )
        return FolderIndex.from_rows(result.tuples().all())

    async def resolve_path(
        self, session: AsyncSession, folder: Folder
    ) -> list[PathEntry]:
        index = await self.load_index(session, folder.owner_id)
        return index.resolve_path(folder.id, self.max_path_depth)

    async def would_create_cycle(
        self,
        session: AsyncSession,
        folder: Folder,
        proposed_parent_id: str | None,
    ) -> bool:
        index = await self.load_index(session, folder.owner_id)
        return index.would_create_cycle(folder.id, proposed_parent_id, self.max_cycle_hops)

    async def collect_descendants(self, session: AsyncSession, folder: Folder) -> DeletionPlan:
        """Compute the complete deletion set for *folder* before anything is removed."""
        index = await self.load_index(session, folder.owner_id)
        folder_ids = index.descendants(folder.id)

        result = await session.execute(
            select(File.id, File.storage_locator).where(
                File.folder_id.in_(folder_ids),  # type: ignore[union-attr]
            )
        )
        plan = DeletionPlan(folder_ids=folder_ids)
        for file_id, locator in result.tuples().all():
            plan.file_ids.append(file_id)
            plan.file_locators.add(locator)
        return plan

    async def ensure_unique_name(
        self,
        session: AsyncSession,
        owner_id: str,
        parent_id: str | None,
        name: str,
        exclude_id: str | None = None,
    ) -> None:
        """Raise ``ConflictError`` if a sibling folder already uses *name*."""
        query = select(Folder.id).where(Folder.owner_id == owner_id, Folder.name == name)
        if parent_id is None:
            query = query.where(Folder.parent_id.is_(None))  # type: ignore[union-attr]
        else:
            query = query.where(Folder.parent_id == parent_id)
        if exclude_id is not None:
            query = query.where(Folder.id != exclude_id)

        result = await session.execute(query.limit(1))
        if result.first() is not None:
            raise ConflictError(f"A folder named {name!r} already exists in this location")
