"""Permission levels and resource references."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .exceptions import ValidationError


class ResourceType(str, Enum):
    """The two resource variants that carry permissions."""

    FILE = "file"
    FOLDER = "folder"

    @classmethod
    def parse(cls, value: str | ResourceType) -> ResourceType:
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(
                f"Invalid resource type: {value!r}. Must be 'file' or 'folder'."
            ) from None


class PermissionLevel(str, Enum):
    """Ordered permission level: ``read < write < admin``."""

    READ = "read"
    WRITE = "write"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _RANK[self]

    def meets(self, required: PermissionLevel) -> bool:
        """True if this level is at least *required*."""
        return self.rank >= required.rank

    @classmethod
    def parse(cls, value: str | PermissionLevel) -> PermissionLevel:
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(
                f"Invalid permission: {value!r}. Must be 'read', 'write' or 'admin'."
            ) from None


_RANK = {
    PermissionLevel.READ: 1,
    PermissionLevel.WRITE: 2,
    PermissionLevel.ADMIN: 3,
}

SHARE_LINK_LEVELS = frozenset({PermissionLevel.READ, PermissionLevel.WRITE})
"""Levels a share link may carry. Admin is never granted by a bearer token."""


def parse_share_link_level(value: str | PermissionLevel) -> PermissionLevel:
    level = PermissionLevel.parse(value)
    if level not in SHARE_LINK_LEVELS:
        raise ValidationError(
            f"Invalid share link permission: {level.value!r}. Must be 'read' or 'write'."
        )
    return level


@dataclass(frozen=True, slots=True)
class ResourceRef:
    """Identity of a file or folder."""

    type: ResourceType
    id: str

    @classmethod
    def file(cls, resource_id: str) -> ResourceRef:
        return cls(ResourceType.FILE, resource_id)

    @classmethod
    def folder(cls, resource_id: str) -> ResourceRef:
        return cls(ResourceType.FOLDER, resource_id)
