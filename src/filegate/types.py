"""Result types: PathEntry, DeletionPlan, FolderDetails, AuditPage, etc."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime

    from .permissions import PermissionLevel, ResourceRef


@dataclass(frozen=True)
class Caller:
    """Who is asking: an optional principal, request IP and share token."""

    principal_id: str | None = None
    ip_address: str | None = None
    share_token: str | None = None

    @property
    def is_anonymous(self) -> bool:
        return self.principal_id is None


@dataclass(frozen=True)
class PathEntry:
    """One breadcrumb in a root-to-leaf folder path."""

    id: str
    name: str


@dataclass
class DeletionPlan:
    """Everything a recursive folder delete will remove.

    ``folder_ids`` is depth-first preorder (root first); deleting in
    reverse removes the deepest folders first.
    """

    folder_ids: list[str] = field(default_factory=list)
    file_ids: list[str] = field(default_factory=list)
    file_locators: set[str] = field(default_factory=set)


@dataclass
class StorageResult:
    """Outcome of a storage backend call."""

    success: bool
    data: bytes | None = None
    error: str | None = None


@dataclass(frozen=True)
class ShareLinkGrant:
    """What a valid share link authorizes."""

    level: PermissionLevel
    resource: ResourceRef
    token: str


@dataclass
class FolderInfo:
    id: str
    name: str
    owner_id: str
    parent_id: str | None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class FileInfo:
    id: str
    name: str
    owner_id: str
    folder_id: str | None
    mime_type: str
    size_bytes: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class FolderDetails:
    """A folder plus its breadcrumb path."""

    folder: FolderInfo
    path: list[PathEntry] = field(default_factory=list)


@dataclass
class FolderListing:
    """Immediate children of a folder (or of the caller's root)."""

    folder_id: str | None
    folders: list[FolderInfo] = field(default_factory=list)
    files: list[FileInfo] = field(default_factory=list)


@dataclass
class DeleteResult:
    """Result of a file or folder delete."""

    resource: ResourceRef
    deleted_files: int = 0
    deleted_folders: int = 0
    storage_failures: list[str] = field(default_factory=list)


@dataclass
class DownloadResult:
    file: FileInfo
    data: bytes


@dataclass
class GrantInfo:
    id: str
    resource: ResourceRef
    grantee_id: str
    level: PermissionLevel
    granted_by: str
    created_at: datetime | None = None


@dataclass
class GrantResult:
    """Result of creating a grant. ``created`` is False when a level was updated."""

    grant: GrantInfo
    created: bool
    previous_level: PermissionLevel | None = None


@dataclass
class ShareLinkInfo:
    id: str
    token: str
    resource: ResourceRef
    issuer_id: str
    level: PermissionLevel
    expires_at: datetime | None
    created_at: datetime | None
    is_expired: bool = False


@dataclass
class SharedResource:
    """Public view of what a share link points at."""

    link: ShareLinkInfo
    name: str
    owner_id: str
    mime_type: str | None = None
    size_bytes: int | None = None
    files: list[FileInfo] = field(default_factory=list)


@dataclass
class SearchHit:
    resource: ResourceRef
    name: str
    path: str


@dataclass
class AuditEntry:
    """An audit row enriched with the current resource name, if any."""

    id: str
    action: str
    principal_id: str | None
    resource_type: str | None
    resource_id: str | None
    resource_name: str | None
    ip_address: str | None
    metadata: dict[str, Any]
    created_at: datetime


@dataclass
class AuditPage:
    entries: list[AuditEntry]
    page: int
    limit: int
    total_count: int

    @property
    def total_pages(self) -> int:
        return -(-self.total_count // self.limit) if self.total_count else 0

    @property
    def has_more(self) -> bool:
        return self.page < self.total_pages


@dataclass
class DashboardStats:
    """Totals for the caller's own files and folders plus their latest activity."""

    total_files: int
    total_folders: int
    total_storage_bytes: int
    recent_activity: list[AuditEntry] = field(default_factory=list)
