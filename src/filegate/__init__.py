"""filegate: access control for a hierarchical file store.

Folders and files, per-principal grants, expiring share links and an
audit trail, on top of SQLModel and any async object store.
"""

__version__ = "0.1.0"

from filegate._filegate_async import FileGateAsync
from filegate.audit import AuditAction, AuditEvent, DatabaseAuditSink, MemoryAuditSink
from filegate.config import FileGateConfig
from filegate.exceptions import (
    AuthenticationRequiredError,
    ConflictError,
    ExpiredError,
    FileGateError,
    ForbiddenError,
    NotFoundError,
    StorageFailureError,
    ValidationError,
)
from filegate.permissions import PermissionLevel, ResourceRef, ResourceType
from filegate.protocols import AuditSink, PrincipalProvider, StorageBackend
from filegate.storage import LocalDiskStorage, MemoryStorage
from filegate.types import (
    AuditEntry,
    AuditPage,
    Caller,
    DashboardStats,
    DeleteResult,
    DownloadResult,
    FileInfo,
    FolderDetails,
    FolderInfo,
    FolderListing,
    GrantInfo,
    GrantResult,
    PathEntry,
    SearchHit,
    SharedResource,
    ShareLinkInfo,
)

__all__ = [
    "AuditAction",
    "AuditEntry",
    "AuditEvent",
    "AuditPage",
    "AuditSink",
    "AuthenticationRequiredError",
    "Caller",
    "ConflictError",
    "DashboardStats",
    "DatabaseAuditSink",
    "DeleteResult",
    "DownloadResult",
    "ExpiredError",
    "FileGateAsync",
    "FileGateConfig",
    "FileGateError",
    "FileInfo",
    "FolderDetails",
    "FolderInfo",
    "FolderListing",
    "ForbiddenError",
    "GrantInfo",
    "GrantResult",
    "LocalDiskStorage",
    "MemoryAuditSink",
    "MemoryStorage",
    "NotFoundError",
    "PathEntry",
    "PermissionLevel",
    "PrincipalProvider",
    "ResourceRef",
    "ResourceType",
    "SearchHit",
    "SharedResource",
    "ShareLinkInfo",
    "StorageBackend",
    "StorageFailureError",
    "ValidationError",
    "__version__",
]
