"""SQLModel database models for filegate."""

from filegate.models.audit import AuditLog
from filegate.models.grants import Grant
from filegate.models.resources import File, Folder
from filegate.models.shares import ShareLink

__all__ = [
    "AuditLog",
    "File",
    "Folder",
    "Grant",
    "ShareLink",
]
