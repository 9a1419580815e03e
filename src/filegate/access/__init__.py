"""Access control: folder tree, permission resolution, share links, gate."""

from filegate.access.gate import AccessGate
from filegate.access.grants import GrantService
from filegate.access.resolver import PermissionResolver
from filegate.access.resources import ResourceService
from filegate.access.share_links import ShareLinkService
from filegate.access.tree import FolderIndex, FolderTreeService

__all__ = [
    "AccessGate",
    "FolderIndex",
    "FolderTreeService",
    "GrantService",
    "PermissionResolver",
    "ResourceService",
    "ShareLinkService",
]
