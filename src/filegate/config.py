"""FileGateConfig — tunable limits for the access layer."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace

DEFAULT_ALLOWED_MIME_TYPES: frozenset[str] = frozenset({
    # Images
    "image/jpeg", "image/png", "image/gif", "image/webp", "image/svg+xml",
    # Documents
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    # Text
    "text/plain", "text/csv", "text/markdown", "application/json",
    # Archives
    "application/zip", "application/x-rar-compressed", "application/gzip",
})


@dataclass(frozen=True)
class FileGateConfig:
    """Limits applied by the facade and its services."""

    max_path_depth: int = 20
    """Ancestor hops followed when resolving a folder path."""

    max_cycle_hops: int = 50
    """Ancestor hops followed when checking a move for cycles."""

    max_name_length: int = 255

    token_bytes: int = 24
    """Random bytes per share-link token (24 bytes = 192 bits)."""

    max_upload_bytes: int = 50 * 1024 * 1024

    allowed_mime_types: frozenset[str] = field(default=DEFAULT_ALLOWED_MIME_TYPES)
    """Empty set disables the MIME allow-list."""

    audit_export_limit: int = 10_000
    audit_page_limit_max: int = 100
    search_limit: int = 50
    dashboard_recent_limit: int = 10

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, int) and value < 1:
                raise ValueError(f"{f.name} must be positive, got {value}")
        if self.token_bytes < 16:
            raise ValueError("token_bytes must be at least 16 (128 bits)")

    @classmethod
    def from_env(cls, prefix: str = "FILEGATE_") -> FileGateConfig:
        """Build a config, overriding integer limits from ``{prefix}{FIELD}`` vars.

        ``FILEGATE_ALLOWED_MIME_TYPES`` is a comma-separated list; an empty
        value disables the allow-list.
        """
        config = cls()
        overrides: dict[str, object] = {}
        for f in fields(cls):
            raw = os.environ.get(f"{prefix}{f.name.upper()}")
            if raw is None:
                continue
            if f.name == "allowed_mime_types":
                overrides[f.name] = frozenset(
                    part.strip() for part in raw.split(",") if part.strip()
                )
                continue
            try:
                overrides[f.name] = int(raw)
            except ValueError:
                raise ValueError(f"{prefix}{f.name.upper()} must be an integer, got {raw!r}") from None
        return replace(config, **overrides) if overrides else config
