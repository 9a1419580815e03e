"""Name validation, tokens, storage locators and time helpers."""

from __future__ import annotations

import re
import secrets
import uuid
from datetime import UTC, datetime

from .exceptions import ValidationError

_UNSAFE_LOCATOR_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def is_expired(expires_at: datetime | None, now: datetime | None = None) -> bool:
    """True if *expires_at* is set and strictly before *now*."""
    if expires_at is None:
        return False
    return as_utc(expires_at) < (now or utc_now())


def validate_name(name: str, max_length: int = 255) -> str:
    """Trim and validate a file or folder name.

    Examples:
        validate_name("  notes  ") -> "notes"
        validate_name("") -> ValidationError
    """
    if not isinstance(name, str):
        raise ValidationError("Name must be a string")
    trimmed = name.strip()
    if not trimmed:
        raise ValidationError("Name must not be empty")
    if len(trimmed) > max_length:
        raise ValidationError(f"Name exceeds {max_length} characters")
    return trimmed


def generate_token(nbytes: int = 24) -> str:
    """Return an unguessable URL-safe token with ``8 * nbytes`` bits of entropy."""
    return secrets.token_urlsafe(nbytes)


def make_storage_locator(owner_id: str, filename: str) -> str:
    """Build a unique storage key ``{owner}/{uuid}-{sanitized name}``.

    Examples:
        make_storage_locator("u1", "my report.pdf") -> "u1/3f2c...-my_report.pdf"
    """
    sanitized = _UNSAFE_LOCATOR_CHARS.sub("_", filename)
    return f"{owner_id}/{uuid.uuid4().hex}-{sanitized}"
