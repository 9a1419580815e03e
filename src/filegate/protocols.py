"""Collaborator protocols — runtime-checkable interfaces.

The access layer depends on three outside collaborators: something that
turns request credentials into a principal, an object store holding file
bytes, and a sink that persists audit events.  Each is a ``Protocol`` so
callers can plug in their own implementation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .audit.recorder import AuditEvent
    from .types import StorageResult


@runtime_checkable
class PrincipalProvider(Protocol):
    """Resolves request credentials to a principal id, or ``None``."""

    async def resolve(self, credentials: Any) -> str | None: ...


@runtime_checkable
class StorageBackend(Protocol):
    """Binary object store addressed by opaque locators.

    Failures are reported through ``StorageResult.success`` rather than
    raised.  ``delete`` of a locator that no longer exists is a success.
    """

    async def upload(self, locator: str, data: bytes, content_type: str) -> StorageResult: ...

    async def download(self, locator: str) -> StorageResult: ...

    async def delete(self, locator: str) -> StorageResult: ...


@runtime_checkable
class AuditSink(Protocol):
    """Durable destination for audit events."""

    async def append(self, event: AuditEvent) -> None: ...
