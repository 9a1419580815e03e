"""MemoryStorage — dict-backed object store for tests and local runs."""

from __future__ import annotations

from filegate.types import StorageResult


class MemoryStorage:
    """Keeps objects in a dict keyed by locator.

    Implements the ``StorageBackend`` protocol.  Not shared across
    processes; contents vanish with the instance.
    """

    def __init__(self) -> None:
        self._objects: dict[str, tuple[bytes, str]] = {}

    async def upload(self, locator: str, data: bytes, content_type: str) -> StorageResult:
        self._objects[locator] = (bytes(data), content_type)
        return StorageResult(success=True)

    async def download(self, locator: str) -> StorageResult:
        entry = self._objects.get(locator)
        if entry is None:
            return StorageResult(success=False, error=f"Object not found: {locator}")
        return StorageResult(success=True, data=entry[0])

    async def delete(self, locator: str) -> StorageResult:
        self._objects.pop(locator, None)
        return StorageResult(success=True)

    def __contains__(self, locator: object) -> bool:
        return locator in self._objects

    def __len__(self) -> int:
        return len(self._objects)
