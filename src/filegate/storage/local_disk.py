"""LocalDiskStorage — object store backed by a host directory."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from pathlib import Path, PurePosixPath

from filegate.types import StorageResult

logger = logging.getLogger(__name__)


class LocalDiskStorage:
    """Stores each object as a file under ``root_dir``.

    Implements the ``StorageBackend`` protocol.  Locators are relative
    POSIX paths such as ``{owner}/{uuid}-{name}``.

    Security: ``_resolve()`` ensures every locator stays within
    ``root_dir`` and rejects symlinks along the way.
    """

    def __init__(self, root_dir: Path | str) -> None:
        self.root_dir = Path(root_dir).resolve()

        if not self.root_dir.exists():
            raise FileNotFoundError(f"Storage directory does not exist: {self.root_dir}")
        if not self.root_dir.is_dir():
            raise NotADirectoryError(f"Storage path is not a directory: {self.root_dir}")

    # =========================================================================
    # Locator Resolution & Security
    # =========================================================================

    def _resolve(self, locator: str) -> Path:
        rel = PurePosixPath(locator.strip().lstrip("/"))
        if not rel.parts or ".." in rel.parts:
            raise PermissionError(f"Invalid storage locator: {locator!r}")

        current = self.root_dir
        for part in rel.parts:
            current = current / part
            if current.is_symlink():
                raise PermissionError(f"Symlinks not allowed in storage locator: {locator!r}")

        resolved = (self.root_dir / rel).resolve()
        try:
            resolved.relative_to(self.root_dir)
        except ValueError:
            raise PermissionError(
                f"Locator {locator!r} resolves outside storage directory"
            ) from None
        return resolved

    # =========================================================================
    # StorageBackend
    # =========================================================================

    async def upload(self, locator: str, data: bytes, content_type: str) -> StorageResult:
        try:
            target = self._resolve(locator)
        except PermissionError as e:
            return StorageResult(success=False, error=str(e))

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=".upload-")
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(data)
                os.replace(tmp, target)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            logger.warning("Upload to %s failed", locator, exc_info=True)
            return StorageResult(success=False, error=str(e))
        return StorageResult(success=True)

    async def download(self, locator: str) -> StorageResult:
        try:
            target = self._resolve(locator)
        except PermissionError as e:
            return StorageResult(success=False, error=str(e))

        try:
            data = await asyncio.to_thread(target.read_bytes)
        except FileNotFoundError:
            return StorageResult(success=False, error=f"Object not found: {locator}")
        except OSError as e:
            return StorageResult(success=False, error=str(e))
        return StorageResult(success=True, data=data)

    async def delete(self, locator: str) -> StorageResult:
        try:
            target = self._resolve(locator)
        except PermissionError as e:
            return StorageResult(success=False, error=str(e))

        try:
            await asyncio.to_thread(target.unlink, True)
        except OSError as e:
            return StorageResult(success=False, error=str(e))
        return StorageResult(success=True)
