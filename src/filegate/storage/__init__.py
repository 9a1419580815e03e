"""Reference ``StorageBackend`` implementations."""

from filegate.storage.local_disk import LocalDiskStorage
from filegate.storage.memory import MemoryStorage

__all__ = ["LocalDiskStorage", "MemoryStorage"]
