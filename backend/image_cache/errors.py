"""
Image Cache Errors

Exceptions raised by the disk image cache.
"""


class CacheError(Exception):
    """Base class for cache errors."""


class StorageUnavailable(CacheError):
    """The cache directory or metadata file cannot be created or read."""


class ItemTooLarge(CacheError):
    """An item cannot fit in the cache, even after evicting everything."""

    def __init__(self, key: str, size: int, capacity: int):
        self.key = key
        self.size = size
        self.capacity = capacity
        super().__init__(
            f"Item {key} ({size} bytes) does not fit in cache capacity of {capacity} bytes"
        )
