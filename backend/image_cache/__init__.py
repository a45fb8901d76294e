"""
Image Cache Module

Disk-backed image cache with two quotas (image count and total bytes).

Features:
- File-based storage with a JSON metadata record
- LRU (Least Recently Used) eviction when either quota is exceeded
- Self-healing of entries whose files went missing
"""

from .cache_manager import DiskImageCache
from .errors import CacheError, ItemTooLarge, StorageUnavailable
from .metadata import CacheMetadata
from .storage import BlobStorage, LocalBlobStorage

__all__ = [
    "DiskImageCache",
    "CacheMetadata",
    "BlobStorage",
    "LocalBlobStorage",
    "CacheError",
    "ItemTooLarge",
    "StorageUnavailable",
]
