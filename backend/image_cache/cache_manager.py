"""
Disk Image Cache

File-based image cache bounded by two quotas:
- Maximum number of cached images
- Maximum total size in bytes

When a new image does not fit, least recently used images are evicted
one at a time until it does.

The cache is not internally synchronized. Callers must serialize access
(ImageLoader does this with an asyncio.Lock).
"""

import json
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional
import logging

from .errors import ItemTooLarge, StorageUnavailable
from .metadata import CacheMetadata
from .storage import BlobStorage, LocalBlobStorage, validate_key

logger = logging.getLogger(__name__)


class DiskImageCache:
    """
    Manages a disk-backed image cache with LRU eviction.

    Usage:
        cache = DiskImageCache(item_capacity=100, byte_capacity=50 * 1024 * 1024)
        cache.save("abc.jpg", data)
        data = cache.fetch("abc.jpg")
    """

    def __init__(
        self,
        item_capacity: int,
        byte_capacity: int,
        cache_dir: str = "./image_cache",
        storage: Optional[BlobStorage] = None,
    ):
        if item_capacity < 0 or byte_capacity < 0:
            raise ValueError("Cache capacities must be non-negative")

        self.item_capacity = item_capacity
        self.byte_capacity = byte_capacity
        self.storage = storage or LocalBlobStorage(cache_dir)

        self._metadata: Optional[CacheMetadata] = None

        self.initialize()

    # ============================================
    # Initialization
    # ============================================

    def initialize(self) -> None:
        """
        Load persisted metadata, or create it on first use.

        Existing metadata is never overwritten, even if the quotas passed
        to the constructor differ from the persisted ones.

        Raises:
            StorageUnavailable: If the cache location cannot be created or read.
        """
        try:
            self.storage.prepare()
            raw = self.storage.read_metadata()
        except OSError as e:
            raise StorageUnavailable(f"Cannot access cache storage: {e}") from e

        metadata = None
        if raw is not None:
            try:
                metadata = CacheMetadata.from_dict(json.loads(raw))
                logger.info(f"[ImageCache] Loaded {len(metadata.cached_keys)} cached entries")
            except ValueError as e:
                logger.warning(f"[ImageCache] Discarding unreadable metadata: {e}")

        if metadata is None:
            metadata = CacheMetadata.empty(self.item_capacity, self.byte_capacity)
            self._metadata = metadata
            try:
                self._write_metadata()
            except OSError as e:
                raise StorageUnavailable(f"Cannot write cache metadata: {e}") from e
            logger.info(
                f"[ImageCache] Created cache: {self.item_capacity} items, "
                f"{self.byte_capacity} bytes"
            )
        else:
            self._metadata = metadata
            if (
                metadata.total_item_capacity != self.item_capacity
                or metadata.total_byte_capacity != self.byte_capacity
            ):
                logger.info(
                    f"[ImageCache] Keeping persisted quotas "
                    f"({metadata.total_item_capacity} items, {metadata.total_byte_capacity} bytes)"
                )

        self._reconcile()

    def _reconcile(self) -> None:
        """Drop listed keys without a blob and delete blobs without a listed key."""
        metadata = self._require_metadata()
        try:
            blobs = set(self.storage.list_blobs())
        except OSError as e:
            raise StorageUnavailable(f"Cannot list cached images: {e}") from e

        stale = [key for key in metadata.cached_keys if key not in blobs]
        for key in stale:
            metadata.record_removal(key)
            logger.warning(f"[ImageCache] Dropped entry with missing file: {key}")

        for name in sorted(blobs - set(metadata.cached_keys)):
            try:
                self.storage.delete_blob(name)
                logger.info(f"[ImageCache] Removed orphan file: {name}")
            except (OSError, ValueError) as e:
                logger.error(f"[ImageCache] Failed to remove orphan file {name}: {e}")

        if stale:
            self._persist_metadata()

    # ============================================
    # Metadata persistence
    # ============================================

    def _require_metadata(self) -> CacheMetadata:
        if self._metadata is None:
            raise StorageUnavailable("Cache is not initialized")
        return self._metadata

    def _write_metadata(self) -> None:
        data = json.dumps(self._require_metadata().to_dict(), indent=2)
        self.storage.write_metadata(data.encode("utf-8"))

    def _persist_metadata(self) -> None:
        try:
            self._write_metadata()
        except OSError as e:
            logger.error(f"[ImageCache] Failed to save metadata: {e}")

    @contextmanager
    def _transaction(self) -> Iterator[CacheMetadata]:
        """Yield the metadata for mutation and persist it afterwards."""
        metadata = self._require_metadata()
        yield metadata
        self._persist_metadata()

    # ============================================
    # Public API
    # ============================================

    def save(self, key: str, data: bytes) -> bool:
        """
        Cache an image, evicting least recently used images if needed.

        Args:
            key: Filesystem-safe cache key
            data: Encoded image bytes

        Returns:
            True if cached, False if the file could not be written.

        Raises:
            ItemTooLarge: If the image cannot fit even in an empty cache.
            ValueError: If the key is not filesystem-safe.
        """
        validate_key(key)
        metadata = self._require_metadata()
        size = len(data)

        if size > metadata.total_byte_capacity:
            logger.warning(f"[ImageCache] Image too large ({size} bytes): {key}")
            raise ItemTooLarge(key, size, metadata.total_byte_capacity)

        if metadata.contains(key):
            self._remove_entry(key)

        while not metadata.has_room_for(size):
            if self.evict_one() is None:
                logger.warning(f"[ImageCache] No room for {key} after full eviction")
                raise ItemTooLarge(key, size, metadata.total_byte_capacity)

        try:
            self.storage.write_blob(key, data)
        except OSError as e:
            logger.error(f"[ImageCache] Failed to cache {key}: {e}")
            return False

        with self._transaction() as metadata:
            metadata.record_insert(key, size)

        logger.debug(f"[ImageCache] Cached: {key} ({size} bytes)")
        return True

    def fetch(self, key: str) -> Optional[bytes]:
        """
        Get a cached image and mark it as most recently used.

        Returns:
            Image bytes, or None on a cache miss.
        """
        metadata = self._require_metadata()
        if not metadata.contains(key):
            return None

        try:
            data = self.storage.read_blob(key)
        except OSError as e:
            logger.error(f"[ImageCache] Failed to read cache: {e}")
            return None

        if data is None:
            logger.warning(f"[ImageCache] Cache file missing: {key}")
            self._remove_entry(key)
            return None

        with self._transaction() as metadata:
            metadata.touch(key)

        logger.debug(f"[ImageCache] Cache hit: {key}")
        return data

    def evict_one(self) -> Optional[str]:
        """
        Evict the least recently used image.

        Returns:
            The evicted key, or None if the cache is empty.
        """
        key = self._require_metadata().least_recent()
        if key is None:
            return None

        freed = self._remove_entry(key)
        logger.info(f"[ImageCache] LRU evicted: {key} ({freed} bytes)")
        return key

    def remove(self, key: str) -> bool:
        """Remove a single image. Returns False if it was not cached."""
        if not self.contains(key):
            return False
        self._remove_entry(key)
        return True

    def _remove_entry(self, key: str) -> int:
        """Remove a cache entry (file and metadata). Returns the freed byte count."""
        try:
            self.storage.delete_blob(key)
        except OSError as e:
            logger.error(f"[ImageCache] Failed to remove file: {e}")

        with self._transaction() as metadata:
            return metadata.record_removal(key)

    def contains(self, key: str) -> bool:
        return self._require_metadata().contains(key)

    @property
    def keys(self) -> List[str]:
        """Cached keys, most recently used first."""
        return list(self._require_metadata().cached_keys)

    @property
    def metadata(self) -> CacheMetadata:
        """A snapshot of the current metadata."""
        return self._require_metadata().copy()

    def clear(self) -> int:
        """
        Clear all cached images.

        Returns:
            Number of entries removed.
        """
        count = 0
        while self.evict_one() is not None:
            count += 1

        logger.info(f"[ImageCache] Cleared all {count} entries")
        return count

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        metadata = self._require_metadata()
        used = metadata.used_bytes
        total = metadata.total_byte_capacity
        return {
            "total_entries": len(metadata.cached_keys),
            "item_capacity": metadata.total_item_capacity,
            "available_items": metadata.available_item_capacity,
            "total_size_bytes": used,
            "byte_capacity": total,
            "available_bytes": metadata.available_byte_capacity,
            "usage_percent": round(used / total * 100, 1) if total > 0 else 0,
        }
