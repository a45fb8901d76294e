"""
Cache Metadata

Typed record persisted alongside the cached images. Holds the quotas,
the remaining capacity and the LRU order of cached keys.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

METADATA_VERSION = 1


@dataclass
class CacheMetadata:
    """Quotas, available capacity and LRU order (most recent first)."""
    total_item_capacity: int
    available_item_capacity: int
    total_byte_capacity: int
    available_byte_capacity: int
    cached_keys: List[str] = field(default_factory=list)
    entry_sizes: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def empty(cls, item_capacity: int, byte_capacity: int) -> "CacheMetadata":
        """Create metadata for an empty cache with the given quotas."""
        if item_capacity < 0 or byte_capacity < 0:
            raise ValueError("Cache capacities must be non-negative")
        return cls(
            total_item_capacity=item_capacity,
            available_item_capacity=item_capacity,
            total_byte_capacity=byte_capacity,
            available_byte_capacity=byte_capacity,
        )

    @property
    def used_bytes(self) -> int:
        return sum(self.entry_sizes.values())

    def contains(self, key: str) -> bool:
        return key in self.entry_sizes

    def least_recent(self) -> Optional[str]:
        """Key at the back of the LRU order, or None if empty."""
        return self.cached_keys[-1] if self.cached_keys else None

    def has_room_for(self, size: int) -> bool:
        return self.available_item_capacity > 0 and self.available_byte_capacity >= size

    def record_insert(self, key: str, size: int) -> None:
        """Insert a new key at the front and charge its capacity."""
        if self.contains(key):
            raise ValueError(f"Key already cached: {key}")
        self.cached_keys.insert(0, key)
        self.entry_sizes[key] = size
        self.available_item_capacity -= 1
        self.available_byte_capacity -= size

    def record_removal(self, key: str) -> int:
        """Drop a key and restore its capacity. Returns the freed byte count."""
        size = self.entry_sizes.pop(key)
        self.cached_keys.remove(key)
        self.available_item_capacity += 1
        self.available_byte_capacity += size
        return size

    def touch(self, key: str) -> None:
        """Move a key to the front of the LRU order."""
        self.cached_keys.remove(key)
        self.cached_keys.insert(0, key)

    def copy(self) -> "CacheMetadata":
        return CacheMetadata(
            total_item_capacity=self.total_item_capacity,
            available_item_capacity=self.available_item_capacity,
            total_byte_capacity=self.total_byte_capacity,
            available_byte_capacity=self.available_byte_capacity,
            cached_keys=list(self.cached_keys),
            entry_sizes=dict(self.entry_sizes),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": METADATA_VERSION,
            "totalItemCapacity": self.total_item_capacity,
            "availableItemCapacity": self.available_item_capacity,
            "totalByteCapacity": self.total_byte_capacity,
            "availableByteCapacity": self.available_byte_capacity,
            "cachedKeys": list(self.cached_keys),
            "entrySizes": dict(self.entry_sizes),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheMetadata":
        """
        Build metadata from its persisted form.

        Raises:
            ValueError: If the record is malformed or breaks a capacity invariant.
        """
        try:
            version = data.get("version", METADATA_VERSION)
            if version != METADATA_VERSION:
                raise ValueError(f"Unsupported metadata version: {version}")

            metadata = cls(
                total_item_capacity=int(data["totalItemCapacity"]),
                available_item_capacity=int(data["availableItemCapacity"]),
                total_byte_capacity=int(data["totalByteCapacity"]),
                available_byte_capacity=int(data["availableByteCapacity"]),
                cached_keys=[str(k) for k in data.get("cachedKeys") or []],
                entry_sizes={str(k): int(v) for k, v in (data.get("entrySizes") or {}).items()},
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"Malformed cache metadata: {e}") from e

        metadata.validate()
        return metadata

    def validate(self) -> None:
        """Check the capacity invariants."""
        if len(set(self.cached_keys)) != len(self.cached_keys):
            raise ValueError("Duplicate keys in cache metadata")
        if set(self.cached_keys) != set(self.entry_sizes):
            raise ValueError("Cached keys and entry sizes disagree")
        if not 0 <= self.available_item_capacity <= self.total_item_capacity:
            raise ValueError("Available item capacity out of range")
        if not 0 <= self.available_byte_capacity <= self.total_byte_capacity:
            raise ValueError("Available byte capacity out of range")
        if self.available_item_capacity + len(self.cached_keys) != self.total_item_capacity:
            raise ValueError("Item capacity does not match cached key count")
        if self.available_byte_capacity + self.used_bytes != self.total_byte_capacity:
            raise ValueError("Byte capacity does not match cached entry sizes")
