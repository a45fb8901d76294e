"""
Cache Storage

Filesystem access for the image cache. The cache talks to storage only
through BlobStorage, so tests and alternative backends can swap it out.

Layout of LocalBlobStorage:
cache_dir/
├── images/
│   ├── 3f2a9c...e1.jpg
│   └── ...
└── metadata.json
"""

import os
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9._-]+$")


def validate_key(key: str) -> str:
    """Reject keys that are not safe to use as a file name."""
    if not key or not _SAFE_KEY.match(key) or key in (".", ".."):
        raise ValueError(f"Invalid cache key: {key!r}")
    return key


class BlobStorage(ABC):
    """Backing store for cache metadata and image blobs."""

    @abstractmethod
    def prepare(self) -> None:
        """Create the backing location. Raises OSError if it cannot be created."""

    @abstractmethod
    def read_metadata(self) -> Optional[bytes]:
        """Return the raw metadata record, or None if none was written yet."""

    @abstractmethod
    def write_metadata(self, data: bytes) -> None:
        ...

    @abstractmethod
    def read_blob(self, key: str) -> Optional[bytes]:
        """Return the blob for a key, or None if it does not exist."""

    @abstractmethod
    def write_blob(self, key: str, data: bytes) -> None:
        ...

    @abstractmethod
    def delete_blob(self, key: str) -> None:
        """Delete a blob. Missing blobs are ignored."""

    @abstractmethod
    def list_blobs(self) -> List[str]:
        ...


class LocalBlobStorage(BlobStorage):
    """Stores metadata as JSON and each image as a file in a local directory."""

    def __init__(self, cache_dir: str = "./image_cache"):
        self.cache_dir = Path(cache_dir)
        self.images_dir = self.cache_dir / "images"
        self.metadata_file = self.cache_dir / "metadata.json"

    def prepare(self) -> None:
        self.images_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"[ImageCache] Cache directory: {self.cache_dir}")

    def read_metadata(self) -> Optional[bytes]:
        if not self.metadata_file.exists():
            return None
        return self.metadata_file.read_bytes()

    def write_metadata(self, data: bytes) -> None:
        tmp_file = self.metadata_file.with_suffix(".json.tmp")
        with open(tmp_file, "wb") as f:
            f.write(data)
        os.replace(tmp_file, self.metadata_file)

    def _blob_path(self, key: str) -> Path:
        return self.images_dir / validate_key(key)

    def read_blob(self, key: str) -> Optional[bytes]:
        path = self._blob_path(key)
        if not path.exists():
            return None
        with open(path, "rb") as f:
            return f.read()

    def write_blob(self, key: str, data: bytes) -> None:
        # A crash leaves only the temp file, which initialize removes as an orphan
        path = self._blob_path(key)
        tmp_file = path.with_name(f".{path.name}.tmp")
        try:
            with open(tmp_file, "wb") as f:
                f.write(data)
            os.replace(tmp_file, path)
        except OSError:
            tmp_file.unlink(missing_ok=True)
            raise

    def delete_blob(self, key: str) -> None:
        self._blob_path(key).unlink(missing_ok=True)

    def list_blobs(self) -> List[str]:
        if not self.images_dir.exists():
            return []
        return sorted(p.name for p in self.images_dir.iterdir() if p.is_file())
