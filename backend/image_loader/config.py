"""
Image Loader Configuration

Defaults can be overridden with environment variables:
- IMAGE_CACHE_DIR                 Cache directory
- IMAGE_CACHE_ITEM_CAPACITY       Max number of cached images
- IMAGE_CACHE_DISK_CAPACITY_KB    Max total cache size in KB
- IMAGE_JPEG_QUALITY              JPEG quality for cached images (1-100)
- IMAGE_DOWNLOAD_TIMEOUT          Download timeout in seconds
"""

import os
from dataclasses import dataclass


@dataclass
class ImageLoaderConfig:
    """Configuration for image retrieval and caching."""
    cache_dir: str = "./image_cache"
    item_capacity: int = 100
    disk_capacity_kb: int = 50 * 1024
    jpeg_quality: int = 100
    download_timeout: float = 15.0

    @property
    def byte_capacity(self) -> int:
        return self.disk_capacity_kb * 1024

    @classmethod
    def from_env(cls) -> "ImageLoaderConfig":
        return cls(
            cache_dir=os.getenv("IMAGE_CACHE_DIR", "./image_cache"),
            item_capacity=int(os.getenv("IMAGE_CACHE_ITEM_CAPACITY", "100")),
            disk_capacity_kb=int(os.getenv("IMAGE_CACHE_DISK_CAPACITY_KB", str(50 * 1024))),
            jpeg_quality=int(os.getenv("IMAGE_JPEG_QUALITY", "100")),
            download_timeout=float(os.getenv("IMAGE_DOWNLOAD_TIMEOUT", "15")),
        )
