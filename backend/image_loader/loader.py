"""
Image Loader

Cache-aware image retrieval:
1. Checks the disk cache for the image
2. On a hit, returns the cached image immediately
3. On a miss, downloads it, resizes it to the requested size,
   caches the result and returns it

Cache operations are blocking; they run in a worker thread and are
serialized by a single lock per loader.
"""

import asyncio
from contextlib import aclosing
import hashlib
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit
import logging

from PIL import Image

from image_cache import CacheError, DiskImageCache
from image_downloader import (
    DecodeFailure,
    ImageDownloadConfig,
    ImageDownloader,
    TransportFailure,
    decode_image,
    encode_image,
    scale_image,
)

from .config import ImageLoaderConfig

logger = logging.getLogger(__name__)


@dataclass
class RetrievalEvent:
    """Progress of a retrieval. The terminal event carries the image."""
    bytes_written: int
    bytes_expected: Optional[int]
    image: Optional[Image.Image] = None
    data: Optional[bytes] = None
    from_cache: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.image is not None

    @property
    def progress(self) -> float:
        if not self.bytes_expected:
            return 0.0
        return min(1.0, self.bytes_written / self.bytes_expected)


def cache_key_for(url: str) -> str:
    """
    Convert a URL to a stable, filesystem-safe cache key.

    Scheme and host are case-insensitive and the fragment is never sent
    to the server, so neither affects the key.
    """
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    if scheme not in ("http", "https"):
        raise ValueError(f"Invalid URL scheme: {parts.scheme}")
    if not parts.netloc:
        raise ValueError("Invalid URL host")

    # Userinfo is case-sensitive; only the host and port are folded
    userinfo, at, hostport = parts.netloc.rpartition("@")
    netloc = f"{userinfo}{at}{hostport.lower()}"
    normalized = urlunsplit((scheme, netloc, parts.path or "/", parts.query, ""))
    return f"{hashlib.sha256(normalized.encode('utf-8')).hexdigest()[:32]}.jpg"


class ImageLoader:
    """
    Retrieves images through the disk cache.

    Usage:
        loader = ImageLoader.from_config(ImageLoaderConfig.from_env())
        async for event in loader.retrieve(url, (300, 300)):
            if event.is_terminal:
                show(event.image)
    """

    def __init__(
        self,
        cache: DiskImageCache,
        downloader: ImageDownloader,
        jpeg_quality: int = 100,
    ):
        self.cache = cache
        self.downloader = downloader
        self.jpeg_quality = jpeg_quality
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: ImageLoaderConfig) -> "ImageLoader":
        cache = DiskImageCache(
            item_capacity=config.item_capacity,
            byte_capacity=config.byte_capacity,
            cache_dir=config.cache_dir,
        )
        downloader = ImageDownloader(ImageDownloadConfig(timeout=config.download_timeout))
        return cls(cache, downloader, jpeg_quality=config.jpeg_quality)

    async def close(self):
        await self.downloader.close()

    async def _with_cache(self, func: Callable[..., Any], *args: Any) -> Any:
        async with self._lock:
            task = asyncio.ensure_future(asyncio.to_thread(func, *args))
            try:
                return await asyncio.shield(task)
            except asyncio.CancelledError:
                # The worker thread keeps running; hold the lock until it is done
                while not task.done():
                    try:
                        await asyncio.wait({task})
                    except asyncio.CancelledError:
                        continue
                if not task.cancelled() and task.exception() is not None:
                    logger.warning(f"[ImageLoader] Cache call failed after cancel: {task.exception()}")
                raise

    async def _store(self, key: str, data: bytes) -> bool:
        # Best effort: a failed save never fails the retrieval
        try:
            return await self._with_cache(self.cache.save, key, data)
        except CacheError as e:
            logger.warning(f"[ImageLoader] Not cached: {e}")
            return False

    async def retrieve(
        self, url: str, target_size: Tuple[int, int]
    ) -> AsyncIterator[RetrievalEvent]:
        """
        Retrieve an image scaled to fit target_size.

        Yields progress events followed by exactly one terminal event.
        A cache hit yields only the terminal event, with progress (1, 1).

        Raises:
            ValueError: If the URL or target size is invalid.
            TransportFailure: If the download fails.
        """
        width, height = target_size
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid target size: {target_size}")

        key = cache_key_for(url)

        cached = await self._with_cache(self.cache.fetch, key)
        if cached is not None:
            try:
                image = await asyncio.to_thread(decode_image, cached)
            except DecodeFailure:
                logger.warning(f"[ImageLoader] Dropping undecodable cache entry: {key}")
                await self._with_cache(self.cache.remove, key)
            else:
                logger.debug(f"[ImageLoader] Cache hit: {url[:60]}...")
                yield RetrievalEvent(1, 1, image=image, data=cached, from_cache=True)
                return

        downloads = self.downloader.download(url)
        try:
            async for event in downloads:
                if not event.is_terminal:
                    yield RetrievalEvent(event.bytes_written, event.bytes_expected)
                    continue

                resized = await asyncio.to_thread(scale_image, event.image, (width, height))
                data = await asyncio.to_thread(encode_image, resized, self.jpeg_quality)
                await self._store(key, data)

                yield RetrievalEvent(
                    event.bytes_written,
                    event.bytes_expected,
                    image=resized,
                    data=data,
                )
                return
        finally:
            await downloads.aclose()

        raise TransportFailure(f"Download ended without an image: {url}")

    async def load(self, url: str, target_size: Tuple[int, int]) -> RetrievalEvent:
        """Retrieve an image and return only the terminal event."""
        async with aclosing(self.retrieve(url, target_size)) as events:
            async for event in events:
                if event.is_terminal:
                    return event
        raise TransportFailure(f"Retrieval ended without an image: {url}")

    async def clear(self) -> int:
        return await self._with_cache(self.cache.clear)

    async def get_stats(self) -> Dict[str, Any]:
        return await self._with_cache(self.cache.get_stats)
