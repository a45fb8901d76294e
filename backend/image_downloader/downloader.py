"""
Image Downloader Core Logic

Handles:
- Streaming images from external URLs
- Reporting download progress as events
- Decoding the downloaded image
"""

from dataclasses import dataclass
from typing import AsyncIterator, Dict, Optional
from urllib.parse import urlparse
import logging

import httpx
from PIL import Image

from .errors import ConnectivityLost, DownloadTimeout, HTTPStatusFailure
from .imaging import decode_image

logger = logging.getLogger(__name__)


@dataclass
class ImageDownloadConfig:
    """Configuration for image downloads."""
    timeout: float = 15.0           # Download timeout in seconds
    chunk_size: int = 64 * 1024     # Bytes per progress event


@dataclass
class DownloadEvent:
    """
    One step of a download.

    Progress events carry no image. The terminal event carries the decoded
    image and is always the last event of a successful download.
    """
    bytes_written: int
    bytes_expected: Optional[int]
    image: Optional[Image.Image] = None

    @property
    def is_terminal(self) -> bool:
        return self.image is not None

    @property
    def progress(self) -> float:
        if not self.bytes_expected:
            return 0.0
        return min(1.0, self.bytes_written / self.bytes_expected)


class ImageDownloader:
    """
    Streams images over HTTP and reports progress.

    Usage:
        downloader = ImageDownloader(config)
        async for event in downloader.download(url):
            if event.is_terminal:
                image = event.image
    """

    def __init__(
        self,
        config: Optional[ImageDownloadConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or ImageDownloadConfig()

        # Browser-like headers to get past anti-hotlinking checks
        self.browser_headers = {
            "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
            "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
            "Sec-Fetch-Dest": "image",
            "Sec-Fetch-Mode": "no-cors",
            "Sec-Fetch-Site": "cross-site",
        }

        self.http_client = httpx.AsyncClient(
            timeout=self.config.timeout,
            follow_redirects=True,
            headers=self.browser_headers,
            transport=transport,
        )

    async def close(self):
        """Close HTTP client."""
        await self.http_client.aclose()

    @staticmethod
    def _parse_length(value: Optional[str]) -> Optional[int]:
        if not value:
            return None
        try:
            length = int(value)
        except ValueError:
            return None
        return length if length >= 0 else None

    async def _open(self, url: str, headers: Optional[Dict[str, str]]) -> httpx.Response:
        request = self.http_client.build_request("GET", url, headers=headers)
        return await self.http_client.send(request, stream=True)

    async def download(self, url: str) -> AsyncIterator[DownloadEvent]:
        """
        Download an image, yielding progress events and then one terminal event.

        Nothing is requested until the iterator is first advanced. Closing the
        iterator early aborts the request.

        Raises:
            ValueError: If the URL is not http(s).
            DownloadTimeout, ConnectivityLost, HTTPStatusFailure, DecodeFailure
        """
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https"):
            raise ValueError(f"Invalid URL scheme: {parsed.scheme}")

        # Referer of the image's own site helps with anti-hotlinking
        request_headers = {
            "Referer": f"{parsed.scheme}://{parsed.netloc}/",
            "Origin": f"{parsed.scheme}://{parsed.netloc}",
        }

        logger.info(f"[ImageDownloader] Downloading: {url[:60]}...")

        chunks = []
        try:
            response = await self._open(url, request_headers)

            # Some sites block requests carrying a Referer
            if response.status_code == 403:
                await response.aclose()
                logger.info(f"[ImageDownloader] Retrying without Referer: {url[:60]}...")
                response = await self._open(url, None)

            try:
                response.raise_for_status()

                # Content-Length counts encoded bytes, progress counts decoded ones
                expected = None
                if not response.headers.get("Content-Encoding"):
                    expected = self._parse_length(response.headers.get("Content-Length"))

                written = 0
                async for chunk in response.aiter_bytes(self.config.chunk_size):
                    chunks.append(chunk)
                    written += len(chunk)
                    yield DownloadEvent(bytes_written=written, bytes_expected=expected)
            finally:
                await response.aclose()

        except httpx.TimeoutException as e:
            logger.error(f"[ImageDownloader] Timeout: {url[:60]}...")
            raise DownloadTimeout(f"Download timeout: {url}") from e
        except httpx.HTTPStatusError as e:
            logger.error(f"[ImageDownloader] HTTP error: {url[:60]}... - HTTP {e.response.status_code}")
            raise HTTPStatusFailure(e.response.status_code, url) from e
        except httpx.TransportError as e:
            logger.error(f"[ImageDownloader] Connection error: {url[:60]}... - {e}")
            raise ConnectivityLost(f"Connection failed: {e}") from e

        data = b"".join(chunks)
        image = decode_image(data)

        logger.info(
            f"[ImageDownloader] Success: {url[:40]}... "
            f"({len(data)//1024}KB, {image.size[0]}x{image.size[1]})"
        )

        yield DownloadEvent(bytes_written=len(data), bytes_expected=len(data), image=image)
