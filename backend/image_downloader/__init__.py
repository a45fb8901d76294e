"""
Image Downloader Module

Streams external images over HTTP and prepares them for caching.

Features:
- Progress events while downloading
- Aspect-preserving resize
- JPEG encoding and size estimation
"""

from .downloader import DownloadEvent, ImageDownloadConfig, ImageDownloader
from .errors import (
    ConnectivityLost,
    DecodeFailure,
    DownloadTimeout,
    HTTPStatusFailure,
    TransportFailure,
)
from .imaging import compute_scaled_size, decode_image, encode_image, estimate_byte_size, scale_image

__all__ = [
    "ImageDownloader",
    "ImageDownloadConfig",
    "DownloadEvent",
    "TransportFailure",
    "DownloadTimeout",
    "ConnectivityLost",
    "HTTPStatusFailure",
    "DecodeFailure",
    "compute_scaled_size",
    "scale_image",
    "encode_image",
    "estimate_byte_size",
    "decode_image",
]
