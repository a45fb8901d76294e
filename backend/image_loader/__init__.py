"""
Image Loader Module

Cache-aware image retrieval for the frontend.
Checks the disk cache first and only downloads on a miss.

Features:
- Progress events while downloading
- Resize to the requested size before caching
- Best-effort caching (cache failures never fail a request)
"""

from .config import ImageLoaderConfig
from .loader import ImageLoader, RetrievalEvent, cache_key_for
from .routes_fastapi import router

__all__ = ["router", "ImageLoader", "ImageLoaderConfig", "RetrievalEvent", "cache_key_for"]
