"""
Image Loader API Routes

Provides endpoints for:
- Loading an image scaled to a target size (cache-aware)
- Streaming download progress as Server-Sent Events
- Cache statistics and management
"""

import base64
import logging
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import BaseModel

from image_downloader import DownloadTimeout, HTTPStatusFailure, TransportFailure

from .config import ImageLoaderConfig
from .loader import ImageLoader, RetrievalEvent

logger = logging.getLogger(__name__)

# ============================================
# Loader
# ============================================

_loader: Optional[ImageLoader] = None


def get_image_loader() -> ImageLoader:
    """Shared loader, built from the environment on first use."""
    global _loader
    if _loader is None:
        _loader = ImageLoader.from_config(ImageLoaderConfig.from_env())
    return _loader


async def close_image_loader() -> None:
    global _loader
    if _loader is not None:
        await _loader.close()
        _loader = None


# ============================================
# Models
# ============================================


class RetrievalEventPayload(BaseModel):
    """Data of a single progress event."""
    bytes_written: int
    bytes_expected: Optional[int] = None
    progress: float
    done: bool = False
    from_cache: bool = False
    width: Optional[int] = None
    height: Optional[int] = None
    content_type: Optional[str] = None
    base64_data: Optional[str] = None

    @classmethod
    def from_event(cls, event: RetrievalEvent) -> "RetrievalEventPayload":
        payload = cls(
            bytes_written=event.bytes_written,
            bytes_expected=event.bytes_expected,
            progress=event.progress,
            done=event.is_terminal,
            from_cache=event.from_cache,
        )
        if event.is_terminal:
            payload.width, payload.height = event.image.size
            payload.content_type = "image/jpeg"
            payload.base64_data = base64.b64encode(event.data).decode("utf-8")
        return payload


class ErrorPayload(BaseModel):
    """Data of a terminal error event."""
    status_code: int
    detail: str


def _sse(event_type: str, data: str) -> str:
    return f"event: {event_type}\ndata: {data}\n\n"


def _http_error(error: Exception) -> HTTPException:
    if isinstance(error, ValueError):
        return HTTPException(status_code=400, detail=f"Invalid request: {error}")
    if isinstance(error, DownloadTimeout):
        return HTTPException(status_code=504, detail="Image fetch timeout")
    if isinstance(error, HTTPStatusFailure):
        return HTTPException(
            status_code=error.status_code,
            detail=f"Failed to fetch image: {error.status_code}",
        )
    return HTTPException(status_code=502, detail=f"Failed to fetch image: {error}")


# ============================================
# Router
# ============================================

router = APIRouter(prefix="/api/image-loader", tags=["Image Loader"])


# ============================================
# Endpoints
# ============================================

@router.get("")
@router.get("/")
async def load_image(
    url: str = Query(..., description="URL of the image to load"),
    width: int = Query(1200, ge=1, le=4000, description="Target width in pixels"),
    height: int = Query(1200, ge=1, le=4000, description="Target height in pixels"),
    loader: ImageLoader = Depends(get_image_loader),
):
    """
    Load an image scaled to fit width x height.

    This endpoint:
    1. Returns the cached image if present
    2. Otherwise downloads, resizes and caches it

    Example:
        GET /api/image-loader?url=https://example.com/image.jpg&width=300&height=300
    """
    try:
        event = await loader.load(url, (width, height))
    except (ValueError, TransportFailure) as e:
        raise _http_error(e)

    return Response(
        content=event.data,
        media_type="image/jpeg",
        headers={
            "X-Cache": "HIT" if event.from_cache else "MISS",
            "Cache-Control": "public, max-age=86400",
            "Access-Control-Allow-Origin": "*",
        },
    )


@router.get("/progress")
async def stream_image(
    url: str = Query(..., description="URL of the image to load"),
    width: int = Query(1200, ge=1, le=4000, description="Target width in pixels"),
    height: int = Query(1200, ge=1, le=4000, description="Target height in pixels"),
    loader: ImageLoader = Depends(get_image_loader),
):
    """
    Load an image and stream progress as Server-Sent Events.

    Emits `progress` events while downloading, then one `complete` event
    with the Base64 image, or one `error` event.
    """

    async def event_stream() -> AsyncIterator[str]:
        try:
            async for event in loader.retrieve(url, (width, height)):
                payload = RetrievalEventPayload.from_event(event)
                yield _sse("complete" if event.is_terminal else "progress", payload.model_dump_json())
        except (ValueError, TransportFailure) as e:
            logger.error(f"[ImageLoader] Streaming failed: {url[:60]}... - {e}")
            error = _http_error(e)
            yield _sse(
                "error",
                ErrorPayload(status_code=error.status_code, detail=error.detail).model_dump_json(),
            )

    return StreamingResponse(event_stream(), media_type="text/event-stream")


@router.get("/stats")
async def get_cache_stats(loader: ImageLoader = Depends(get_image_loader)):
    """Get cache statistics."""
    return JSONResponse(content={
        "success": True,
        "stats": await loader.get_stats(),
    })


@router.delete("/clear")
async def clear_cache(loader: ImageLoader = Depends(get_image_loader)):
    """
    Clear all cached images.

    Use with caution - this removes all cached images.
    """
    removed = await loader.clear()
    return JSONResponse(content={
        "success": True,
        "removed_entries": removed,
        "message": "Cache cleared successfully",
    })


@router.get("/health")
async def health_check(loader: ImageLoader = Depends(get_image_loader)):
    """Health check endpoint."""
    return JSONResponse(content={
        "status": "healthy",
        "service": "image-loader",
        "cache_stats": await loader.get_stats(),
    })
