"""
Image Processing Helpers

Handles:
- Aspect-preserving resize to fit a target box
- JPEG encoding and byte-size estimation for cache accounting
- Decoding downloaded bytes
"""

from io import BytesIO
from typing import Tuple
import logging

from PIL import Image, UnidentifiedImageError

from .errors import DecodeFailure

logger = logging.getLogger(__name__)

Size = Tuple[int, int]


def compute_scaled_size(source_size: Size, target_size: Size) -> Size:
    """
    Size that fits source_size inside target_size without cropping or distortion.

    scale = min(target_w / source_w, target_h / source_h)
    """
    source_width, source_height = source_size
    target_width, target_height = target_size
    if source_width <= 0 or source_height <= 0:
        raise ValueError(f"Invalid source size: {source_size}")
    if target_width <= 0 or target_height <= 0:
        raise ValueError(f"Invalid target size: {target_size}")

    ratio = min(target_width / source_width, target_height / source_height)
    new_width = max(1, round(source_width * ratio))
    new_height = max(1, round(source_height * ratio))
    return new_width, new_height


def scale_image(image: Image.Image, target_size: Size) -> Image.Image:
    """Resize an image to fit inside target_size, preserving aspect ratio."""
    new_size = compute_scaled_size(image.size, target_size)
    if new_size == image.size:
        return image.copy()
    logger.debug(f"Resizing {image.size[0]}x{image.size[1]} -> {new_size[0]}x{new_size[1]}")
    return image.resize(new_size, Image.Resampling.LANCZOS)


def _to_rgb(image: Image.Image) -> Image.Image:
    # JPEG has no alpha channel, so flatten transparency onto white
    if image.mode in ("RGBA", "LA", "P"):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[3])
        return background
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def encode_image(image: Image.Image, quality: int = 100) -> bytes:
    """Encode an image as JPEG bytes."""
    output = BytesIO()
    _to_rgb(image).save(output, format="JPEG", quality=quality)
    return output.getvalue()


def estimate_byte_size(image: Image.Image, quality: int = 100) -> int:
    """Serialized size of an image, as charged against the cache byte quota."""
    return len(encode_image(image, quality))


def decode_image(data: bytes) -> Image.Image:
    """
    Decode image bytes into a fully loaded Pillow image.

    Raises:
        DecodeFailure: If the bytes are not a supported image.
    """
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise DecodeFailure(f"Cannot decode image: {e}") from e
    return image
