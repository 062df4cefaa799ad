"""
Image compression for stored payloads.

Images arrive as data URLs (``data:image/png;base64,...``) or bare base64.
They are shrunk to fit a bounding box and re-encoded as JPEG. Anything that
cannot be decoded is handed back untouched.
"""

import asyncio
import base64
import binascii
import io
import logging
import re
from typing import List, Tuple

from PIL import Image, UnidentifiedImageError

from errors import DecodeError

logger = logging.getLogger(__name__)

DEFAULT_MAX_WIDTH = 800
DEFAULT_MAX_HEIGHT = 800
DEFAULT_QUALITY = 70

DATA_URL = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)


def fit_within(width: int, height: int, max_width: int, max_height: int) -> Tuple[int, int]:
    """Largest size inside the box with the same aspect ratio. Never upscales."""
    if width <= max_width and height <= max_height:
        return width, height
    ratio = min(max_width / width, max_height / height)
    return max(1, round(width * ratio)), max(1, round(height * ratio))


def decode(image: str) -> Image.Image:
    match = DATA_URL.match(image)
    payload = match.group("data") if match else image
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError("payload is not base64", e)
    if not raw:
        raise DecodeError("payload is empty")
    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError("payload is not a readable image", e)
    return img


def encode(img: Image.Image, quality: int = DEFAULT_QUALITY) -> str:
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality)
    return "data:image/jpeg;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def compress(
    image: str,
    max_width: int = DEFAULT_MAX_WIDTH,
    max_height: int = DEFAULT_MAX_HEIGHT,
    quality: int = DEFAULT_QUALITY,
) -> str:
    try:
        img = decode(image)
    except DecodeError as exc:
        logger.debug("Leaving image unchanged: %s", exc.reason)
        return image

    size = fit_within(img.width, img.height, max_width, max_height)
    try:
        if size != img.size:
            img = img.resize(size, Image.Resampling.LANCZOS)
        return encode(img, quality)
    except (OSError, ValueError) as e:
        logger.debug("Re-encoding failed, keeping original: %s", e)
        return image


def compress_all(images: List[str], **kwargs) -> List[str]:
    return [compress(image, **kwargs) for image in images]


async def compress_async(images: List[str], **kwargs) -> List[str]:
    # Pillow work happens off the event loop
    return await asyncio.to_thread(compress_all, images, **kwargs)
