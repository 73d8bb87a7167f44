"""Image processing utilities for generated artifacts.

Generates the WebP thumbnail the magazine grid shows next to each
generated look.  Vector (SVG) artifacts are passed through untouched.
"""

from __future__ import annotations

import io
import logging
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

# ------------------------------------------------------------------
# Constants
# ------------------------------------------------------------------

THUMBNAIL_MAX_SIZE = (400, 400)
THUMBNAIL_QUALITY = 80

RASTER_TYPES = frozenset({"image/jpeg", "image/png", "image/webp", "image/gif", "image/bmp"})

EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "image/bmp": ".bmp",
    "image/svg+xml": ".svg",
}


def extension_for(media_type: str) -> str:
    return EXTENSIONS.get((media_type or "").split(";")[0].strip().lower(), ".bin")


def is_raster(media_type: Optional[str]) -> bool:
    return bool(media_type) and media_type.split(";")[0].strip().lower() in RASTER_TYPES


def make_thumbnail(content: bytes, media_type: Optional[str]) -> Optional[bytes]:
    """Return a 400px WebP thumbnail of *content*, or ``None`` if not possible."""
    if not is_raster(media_type):
        return None

    try:
        img = Image.open(io.BytesIO(content))
        img = ImageOps.exif_transpose(img)  # auto-orient
        if img.mode in ("P", "PA"):
            img = img.convert("RGBA")

        img.thumbnail(THUMBNAIL_MAX_SIZE, Image.LANCZOS)
        buf = io.BytesIO()
        img.save(buf, format="WEBP", quality=THUMBNAIL_QUALITY, method=4)
        return buf.getvalue()
    except (UnidentifiedImageError, OSError, ValueError, KeyError):
        logger.warning("Failed to build thumbnail for %s artifact", media_type, exc_info=True)
        return None
