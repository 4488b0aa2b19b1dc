"""Raster format detection for inline images against a fixed allow-list"""

import io
import logging
from typing import Optional

from PIL import Image, UnidentifiedImageError


logger = logging.getLogger(__name__)

# Pillow format name -> attachment file extension
ALLOWED_FORMATS: dict[str, str] = {
    "BMP":  "bmp",
    "DIB":  "bmp",
    "GIF":  "gif",
    "JPEG": "jpg",
    "PNG":  "png",
    "TIFF": "tiff",
    "WMF":  "wmf",
}


def detect_format(data: bytes) -> Optional[str]:
    """File extension for an allow-listed image format, or None for anything else."""
    if not data:
        return None
    try:
        with Image.open(io.BytesIO(data)) as image:
            fmt = image.format
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.debug("Unrecognized inline image (%d bytes): %s", len(data), e)
        return None
    extension = ALLOWED_FORMATS.get(fmt or "")
    # Pillow reports enhanced metafiles under its WMF plugin.
    if extension == "wmf" and data[40:44] == b" EMF":
        return "emf"
    return extension
