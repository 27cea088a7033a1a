"""
Image payload helpers.

Frames and reference images travel as ``data:`` URLs so they can be stored
in a JSON column and sent to the image service unchanged.
"""

import base64
import binascii
import io
import re
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from .exceptions import InputError

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.+)$", re.DOTALL)

MAX_REFERENCE_EDGE = 1024


def to_data_url(data: bytes, mime_type: str = "image/png") -> str:
    """Encode raw bytes as a base64 data URL."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def b64_to_data_url(b64_data: str, mime_type: str = "image/png") -> str:
    """Wrap an already-encoded base64 string, leaving existing data URLs alone."""
    if b64_data.startswith("data:"):
        return b64_data
    return f"data:{mime_type};base64,{b64_data}"


def parse_data_url(url: str) -> Tuple[str, bytes]:
    """Split a data URL into (mime type, decoded bytes)."""
    match = _DATA_URL_RE.match(url or "")
    if not match:
        raise InputError("Not a base64 data URL")
    try:
        return match.group("mime"), base64.b64decode(match.group("data"))
    except binascii.Error:
        raise InputError("Data URL payload is not valid base64")


def is_image_url(value: str) -> bool:
    """True for the reference-image forms the image client can send."""
    return bool(_DATA_URL_RE.match(value or "")) or (value or "").startswith(("http://", "https://"))


def normalize_reference_image(
    image: bytes,
    max_edge: int = MAX_REFERENCE_EDGE
) -> str:
    """
    Downscale a character reference image and re-encode it as PNG.

    Args:
        image: Raw bytes in any format Pillow can read
        max_edge: Longest allowed edge in pixels

    Returns:
        PNG data URL
    """
    try:
        with Image.open(io.BytesIO(image)) as img:
            if img.mode in ("P", "LA", "RGBA"):
                img = img.convert("RGBA")
            else:
                img = img.convert("RGB")
            img.thumbnail((max_edge, max_edge))
            buffer = io.BytesIO()
            img.save(buffer, format="PNG")
    except UnidentifiedImageError:
        raise InputError("Reference image is not a readable image file")
    return to_data_url(buffer.getvalue(), "image/png")


def image_size(data_url: str) -> Optional[Tuple[int, int]]:
    """Pixel size of a data-URL image, or None for non-raster payloads (SVG)."""
    mime, raw = parse_data_url(data_url)
    if mime == "image/svg+xml":
        return None
    with Image.open(io.BytesIO(raw)) as img:
        return img.size
