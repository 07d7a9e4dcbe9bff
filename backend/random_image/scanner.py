"""
Image Directory Scanner

Lists servable images in the configured folder and picks one at random.
The folder is re-read on every call; there is no cache.
"""

import os
import random
import re
import logging
from typing import List, Optional, Sequence

from .errors import DirectoryReadError

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp")

# .jpg/.jpeg and anything unknown fall back to DEFAULT_CONTENT_TYPE
CONTENT_TYPES = {
    ".png": "image/png",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".webp": "image/webp",
}
DEFAULT_CONTENT_TYPE = "image/jpeg"

_CONTROL_CHARS = re.compile(r"[\r\n\t\x00-\x1f\x7f]")
_NON_PRINTABLE_ASCII = re.compile(r"[^\x20-\x7e]")


def is_supported(filename: str) -> bool:
    """Check the lowercased extension against SUPPORTED_EXTENSIONS"""
    return os.path.splitext(filename)[1].lower() in SUPPORTED_EXTENSIONS


def scan_images(folder: str) -> List[str]:
    """
    List supported image files in folder, in directory order.

    Raises:
        DirectoryReadError: folder is missing or cannot be read
    """
    try:
        with os.scandir(folder) as entries:
            return [
                entry.name
                for entry in entries
                if is_supported(entry.name) and entry.is_file()
            ]
    except OSError as e:
        raise DirectoryReadError(f"{folder}: {e}") from e


def list_images(folder: str) -> List[str]:
    """Same as scan_images, but a read failure yields an empty list"""
    try:
        return scan_images(folder)
    except DirectoryReadError as e:
        logger.error(f"[Scanner] Error reading images folder: {e}")
        return []


def pick_random(files: Sequence[str]) -> Optional[str]:
    """Uniform pick from files, None when there is nothing to pick"""
    if not files:
        return None
    return random.choice(files)


def content_type_for(filename: str) -> str:
    ext = os.path.splitext(filename)[1].lower()
    return CONTENT_TYPES.get(ext, DEFAULT_CONTENT_TYPE)


def sanitize_header_value(value: str) -> str:
    """
    Make a filename safe for an HTTP header.

    Control characters (including CR, LF, TAB, NUL and DEL) are dropped,
    then every remaining character outside printable ASCII becomes "_".
    """
    value = _CONTROL_CHARS.sub("", value)
    return _NON_PRINTABLE_ASCII.sub("_", value)
