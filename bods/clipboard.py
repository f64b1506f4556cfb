"""
Pasteboard (clipboard) image access.
Only macOS and Windows expose clipboard images through Pillow.
"""

import io
import logging
import sys
from pathlib import Path
from typing import Optional

from PIL import Image, ImageGrab

from agent.media import is_image


logger = logging.getLogger(__name__)

PASTEBOARD_PLATFORMS = ("darwin", "win32")


def pasteboard_supported(platform: Optional[str] = None) -> bool:
    return (platform or sys.platform) in PASTEBOARD_PLATFORMS


def read_pasteboard_image() -> Optional[bytes]:
    """
    Return the clipboard image as encoded bytes, or None if there is none.

    A copied image is re-encoded as PNG; copied image files are read as-is.
    """
    try:
        content = ImageGrab.grabclipboard()
    except (OSError, NotImplementedError) as e:
        logger.warning(f"read clipboard error: {e}")
        return None

    if isinstance(content, Image.Image):
        buffer = io.BytesIO()
        content.save(buffer, format="PNG")
        return buffer.getvalue()

    if isinstance(content, list):
        for filename in content:
            try:
                data = Path(filename).read_bytes()
            except OSError as e:
                logger.debug(f"skipping clipboard file {filename}: {e}")
                continue
            if is_image(data):
                return data

    logger.debug(f"no image on the clipboard (got {type(content).__name__})")
    return None
