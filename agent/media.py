"""
Media classification for prompt payloads.

Sniffs MIME types from raw bytes, decodes and validates images with Pillow,
slices embedded PDF documents out of a byte stream and checks them with pypdf.
"""

import io
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from .errors import InputClassificationError


logger = logging.getLogger(__name__)

SNIFF_LENGTH = 512

# max width/height of an image accepted by the Messages API
MAX_IMAGE_SIZE = 8000

SUPPORTED_IMAGE_TYPES = ["image/jpeg", "image/png", "image/gif", "image/webp"]
PDF_MEDIA_TYPE = "application/pdf"
TEXT_MEDIA_TYPE = "text/plain; charset=utf-8"
BINARY_MEDIA_TYPE = "application/octet-stream"

PDF_START = b"%PDF-"
PDF_END = b"%%EOF"

_SIGNATURES = [
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
    (b"\x00\x00\x01\x00", "image/x-icon"),
    (PDF_START, PDF_MEDIA_TYPE),
    (b"PK\x03\x04", "application/zip"),
    (b"\x1f\x8b\x08", "application/x-gzip"),
]

_BINARY_BYTES = set(range(0x00, 0x09)) | {0x0B} | set(range(0x0E, 0x1B)) | set(range(0x1C, 0x20))


@dataclass(frozen=True)
class ImageDimensions:
    width: int
    height: int


def detect_mime(data: bytes) -> str:
    """Content-sniff a MIME type from (at most) the first 512 bytes."""
    head = data[:SNIFF_LENGTH]

    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    for signature, mime in _SIGNATURES:
        if head.startswith(signature):
            return mime

    if head.startswith((b"\xef\xbb\xbf", b"\xfe\xff", b"\xff\xfe")):
        return TEXT_MEDIA_TYPE
    if any(byte in _BINARY_BYTES for byte in head):
        return BINARY_MEDIA_TYPE
    return TEXT_MEDIA_TYPE


def is_image(data: bytes) -> bool:
    return detect_mime(data).startswith("image/")


def decode_image(data: bytes) -> Tuple[ImageDimensions, str]:
    """Decode image bytes and return their dimensions and Pillow format name."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
            return ImageDimensions(width, height), img.format or "unknown"
    except (UnidentifiedImageError, OSError) as e:
        raise InputClassificationError(f"failed to decode image: {e}", reason="ImageDecode") from e


def validate_image(dimensions: ImageDimensions, image_format: str = "image") -> Tuple[bool, Optional[str]]:
    """
    Check image dimensions against the service limit.

    Returns:
        (is_valid, reason)
    """
    logger.debug(f"{dimensions.width} x {dimensions.height} size of image")
    if dimensions.width > MAX_IMAGE_SIZE or dimensions.height > MAX_IMAGE_SIZE:
        reason = (
            f"the maximum height and width of an image is {MAX_IMAGE_SIZE} pixels. "
            f"{image_format} has size {dimensions.width} x {dimensions.height}"
        )
        return False, reason
    return True, None


def classify_image(data: bytes) -> str:
    """Validate image bytes for upload and return their media type."""
    media_type = detect_mime(data)
    if media_type not in SUPPORTED_IMAGE_TYPES:
        raise InputClassificationError(
            f"unsupported image type: {media_type}. Supported types are: {', '.join(SUPPORTED_IMAGE_TYPES)}",
            reason="ImageType",
        )
    dimensions, image_format = decode_image(data)
    is_valid, reason = validate_image(dimensions, image_format)
    if not is_valid:
        raise InputClassificationError(f"image validation failed: {reason}", reason="ImageSize")
    return media_type


def split_pdf_segments(data: bytes) -> List[Tuple[bool, bytes]]:
    """
    Split a byte stream into ordered (is_pdf, bytes) segments.

    A PDF starts at ``%PDF-`` and ends at the last ``%%EOF`` found before the
    next ``%PDF-`` (or the end of input). A start marker without a matching
    end marker stays part of the surrounding text.
    """
    segments: List[Tuple[bool, bytes]] = []
    text_start = 0
    pos = 0

    while True:
        start = data.find(PDF_START, pos)
        if start == -1:
            break

        next_start = data.find(PDF_START, start + len(PDF_START))
        limit = len(data) if next_start == -1 else next_start

        end = data.rfind(PDF_END, start, limit)
        if end == -1:
            pos = limit
            if next_start == -1:
                break
            continue

        end += len(PDF_END)
        if start > text_start:
            segments.append((False, data[text_start:start]))
        segments.append((True, data[start:end]))
        text_start = pos = end

    if text_start < len(data):
        segments.append((False, data[text_start:]))

    return segments


def extract_pdfs(data: bytes) -> Tuple[List[bytes], bytes]:
    """
    Return all embedded PDFs and the concatenation of the remaining bytes.

    Marker fragments on both sides of a removed PDF can join into a new
    ``%PDF-...%%EOF`` span, so the leftover is split again until no PDF
    is left in it.
    """
    pdfs = []
    leftover = data
    while True:
        found = []
        rest = []
        for is_pdf, chunk in split_pdf_segments(leftover):
            (found if is_pdf else rest).append(chunk)
        leftover = b"".join(rest)
        if not found:
            return pdfs, leftover
        pdfs.extend(found)


def validate_pdf(data: bytes) -> Tuple[bool, Optional[str]]:
    """
    Check that a byte slice is a well-formed PDF by parsing it with pypdf in
    strict mode (cross-reference table, trailer, catalog and page tree).

    Returns:
        (is_valid, reason)
    """
    if not data.startswith(PDF_START):
        return False, "missing %PDF- header"

    # pypdf raises builtin errors as well as its own on malformed input
    try:
        reader = PdfReader(io.BytesIO(data), strict=True)
        page_count = len(reader.pages)
    except (PyPdfError, ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
        logger.debug(f"PDF validation failed: {e!r}")
        return False, str(e) or type(e).__name__

    logger.debug(f"PDF is valid: {page_count} page(s)")
    return True, None
