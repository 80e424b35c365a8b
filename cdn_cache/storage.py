"""Content hashing utilities for CDN Cache.

Handles content hash calculation, format sniffing, dimension extraction
and remote object naming.
"""

import base64
import hashlib
import io
import threading
from contextlib import contextmanager
from pathlib import Path

from PIL import Image

from .models import HashResult


# Pillow format names that differ from the extension we store
PIL_FORMAT_ALIASES = {
    'jpeg': 'jpg',
    'mpo': 'jpg',
}

EXTENSION_ALIASES = {
    'jpeg': 'jpg',
    'tif': 'tiff',
}

UNKNOWN_FORMAT = 'bin'

# Errors Pillow raises for bytes it cannot identify or parse
_PIL_ERRORS = (OSError, ValueError, SyntaxError, Image.DecompressionBombError)

_pixel_limit_lock = threading.Lock()


def calculate_hash(data: bytes) -> str:
    """Calculate SHA-256 hash as unpadded base64url text.

    Args:
        data: File content as bytes

    Returns:
        43-character URL-safe digest
    """
    digest = hashlib.sha256(data).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b'=').decode('ascii')


def sniff_image(data: bytes) -> tuple[str | None, int | None, int | None]:
    """Identify an image by its byte signature.

    Only the header is parsed, pixel data is never decoded.

    Args:
        data: File content as bytes

    Returns:
        Tuple of (format, width, height); any element may be None
    """
    try:
        try:
            fmt, width, height = _read_header(data)
        except Image.DecompressionBombError:
            # Only the header is read, so the pixel limit does not apply
            with _pixel_limit_disabled():
                fmt, width, height = _read_header(data)
    except _PIL_ERRORS:
        if _looks_like_svg(data):
            return 'svg', None, None
        return None, None, None

    if fmt is not None:
        fmt = PIL_FORMAT_ALIASES.get(fmt, fmt)
    if not width or not height:
        return fmt, None, None
    return fmt, width, height


def _read_header(data: bytes) -> tuple[str | None, int, int]:
    with Image.open(io.BytesIO(data)) as image:
        width, height = image.size
        return (image.format or '').lower() or None, width, height


@contextmanager
def _pixel_limit_disabled():
    with _pixel_limit_lock:
        limit = Image.MAX_IMAGE_PIXELS
        Image.MAX_IMAGE_PIXELS = None
        try:
            yield
        finally:
            Image.MAX_IMAGE_PIXELS = limit


def _looks_like_svg(data: bytes) -> bool:
    head = data[:1024].lstrip().lower()
    return head.startswith(b'<svg') or (head.startswith(b'<?xml') and b'<svg' in head)


def extension_format(path: Path | str | None) -> str | None:
    """Normalize a path extension into a format name.

    Args:
        path: Path with an extension, or None

    Returns:
        Lowercase extension without dot, or None if there is none
    """
    if not path:
        return None
    suffix = Path(path).suffix.lower().lstrip('.')
    if not suffix:
        return None
    return EXTENSION_ALIASES.get(suffix, suffix)


def hash_image(data: bytes, path: Path | str | None = None) -> HashResult:
    """Hash raw image bytes and detect format and dimensions.

    Format resolution: sniffed byte signature, then path extension,
    then ``bin``. Dimensions are best-effort and omitted on failure.

    Args:
        data: File content as bytes
        path: Optional original path, only used as a format hint

    Returns:
        HashResult for the content
    """
    fmt, width, height = sniff_image(data)
    if fmt is None:
        fmt = extension_format(path) or UNKNOWN_FORMAT

    return HashResult(
        hash=calculate_hash(data),
        format=fmt,
        size=len(data),
        width=width,
        height=height,
    )


def build_object_name(content_hash: str, fmt: str) -> str:
    """Build the remote file name for content.

    Args:
        content_hash: Content digest
        fmt: Normalized format

    Returns:
        File name like ``<hash>.png``
    """
    return f"{content_hash}.{fmt}"


def content_type_for(fmt: str) -> str:
    """Map a normalized format to a MIME type.

    Args:
        fmt: Normalized format

    Returns:
        MIME type, ``application/octet-stream`` when unknown
    """
    content_types = {
        'jpg': 'image/jpeg',
        'png': 'image/png',
        'gif': 'image/gif',
        'webp': 'image/webp',
        'bmp': 'image/bmp',
        'tiff': 'image/tiff',
        'svg': 'image/svg+xml',
        'ico': 'image/x-icon',
        'avif': 'image/avif',
        'heic': 'image/heic',
    }
    return content_types.get(fmt, 'application/octet-stream')
