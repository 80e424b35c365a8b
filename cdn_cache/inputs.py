"""Input collection for CDN Cache.

Turns file/folder arguments, the clipboard and raw bytes into
ImageInput items for the pipeline.
"""

import io
import logging
from pathlib import Path

from PIL import Image

from .errors import NoInputError, ReadError
from .models import ImageInput, Provenance


logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {
    '.jpg', '.jpeg', '.png', '.gif', '.webp',
    '.bmp', '.tiff', '.tif', '.svg', '.ico', '.avif', '.heic',
}


def is_supported_image(path: Path) -> bool:
    """Check if file has a supported image extension.

    Args:
        path: Path to file

    Returns:
        True if supported image format
    """
    return path.suffix.lower() in SUPPORTED_EXTENSIONS


def expand_paths(paths: list[Path]) -> list[Path]:
    """Expand paths, recursively finding images in directories.

    Explicit file arguments are kept as given, whatever their
    extension; folders contribute only supported images.

    Args:
        paths: List of file or directory paths

    Returns:
        List of file paths, without duplicates
    """
    expanded = []
    seen = set()

    for path in paths:
        if path.is_dir():
            found = sorted(
                (p for p in path.rglob("*") if p.is_file() and is_supported_image(p)),
                key=lambda p: str(p).lower(),
            )
        else:
            found = [path]

        for file_path in found:
            if file_path not in seen:
                seen.add(file_path)
                expanded.append(file_path)

    return expanded


def from_paths(
    paths: list[Path],
    provenance: Provenance = Provenance.FINDER,
) -> list[ImageInput]:
    """Build pipeline inputs for local files (read lazily by the pipeline)."""
    return [
        ImageInput(source=str(path), provenance=provenance, path=path)
        for path in expand_paths(paths)
    ]


def from_bytes(data: bytes, name: str = "form") -> ImageInput:
    """Build a pipeline input for bytes supplied directly (e.g., stdin).

    Args:
        data: Raw image bytes
        name: File name or descriptor; its extension is a format hint

    Raises:
        NoInputError: If ``data`` is empty
    """
    if not data:
        raise NoInputError("No image data provided")
    return ImageInput(source=name, provenance=Provenance.FORM, data=data)


def from_clipboard() -> list[ImageInput]:
    """Collect the image currently on the clipboard.

    A copied image is encoded as PNG. Copied files are returned as path
    inputs tagged with clipboard provenance.

    Raises:
        NoInputError: If the clipboard holds no image
        ReadError: If the clipboard cannot be read on this platform
    """
    try:
        from PIL import ImageGrab
        content = ImageGrab.grabclipboard()
    except (ImportError, OSError, NotImplementedError) as e:
        raise ReadError("clipboard", e) from e

    if content is None:
        raise NoInputError("Clipboard does not contain an image")

    if isinstance(content, list):
        paths = [Path(p) for p in content if is_supported_image(Path(p))]
        if not paths:
            raise NoInputError("Clipboard files are not images")
        return [
            ImageInput(source=str(p), provenance=Provenance.CLIPBOARD, path=p)
            for p in paths
        ]

    if not isinstance(content, Image.Image):
        raise NoInputError(
            f"Clipboard contains unsupported data: {type(content).__name__}"
        )

    buffer = io.BytesIO()
    content.save(buffer, format='PNG')
    logger.debug("Read %sx%s image from clipboard", *content.size)
    return [
        ImageInput(
            source="clipboard",
            provenance=Provenance.CLIPBOARD,
            data=buffer.getvalue(),
        )
    ]
