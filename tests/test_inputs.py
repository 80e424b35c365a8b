"""Tests for inputs.py module.

Tests path expansion, raw-byte inputs and clipboard collection.
"""

import pytest
from PIL import Image, ImageGrab

from cdn_cache.errors import NoInputError, ReadError
from cdn_cache.inputs import expand_paths, from_bytes, from_clipboard, from_paths
from cdn_cache.models import Provenance


@pytest.fixture
def image_tree(tmp_path, png_bytes):
    """Folder with images, a nested folder and a non-image file."""
    (tmp_path / "b.png").write_bytes(png_bytes)
    (tmp_path / "a.JPG").write_bytes(png_bytes)
    (tmp_path / "notes.txt").write_text("hello")
    nested = tmp_path / "nested"
    nested.mkdir()
    (nested / "c.webp").write_bytes(png_bytes)
    return tmp_path


class TestExpandPaths:
    """Tests for expand_paths function."""

    def test_expands_folders_recursively(self, image_tree):
        """Folders should yield supported images only, sorted."""
        result = expand_paths([image_tree])

        assert [p.name for p in result] == ["a.JPG", "b.png", "c.webp"]

    def test_keeps_explicit_files(self, image_tree):
        """Explicit files are kept even without an image extension."""
        result = expand_paths([image_tree / "notes.txt"])

        assert result == [image_tree / "notes.txt"]

    def test_removes_duplicates(self, image_tree):
        """A file named twice should appear once."""
        result = expand_paths([image_tree / "b.png", image_tree])

        assert [p.name for p in result] == ["b.png", "a.JPG", "c.webp"]

    def test_from_paths_tags_finder(self, image_tree):
        """File inputs are tagged with finder provenance and read lazily."""
        items = from_paths([image_tree / "b.png"])

        assert items[0].provenance == Provenance.FINDER
        assert items[0].data is None
        assert items[0].path == image_tree / "b.png"


class TestFromBytes:
    """Tests for from_bytes function."""

    def test_tags_form(self, png_bytes):
        """Raw bytes are tagged with form provenance."""
        item = from_bytes(png_bytes, "upload.png")

        assert item.provenance == Provenance.FORM
        assert item.source == "upload.png"
        assert item.data == png_bytes

    def test_empty_is_no_input(self):
        """Empty data means nothing was provided."""
        with pytest.raises(NoInputError):
            from_bytes(b"")


class TestFromClipboard:
    """Tests for from_clipboard function."""

    def test_image_is_encoded_as_png(self, monkeypatch):
        """A clipboard image should become PNG bytes."""
        monkeypatch.setattr(ImageGrab, "grabclipboard", lambda: Image.new('RGB', (5, 4)))

        items = from_clipboard()

        assert len(items) == 1
        assert items[0].provenance == Provenance.CLIPBOARD
        assert items[0].source == "clipboard"
        assert items[0].data.startswith(b"\x89PNG")

    def test_copied_files(self, monkeypatch, image_tree):
        """Copied image files become clipboard-tagged path inputs."""
        files = [str(image_tree / "b.png"), str(image_tree / "notes.txt")]
        monkeypatch.setattr(ImageGrab, "grabclipboard", lambda: files)

        items = from_clipboard()

        assert [i.path.name for i in items] == ["b.png"]
        assert items[0].provenance == Provenance.CLIPBOARD

    def test_empty_clipboard(self, monkeypatch):
        """No image on the clipboard is the no-input case."""
        monkeypatch.setattr(ImageGrab, "grabclipboard", lambda: None)

        with pytest.raises(NoInputError):
            from_clipboard()

    def test_unsupported_platform(self, monkeypatch):
        """Platforms without clipboard access raise ReadError."""
        def unavailable():
            raise NotImplementedError("ImageGrab.grabclipboard() is macOS and Windows only")

        monkeypatch.setattr(ImageGrab, "grabclipboard", unavailable)

        with pytest.raises(ReadError):
            from_clipboard()
