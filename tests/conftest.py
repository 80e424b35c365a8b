"""Shared fixtures for CDN Cache tests."""

import asyncio
import io

import pytest
from PIL import Image

from cdn_cache.errors import UploadError
from cdn_cache.models import ImageRecord, Provenance, UploadResponse
from cdn_cache.records import RecordStore


class FakeGateway:
    """In-memory gateway that records every call."""

    def __init__(
        self,
        fail: bool = False,
        delete_result: bool = True,
        delay: float = 0,
        **response_fields,
    ):
        self.fail = fail
        self.delete_result = delete_result
        self.delay = delay
        self.response_fields = response_fields
        self.uploads: list[tuple[str, bytes]] = []
        self.deletes: list[str] = []
        self.closed = False

    async def upload(self, data: bytes, name: str) -> UploadResponse:
        self.uploads.append((name, data))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise UploadError("quota exceeded")
        return UploadResponse(
            remote_id=f"file-{len(self.uploads)}",
            url=f"https://cdn.test.com/{name}",
            **self.response_fields,
        )

    async def delete(self, remote_id: str) -> bool:
        self.deletes.append(remote_id)
        return self.delete_result

    def preview_url(self, url: str, width: int) -> str:
        return f"{url}?w={width}"

    async def verify(self) -> None:
        pass

    async def aclose(self) -> None:
        self.closed = True


def make_image_bytes(fmt: str = 'PNG', size=(40, 30), color=(255, 0, 0)) -> bytes:
    buffer = io.BytesIO()
    Image.new('RGB', size, color=color).save(buffer, fmt)
    return buffer.getvalue()


def make_record(content_hash: str = "abc123", created_at: int = 100, **fields) -> ImageRecord:
    values = {
        "hash": content_hash,
        "source": f"/photos/{content_hash}.png",
        "from_": Provenance.FINDER,
        "format": "png",
        "url": f"https://cdn.test.com/{content_hash}.png",
        "size": 1024,
        "created_at": created_at,
        "remote_id": f"id-{content_hash}",
    }
    values.update(fields)
    return ImageRecord(**values)


@pytest.fixture
def png_bytes():
    """Small red 40x30 PNG."""
    return make_image_bytes('PNG')


@pytest.fixture
def other_png_bytes():
    """Small blue 40x30 PNG (different content)."""
    return make_image_bytes('PNG', color=(0, 0, 255))


@pytest.fixture
def jpeg_bytes():
    """Small 20x10 JPEG."""
    return make_image_bytes('JPEG', size=(20, 10))


@pytest.fixture
def store(tmp_path):
    """Empty record store in a temporary directory."""
    return RecordStore(tmp_path / "records.json")


@pytest.fixture
def gateway():
    """Fake gateway that reports no size or dimensions."""
    return FakeGateway()
