"""Content-addressed upload pipeline for CDN Cache.

Each run hashes the image, serves it from the record store when the
content was uploaded before, and otherwise uploads it once and records
the result. Batches fan out concurrently; runs for byte-identical
images share a single in-flight upload.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Callable, Iterable, Sequence

from .errors import ReadError, UploadError
from .models import (
    HashResult,
    ImageInput,
    ImageRecord,
    PipelineState,
    Provenance,
    UploadResponse,
)
from .records import RecordStore
from .storage import build_object_name, hash_image
from .upload import UploadGateway


logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


def resolve_metadata(
    hashed: HashResult,
    response: UploadResponse,
) -> tuple[int, int | None, int | None]:
    """Pick size and dimensions for a new record.

    Each field prefers what the gateway reported and falls back to the
    locally computed value: size to the byte length, width and height
    to the sniffed header (absent if neither knows).

    Returns:
        Tuple of (size, width, height)
    """
    size = response.size if response.size is not None else hashed.size
    width = response.width or hashed.width
    height = response.height or hashed.height
    return size, width, height


def build_record(
    item: ImageInput,
    hashed: HashResult,
    response: UploadResponse,
    created_at: int,
) -> ImageRecord:
    """Merge an input, its hash and the upload response into a record."""
    size, width, height = resolve_metadata(hashed, response)
    return ImageRecord(
        hash=hashed.hash,
        source=item.source,
        from_=item.provenance,
        format=hashed.format,
        url=response.url,
        size=size,
        created_at=created_at,
        remote_id=response.remote_id,
        thumbnail_url=response.thumbnail_url,
        width=width,
        height=height,
    )


class UploadOrchestrator:
    """Runs the hash → lookup → upload → persist pipeline.

    Args:
        store: Local record store
        gateway: Remote upload service
        clock: Returns the creation timestamp in epoch ms (for tests)
    """

    def __init__(
        self,
        store: RecordStore,
        gateway: UploadGateway,
        clock: Callable[[], int] | None = None,
    ):
        self._store = store
        self._gateway = gateway
        self._clock = clock or now_ms
        self._inflight: dict[str, asyncio.Future] = {}
        self._canceled = False

    def cancel(self) -> None:
        """Stop reporting results.

        Runs that have not started uploading end as canceled. Uploads
        already in flight are not aborted; they finish and are recorded.
        """
        self._canceled = True

    async def upload(self, item: ImageInput) -> PipelineState:
        """Run the pipeline for a single image.

        Read and upload failures end the run in a failed state instead
        of raising, so sibling runs in a batch are unaffected.
        """
        if self._canceled:
            return PipelineState.canceled(item.source)

        try:
            data = await self._read(item)
        except ReadError as e:
            logger.warning("%s", e)
            return PipelineState.failed(item.source, e)

        hashed = hash_image(data, item.path or item.source)
        if self._canceled:
            return PipelineState.canceled(item.source)

        try:
            record, cache = await self._resolve(item, data, hashed)
        except (UploadError, OSError) as e:
            logger.warning("Upload of %s failed: %s", item.source, e)
            return PipelineState.failed(item.source, e)
        except Exception as e:
            # A broken gateway fails this run only, never its siblings
            logger.exception("Unexpected error uploading %s", item.source)
            return PipelineState.failed(item.source, e)

        if self._canceled:
            return PipelineState.canceled(item.source)
        return PipelineState.succeeded(record, cache=cache)

    async def upload_many(self, items: Sequence[ImageInput]) -> list[PipelineState]:
        """Run the pipeline for every image concurrently.

        Returns:
            One state per input, in input order; ``[no-input]`` when
            ``items`` is empty
        """
        if not items:
            return [PipelineState.no_input()]
        return list(await asyncio.gather(*(self.upload(item) for item in items)))

    async def upload_paths(
        self,
        paths: Iterable[Path],
        provenance: Provenance = Provenance.FINDER,
    ) -> list[PipelineState]:
        """Run the pipeline for local files; each file is read in its own run."""
        items = [
            ImageInput(source=str(path), provenance=provenance, path=Path(path))
            for path in paths
        ]
        return await self.upload_many(items)

    async def _read(self, item: ImageInput) -> bytes:
        if item.data is not None:
            return item.data
        if item.path is None:
            raise ReadError(item.source, ValueError("no data or path given"))
        try:
            return await asyncio.to_thread(item.path.read_bytes)
        except OSError as e:
            raise ReadError(item.path, e) from e

    async def _resolve(
        self,
        item: ImageInput,
        data: bytes,
        hashed: HashResult,
    ) -> tuple[ImageRecord, bool]:
        # No await between the lookups and registering the in-flight
        # future, so two runs for the same hash cannot both miss.
        cached = self._store.get(hashed.hash)
        if cached is not None:
            logger.debug("Cache hit for %s (%s)", item.source, hashed.hash)
            return cached, True

        pending = self._inflight.get(hashed.hash)
        if pending is not None:
            logger.debug("Waiting for in-flight upload of %s", hashed.hash)
            return await asyncio.shield(pending), True

        logger.debug("Cache miss for %s (%s)", item.source, hashed.hash)
        future = asyncio.get_running_loop().create_future()
        self._inflight[hashed.hash] = future
        try:
            record = await self._upload_and_persist(item, data, hashed)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Retrieved here so a failure nobody else awaits is not reported twice
            future.exception()
            raise
        else:
            future.set_result(record)
            return record, False
        finally:
            del self._inflight[hashed.hash]

    async def _upload_and_persist(
        self,
        item: ImageInput,
        data: bytes,
        hashed: HashResult,
    ) -> ImageRecord:
        name = build_object_name(hashed.hash, hashed.format)
        logger.info("Uploading %s as %s", item.source, name)
        response = await self._gateway.upload(data, name)

        record = build_record(item, hashed, response, self._clock())
        await asyncio.to_thread(self._store.set, hashed.hash, record)
        logger.info("Uploaded %s to %s", item.source, record.url)
        return record
