"""Upload history and deletion for CDN Cache.

Lists cached records newest first and deletes images remotely before
forgetting them locally.
"""

import logging

from .errors import DeleteError, RecordNotFoundError
from .models import ImageRecord
from .records import RecordStore
from .upload import UploadGateway


logger = logging.getLogger(__name__)


class HistoryManager:
    """Read and delete previously uploaded images.

    Args:
        store: Local record store
        gateway: Remote service the images were uploaded to
    """

    def __init__(self, store: RecordStore, gateway: UploadGateway | None = None):
        self._store = store
        self._gateway = gateway

    def list(self, limit: int | None = None) -> list[ImageRecord]:
        """Return records sorted by creation time, most recent first.

        Args:
            limit: Optional maximum number of records

        Returns:
            List of records
        """
        records = sorted(
            self._store.list_all(),
            key=lambda r: r.created_at,
            reverse=True,
        )
        if limit is not None:
            records = records[:limit]
        return records

    def find(self, prefix: str) -> ImageRecord:
        """Find the single record whose hash starts with ``prefix``.

        Raises:
            RecordNotFoundError: If nothing matches or the prefix is ambiguous
        """
        if not prefix:
            raise RecordNotFoundError("Empty hash prefix")

        exact = self._store.get(prefix)
        if exact is not None:
            return exact

        matches = [r for r in self._store.list_all() if r.hash.startswith(prefix)]
        if not matches:
            raise RecordNotFoundError(f"No uploaded image matches {prefix!r}")
        if len(matches) > 1:
            raise RecordNotFoundError(
                f"{len(matches)} uploaded images match {prefix!r}; use a longer prefix"
            )
        return matches[0]

    async def delete_image(self, record: ImageRecord) -> None:
        """Delete an image remotely, then forget it locally.

        The local record is removed only after the service confirms the
        delete. If the process dies between the two steps the record
        outlives the remote object until it is deleted again or cleared.

        Raises:
            DeleteError: If the remote delete was not confirmed
        """
        if self._gateway is None:
            raise DeleteError("No gateway configured for remote deletion")
        if not record.remote_id:
            raise DeleteError(
                f"Record {record.hash} has no remote id and cannot be deleted remotely"
            )

        deleted = await self._gateway.delete(record.remote_id)
        if not deleted:
            logger.warning("Remote delete of %s not confirmed; keeping record", record.hash)
            raise DeleteError(f"Failed to delete {record.url}")

        self._store.remove(record.hash)
        logger.info("Deleted %s", record.hash)

    def clear(self) -> int:
        """Forget every local record without touching remote objects.

        Returns:
            Number of records removed
        """
        count = len(self._store)
        self._store.clear()
        return count
