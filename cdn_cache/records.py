"""Local record store for CDN Cache.

A small key-value store persisted as one JSON file. Keys are content
hashes, values are JSON-serialized image records. Every mutation
rewrites the file atomically so a crash never leaves it half written.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

from .errors import CacheCorruptionError
from .models import ImageRecord, Provenance


logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


def dump_record(record: ImageRecord) -> str:
    """Serialize a record to its stored JSON form.

    Optional fields are omitted when absent.

    Args:
        record: Record to serialize

    Returns:
        JSON document as a string
    """
    data: dict[str, Any] = {
        "schema": SCHEMA_VERSION,
        "hash": record.hash,
        "source": record.source,
        "from": record.from_.value,
        "format": record.format,
        "url": record.url,
        "size": record.size,
        "createdAt": record.created_at,
    }
    optional = {
        "remoteId": record.remote_id,
        "thumbnailUrl": record.thumbnail_url,
        "width": record.width,
        "height": record.height,
    }
    data.update({k: v for k, v in optional.items() if v is not None})
    return json.dumps(data, separators=(",", ":"))


def _optional_int(data: dict, key: str) -> int | None:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return None
    return value


def _optional_str(data: dict, key: str) -> str | None:
    value = data.get(key)
    if isinstance(value, str) and value:
        return value
    return None


def load_record(key: str, raw: str | dict) -> ImageRecord:
    """Deserialize a stored value into a record.

    Missing optional fields and unknown keys are tolerated. Records
    written before ``remoteId`` existed may carry ``fileId`` instead.

    Args:
        key: Store key (content hash) the value was found under
        raw: Stored JSON string, or an already-decoded dict

    Returns:
        The decoded ImageRecord

    Raises:
        CacheCorruptionError: If the value cannot form a valid record
    """
    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CacheCorruptionError(key, f"invalid JSON ({e})")
    else:
        data = raw

    if not isinstance(data, dict):
        raise CacheCorruptionError(key, "value is not an object")

    schema = data.get("schema", SCHEMA_VERSION)
    if schema != SCHEMA_VERSION:
        raise CacheCorruptionError(key, f"unsupported schema {schema!r}")

    url = data.get("url")
    if not isinstance(url, str) or not url:
        raise CacheCorruptionError(key, "missing url")

    created_at = data.get("createdAt")
    if isinstance(created_at, bool) or not isinstance(created_at, int):
        raise CacheCorruptionError(key, "missing createdAt")

    size = data.get("size", 0)
    if isinstance(size, bool) or not isinstance(size, int) or size < 0:
        raise CacheCorruptionError(key, f"invalid size {size!r}")

    record_hash = data.get("hash", key)
    if record_hash != key:
        raise CacheCorruptionError(key, f"hash mismatch ({record_hash!r})")

    try:
        provenance = Provenance(data.get("from", Provenance.FINDER.value))
    except ValueError:
        provenance = Provenance.FINDER

    fmt = data.get("format") or ""
    if not isinstance(fmt, str):
        raise CacheCorruptionError(key, f"invalid format {fmt!r}")

    return ImageRecord(
        hash=key,
        source=str(data.get("source", "")),
        from_=provenance,
        format=fmt.lstrip("."),
        url=url,
        size=size,
        created_at=created_at,
        remote_id=_optional_str(data, "remoteId") or _optional_str(data, "fileId"),
        thumbnail_url=_optional_str(data, "thumbnailUrl"),
        width=_optional_int(data, "width"),
        height=_optional_int(data, "height"),
    )


class RecordStore:
    """Hash-keyed record persistence backed by a JSON file.

    Reads are served from an in-memory snapshot; mutations swap in a new
    snapshot and rewrite the file under a lock.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()
        self._items: dict[str, Any] | None = None

    def get(self, content_hash: str) -> ImageRecord | None:
        """Look up a record by content hash.

        A stored value that fails to deserialize is logged and reported
        as absent, so the next upload replaces it.
        """
        raw = self._snapshot().get(content_hash)
        if raw is None:
            return None
        try:
            return load_record(content_hash, raw)
        except CacheCorruptionError as e:
            logger.warning("Ignoring cached record: %s", e)
            return None

    def set(self, content_hash: str, record: ImageRecord) -> None:
        """Store a record, overwriting any existing value for the hash."""
        if record.hash != content_hash:
            raise ValueError(
                f"Record hash {record.hash!r} does not match key {content_hash!r}"
            )
        value = dump_record(record)
        with self._lock:
            items = dict(self._load_locked())
            items[content_hash] = value
            self._write_locked(items)

    def remove(self, content_hash: str) -> None:
        """Remove a record; removing a missing key is a no-op."""
        with self._lock:
            items = self._load_locked()
            if content_hash not in items:
                return
            items = {k: v for k, v in items.items() if k != content_hash}
            self._write_locked(items)

    def list_all(self) -> list[ImageRecord]:
        """Return every readable record, in no particular order."""
        records = []
        for key, raw in self._snapshot().items():
            try:
                records.append(load_record(key, raw))
            except CacheCorruptionError as e:
                logger.warning("Skipping cached record: %s", e)
        return records

    def clear(self) -> None:
        """Remove all records."""
        with self._lock:
            self._write_locked({})

    def __len__(self) -> int:
        return len(self._snapshot())

    def __contains__(self, content_hash: object) -> bool:
        return content_hash in self._snapshot()

    def _snapshot(self) -> dict[str, Any]:
        with self._lock:
            return self._load_locked()

    def _load_locked(self) -> dict[str, Any]:
        if self._items is not None:
            return self._items

        if not self.path.exists():
            self._items = {}
            return self._items

        try:
            with open(self.path, 'r') as f:
                items = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            items = None
            reason = str(e)
        else:
            reason = "top level is not an object"

        if not isinstance(items, dict):
            corrupt_path = self.path.with_name(self.path.name + ".corrupt")
            logger.warning(
                "Record store %s is unreadable (%s); moved to %s",
                self.path, reason, corrupt_path,
            )
            os.replace(self.path, corrupt_path)
            items = {}

        self._items = items
        return self._items

    def _write_locked(self, items: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_file = tempfile.NamedTemporaryFile(
            'w',
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix='.tmp',
            delete=False,
        )
        tmp_path = tmp_file.name
        try:
            with tmp_file:
                json.dump(items, tmp_file, indent=2)
            os.replace(tmp_path, self.path)
        finally:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
        self._items = items
