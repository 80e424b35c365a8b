"""Tests for history.py module.

Tests newest-first listing, hash-prefix lookup, and deletion that only
forgets a record after the remote delete is confirmed.
"""

import pytest

from cdn_cache.errors import DeleteError, RecordNotFoundError
from cdn_cache.history import HistoryManager

from conftest import FakeGateway, make_record


@pytest.fixture
def populated_store(store):
    """Store with three records created at 100, 300 and 200."""
    for content_hash, created_at in (("aaa111", 100), ("bbb222", 300), ("aab333", 200)):
        store.set(content_hash, make_record(content_hash, created_at=created_at))
    return store


class TestList:
    """Tests for HistoryManager.list."""

    def test_newest_first(self, populated_store):
        """Records should be ordered by createdAt descending."""
        records = HistoryManager(populated_store).list()

        assert [r.created_at for r in records] == [300, 200, 100]

    def test_limit(self, populated_store):
        """Limit should keep the most recent records."""
        records = HistoryManager(populated_store).list(limit=2)

        assert [r.hash for r in records] == ["bbb222", "aab333"]

    def test_empty(self, store):
        """An empty store lists nothing."""
        assert HistoryManager(store).list() == []


class TestFind:
    """Tests for HistoryManager.find."""

    def test_exact_hash(self, populated_store):
        """A full hash should match directly."""
        assert HistoryManager(populated_store).find("aaa111").hash == "aaa111"

    def test_unique_prefix(self, populated_store):
        """A unique prefix should resolve to its record."""
        assert HistoryManager(populated_store).find("bb").hash == "bbb222"

    def test_ambiguous_prefix(self, populated_store):
        """A prefix matching several records should be rejected."""
        with pytest.raises(RecordNotFoundError, match="longer prefix"):
            HistoryManager(populated_store).find("aa")

    def test_no_match(self, populated_store):
        """An unknown prefix should be rejected."""
        with pytest.raises(RecordNotFoundError):
            HistoryManager(populated_store).find("zzz")


class TestDeleteImage:
    """Tests for HistoryManager.delete_image."""

    @pytest.mark.asyncio
    async def test_success_removes_record(self, populated_store):
        """Confirmed remote delete should remove the local record."""
        gateway = FakeGateway(delete_result=True)
        record = populated_store.get("bbb222")

        await HistoryManager(populated_store, gateway).delete_image(record)

        assert gateway.deletes == ["id-bbb222"]
        assert populated_store.get("bbb222") is None
        assert len(populated_store) == 2

    @pytest.mark.asyncio
    async def test_failure_keeps_record(self, populated_store):
        """Unconfirmed remote delete should keep the record unchanged."""
        gateway = FakeGateway(delete_result=False)
        record = populated_store.get("bbb222")

        with pytest.raises(DeleteError):
            await HistoryManager(populated_store, gateway).delete_image(record)

        assert populated_store.get("bbb222") == record

    @pytest.mark.asyncio
    async def test_record_without_remote_id(self, store):
        """Records lacking a remote id cannot be deleted remotely."""
        record = make_record("old", remote_id=None)
        store.set("old", record)
        gateway = FakeGateway()

        with pytest.raises(DeleteError):
            await HistoryManager(store, gateway).delete_image(record)

        assert gateway.deletes == []
        assert store.get("old") == record


class TestClear:
    """Tests for HistoryManager.clear."""

    def test_clears_local_records_only(self, populated_store):
        """Clear should drop local records without calling the gateway."""
        gateway = FakeGateway()

        removed = HistoryManager(populated_store, gateway).clear()

        assert removed == 3
        assert populated_store.list_all() == []
        assert gateway.deletes == []
