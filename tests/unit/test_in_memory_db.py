"""Tests for InMemoryDBClient implementation."""

import pytest

from src.core.db_client import DatabaseError, RecordNotFoundError, UniqueConstraintError


@pytest.mark.unit
class TestInMemoryDBClient:
    """Test suite for InMemoryDBClient."""

    async def test_create_record(self, in_memory_db):
        """Test creating a record."""
        record = await in_memory_db.create_record("routines", {"title": "Open store", "responsible_id": "U1"})

        assert record["id"] is not None
        assert record["title"] == "Open store"
        assert "created" in record
        assert "updated" in record

    async def test_create_record_invalid_data(self, in_memory_db):
        """Test creating a record with invalid data raises error."""
        with pytest.raises(DatabaseError, match="Data must be a dictionary"):
            await in_memory_db.create_record("routines", "invalid")

    async def test_get_record_not_found(self, in_memory_db):
        """Test getting a non-existent record raises error."""
        with pytest.raises(RecordNotFoundError, match="Record not found"):
            await in_memory_db.get_record("routines", "nonexistent")

    async def test_update_record(self, in_memory_db):
        """Test updating a record."""
        created = await in_memory_db.create_record("executions", {"routine_id": "1", "executor_id": "U2"})
        updated = await in_memory_db.update_record("executions", created["id"], {"paused_at": "2024-01-01"})

        assert updated["paused_at"] == "2024-01-01"
        assert updated["updated"] != created["updated"]

    async def test_null_filters(self, in_memory_db):
        """Test ``field = null`` and ``field != null``."""
        await in_memory_db.create_record("executions", {"routine_id": "1", "executor_id": "A", "finished_at": None})
        await in_memory_db.create_record("executions", {"routine_id": "1", "executor_id": "B", "finished_at": "x"})

        open_records = await in_memory_db.list_records("executions", filter_query="finished_at = null")
        closed_records = await in_memory_db.list_records("executions", filter_query="finished_at != null")

        assert [r["executor_id"] for r in open_records] == ["A"]
        assert [r["executor_id"] for r in closed_records] == ["B"]

    async def test_and_filter(self, in_memory_db):
        await in_memory_db.create_record("routines", {"responsible_id": "U1", "recurrence": "diaria"})
        await in_memory_db.create_record("routines", {"responsible_id": "U1", "recurrence": "semanal"})
        await in_memory_db.create_record("routines", {"responsible_id": "U2", "recurrence": "diaria"})

        records = await in_memory_db.list_records(
            "routines",
            filter_query='responsible_id = "U1" && recurrence = "diaria"',
        )

        assert len(records) == 1

    async def test_invalid_filter(self, in_memory_db):
        await in_memory_db.create_record("routines", {"title": "x"})

        with pytest.raises(DatabaseError, match="Invalid filter syntax"):
            await in_memory_db.list_records("routines", filter_query="invalid filter")

    async def test_multi_key_sort(self, in_memory_db):
        """Test ``-created_at,-id`` orders by time, then by id on ties."""
        first = await in_memory_db.create_record("attachments", {"created_at": "2024-01-01T10:00"})
        second = await in_memory_db.create_record("attachments", {"created_at": "2024-01-01T11:00"})
        third = await in_memory_db.create_record("attachments", {"created_at": "2024-01-01T11:00"})

        records = await in_memory_db.list_records("attachments", sort="-created_at,-id")

        assert [r["id"] for r in records] == [third["id"], second["id"], first["id"]]

    async def test_open_execution_uniqueness(self, in_memory_db):
        """Only one unfinished execution per routine and executor."""
        first = await in_memory_db.create_record("executions", {"routine_id": "1", "executor_id": "U2"})

        with pytest.raises(UniqueConstraintError):
            await in_memory_db.create_record("executions", {"routine_id": "1", "executor_id": "U2"})

        await in_memory_db.update_record("executions", first["id"], {"finished_at": "2024-01-01"})
        await in_memory_db.create_record("executions", {"routine_id": "1", "executor_id": "U2"})

    async def test_failing_collection(self, in_memory_db):
        in_memory_db.failing_collections.add("attachments")

        with pytest.raises(DatabaseError, match="Simulated failure"):
            await in_memory_db.create_record("attachments", {"url": "u"})

    async def test_record_modifications_dont_affect_storage(self, in_memory_db):
        """Test that modifying returned records doesn't affect stored data."""
        created = await in_memory_db.create_record("routines", {"title": "Original"})
        created["title"] = "Modified"

        stored = await in_memory_db.get_record("routines", created["id"])

        assert stored["title"] == "Original"

    async def test_text_ids_compare_exactly(self, in_memory_db):
        """Zero-padded text values only match themselves, as in SQLite."""
        await in_memory_db.create_record("executions", {"routine_id": "1", "executor_id": "007"})

        padded = await in_memory_db.list_records("executions", filter_query='executor_id = "007"')
        unpadded = await in_memory_db.list_records("executions", filter_query='executor_id = "7"')

        assert len(padded) == 1
        assert unpadded == []

    async def test_numeric_values_use_affinity(self, in_memory_db):
        await in_memory_db.create_record("checklist_items", {"routine_id": "1", "position": 2, "text": "x"})

        records = await in_memory_db.list_records("checklist_items", filter_query='position = "2"')

        assert len(records) == 1
