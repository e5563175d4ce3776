"""Pytest configuration and fixtures for unit tests."""

from datetime import date, time

import pytest

from src.domain.routine import RoutineCreate
from tests.unit.mocks import FakeBlobStore, InMemoryDBClient


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches src.core.db_client functions to use InMemoryDBClient."""
    monkeypatch.setattr("src.core.db_client.create_record", in_memory_db.create_record)
    monkeypatch.setattr("src.core.db_client.get_record", in_memory_db.get_record)
    monkeypatch.setattr("src.core.db_client.update_record", in_memory_db.update_record)
    monkeypatch.setattr("src.core.db_client.list_records", in_memory_db.list_records)
    monkeypatch.setattr("src.core.db_client.get_first_record", in_memory_db.get_first_record)

    return in_memory_db


@pytest.fixture
def blob_store():
    """Provides an in-memory blob store."""
    return FakeBlobStore()


@pytest.fixture
def make_routine_payload():
    """Factory for routine creation payloads with sensible defaults."""

    def _make(**overrides) -> RoutineCreate:
        data = {
            "title": "Open the store",
            "periodicity": "diaria",
            "start_date": date(2024, 1, 1),
            "start_time": time(8, 0),
            "duration_minutes": 60,
            "creator_id": "admin",
            "responsible_id": "U1",
        }
        data.update(overrides)
        return RoutineCreate(**data)

    return _make


@pytest.fixture
def routine_factory(patched_db):
    """Factory inserting routine rows directly into the in-memory database."""

    async def _create(**overrides) -> dict:
        row = {
            "title": "Existing routine",
            "kind": "normal",
            "recurrence": "diaria",
            "weekday": None,
            "start_date": "2024-01-01",
            "start_time": "08:00:00",
            "duration_minutes": 60,
            "priority": "baixa",
            "checklist_enabled": False,
            "attachment_required": False,
            "creator_id": "admin",
            "responsible_id": "U1",
        }
        row.update(overrides)
        return await patched_db.create_record("routines", row)

    return _create
