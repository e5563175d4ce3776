"""Pytest configuration and shared fixtures."""

import logging
from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from src.core.config import Settings, settings
from src.interface.routines_router import get_blob_store
from src.main import app
from tests.unit.mocks import FakeBlobStore


logger = logging.getLogger(__name__)


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing at a throwaway SQLite database."""
    return Settings(
        sqlite_db_path=str(tmp_path / "rotinas_test.db"),
        blob_store_url="http://blobs.test",
        blob_store_bucket="test-bucket",
    )


@pytest.fixture
def sqlite_db(monkeypatch, test_settings: Settings) -> str:
    """Point the global settings at a temporary SQLite file and return its path."""
    monkeypatch.setattr(settings, "sqlite_db_path", test_settings.sqlite_db_path)
    return test_settings.sqlite_db_path


@pytest.fixture
def fake_blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def test_client(sqlite_db: str, fake_blob_store: FakeBlobStore) -> Generator[TestClient]:
    """FastAPI test client running the full lifespan against a temporary database."""
    app.dependency_overrides[get_blob_store] = lambda: fake_blob_store
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
