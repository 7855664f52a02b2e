from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from sof_extractor.config import get_settings
from sof_extractor.db import Base, get_engine
from sof_extractor.main import app


@pytest.fixture(autouse=True)
def reset_caches() -> Iterator[None]:
    get_settings.cache_clear()
    get_engine.cache_clear()
    yield
    get_settings.cache_clear()
    get_engine.cache_clear()


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[TestClient]:
    sqlite_db_path = tmp_path / "sof-tests.db"
    monkeypatch.setenv("SOF_DATABASE_URL", f"sqlite+pysqlite:///{sqlite_db_path}")
    monkeypatch.setenv("SOF_DB_ECHO", "false")
    monkeypatch.setenv("OCR_POLL_INTERVAL_SECONDS", "0")

    engine = get_engine()
    Base.metadata.create_all(bind=engine)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    engine.dispose()
