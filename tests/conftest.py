"""Shared fixtures: sample CSVs, an isolated store, and a test client."""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine

from zipgeo.config import Settings
from zipgeo.database import build_session_factory, init_db
from zipgeo.main import create_app
from zipgeo.services.kv_store import KVStore
from tests.sample_data import SAMPLE_CSV


@pytest.fixture
def make_settings(tmp_path):
    """Settings pointing at a fresh in-memory database and a temp assets dir."""
    def _make(csv_text=SAMPLE_CSV, **overrides):
        if csv_text is not None:
            (tmp_path / "zips.csv").write_text(csv_text)
        values = {
            "database_url": "sqlite+aiosqlite:///:memory:",
            "assets_dir": tmp_path,
            "source_csv": "zips.csv",
            "search_radius_km": 50.0,
            "log_level": "DEBUG",
        }
        values.update(overrides)
        return Settings(**values)
    return _make


@pytest.fixture
def client(make_settings):
    """Test client over the three-row sample dataset (not yet populated)."""
    with TestClient(create_app(make_settings())) as test_client:
        yield test_client


@pytest.fixture
async def store():
    """A KVStore over its own in-memory database."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    await init_db(engine)
    yield KVStore(build_session_factory(engine))
    await engine.dispose()
