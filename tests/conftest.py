import sqlite3
from contextlib import asynccontextmanager

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from dal.blob_store import BlobStore
from dal.image_dal import ImageDAL
from utils.database_init import AsyncDatabaseInitializer
from utils.settings import Settings


class BrokenDatabase:
    """Stand-in initializer whose connections always fail, simulating an outage."""

    @asynccontextmanager
    async def connection(self):
        raise sqlite3.OperationalError("unable to open database file")
        yield  # pragma: no cover


@pytest_asyncio.fixture
async def db_initializer(tmp_path):
    initializer = AsyncDatabaseInitializer(tmp_path / "db", pool_size=4)
    await initializer.ensure_database()
    yield initializer
    await initializer.close()


@pytest_asyncio.fixture
async def image_dal(db_initializer):
    return ImageDAL(db_initializer)


@pytest.fixture
def blob_store(tmp_path):
    store = BlobStore(tmp_path / "uploads")
    store.ensure_directory()
    return store


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_dir=tmp_path / "db",
        upload_dir=tmp_path / "uploads",
        max_upload_bytes=1024,
        db_pool_size=4,
    )


@pytest.fixture
def client(settings):
    """Test client with an isolated database and upload directory."""
    from main import create_app

    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def broken_database():
    return BrokenDatabase()
