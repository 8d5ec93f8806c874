"""Tests for the upload transaction and its compensation on failure."""

import asyncio

import pytest

from dal.blob_store import BlobStore, DeleteOutcome
from dal.image_dal import ImageDAL
from models.errors import PersistenceError, StorageError, ValidationError
from services.image_store import ImageStore

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FailingInsertDAL(ImageDAL):
    async def insert(self, name, image_path):
        raise PersistenceError("Failed to save image record", detail="database is locked")


class ExplodingInsertDAL(ImageDAL):
    def __init__(self, db_initializer, error):
        super().__init__(db_initializer)
        self.error = error

    async def insert(self, name, image_path):
        raise self.error


class FailingPutStore(BlobStore):
    async def put(self, data, filename_hint=None, max_bytes=None):
        raise StorageError("Failed to store file", detail="No space left on device")


class UndeletableStore(BlobStore):
    async def delete(self, locator):
        self.delete_calls = getattr(self, "delete_calls", 0) + 1
        return DeleteOutcome.IO_ERROR


@pytest.fixture
def image_store(blob_store, image_dal):
    return ImageStore(blob_store, image_dal, max_upload_bytes=1024)


@pytest.mark.asyncio
async def test_upload_stores_blob_and_record(image_store: ImageStore, blob_store: BlobStore, image_dal: ImageDAL):
    record = await image_store.upload(PNG_BYTES, "image/png", len(PNG_BYTES), name="Beach", filename="beach.png")

    assert record.name == "Beach"
    assert blob_store.resolve(record.image_path).read_bytes() == PNG_BYTES
    assert await image_dal.list_all() == [record]


@pytest.mark.asyncio
@pytest.mark.parametrize("name", [None, "", "   "])
async def test_upload_defaults_name_to_untitled(image_store: ImageStore, name):
    record = await image_store.upload(PNG_BYTES, "image/png", len(PNG_BYTES), name=name, filename="a.png")

    assert record.name == "Untitled"


@pytest.mark.asyncio
async def test_upload_strips_name(image_store: ImageStore):
    record = await image_store.upload(PNG_BYTES, "image/png", len(PNG_BYTES), name="  Dog  ", filename="a.png")

    assert record.name == "Dog"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "content_type,size,name",
    [
        ("text/plain", 10, None),
        (None, 10, None),
        ("image/png", 2048, None),
        ("image/png", 0, None),
        ("image/png", 10, "x" * 256),
    ],
)
async def test_invalid_upload_touches_no_storage(image_store, blob_store, image_dal, content_type, size, name):
    with pytest.raises(ValidationError):
        await image_store.upload(b"x" * 10, content_type, size, name=name, filename="a.png")

    assert list(blob_store.base_dir.iterdir()) == []
    assert await image_dal.list_all() == []


@pytest.mark.asyncio
async def test_content_type_parameters_are_ignored(image_store: ImageStore):
    record = await image_store.upload(PNG_BYTES, "Image/PNG; charset=binary", len(PNG_BYTES), filename="a.png")

    assert record.image_path.endswith(".png")


@pytest.mark.asyncio
async def test_failed_insert_removes_blob(blob_store: BlobStore, db_initializer):
    image_store = ImageStore(blob_store, FailingInsertDAL(db_initializer))

    with pytest.raises(PersistenceError) as excinfo:
        await image_store.upload(PNG_BYTES, "image/png", len(PNG_BYTES), filename="a.png")

    assert excinfo.value.message == "Upload failed"
    assert excinfo.value.detail == "database is locked"
    assert list(blob_store.base_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_failed_cleanup_keeps_persistence_error(tmp_path, db_initializer):
    blob_store = UndeletableStore(tmp_path / "undeletable")
    blob_store.ensure_directory()
    image_store = ImageStore(blob_store, FailingInsertDAL(db_initializer))

    with pytest.raises(PersistenceError):
        await image_store.upload(PNG_BYTES, "image/png", len(PNG_BYTES), filename="a.png")

    assert blob_store.delete_calls == 1


@pytest.mark.asyncio
async def test_failed_write_creates_no_record(tmp_path, image_dal: ImageDAL):
    image_store = ImageStore(FailingPutStore(tmp_path / "full"), image_dal)

    with pytest.raises(StorageError) as excinfo:
        await image_store.upload(PNG_BYTES, "image/png", len(PNG_BYTES), filename="a.png")

    assert excinfo.value.message == "Upload failed"
    assert await image_dal.list_all() == []


@pytest.mark.asyncio
async def test_unknown_size_is_capped_while_writing(image_store: ImageStore, blob_store: BlobStore, image_dal):
    with pytest.raises(ValidationError):
        await image_store.upload(b"x" * 2048, "image/png", None, filename="a.png")

    assert list(blob_store.base_dir.iterdir()) == []
    assert await image_dal.list_all() == []


@pytest.mark.asyncio
async def test_dead_pooled_connection_removes_blob(blob_store: BlobStore, db_initializer, image_dal: ImageDAL):
    image_store = ImageStore(blob_store, image_dal)
    await image_dal.list_all()
    await db_initializer.pool._idle[0].close()

    with pytest.raises(PersistenceError) as excinfo:
        await image_store.upload(PNG_BYTES, "image/png", len(PNG_BYTES), filename="a.png")

    assert excinfo.value.message == "Upload failed"
    assert list(blob_store.base_dir.iterdir()) == []
    assert await image_dal.list_all() == []

    # The broken connection was discarded, so the next upload succeeds
    record = await image_store.upload(PNG_BYTES, "image/png", len(PNG_BYTES), filename="b.png")
    assert [r.id for r in await image_dal.list_all()] == [record.id]


@pytest.mark.asyncio
async def test_unexpected_insert_error_removes_blob(blob_store: BlobStore, db_initializer):
    image_store = ImageStore(blob_store, ExplodingInsertDAL(db_initializer, KeyError("boom")))

    with pytest.raises(PersistenceError) as excinfo:
        await image_store.upload(PNG_BYTES, "image/png", len(PNG_BYTES), filename="a.png")

    assert excinfo.value.message == "Upload failed"
    assert list(blob_store.base_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_cancelled_insert_removes_blob(blob_store: BlobStore, db_initializer):
    image_store = ImageStore(blob_store, ExplodingInsertDAL(db_initializer, asyncio.CancelledError()))

    with pytest.raises(asyncio.CancelledError):
        await image_store.upload(PNG_BYTES, "image/png", len(PNG_BYTES), filename="a.png")

    assert list(blob_store.base_dir.iterdir()) == []
