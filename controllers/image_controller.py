import os
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import Request, UploadFile

from dal.image_dal import ImageDAL
from models.errors import ValidationError
from services.image_store import ImageStore

CHUNK_SIZE = 64 * 1024


def _upload_size(file: UploadFile) -> Optional[int]:
    """Return the size of the spooled upload, measuring the file if needed."""
    if file.size is not None:
        return file.size
    try:
        current = file.file.tell()
        file.file.seek(0, os.SEEK_END)
        size = file.file.tell()
        file.file.seek(current)
        return size
    except (AttributeError, OSError, ValueError):
        return None


async def _iter_upload(file: UploadFile) -> AsyncIterator[bytes]:
    await file.seek(0)
    while True:
        chunk = await file.read(CHUNK_SIZE)
        if not chunk:
            break
        yield chunk


async def upload_image(request: Request, file: Optional[UploadFile], name: Optional[str] = None) -> Dict[str, Any]:
    """Validate the multipart payload and run the upload transaction.

    Args:
        request: FastAPI Request (used to access app.state.image_store).
        file: The `image` form field, or None when the client sent none.
        name: Optional display name from the `name` form field.

    Returns:
        The created record in its JSON shape.

    Raises:
        ValidationError: If no file was supplied or it fails type/size checks.
        StorageError / PersistenceError: On storage failures (see ImageStore.upload).
    """
    if file is None or not file.filename:
        raise ValidationError("No file uploaded")

    image_store: ImageStore = request.app.state.image_store
    try:
        record = await image_store.upload(
            _iter_upload(file),
            content_type=file.content_type,
            size=_upload_size(file),
            name=name,
            filename=file.filename,
        )
    finally:
        await file.close()
    return record.to_dict()


async def list_images(request: Request) -> List[Dict[str, Any]]:
    """Return every stored image record, newest first."""
    image_dal: ImageDAL = request.app.state.image_dal
    records = await image_dal.list_all()
    return [record.to_dict() for record in records]


async def health(request: Request) -> Dict[str, Any]:
    """Report liveness plus a database connectivity probe."""
    image_dal: ImageDAL = request.app.state.image_dal
    connected = await image_dal.ping()
    timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return {
        "status": "up",
        "database": "connected" if connected else "disconnected",
        "timestamp": timestamp,
    }
