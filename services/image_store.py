"""Upload transaction: save the image file, then record it in the database.

The file system and the database share no commit protocol, so a failed
insert is compensated by deleting the file that was just written. The
compensation runs exactly once and is never retried; its outcome is only
logged, and the caller always sees the original failure.
"""

from __future__ import annotations

import logging
from typing import Optional

from dal.blob_store import BlobSource, BlobStore, DeleteOutcome
from dal.image_dal import ImageDAL
from models.errors import PersistenceError, StorageError
from models.image_record import DEFAULT_IMAGE_NAME, ImageRecord
from utils.media_validation import clean_image_name, validate_image_upload
from utils.settings import DEFAULT_MAX_UPLOAD_BYTES

LOGGER = logging.getLogger(__name__)


class ImageStore:
    """Coordinate the blob store and the image table for uploads.

    Args:
        blob_store: Where uploaded bytes are written.
        image_dal: Record store for image metadata.
        max_upload_bytes: Largest accepted upload.
    """

    def __init__(self, blob_store: BlobStore, image_dal: ImageDAL, max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES) -> None:
        self.blob_store = blob_store
        self.image_dal = image_dal
        self.max_upload_bytes = max_upload_bytes

    async def upload(
        self,
        data: BlobSource,
        content_type: Optional[str],
        size: Optional[int],
        name: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> ImageRecord:
        """Store an uploaded image and return its freshly-read record.

        Args:
            data: Image bytes, or an async iterator of byte chunks.
            content_type: MIME type declared by the client.
            size: Payload size in bytes, if known.
            name: Optional display name; blank names become "Untitled".
            filename: Original client file name, used for its extension.

        Returns:
            The ImageRecord as stored in the database.

        Raises:
            ValidationError: Bad type, size or name. Nothing is written.
            StorageError: The file could not be written. No record is created.
            PersistenceError: The insert failed. The written file is removed.
        """
        validate_image_upload(content_type, size, self.max_upload_bytes)
        display_name = clean_image_name(name) or DEFAULT_IMAGE_NAME

        try:
            locator = await self.blob_store.put(data, filename, max_bytes=self.max_upload_bytes)
        except StorageError as exc:
            raise StorageError("Upload failed", detail=exc.detail or exc.message) from exc

        try:
            record = await self.image_dal.insert(display_name, locator)
        except BaseException as exc:
            await self._remove_orphan(locator)
            if isinstance(exc, PersistenceError):
                raise PersistenceError("Upload failed", detail=exc.detail or exc.message) from exc
            if isinstance(exc, Exception):
                LOGGER.error("Unexpected error inserting %s: %s", locator, exc)
                raise PersistenceError("Upload failed", detail=str(exc)) from exc
            raise

        # Re-read so server-computed fields come from the stored row
        try:
            fresh = await self.image_dal.get_by_id(record.id)
        except PersistenceError:
            LOGGER.warning("Could not re-read image %s; returning inserted row", record.id)
            fresh = None

        LOGGER.info("Stored image %s at %s", record.id, locator)
        return fresh or record

    async def _remove_orphan(self, locator: str) -> None:
        """Delete the file of a failed upload; the outcome is only logged."""
        outcome = await self.blob_store.delete(locator)
        if outcome is not DeleteOutcome.DELETED:
            LOGGER.error("Could not remove %s after failed insert (%s)", locator, outcome.value)
