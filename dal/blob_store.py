"""Local-directory blob store for uploaded image files.

Files are written under a single upload directory with generated names
(`<epoch-millis>-<random><ext>`) and addressed by locators of the form
`uploads/<name>`, which double as the static URL path.
"""

from __future__ import annotations

import enum
import logging
import re
import secrets
import time
from pathlib import Path
from typing import AsyncIterator, Optional, Union

import aiofiles
import aiofiles.os

from models.errors import StorageError, ValidationError

LOGGER = logging.getLogger(__name__)

_EXTENSION_RE = re.compile(r"^\.[a-z0-9]{1,10}$")

BlobSource = Union[bytes, AsyncIterator[bytes]]


class DeleteOutcome(enum.Enum):
    DELETED = "deleted"
    NOT_FOUND = "not_found"
    IO_ERROR = "io_error"


class BlobStore:
    """Write, resolve and delete uploaded files in a local directory.

    Args:
        base_dir: Directory that holds the files; see `ensure_directory`.
        url_prefix: First segment of every locator; also the static mount path.
        max_name_attempts: Attempts at generating a fresh name before giving up.
    """

    def __init__(self, base_dir: Path | str, url_prefix: str = "uploads", max_name_attempts: int = 5) -> None:
        self.base_dir = Path(base_dir)
        self.url_prefix = url_prefix.strip("/")
        self.max_name_attempts = max_name_attempts

    def ensure_directory(self) -> None:
        """Create the upload directory if it is missing."""
        self.base_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _extension(filename_hint: Optional[str]) -> str:
        suffix = Path(filename_hint or "").suffix.lower()
        return suffix if _EXTENSION_RE.match(suffix) else ""

    @staticmethod
    def _unique_name(ext: str) -> str:
        return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{ext}"

    def locator_for(self, filename: str) -> str:
        return f"{self.url_prefix}/{filename}"

    def resolve(self, locator: str) -> Path:
        """Map a locator back to its path inside the upload directory.

        Raises:
            ValueError: If the locator has a foreign prefix or is not a plain file name.
        """
        prefix, sep, name = locator.partition("/")
        if not sep or prefix != self.url_prefix or not name or "/" in name or "\\" in name or name in (".", ".."):
            raise ValueError(f"Invalid locator: {locator!r}")
        return self.base_dir / name

    async def exists(self, locator: str) -> bool:
        try:
            path = self.resolve(locator)
        except ValueError:
            return False
        return await aiofiles.os.path.isfile(path)

    async def put(self, data: BlobSource, filename_hint: Optional[str] = None, max_bytes: Optional[int] = None) -> str:
        """Write `data` under a new unique name and return its locator.

        Args:
            data: Raw bytes, or an async iterator yielding byte chunks.
            filename_hint: Original client file name; only its extension is kept.
            max_bytes: Optional cap; exceeding it removes the partial file.

        Returns:
            Locator string such as `uploads/1700000000000-123456789.png`.

        Raises:
            ValidationError: If the stream is larger than `max_bytes`.
            StorageError: If no unique name could be claimed or the write fails.
        """
        ext = self._extension(filename_hint)

        path: Optional[Path] = None
        handle = None
        for _ in range(self.max_name_attempts):
            candidate = self.base_dir / self._unique_name(ext)
            try:
                # Exclusive create: never overwrite an existing blob
                handle = await aiofiles.open(candidate, "xb")
            except FileExistsError:
                continue
            except OSError as exc:
                LOGGER.error("Failed to create blob in %s: %s", self.base_dir, exc)
                raise StorageError("Failed to store file", detail=str(exc)) from exc
            path = candidate
            break

        if path is None or handle is None:
            raise StorageError("Failed to store file", detail="could not allocate a unique file name")

        written = 0
        try:
            try:
                if isinstance(data, (bytes, bytearray, memoryview)):
                    written = len(data)
                    if max_bytes is not None and written > max_bytes:
                        raise ValidationError("File too large")
                    await handle.write(data)
                else:
                    async for chunk in data:
                        written += len(chunk)
                        if max_bytes is not None and written > max_bytes:
                            raise ValidationError("File too large")
                        await handle.write(chunk)
            finally:
                await handle.close()
        except ValidationError:
            await self._discard(path)
            raise
        except OSError as exc:
            LOGGER.error("Failed to write blob %s: %s", path, exc)
            await self._discard(path)
            raise StorageError("Failed to store file", detail=str(exc)) from exc
        except BaseException:
            await self._discard(path)
            raise

        locator = self.locator_for(path.name)
        LOGGER.debug("Stored %d bytes at %s", written, locator)
        return locator

    async def delete(self, locator: str) -> DeleteOutcome:
        """Remove the blob at `locator`. Failures are logged, never raised."""
        try:
            path = self.resolve(locator)
        except ValueError:
            LOGGER.error("Refusing to delete invalid locator %r", locator)
            return DeleteOutcome.IO_ERROR

        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            LOGGER.warning("Blob %s was already missing", locator)
            return DeleteOutcome.NOT_FOUND
        except OSError as exc:
            LOGGER.error("Error deleting blob %s: %s", locator, exc)
            return DeleteOutcome.IO_ERROR
        return DeleteOutcome.DELETED

    async def _discard(self, path: Path) -> None:
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            LOGGER.error("Error removing partial blob %s: %s", path, exc)
