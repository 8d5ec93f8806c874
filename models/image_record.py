from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Sequence

DEFAULT_IMAGE_NAME = "Untitled"


@dataclass(frozen=True)
class ImageRecord:
    """In-memory representation of a row in the `images` table.

    Attributes:
        id: Primary key assigned by the database on insert.
        name: Display label for the image ("Untitled" when none was given).
        image_path: Locator of the stored file, e.g. `uploads/1700000000000-42.png`.
        created_at: ISO-8601 UTC timestamp set by the database at insertion.
    """

    id: int
    name: str
    image_path: str
    created_at: str

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "ImageRecord":
        """Build a record from an `(id, name, image_path, created_at)` row."""
        return cls(id=int(row[0]), name=row[1], image_path=row[2], created_at=row[3])

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON shape served by the API."""
        return {
            "id": self.id,
            "name": self.name,
            "imagePath": self.image_path,
            "createdAt": self.created_at,
        }
