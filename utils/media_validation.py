"""Validation helpers for uploaded images."""

from typing import Optional

from models.errors import ValidationError

MAX_NAME_LENGTH = 255


def normalize_content_type(content_type: Optional[str]) -> str:
    """Return the bare, lower-cased media type (parameters stripped)."""
    if not content_type:
        return ""
    return content_type.lower().split(";", 1)[0].strip()


def validate_image_upload(content_type: Optional[str], size: Optional[int], max_bytes: int) -> None:
    """Reject uploads that are not images or are outside the size limits.

    Args:
        content_type: MIME type declared by the client.
        size: Size of the payload in bytes, if known. Unknown sizes are
            enforced while the file is written instead.
        max_bytes: Largest accepted payload.

    Raises:
        ValidationError: If the type is not `image/*`, or the size is zero or too large.
    """
    if not normalize_content_type(content_type).startswith("image/"):
        raise ValidationError("Only image files are allowed!")
    if size is not None:
        if size <= 0:
            raise ValidationError("Uploaded image is empty.")
        if size > max_bytes:
            raise ValidationError("File too large")


def clean_image_name(name: Optional[str]) -> Optional[str]:
    """Strip a client-supplied name; blank names become None.

    Raises:
        ValidationError: If the name is longer than MAX_NAME_LENGTH characters.
    """
    if name is None:
        return None
    cleaned = name.strip()
    if not cleaned:
        return None
    if len(cleaned) > MAX_NAME_LENGTH:
        raise ValidationError(f"Name must be at most {MAX_NAME_LENGTH} characters.")
    return cleaned
