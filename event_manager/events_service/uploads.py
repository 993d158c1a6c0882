"""
Upload acceptance for event images.

Images are buffered fully in memory and stored as raw bytes next to the
event row, so the size ceiling also bounds per-request memory.
"""

import os
from typing import Optional, Tuple

from werkzeug.datastructures import FileStorage

from event_manager.errors import ValidationError

MAX_IMAGE_BYTES = int(os.getenv("MAX_IMAGE_BYTES", 5 * 1024 * 1024))  # 5 MiB


def size_limit_message() -> str:
    """Message for an image (or whole request) over the configured ceiling."""
    if MAX_IMAGE_BYTES >= 1024 * 1024:
        limit = f"{MAX_IMAGE_BYTES // (1024 * 1024)}MB"
    else:
        limit = f"{MAX_IMAGE_BYTES // 1024}KB"
    return f"Image must be {limit} or smaller"


def read_image(file: Optional[FileStorage], required: bool = True) -> Optional[Tuple[bytes, str]]:
    """
    Validate an uploaded image and read it into memory.

    Args:
        file (FileStorage): The `image` part of a multipart request, if any.
        required (bool): Whether a missing file is an error.

    Returns:
        tuple: (raw bytes, content type), or None when no file was sent
               and `required` is False.

    Raises:
        ValidationError: Missing file, non-image content type, empty or oversize file.
    """
    if file is None or not file.filename:
        if required:
            raise ValidationError("Event image is required")
        return None

    content_type = (file.mimetype or "").lower()
    if not content_type.startswith("image/"):
        raise ValidationError("Only image files are allowed")

    # Read one byte past the ceiling so oversize uploads are detectable
    data = file.stream.read(MAX_IMAGE_BYTES + 1)
    if len(data) > MAX_IMAGE_BYTES:
        raise ValidationError(size_limit_message())
    if not data:
        raise ValidationError("Uploaded image is empty")

    return data, content_type
