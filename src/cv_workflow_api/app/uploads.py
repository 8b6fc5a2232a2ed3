from __future__ import annotations

import logging
from pathlib import PurePath

from .errors import UploadRejectedError
from .models import DOCX_CONTENT_TYPE, UploadedInput

logger = logging.getLogger(__name__)

ALLOWED_MEDIA_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        DOCX_CONTENT_TYPE,
    }
)
ALLOWED_EXTENSIONS = frozenset({".pdf", ".doc", ".docx"})


def validate_upload(
    *,
    content: bytes | None,
    media_type: str | None,
    original_name: str | None,
    max_file_size: int,
) -> UploadedInput:
    """Check an incoming upload and freeze it into an ``UploadedInput``.

    Both the declared media type and the file extension must be accepted;
    either alone is not enough.
    """
    if content is None or not original_name:
        raise UploadRejectedError("NO_FILE", "No file uploaded")

    extension = PurePath(original_name).suffix.lower()
    normalized_type = (media_type or "").split(";", 1)[0].strip().lower()
    if normalized_type not in ALLOWED_MEDIA_TYPES or extension not in ALLOWED_EXTENSIONS:
        logger.info(
            "upload event=rejected reason=invalid_format name=%s media_type=%s",
            original_name,
            normalized_type,
        )
        raise UploadRejectedError(
            "INVALID_FORMAT",
            "Invalid file format. Only PDF, DOC, and DOCX files are supported.",
        )

    if len(content) > max_file_size:
        logger.info(
            "upload event=rejected reason=too_large name=%s size=%d limit=%d",
            original_name,
            len(content),
            max_file_size,
        )
        raise UploadRejectedError(
            "FILE_TOO_LARGE",
            f"File exceeds the maximum allowed size of {max_file_size} bytes.",
            status_code=413,
        )

    return UploadedInput(
        content=content,
        media_type=normalized_type,
        original_name=original_name,
    )
