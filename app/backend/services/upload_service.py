"""
Temporary storage for uploaded documents.

An upload is validated (PDF, non-empty, within the size limit), written to
the upload directory for the lifetime of one request, and deleted again by
`release`.
"""

import logging
import re
import time
import uuid
from dataclasses import dataclass
from pathlib import Path

from fastapi import UploadFile, status

from ..config import get_settings

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


class UploadRejected(Exception):
    """Raised when an uploaded file fails validation."""

    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST):
        self.status_code = status_code
        super().__init__(message)


@dataclass(frozen=True)
class StoredUpload:
    """A validated upload written to temporary storage."""

    path: Path
    original_name: str
    content: bytes

    @property
    def filename(self) -> str:
        return self.path.name


def _safe_name(filename: str) -> str:
    name = Path(filename).name
    return re.sub(r"[^\w.\-]", "_", name) or "document.pdf"


class UploadService:
    """Stores uploads under `upload_dir` and removes them when released."""

    def __init__(self, upload_dir: Path, max_bytes: int):
        self.upload_dir = Path(upload_dir)
        self.max_bytes = max_bytes

    async def store(self, file: UploadFile) -> StoredUpload:
        """
        Validate an uploaded file and write it to temporary storage.

        Raises:
            UploadRejected: Missing name, not a PDF, empty or too large.
        """
        if not file.filename:
            raise UploadRejected("No file uploaded")

        is_pdf_name = file.filename.lower().endswith(".pdf")
        if file.content_type != PDF_CONTENT_TYPE and not is_pdf_name:
            raise UploadRejected("Only PDF files are allowed!")

        content = await file.read(self.max_bytes + 1)
        if not content:
            raise UploadRejected("Empty file provided")
        if len(content) > self.max_bytes:
            raise UploadRejected(
                f"File exceeds the {self.max_bytes // (1024 * 1024)}MB limit",
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            )
        if content[:4] != b"%PDF":
            raise UploadRejected("Only PDF files are allowed!")

        self.upload_dir.mkdir(parents=True, exist_ok=True)
        path = self.upload_dir / f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{_safe_name(file.filename)}"
        path.write_bytes(content)

        logger.info("Stored upload %s (%d bytes)", path.name, len(content))
        return StoredUpload(path=path, original_name=file.filename, content=content)

    def release(self, upload: StoredUpload) -> None:
        """Delete the temporary file. Safe to call more than once."""
        try:
            upload.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not delete upload %s: %s", upload.path, e)
        else:
            logger.debug("Released upload %s", upload.path.name)


def get_upload_service() -> UploadService:
    """Build the upload service from settings."""
    settings = get_settings()
    return UploadService(settings.upload_dir, settings.max_upload_bytes)
