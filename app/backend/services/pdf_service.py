"""
PDF processing service using pypdf.

Handles validation of uploaded PDF bytes and extraction of their plain text
for AI analysis.
"""

import io
import logging
from typing import BinaryIO

from pypdf import PdfReader
from pypdf.errors import PdfReadError

logger = logging.getLogger(__name__)


class PDFConversionError(Exception):
    """Raised when PDF text extraction fails."""

    pass


class PDFService:
    """
    Service for PDF processing operations.

    Uses pypdf to read documents and extract their text layer.
    """

    def __init__(self, max_chars: int = 12000):
        """
        Initialize the PDF service.

        Args:
            max_chars: Upper bound on the text handed to the AI model.
                Longer documents are truncated.
        """
        self.max_chars = max_chars

    @staticmethod
    def _read_bytes(file_bytes: bytes | BinaryIO) -> bytes:
        # Ensure we have bytes
        if hasattr(file_bytes, "read"):
            return file_bytes.read()
        return file_bytes

    @staticmethod
    def is_pdf(file_bytes: bytes) -> bool:
        """Check the PDF magic bytes."""
        return file_bytes[:4] == b"%PDF"

    def _open(self, file_bytes: bytes | BinaryIO) -> PdfReader:
        pdf_bytes = self._read_bytes(file_bytes)

        if not pdf_bytes:
            raise PDFConversionError("Empty PDF file provided")

        if not self.is_pdf(pdf_bytes):
            raise PDFConversionError(
                "Invalid PDF file: does not start with PDF header"
            )

        try:
            return PdfReader(io.BytesIO(pdf_bytes))
        except PdfReadError as e:
            logger.error("PDF read error: %s", e)
            raise PDFConversionError(f"Invalid or corrupted PDF file: {e}") from e
        except Exception as e:
            logger.exception("Unexpected error opening PDF")
            raise PDFConversionError(f"PDF could not be opened: {e}") from e

    def extract_text(self, file_bytes: bytes | BinaryIO) -> str:
        """
        Extract the text of every page, joined by blank lines.

        Args:
            file_bytes: PDF file as bytes or file-like object.

        Returns:
            Document text, truncated to `max_chars`.

        Raises:
            PDFConversionError: If the file is not a readable PDF.
        """
        reader = self._open(file_bytes)

        try:
            pages = [page.extract_text() or "" for page in reader.pages]
        except Exception as e:
            logger.exception("Text extraction failed")
            raise PDFConversionError(f"PDF text extraction failed: {e}") from e

        text = "\n\n".join(p.strip() for p in pages if p.strip())
        logger.info(
            "Extracted %d characters from %d page(s)",
            len(text),
            len(pages),
        )

        if len(text) > self.max_chars:
            logger.info("Truncating document text to %d characters", self.max_chars)
            text = text[: self.max_chars]
        return text


# Singleton instance for convenience
_pdf_service: PDFService | None = None


def get_pdf_service() -> PDFService:
    """Get or create the PDF service singleton."""
    global _pdf_service
    if _pdf_service is None:
        _pdf_service = PDFService()
    return _pdf_service
