"""Tests for PDF service."""

import io

import pytest

from app.backend.services.pdf_service import PDFConversionError, PDFService


class TestPDFService:
    """Tests for PDFService class."""

    def test_init_default_values(self):
        """Test PDFService initializes with default values."""
        service = PDFService()
        assert service.max_chars == 12000

    def test_extract_text(self, sample_pdf_bytes: bytes):
        service = PDFService()
        assert "Test" in service.extract_text(sample_pdf_bytes)

    def test_extract_text_from_file_object(self, sample_pdf_bytes: bytes):
        service = PDFService()
        assert "Test" in service.extract_text(io.BytesIO(sample_pdf_bytes))

    def test_extract_text_truncates(self, sample_pdf_bytes: bytes):
        service = PDFService(max_chars=2)
        assert len(service.extract_text(sample_pdf_bytes)) == 2

    def test_empty_file_raises_error(self):
        """Test that empty file raises PDFConversionError."""
        service = PDFService()
        with pytest.raises(PDFConversionError) as exc_info:
            service.extract_text(b"")
        assert "Empty" in str(exc_info.value)

    def test_invalid_pdf_raises_error(self, invalid_file_bytes: bytes):
        """Test that non-PDF content raises PDFConversionError."""
        service = PDFService()
        with pytest.raises(PDFConversionError) as exc_info:
            service.extract_text(invalid_file_bytes)
        assert "does not start" in str(exc_info.value)

    def test_truncated_pdf_raises_error(self):
        service = PDFService()
        with pytest.raises(PDFConversionError):
            service.extract_text(b"%PDF-1.4\nthis is not really a pdf")

    def test_is_pdf(self, sample_pdf_bytes: bytes):
        assert PDFService.is_pdf(sample_pdf_bytes)
        assert not PDFService.is_pdf(b"PK\x03\x04")
