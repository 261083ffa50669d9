"""Unit tests for upload validation, extraction and the ingestion service."""

from __future__ import annotations

import io
from unittest.mock import MagicMock

import pytest
from docx import Document

from docrag.documents.models import ProcessingStatus
from docrag.errors import ExtractionError, ValidationError
from docrag.ingestion.extract import BasicExtractor, detect_kind
from docrag.ingestion.service import IncomingFile, IngestionService
from docrag.ingestion.validation import file_extension, is_allowed_type, validate_upload

S = ProcessingStatus

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _docx_bytes(*paragraphs: str) -> bytes:
    doc = Document()
    for text in paragraphs:
        doc.add_paragraph(text)
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


# ── Validation ──────────────────────────────────────────────────────────


class TestValidation:
    @pytest.mark.parametrize(
        ("filename", "content_type"),
        [
            ("report.pdf", "application/pdf"),
            ("scan.JPG", "image/jpeg"),
            ("diagram.svg", "image/svg+xml"),
            ("data.csv", "text/csv"),
            ("letter.docx", DOCX_MIME),
            ("notes.txt", "application/octet-stream"),  # extension fallback
        ],
    )
    def test_allowed(self, filename: str, content_type: str) -> None:
        assert is_allowed_type(content_type, filename)
        validate_upload(filename, content_type, 100)

    def test_unsupported_type(self) -> None:
        with pytest.raises(ValidationError, match="Unsupported type: application/x-msdownload"):
            validate_upload("setup.exe", "application/x-msdownload", 100)

    def test_unknown_type_without_mime(self) -> None:
        with pytest.raises(ValidationError, match="Unsupported type: unknown"):
            validate_upload("archive", "", 100)

    def test_size_limit(self) -> None:
        limit = 10 * 1024 * 1024
        validate_upload("big.txt", "text/plain", limit)
        with pytest.raises(ValidationError, match=r"File too large \(> 10MB\)"):
            validate_upload("big.txt", "text/plain", limit + 1)

    def test_file_extension(self) -> None:
        assert file_extension("Report.Final.PDF") == "pdf"
        assert file_extension("README") == ""


# ── Extraction ──────────────────────────────────────────────────────────


class TestExtraction:
    @pytest.mark.parametrize(
        ("content_type", "filename", "kind"),
        [
            ("application/pdf", "a.pdf", "pdf"),
            ("image/png", "a.png", "image"),
            ("image/svg+xml", "a.svg", "svg"),
            ("", "a.svg", "svg"),
            ("text/csv", "a.csv", "csv"),
            (DOCX_MIME, "a.docx", "docx"),
            ("text/plain", "a.txt", "txt"),
            ("application/octet-stream", "a.txt", "txt"),
        ],
    )
    def test_detect_kind(self, content_type: str, filename: str, kind: str) -> None:
        assert detect_kind(content_type, filename) == kind

    def test_plain_text(self) -> None:
        result = BasicExtractor().extract(b"  hello world \n", "txt")
        assert result.text == "hello world"
        assert result.kind == "txt"

    def test_csv_rows(self) -> None:
        result = BasicExtractor().extract(b"name,amount\nwidget,3\n\n", "csv")
        assert result.text == "name, amount\nwidget, 3"

    def test_svg_text(self) -> None:
        svg = b'<svg xmlns="http://www.w3.org/2000/svg"><text>Quarterly</text><text>Report</text></svg>'
        assert BasicExtractor().extract(svg, "svg").text == "Quarterly Report"

    def test_unsupported_image(self) -> None:
        with pytest.raises(ExtractionError, match="No extractor available"):
            BasicExtractor().extract(b"\x89PNG", "image")

    def test_docx_paragraphs(self) -> None:
        result = BasicExtractor().extract(_docx_bytes("Refund policy", "", "  Thirty days.  "), "docx")
        assert result.text == "Refund policy\n\nThirty days."
        assert result.kind == "docx"

    def test_corrupt_docx(self) -> None:
        with pytest.raises(ExtractionError, match="Could not read DOCX"):
            BasicExtractor().extract(b"not a zip archive", "docx")


# ── Ingestion service ───────────────────────────────────────────────────


class TestIngestionService:
    def test_batch_with_one_invalid_file(self, lifecycle) -> None:
        dispatched: list[str] = []
        service = IngestionService(lifecycle, dispatch=dispatched.append)
        files = [
            IncomingFile("a.txt", "text/plain", b"Refund policy: thirty days."),
            IncomingFile("b.exe", "application/x-msdownload", b"MZ..."),
            IncomingFile("c.csv", "text/csv", b"sku,price\nA1,10\n"),
        ]

        report = service.ingest_files(files)

        assert [d.filename for d in report.created] == ["a.txt", "c.csv"]
        assert len(report.errors) == 1
        assert report.errors[0].filename == "b.exe"
        assert report.errors[0].reason == "Unsupported type: application/x-msdownload"
        assert dispatched == [d.id for d in report.created]
        assert all(d.processing_status is S.EMBEDDING for d in report.created)
        # Rejected files never get a record.
        assert len(lifecycle.store.list()) == 2

    def test_extraction_failure_marks_record_error(self, lifecycle) -> None:
        report = IngestionService(lifecycle).ingest_files(
            [IncomingFile("photo.png", "image/png", b"\x89PNG\r\n")]
        )

        assert report.created == []
        assert "No extractor available" in report.errors[0].reason
        [record] = lifecycle.store.list()
        assert record.processing_status is S.ERROR
        assert record.error_message == report.errors[0].reason

    def test_empty_text_is_an_error(self, lifecycle) -> None:
        report = IngestionService(lifecycle).ingest_files([IncomingFile("blank.txt", "text/plain", b"   ")])
        assert report.errors[0].reason == "No text could be extracted"
        assert lifecycle.store.list()[0].processing_status is S.ERROR

    def test_unexpected_extractor_error_is_wrapped(self, lifecycle) -> None:
        extractor = MagicMock()
        extractor.extract.side_effect = RuntimeError("parser crashed")
        report = IngestionService(lifecycle, extractor).ingest_files(
            [IncomingFile("a.txt", "text/plain", b"text")]
        )
        assert report.errors[0].reason == "parser crashed"
        assert lifecycle.store.list()[0].error_message == "parser crashed"

    def test_corrupt_pdf_is_reported(self, lifecycle) -> None:
        report = IngestionService(lifecycle).ingest_files(
            [IncomingFile("broken.pdf", "application/pdf", b"this is not a pdf")]
        )
        assert report.created == []
        assert lifecycle.store.list()[0].processing_status is S.ERROR

    def test_failed_dispatch_keeps_document(self, lifecycle) -> None:
        def boom(document_id: str) -> None:
            raise RuntimeError("queue down")

        report = IngestionService(lifecycle, dispatch=boom).ingest_files(
            [IncomingFile("a.txt", "text/plain", b"hello")]
        )
        assert len(report.created) == 1
        assert lifecycle.store.get(report.created[0].id).processing_status is S.EMBEDDING

    def test_custom_size_limit(self, lifecycle) -> None:
        report = IngestionService(lifecycle, max_upload_bytes=4).ingest_files(
            [IncomingFile("a.txt", "text/plain", b"hello")]
        )
        assert report.errors[0].reason.startswith("File too large")
