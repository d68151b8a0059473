"""Unit tests for the .docx paragraph reader."""

import pytest
from docx import Document

from contract_assembly.exceptions import DocumentReadError
from contract_assembly.ingestion import DocxParagraphReader
from contract_assembly.models.document import StyledParagraph


@pytest.fixture
def reader():
    return DocxParagraphReader()


@pytest.fixture
def contract_docx(tmp_path):
    """Small Word document with headings and body paragraphs."""
    path = tmp_path / "contract.docx"
    doc = Document()
    doc.add_paragraph("General Terms", style="Heading 1")
    doc.add_paragraph("Payment: The Client shall pay the fees.", style="Heading 3")
    doc.add_paragraph("Payments are due within thirty days.")
    doc.add_paragraph("")
    doc.save(str(path))
    return path


class TestDocxParagraphReader:
    """Tests for reading styled paragraphs from Word documents."""

    def test_reads_styles_and_text_in_order(self, reader, contract_docx):
        paragraphs = reader.read(contract_docx)

        assert paragraphs[:3] == [
            StyledParagraph(style="Heading 1", text="General Terms"),
            StyledParagraph(style="Heading 3", text="Payment: The Client shall pay the fees."),
            StyledParagraph(style="Normal", text="Payments are due within thirty days."),
        ]

    def test_empty_paragraphs_are_kept(self, reader, contract_docx):
        """Test that filtering empty paragraphs is left to the normalizer."""
        paragraphs = reader.read(str(contract_docx))

        assert paragraphs[-1].text == ""

    def test_missing_file(self, reader, tmp_path):
        with pytest.raises(FileNotFoundError):
            reader.read(tmp_path / "missing.docx")

    def test_unsupported_extension(self, reader, tmp_path):
        path = tmp_path / "contract.txt"
        path.write_text("General Terms")

        with pytest.raises(DocumentReadError) as exc_info:
            reader.read(path)

        assert exc_info.value.file_path == str(path)
        assert ".txt" in exc_info.value.message

    def test_corrupted_file(self, reader, tmp_path):
        path = tmp_path / "broken.docx"
        path.write_bytes(b"this is not a zip archive")

        with pytest.raises(DocumentReadError) as exc_info:
            reader.read(path)

        assert "corrupted" in exc_info.value.message
        assert "original_error" in exc_info.value.details
