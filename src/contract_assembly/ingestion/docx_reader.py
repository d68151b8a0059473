"""Word document (.docx) paragraph reader."""

from pathlib import Path
from typing import List, Union
from zipfile import BadZipFile

from docx import Document
from docx.opc.exceptions import PackageNotFoundError

from ..exceptions import DocumentReadError
from ..models.document import StyledParagraph


class DocxParagraphReader:
    """
    Reads the ``(style, text)`` paragraph stream from a Word document.

    Only the text and style label of each body paragraph are extracted;
    formatting and layout are ignored.
    """

    DEFAULT_STYLE = "Normal"

    def read(self, file_path: Union[str, Path]) -> List[StyledParagraph]:
        """
        Read all body paragraphs of a .docx file in document order.

        Args:
            file_path: Path to the .docx file.

        Returns:
            List of StyledParagraph.

        Raises:
            FileNotFoundError: If the file does not exist.
            DocumentReadError: If the file is not a readable .docx document.
        """
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        if path.suffix.lower() != ".docx":
            raise DocumentReadError(
                message=f"Unsupported file format: {path.suffix}",
                location="file extension",
                file_path=str(path),
            )

        try:
            doc = Document(str(path))
        except (BadZipFile, PackageNotFoundError) as e:
            raise DocumentReadError(
                message="Document is corrupted or not a valid Word file",
                location="file header",
                details={"original_error": str(e)},
                file_path=str(path),
            ) from e

        paragraphs = []
        for paragraph in doc.paragraphs:
            style = paragraph.style.name if paragraph.style is not None else self.DEFAULT_STYLE
            paragraphs.append(StyledParagraph(style=style or self.DEFAULT_STYLE, text=paragraph.text))
        return paragraphs
