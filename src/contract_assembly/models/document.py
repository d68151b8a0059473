"""Paragraph stream data models for the contract assembly system."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class StyledParagraph:
    """
    Raw paragraph as produced by a text-extraction component.

    Attributes:
        style: Style label of the paragraph ("Heading 1", "Normal", ...).
        text: Plain text content.
    """
    style: str
    text: str


@dataclass(frozen=True)
class NormalizedParagraph:
    """
    Cleaned paragraph ready for classification.

    The manual numbering prefix removed from ``text`` is preserved in
    ``numbering`` so that numeric clause markers can still be recognized.
    """
    index: int
    style: str
    text: str
    raw_text: str
    numbering: Optional[str] = None

    @property
    def numbered_text(self) -> str:
        """Text with its numbering prefix restored."""
        if self.numbering:
            return f"{self.numbering} {self.text}"
        return self.text
