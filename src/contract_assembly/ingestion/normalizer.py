"""Paragraph normalization for contract ingestion."""

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from ..config.models import MarkerRepair
from ..exceptions import MalformedMarker
from ..models.document import NormalizedParagraph, StyledParagraph


logger = logging.getLogger(__name__)

IGNORE_PATTERN = re.compile(r"^!!!!")
PREFIX_STRIP_PATTERN = re.compile(r"^(\d+(?:\.\d+)*\.?|[a-z]\.|[ivx]+\.)\s+", re.IGNORECASE)

VALID_VARIABLE = re.compile(r"\{\{[A-Z0-9_]+\}\}")
VALID_DISCLOSURE = re.compile(r"\[STATE_DISCLOSURE:[A-Z0-9_]+\]")
TAG_LIKE = re.compile(r"\{\{[^{}]*\}\}|\{\{[^{}]*\}|\{[^{}]*\}\}|\[\s*STATE[_ ]DISCLOSURE[^\]]*\]", re.IGNORECASE)

DEFAULT_REPAIRS = [
    MarkerRepair(
        id="padded_variable",
        pattern=r"\{\{\s*([A-Z0-9_]+)\s*\}\}",
        replacement=r"{{\1}}",
        description="{{ NAME }} -> {{NAME}}",
    ),
    MarkerRepair(
        id="unclosed_variable",
        pattern=r"\{\{([A-Z0-9_]+)\}(?!\})",
        replacement=r"{{\1}}",
        description="{{NAME} -> {{NAME}}",
    ),
    MarkerRepair(
        id="unopened_variable",
        pattern=r"(?<!\{)\{([A-Z0-9_]+)\}\}",
        replacement=r"{{\1}}",
        description="{NAME}} -> {{NAME}}",
    ),
]

DISCLOSURE_REPAIR = re.compile(r"\[\s*STATE[_ ]DISCLOSURE\s*:\s*([A-Za-z0-9_]+)\s*\]", re.IGNORECASE)

ParagraphInput = Union[StyledParagraph, Tuple[str, str]]


@dataclass
class NormalizationResult:
    """Output of the paragraph normalizer."""
    paragraphs: List[NormalizedParagraph] = field(default_factory=list)
    malformed: List[MalformedMarker] = field(default_factory=list)
    ignored_count: int = 0
    repaired_count: int = 0


class ParagraphNormalizer:
    """
    Converts a raw styled-paragraph stream into a cleaned sequence.

    Author notes (``!!!!``) and empty paragraphs are dropped, manual
    numbering is split off into ``numbering``, and known-malformed markers
    are repaired. Tag-like constructs that cannot be repaired are kept as
    literal text and reported.
    """

    def __init__(self, repairs: Optional[Sequence[MarkerRepair]] = None):
        """
        Args:
            repairs: Extra substitutions applied after the built-in ones.
        """
        self._repairs = list(DEFAULT_REPAIRS) + [r for r in (repairs or []) if r.enabled]

    def normalize(self, paragraphs: Iterable[ParagraphInput]) -> NormalizationResult:
        result = NormalizationResult()
        index = 0
        for item in paragraphs:
            style, text = self._unpack(item)
            text = (text or "").strip()
            if not text or IGNORE_PATTERN.match(text):
                result.ignored_count += 1
                continue

            repaired = self.repair_markers(text)
            if repaired != text:
                result.repaired_count += 1
                logger.debug(f"Repaired markers in paragraph {index}: {text!r} -> {repaired!r}")

            for fragment in self.find_malformed(repaired):
                logger.warning(f"Malformed marker left as literal text at paragraph {index}: {fragment}")
                result.malformed.append(MalformedMarker(
                    message="Tag-like text does not match marker syntax",
                    location=f"paragraph {index}",
                    details={"text": repaired},
                    fragment=fragment,
                ))

            numbering, body = self.strip_numbering(repaired)
            result.paragraphs.append(NormalizedParagraph(
                index=index,
                style=style or "",
                text=body,
                raw_text=repaired,
                numbering=numbering,
            ))
            index += 1
        return result

    def repair_markers(self, text: str) -> str:
        """Apply the known-malformed -> corrected substitutions."""
        for repair in self._repairs:
            text = repair.compiled.sub(repair.replacement, text)
        return DISCLOSURE_REPAIR.sub(lambda m: f"[STATE_DISCLOSURE:{m.group(1).upper()}]", text)

    @staticmethod
    def find_malformed(text: str) -> List[str]:
        """Return tag-like fragments that are not valid markers."""
        fragments = []
        for match in TAG_LIKE.finditer(text):
            fragment = match.group(0)
            if not (VALID_VARIABLE.fullmatch(fragment) or VALID_DISCLOSURE.fullmatch(fragment)):
                fragments.append(fragment)
        return fragments

    @staticmethod
    def strip_numbering(text: str) -> Tuple[Optional[str], str]:
        """Split a leading manual numbering prefix from the text."""
        match = PREFIX_STRIP_PATTERN.match(text)
        if not match:
            return None, text
        body = text[match.end():].strip()
        if not body:
            return None, text
        return match.group(1), body

    @staticmethod
    def _unpack(item: ParagraphInput) -> Tuple[str, str]:
        if isinstance(item, StyledParagraph):
            return item.style, item.text
        style, text = item
        return style, text
