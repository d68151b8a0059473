"""Hierarchy classification of normalized paragraphs.

Classification is an ordered list of pure functions, each returning a
``Classification`` or ``None``. The first non-``None`` answer wins, and a
recognized table placeholder in the text always forces the table block type.
"""

import re
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Sequence

from ..models.clause import VARIABLE_PATTERN
from ..models.document import NormalizedParagraph
from ..models.enums import BlockType, TablePlaceholder


@dataclass(frozen=True)
class Classification:
    """Block type and hierarchy level assigned to a paragraph."""
    block_type: BlockType
    level: int
    source: str = "default"


Classifier = Callable[[NormalizedParagraph], Optional[Classification]]

ROMAN_LIST_PATTERN = re.compile(r"^(?:i{1,3}|iv|vi{0,3}|ix|xi{0,3}|x)\.\s+")
HEADING_STYLE_PATTERN = re.compile(r"^heading\s*(\d+)$")
MARKER_SECTION_PATTERN = re.compile(r"^(SECTION|ARTICLE|EXHIBIT)\s+(\d+[A-Z]?|[IVXLC]+|[A-Z])\b", re.IGNORECASE)
RECITAL_PATTERN = re.compile(r"^RECITALS?\b(\s+[A-Z0-9]+)?", re.IGNORECASE)
DOTTED_NUMBER_PATTERN = re.compile(r"^(\d+(?:\.\d+)+)\.?$")

SHORT_LINE_MAX = 80
MARKER_LINE_MAX = 160
TITLE_CASE_MAX_WORDS = 12
SMALL_WORDS = {
    "a", "an", "and", "as", "at", "by", "for", "in", "of", "on", "or", "the", "to", "with", "-", "&",
}

STYLE_TABLE = {
    1: (BlockType.SECTION, 1),
    2: (BlockType.SECTION, 2),
    3: (BlockType.CLAUSE, 3),
    4: (BlockType.CLAUSE, 4),
    5: (BlockType.LIST_ITEM, 7),
    6: (BlockType.CONSPICUOUS, 6),
}


def _style_key(style: str) -> str:
    return " ".join(style.strip().lower().split())


def heading_number(style: str) -> Optional[int]:
    """Return N for "Heading N" style labels, 1 for "Title"."""
    key = _style_key(style)
    if key == "title":
        return 1
    match = HEADING_STYLE_PATTERN.match(key)
    if match:
        return int(match.group(1))
    return None


def is_explicit_heading(paragraph: NormalizedParagraph) -> bool:
    return heading_number(paragraph.style) is not None


def classify_roman_list_item(paragraph: NormalizedParagraph) -> Optional[Classification]:
    """Lowercase roman numeral list prefix: i., ii., iii., ..."""
    if ROMAN_LIST_PATTERN.match(paragraph.raw_text):
        return Classification(BlockType.LIST_ITEM, 7, source="roman")
    return None


def classify_by_style(paragraph: NormalizedParagraph) -> Optional[Classification]:
    """Map explicit heading styles through the fixed style table."""
    number = heading_number(paragraph.style)
    if number is None:
        return None
    block_type, level = STYLE_TABLE.get(number, (BlockType.PARAGRAPH, 5))
    return Classification(block_type, level, source="style")


def classify_explicit_marker(paragraph: NormalizedParagraph) -> Optional[Classification]:
    """SECTION 1 / ARTICLE IV / EXHIBIT A markers, and recitals."""
    if is_explicit_heading(paragraph):
        return None
    text = paragraph.text
    if MARKER_SECTION_PATTERN.match(text) and len(text) <= MARKER_LINE_MAX:
        return Classification(BlockType.SECTION, 1, source="marker")
    if RECITAL_PATTERN.match(text) and len(text) <= SHORT_LINE_MAX:
        return Classification(BlockType.SECTION, 2, source="marker")
    return None


def classify_dotted_number(paragraph: NormalizedParagraph) -> Optional[Classification]:
    """1.1 -> clause level 3, 1.1.1 and deeper -> level 4."""
    if is_explicit_heading(paragraph) or not paragraph.numbering:
        return None
    match = DOTTED_NUMBER_PATTERN.match(paragraph.numbering)
    if not match:
        return None
    segments = match.group(1).count(".") + 1
    return Classification(BlockType.CLAUSE, 3 if segments == 2 else 4, source="numbering")


def classify_all_caps(paragraph: NormalizedParagraph) -> Optional[Classification]:
    """Short all-caps lines read as top-level headings."""
    if is_explicit_heading(paragraph):
        return None
    text = paragraph.text
    letters = [c for c in VARIABLE_PATTERN.sub("", text) if c.isalpha()]
    if len(text) <= SHORT_LINE_MAX and len(letters) >= 2 and text.upper() == text:
        return Classification(BlockType.SECTION, 1, source="caps")
    return None


def is_title_case(text: str) -> bool:
    text = VARIABLE_PATTERN.sub("", text)
    words = text.rstrip(":").split()
    if not words or len(words) > TITLE_CASE_MAX_WORDS:
        return False
    for position, word in enumerate(words):
        first = next((c for c in word if c.isalpha()), None)
        if first is None:
            continue
        if position > 0 and word.lower() in SMALL_WORDS:
            continue
        if not first.isupper():
            return False
    return any(c.isalpha() for c in text)


def classify_title_case(paragraph: NormalizedParagraph) -> Optional[Classification]:
    """Short title-case lines without a closing period, or ending with a colon."""
    if is_explicit_heading(paragraph):
        return None
    text = paragraph.text
    if len(text) > SHORT_LINE_MAX:
        return None
    if text.endswith(":") or not text.endswith("."):
        if is_title_case(text):
            return Classification(BlockType.CLAUSE, 3, source="title_case")
    return None


def classify_default(paragraph: NormalizedParagraph) -> Optional[Classification]:
    return Classification(BlockType.PARAGRAPH, 5)


DEFAULT_CLASSIFIERS: List[Classifier] = [
    classify_roman_list_item,
    classify_by_style,
    classify_explicit_marker,
    classify_dotted_number,
    classify_all_caps,
    classify_title_case,
    classify_default,
]


def has_table_placeholder(text: str) -> bool:
    names = TablePlaceholder.names()
    return any(name in names for name in VARIABLE_PATTERN.findall(text))


class HierarchyClassifier:
    """
    Maps each paragraph to a ``(block_type, level)`` pair.

    Style labels are the primary signal; text heuristics only apply to
    paragraphs with weak styles such as "Normal". Custom classifiers can be
    supplied and are evaluated in order.
    """

    def __init__(self, classifiers: Optional[Sequence[Classifier]] = None):
        self._classifiers = list(classifiers or DEFAULT_CLASSIFIERS)

    @property
    def classifiers(self) -> List[Classifier]:
        return list(self._classifiers)

    def classify(self, paragraph: NormalizedParagraph) -> Classification:
        result = None
        for classifier in self._classifiers:
            result = classifier(paragraph)
            if result is not None:
                break
        if result is None:
            result = Classification(BlockType.PARAGRAPH, 5)
        if has_table_placeholder(paragraph.text):
            result = replace(result, block_type=BlockType.TABLE, source="table")
        return result
