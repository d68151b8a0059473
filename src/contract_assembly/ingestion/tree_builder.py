"""Clause tree construction from a classified paragraph stream.

The builder is an explicit state machine. Its whole state lives in an
immutable ``ParserContext``; ``TreeBuilder.step`` takes a context and one
paragraph and returns the next context together with whatever nodes were
finalized by that paragraph.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional, Sequence, Tuple

from markupsafe import escape

from ..exceptions import HeaderValidationWarning
from ..models.clause import Clause, Exhibit, find_variables
from ..models.document import NormalizedParagraph
from ..models.enums import BlockType, BuilderState, ServiceModel
from .classifier import Classification, HierarchyClassifier
from .conditions import ConditionExtractor, MarkerScan


logger = logging.getLogger(__name__)

NAME_MAX = 100
HEADING_BREAK = re.compile(r":|\.(?=\s|$)")
DOTTED_PREFIX = re.compile(r"^(\d+(?:\.\d+)+)\.?$")
SLUG_PATTERN = re.compile(r"[^a-z0-9]+")

CATEGORY_KEYWORDS = [
    ("recital", ("recital", "whereas")),
    ("payment", ("payment", "fee", "price", "compensation", "invoice")),
    ("warranty", ("warrant",)),
    ("termination", ("terminat",)),
    ("exhibit", ("exhibit",)),
    ("scope", ("scope", "services", "work")),
    ("insurance", ("insurance",)),
    ("dispute", ("dispute", "arbitration", "mediation")),
    ("changes", ("change order", "changes")),
    ("schedule", ("schedule", "delivery", "timeline")),
    ("definitions", ("definition", "defined terms")),
    ("indemnification", ("indemnif",)),
    ("liability", ("liabilit",)),
]

DYNAMIC_EXHIBIT_KEYWORDS = (
    "state-specific",
    "state specific",
    "state provisions",
    "state disclosures",
    "warranty disclosure",
    "legal disclosure",
)

EXHIBIT_LEVEL_TAGS = {
    1: ('<h2 class="exhibit-section-1">', "</h2>"),
    2: ('<h3 class="exhibit-section-2">', "</h3>"),
    3: ('<h4 class="exhibit-clause">', "</h4>"),
    4: ('<h5 class="exhibit-subheader">', "</h5>"),
    5: ('<p class="exhibit-body">', "</p>"),
    6: ('<p class="exhibit-conspicuous"><strong>', "</strong></p>"),
    7: ('<li class="exhibit-list-item">', "</li>"),
}
LIST_OPEN = '<ul class="exhibit-roman-list">'
LIST_CLOSE = "</ul>"

TRAILING_EMPTY_MARKUP = re.compile(
    r"(?:<p[^>]*>\s*(?:<strong>\s*</strong>)?\s*</p>"
    r"|<li[^>]*>\s*</li>"
    r"|<ul[^>]*>\s*</ul>"
    r"|<div[^>]*>\s*</div>"
    r"|<br\s*/?>"
    r"|<p[^>]*>[\s\W_]*</p>"
    r"|\s+)$"
)


# =============================================================================
# Context
# =============================================================================

@dataclass(frozen=True)
class StackEntry:
    temp_id: str
    level: int


@dataclass(frozen=True)
class PendingNode:
    """Clause being accumulated; finalized into a ``Clause``."""
    temp_id: str
    name: str
    block_type: BlockType
    level: int
    sort_order: int
    parent_temp_id: Optional[str] = None
    parts: Tuple[str, ...] = ()
    disclosure_code: Optional[str] = None
    accepts_body: bool = True
    source_text: str = ""

    def append(self, text: str) -> "PendingNode":
        return replace(self, parts=self.parts + (text,))

    def with_disclosure(self, code: Optional[str]) -> "PendingNode":
        if code is None:
            return self
        return replace(self, disclosure_code=code, block_type=BlockType.DYNAMIC_DISCLOSURE)


@dataclass(frozen=True)
class PendingExhibit:
    """Exhibit being accumulated as HTML fragments."""
    letter: str
    title: str
    sort_order: int
    parts: Tuple[str, ...] = ()
    in_list: bool = False
    disclosure_code: Optional[str] = None
    jurisdiction: Optional[str] = None
    service_model: Optional[ServiceModel] = None

    def add(self, classification: Classification, text: str) -> "PendingExhibit":
        level = classification.level if classification.level in EXHIBIT_LEVEL_TAGS else 5
        open_tag, close_tag = EXHIBIT_LEVEL_TAGS[level]
        parts = list(self.parts)
        is_item = level == 7
        if is_item and not self.in_list:
            parts.append(LIST_OPEN)
        elif not is_item and self.in_list:
            parts.append(LIST_CLOSE)
        parts.append(f"{open_tag}{escape(text)}{close_tag}")
        return replace(self, parts=tuple(parts), in_list=is_item)


@dataclass(frozen=True)
class ParserContext:
    """
    Immutable state of the tree builder between paragraphs.

    Attributes:
        contract_type: Contract family the nodes belong to.
        state: Current state machine state.
        stack: Open (temp_id, level) pairs, levels strictly increasing.
        current_section_id: Temp id of the innermost open section.
        current_clause_id: Temp id of the open clause, if any.
        jurisdiction: Ambient jurisdiction code.
        service_model: Ambient service model.
        pending: Clause currently being accumulated.
        exhibit: Exhibit currently being accumulated.
    """
    contract_type: str
    state: BuilderState = BuilderState.NO_SECTION
    stack: Tuple[StackEntry, ...] = ()
    current_section_id: Optional[str] = None
    current_clause_id: Optional[str] = None
    jurisdiction: Optional[str] = None
    service_model: Optional[ServiceModel] = None
    section_counter: int = 0
    node_counter: int = 0
    exhibit_counter: int = 0
    pending: Optional[PendingNode] = None
    exhibit: Optional[PendingExhibit] = None

    @property
    def enclosing_id(self) -> Optional[str]:
        """Temp id that body, table and sub-clause nodes attach to."""
        if self.state is BuilderState.NO_SECTION:
            return None
        if self.state is BuilderState.IN_SECTION:
            return self.current_section_id
        # A sub-clause opened directly under a section has no clause above it.
        return self.current_clause_id or self.current_section_id

    def allocate(self) -> Tuple["ParserContext", str, int]:
        """Reserve the next temp id and sort order."""
        counter = self.node_counter + 1
        return replace(self, node_counter=counter), f"tmp-{counter}", counter * 10

    def apply_markers(self, scan: MarkerScan) -> "ParserContext":
        """Let markers in the paragraph override the ambient values."""
        context = self
        if scan.jurisdiction is not None:
            context = replace(context, jurisdiction=scan.jurisdiction)
        if scan.service_model is not None:
            context = replace(context, service_model=scan.service_model)
        return context


@dataclass
class Emitted:
    """Nodes finalized while processing one paragraph."""
    clauses: List[Clause] = field(default_factory=list)
    exhibits: List[Exhibit] = field(default_factory=list)
    warnings: List[HeaderValidationWarning] = field(default_factory=list)

    def extend(self, other: "Emitted") -> None:
        self.clauses.extend(other.clauses)
        self.exhibits.extend(other.exhibits)
        self.warnings.extend(other.warnings)


@dataclass
class BuildResult:
    """Clauses and exhibits produced from one document."""
    contract_type: str
    clauses: List[Clause] = field(default_factory=list)
    exhibits: List[Exhibit] = field(default_factory=list)
    warnings: List[HeaderValidationWarning] = field(default_factory=list)
    section_count: int = 0


# =============================================================================
# Helpers
# =============================================================================

def split_heading(text: str) -> Tuple[str, str]:
    """
    Derive a short name from header text.

    The name is cut at the first colon or sentence-ending period, at most
    100 characters. Returns ``(name, remaining_text)``.
    """
    text = text.strip()
    match = HEADING_BREAK.search(text)
    if match and 0 < match.start() <= NAME_MAX:
        return text[:match.start()].strip(), text[match.end():].strip()
    if len(text) <= NAME_MAX:
        return text, ""
    return text[:NAME_MAX].rstrip(), text


def make_code(contract_type: str, name: str, block_type: BlockType, sort_order: int) -> str:
    slug = SLUG_PATTERN.sub("-", name.lower()).strip("-")[:40].strip("-")
    if not slug:
        slug = block_type.value.replace("_", "-")
    return f"{contract_type}-{slug}-{sort_order}"


def categorize(name: str, content: str) -> str:
    text = (name or content[:100]).lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category
    return "general"


def clean_exhibit_content(html: str) -> str:
    """Trim trailing empty markup and close any unterminated list."""
    previous = None
    while previous != html:
        previous = html
        html = TRAILING_EMPTY_MARKUP.sub("", html)
    unclosed = html.count("<ul") - html.count(LIST_CLOSE)
    if unclosed > 0:
        html += LIST_CLOSE * unclosed
    return html


# =============================================================================
# Builder
# =============================================================================

class TreeBuilder:
    """
    Single-pass state machine turning normalized paragraphs into a
    parent-linked clause tree plus a flat list of exhibits.
    """

    def __init__(
        self,
        classifier: Optional[HierarchyClassifier] = None,
        extractor: Optional[ConditionExtractor] = None,
        dynamic_exhibit_letters: Sequence[str] = ("G", "H"),
    ):
        self._classifier = classifier or HierarchyClassifier()
        self._extractor = extractor or ConditionExtractor()
        self._dynamic_letters = {letter.upper() for letter in dynamic_exhibit_letters}

    def start(self, contract_type: str) -> ParserContext:
        return ParserContext(contract_type=contract_type)

    def build(self, contract_type: str, paragraphs: Iterable[NormalizedParagraph]) -> BuildResult:
        """Run the state machine over a whole document."""
        context = self.start(contract_type)
        emitted = Emitted()
        for paragraph in paragraphs:
            context, step_emitted = self.step(context, paragraph)
            emitted.extend(step_emitted)
        context, tail = self.finish(context)
        emitted.extend(tail)

        return BuildResult(
            contract_type=contract_type,
            clauses=emitted.clauses,
            exhibits=self._merge_exhibits(emitted.exhibits),
            warnings=emitted.warnings,
            section_count=context.section_counter,
        )

    def step(
        self, context: ParserContext, paragraph: NormalizedParagraph
    ) -> Tuple[ParserContext, Emitted]:
        """Process one paragraph and return the next context."""
        scan = self._extractor.scan(paragraph.text)
        cleaned = replace(paragraph, text=scan.cleaned_text)

        if scan.exhibit is not None:
            return self._on_exhibit_header(context, scan, paragraph)
        if context.exhibit is not None:
            return self._on_exhibit_body(context, scan, cleaned), Emitted()

        classification = self._classifier.classify(cleaned)
        if classification.block_type is BlockType.SECTION:
            return self._on_section(context, scan, classification)
        if classification.block_type is BlockType.CLAUSE:
            return self._on_clause(context, scan, cleaned, classification)
        if classification.block_type is BlockType.TABLE:
            return self._on_table(context, scan, classification)
        return self._on_body(context, scan, classification)

    def finish(self, context: ParserContext) -> Tuple[ParserContext, Emitted]:
        """Finalize whatever is still buffered."""
        emitted = Emitted()
        context = self._finalize_pending(context, emitted)
        context = self._finalize_exhibit(context, emitted)
        return context, emitted

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def _on_section(
        self, context: ParserContext, scan: MarkerScan, classification: Classification
    ) -> Tuple[ParserContext, Emitted]:
        emitted = Emitted()
        context = self._finalize_pending(context, emitted)
        level = classification.level
        if level == 1:
            context = replace(context, service_model=None)
        context = context.apply_markers(scan)

        name, remainder = split_heading(scan.cleaned_text)
        stack = tuple(entry for entry in context.stack if entry.level < level)
        parent = stack[-1].temp_id if stack else None
        context, temp_id, sort_order = context.allocate()

        node = PendingNode(
            temp_id=temp_id,
            name=name,
            block_type=BlockType.SECTION,
            level=level,
            sort_order=sort_order,
            parent_temp_id=parent,
            parts=(remainder,) if remainder else (),
            source_text=scan.cleaned_text,
        ).with_disclosure(scan.disclosure_code)

        logger.debug(f"Section {temp_id} (level {level}): {name!r}")
        context = replace(
            context,
            state=BuilderState.IN_SECTION,
            stack=stack + (StackEntry(temp_id, level),),
            current_section_id=temp_id,
            current_clause_id=None,
            section_counter=context.section_counter + 1,
            pending=node,
        )
        return context, emitted

    def _on_clause(
        self,
        context: ParserContext,
        scan: MarkerScan,
        paragraph: NormalizedParagraph,
        classification: Classification,
    ) -> Tuple[ParserContext, Emitted]:
        emitted = Emitted()
        context = self._finalize_pending(context, emitted)
        context = context.apply_markers(scan)

        number = None
        if paragraph.numbering:
            match = DOTTED_PREFIX.match(paragraph.numbering)
            if match:
                number = match.group(1)
        segments = number.count(".") + 1 if number else 0
        is_subclause = segments >= 3 or classification.level >= 4
        level = classification.level

        if is_subclause:
            parent = context.enclosing_id
            state = BuilderState.IN_SUBCLAUSE
        else:
            parent = context.current_section_id
            state = BuilderState.IN_CLAUSE

        name, remainder = split_heading(scan.cleaned_text)
        context, temp_id, sort_order = context.allocate()
        node = PendingNode(
            temp_id=temp_id,
            name=name,
            block_type=BlockType.CLAUSE,
            level=level,
            sort_order=sort_order,
            parent_temp_id=parent,
            parts=(remainder,) if remainder else (),
            source_text=scan.cleaned_text,
        ).with_disclosure(scan.disclosure_code)

        stack = tuple(entry for entry in context.stack if entry.level < level)
        logger.debug(f"{'Sub-clause' if is_subclause else 'Clause'} {temp_id} {number or ''}: {name!r}")
        context = replace(
            context,
            state=state,
            stack=stack + (StackEntry(temp_id, level),),
            current_clause_id=context.current_clause_id if is_subclause else temp_id,
            pending=node,
        )
        return context, emitted

    def _on_table(
        self, context: ParserContext, scan: MarkerScan, classification: Classification
    ) -> Tuple[ParserContext, Emitted]:
        emitted = Emitted()
        context = self._finalize_pending(context, emitted)
        context = context.apply_markers(scan)
        context, temp_id, sort_order = context.allocate()
        node = PendingNode(
            temp_id=temp_id,
            name="",
            block_type=BlockType.TABLE,
            level=max(classification.level, 5),
            sort_order=sort_order,
            parent_temp_id=context.enclosing_id,
            parts=(scan.cleaned_text,),
            accepts_body=False,
            source_text=scan.cleaned_text,
        )
        return replace(context, pending=node), emitted

    def _on_body(
        self, context: ParserContext, scan: MarkerScan, classification: Classification
    ) -> Tuple[ParserContext, Emitted]:
        emitted = Emitted()
        pending = context.pending
        if pending is not None and pending.accepts_body:
            context = context.apply_markers(scan)
            pending = pending.append(scan.cleaned_text)
        else:
            context = self._finalize_pending(context, emitted).apply_markers(scan)
            context, temp_id, sort_order = context.allocate()
            pending = PendingNode(
                temp_id=temp_id,
                name="",
                block_type=classification.block_type,
                level=classification.level,
                sort_order=sort_order,
                parent_temp_id=context.enclosing_id,
                parts=(scan.cleaned_text,),
                source_text=scan.cleaned_text,
            )
        return replace(context, pending=pending.with_disclosure(scan.disclosure_code)), emitted

    def _on_exhibit_header(
        self, context: ParserContext, scan: MarkerScan, paragraph: NormalizedParagraph
    ) -> Tuple[ParserContext, Emitted]:
        header = scan.exhibit
        emitted = Emitted()

        if context.exhibit is not None and context.exhibit.letter == header.letter:
            # Same letter: continuation of the open exhibit, not a new one.
            exhibit = context.exhibit.add(Classification(BlockType.SECTION, 2), header.text)
            if scan.disclosure_code and exhibit.disclosure_code is None:
                exhibit = replace(exhibit, disclosure_code=scan.disclosure_code)
            return replace(context, exhibit=exhibit), emitted

        context = self._finalize_pending(context, emitted)
        context = self._finalize_exhibit(context, emitted)

        if not header.strict:
            logger.warning(f"Exhibit header failed strict validation, splitting anyway: {header.text!r}")
            emitted.warnings.append(HeaderValidationWarning(
                message="Exhibit header matched loose pattern only",
                location=f"paragraph {paragraph.index}",
                header_text=header.text,
            ))

        context = replace(context, jurisdiction=None, service_model=None).apply_markers(scan)
        counter = context.exhibit_counter + 1
        exhibit = PendingExhibit(
            letter=header.letter,
            title=header.title,
            sort_order=counter * 10,
            disclosure_code=scan.disclosure_code,
            jurisdiction=context.jurisdiction,
            service_model=context.service_model,
        )
        logger.debug(f"Exhibit {header.letter}: {header.title!r}")
        context = replace(
            context,
            state=BuilderState.NO_SECTION,
            stack=(),
            current_section_id=None,
            current_clause_id=None,
            exhibit_counter=counter,
            exhibit=exhibit,
        )
        return context, emitted

    def _on_exhibit_body(
        self, context: ParserContext, scan: MarkerScan, paragraph: NormalizedParagraph
    ) -> ParserContext:
        context = context.apply_markers(scan)
        classification = self._classifier.classify(paragraph)
        exhibit = context.exhibit.add(classification, scan.cleaned_text)
        if scan.disclosure_code and exhibit.disclosure_code is None:
            exhibit = replace(exhibit, disclosure_code=scan.disclosure_code)
        return replace(context, exhibit=exhibit)

    # -------------------------------------------------------------------------
    # Finalization
    # -------------------------------------------------------------------------

    def _finalize_pending(self, context: ParserContext, emitted: Emitted) -> ParserContext:
        node = context.pending
        if node is None:
            return context

        content = "\n\n".join(part for part in node.parts if part).strip()
        clause = Clause(
            code=make_code(context.contract_type, node.name, node.block_type, node.sort_order),
            contract_type=context.contract_type,
            name=node.name,
            content=content,
            block_type=node.block_type,
            hierarchy_level=node.level,
            sort_order=node.sort_order,
            temp_id=node.temp_id,
            parent_temp_id=node.parent_temp_id,
            variables_used=find_variables(node.name, content),
            conditions={"jurisdiction": context.jurisdiction} if context.jurisdiction else {},
            disclosure_code=node.disclosure_code,
            service_model_condition=context.service_model,
            category=categorize(node.name, content),
            source_text=node.source_text,
        )
        emitted.clauses.append(clause)
        return replace(context, pending=None)

    def _finalize_exhibit(self, context: ParserContext, emitted: Emitted) -> ParserContext:
        pending = context.exhibit
        if pending is None:
            return context

        html = "".join(pending.parts)
        if pending.in_list:
            html += LIST_CLOSE
        content = clean_exhibit_content(html)

        searchable = f"{pending.title} {content}".lower()
        is_dynamic = (
            pending.letter in self._dynamic_letters
            or any(keyword in searchable for keyword in DYNAMIC_EXHIBIT_KEYWORDS)
            or pending.disclosure_code is not None
            or pending.jurisdiction is not None
        )
        emitted.exhibits.append(Exhibit(
            letter=pending.letter,
            title=pending.title,
            content=content,
            contract_type=context.contract_type,
            sort_order=pending.sort_order,
            is_dynamic=is_dynamic,
            disclosure_code=pending.disclosure_code,
            conditions={"jurisdiction": pending.jurisdiction} if pending.jurisdiction else {},
            service_model_condition=pending.service_model,
            variables_used=find_variables(pending.title, content),
        ))
        return replace(context, exhibit=None)

    @staticmethod
    def _merge_exhibits(exhibits: List[Exhibit]) -> List[Exhibit]:
        """Fold a letter seen again later in the document into its first exhibit."""
        merged: List[Exhibit] = []
        by_letter = {}
        for exhibit in exhibits:
            first = by_letter.get(exhibit.letter)
            if first is None:
                by_letter[exhibit.letter] = exhibit
                merged.append(exhibit)
                continue
            first.content += exhibit.content
            first.is_dynamic = first.is_dynamic or exhibit.is_dynamic
            first.disclosure_code = first.disclosure_code or exhibit.disclosure_code
            first.variables_used = find_variables(first.title, first.content)
        return sorted(merged, key=lambda e: e.letter)
