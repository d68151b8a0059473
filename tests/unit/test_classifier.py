"""Unit tests for hierarchy classification."""

import pytest

from contract_assembly.ingestion import HierarchyClassifier
from contract_assembly.ingestion.classifier import heading_number, is_title_case
from contract_assembly.models.document import NormalizedParagraph
from contract_assembly.models.enums import BlockType


def para(text, style="Normal", numbering=None, raw_text=None):
    """Create a normalized paragraph for classification."""
    if raw_text is None:
        raw_text = f"{numbering} {text}" if numbering else text
    return NormalizedParagraph(index=0, style=style, text=text, raw_text=raw_text, numbering=numbering)


class TestStyleClassification:
    """Tests for explicit heading styles."""

    @pytest.fixture
    def classifier(self):
        return HierarchyClassifier()

    @pytest.mark.parametrize("style,block_type,level", [
        ("Heading 1", BlockType.SECTION, 1),
        ("Heading 2", BlockType.SECTION, 2),
        ("Heading 3", BlockType.CLAUSE, 3),
        ("Heading 4", BlockType.CLAUSE, 4),
        ("Heading 5", BlockType.LIST_ITEM, 7),
        ("Heading 6", BlockType.CONSPICUOUS, 6),
        ("Heading 8", BlockType.PARAGRAPH, 5),
        ("Title", BlockType.SECTION, 1),
    ])
    def test_style_table(self, classifier, style, block_type, level):
        """Test the fixed heading style table."""
        result = classifier.classify(para("some heading text.", style=style))

        assert result.block_type == block_type
        assert result.level == level
        assert result.source == "style"

    def test_style_labels_are_matched_loosely(self):
        assert heading_number("heading  2") == 2
        assert heading_number(" HEADING 3 ") == 3
        assert heading_number("Normal") is None

    def test_style_wins_over_text_heuristics(self, classifier):
        """Test that an all-caps Heading 3 stays a clause."""
        result = classifier.classify(para("PAYMENT TERMS", style="Heading 3"))

        assert result.block_type == BlockType.CLAUSE
        assert result.level == 3


class TestTextHeuristics:
    """Tests for paragraphs with weak styles."""

    @pytest.fixture
    def classifier(self):
        return HierarchyClassifier()

    def test_section_marker(self, classifier):
        result = classifier.classify(para("SECTION 4 Payment"))

        assert (result.block_type, result.level) == (BlockType.SECTION, 1)
        assert result.source == "marker"

    def test_article_with_roman_number(self, classifier):
        result = classifier.classify(para("Article IV - Warranties"))

        assert (result.block_type, result.level) == (BlockType.SECTION, 1)

    def test_recitals_are_second_level_sections(self, classifier):
        result = classifier.classify(para("RECITALS"))

        assert (result.block_type, result.level) == (BlockType.SECTION, 2)

    def test_two_part_numbering_is_clause(self, classifier):
        result = classifier.classify(
            para("The Client shall pay all invoices within thirty days.", numbering="1.1")
        )

        assert (result.block_type, result.level) == (BlockType.CLAUSE, 3)
        assert result.source == "numbering"

    def test_three_part_numbering_is_subclause(self, classifier):
        result = classifier.classify(
            para("Late payments accrue interest at the statutory rate.", numbering="1.1.1")
        )

        assert (result.block_type, result.level) == (BlockType.CLAUSE, 4)

    def test_single_number_is_not_a_clause_marker(self, classifier):
        result = classifier.classify(
            para("The Client shall pay all invoices within thirty days.", numbering="1.")
        )

        assert result.block_type == BlockType.PARAGRAPH

    def test_short_all_caps_line_is_section(self, classifier):
        result = classifier.classify(para("GENERAL PROVISIONS"))

        assert (result.block_type, result.level) == (BlockType.SECTION, 1)
        assert result.source == "caps"

    def test_title_case_line_is_clause(self, classifier):
        result = classifier.classify(para("Scope of Work"))

        assert (result.block_type, result.level) == (BlockType.CLAUSE, 3)
        assert result.source == "title_case"

    def test_title_case_with_colon(self, classifier):
        result = classifier.classify(para("Payment Terms:"))

        assert result.block_type == BlockType.CLAUSE

    def test_sentence_is_body_paragraph(self, classifier):
        result = classifier.classify(para("The Company will deliver the Home to the Site."))

        assert (result.block_type, result.level) == (BlockType.PARAGRAPH, 5)

    def test_lowercase_roman_prefix_is_list_item(self, classifier):
        """Test roman list items detected from the raw text."""
        result = classifier.classify(para("the first obligation", numbering="ii."))

        assert (result.block_type, result.level) == (BlockType.LIST_ITEM, 7)

    def test_placeholder_only_line_is_not_a_heading(self, classifier):
        result = classifier.classify(para("{{CLIENT_NAME}}"))

        assert result.block_type == BlockType.PARAGRAPH

    def test_is_title_case(self):
        assert is_title_case("Limitation of Liability")
        assert not is_title_case("Limitation of liability")
        assert not is_title_case("1234")


class TestTablePlaceholders:
    """Tests for table placeholder detection."""

    @pytest.fixture
    def classifier(self):
        return HierarchyClassifier()

    def test_table_placeholder_forces_table(self, classifier):
        result = classifier.classify(para("{{PRICING_BREAKDOWN_TABLE}}"))

        assert result.block_type == BlockType.TABLE
        assert result.level == 5

    def test_table_placeholder_keeps_style_level(self, classifier):
        result = classifier.classify(para("{{PAYMENT_SCHEDULE_TABLE}}", style="Heading 3"))

        assert result.block_type == BlockType.TABLE
        assert result.level == 3

    def test_ordinary_placeholder_is_not_a_table(self, classifier):
        result = classifier.classify(para("The price is {{CONTRACT_VALUE}} in total."))

        assert result.block_type == BlockType.PARAGRAPH


class TestCustomClassifiers:
    """Tests for supplying classifier functions."""

    def test_custom_classifiers_run_in_order(self):
        calls = []

        def first(paragraph):
            calls.append("first")
            return None

        def second(paragraph):
            calls.append("second")
            return None

        classifier = HierarchyClassifier([first, second])
        result = classifier.classify(para("Anything"))

        assert calls == ["first", "second"]
        assert (result.block_type, result.level) == (BlockType.PARAGRAPH, 5)
        assert classifier.classifiers == [first, second]
