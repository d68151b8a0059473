"""Document decomposition: normalization, classification and tree building."""

from .classifier import (
    Classification,
    DEFAULT_CLASSIFIERS,
    HierarchyClassifier,
)
from .conditions import ConditionExtractor, ExhibitHeader, MarkerScan
from .docx_reader import DocxParagraphReader
from .normalizer import NormalizationResult, ParagraphNormalizer
from .pipeline import IngestionPipeline, IngestionReport
from .tree_builder import BuildResult, ParserContext, PendingNode, TreeBuilder
from .validation import QualityIssue, QualityReport, validate_tree

__all__ = [
    "Classification",
    "DEFAULT_CLASSIFIERS",
    "HierarchyClassifier",
    "ConditionExtractor",
    "ExhibitHeader",
    "MarkerScan",
    "DocxParagraphReader",
    "NormalizationResult",
    "ParagraphNormalizer",
    "IngestionPipeline",
    "IngestionReport",
    "BuildResult",
    "ParserContext",
    "PendingNode",
    "TreeBuilder",
    "QualityIssue",
    "QualityReport",
    "validate_tree",
]
