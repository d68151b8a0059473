"""Ingestion pipeline: paragraphs -> clause tree -> clause store."""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from ..exceptions import IngestionIssues, IngestionPartialFailure
from ..interfaces.store import IClauseStore
from ..models.clause import Clause, Exhibit
from .docx_reader import DocxParagraphReader
from .normalizer import ParagraphInput, ParagraphNormalizer
from .tree_builder import TreeBuilder
from .validation import QualityReport, validate_tree


logger = logging.getLogger(__name__)


@dataclass
class IngestionReport:
    """Outcome of one ingestion run for a contract type."""
    contract_type: str
    clause_count: int = 0
    section_count: int = 0
    stored_count: int = 0
    deleted_count: int = 0
    exhibit_count: int = 0
    ignored_paragraphs: int = 0
    repaired_paragraphs: int = 0
    issues: IngestionIssues = field(default_factory=IngestionIssues)
    quality: Optional[QualityReport] = None
    processing_time: float = 0.0
    atomic: bool = False
    clauses: List[Clause] = field(default_factory=list)
    exhibits: List[Exhibit] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.stored_count == self.clause_count and not self.issues.has_errors()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contract_type": self.contract_type,
            "success": self.success,
            "clause_count": self.clause_count,
            "section_count": self.section_count,
            "stored_count": self.stored_count,
            "deleted_count": self.deleted_count,
            "exhibit_count": self.exhibit_count,
            "ignored_paragraphs": self.ignored_paragraphs,
            "repaired_paragraphs": self.repaired_paragraphs,
            "atomic": self.atomic,
            "processing_time": self.processing_time,
            "issues": self.issues.get_summary(),
            "quality_issues": [
                {"code": i.code, "message": i.message, "severity": i.severity}
                for i in (self.quality.issues if self.quality else [])
            ],
        }


class IngestionPipeline:
    """
    Replaces the stored clause tree of a contract type with a freshly
    decomposed one.

    Runs for the same contract type must not overlap. In the default
    best-effort mode a failing clause is reported and skipped while earlier
    inserts stay; re-running the ingestion is the recovery path. With
    ``atomic=True`` the replacement is staged in one transaction.
    """

    def __init__(
        self,
        store: IClauseStore,
        normalizer: Optional[ParagraphNormalizer] = None,
        builder: Optional[TreeBuilder] = None,
        reader: Optional[DocxParagraphReader] = None,
        atomic: bool = False,
    ):
        self._store = store
        self._normalizer = normalizer or ParagraphNormalizer()
        self._builder = builder or TreeBuilder()
        self._reader = reader or DocxParagraphReader()
        self._atomic = atomic

    def ingest_file(
        self, file_path: Union[str, Path], contract_type: str, atomic: Optional[bool] = None
    ) -> IngestionReport:
        """Read a .docx file and ingest its paragraphs."""
        paragraphs = self._reader.read(file_path)
        logger.info(f"Read {len(paragraphs)} paragraphs from {file_path}")
        return self.ingest(contract_type, paragraphs, atomic=atomic, source=str(file_path))

    def ingest(
        self,
        contract_type: str,
        paragraphs: Iterable[ParagraphInput],
        atomic: Optional[bool] = None,
        source: str = "",
    ) -> IngestionReport:
        """
        Decompose a paragraph stream and store it under a contract type.

        Args:
            contract_type: Contract family to replace.
            paragraphs: ``(style, text)`` pairs in document order.
            atomic: Override the pipeline's atomic mode for this run.
            source: Label used in issue reports.

        Returns:
            IngestionReport with counts and collected issues.

        Raises:
            IngestionPartialFailure: In atomic mode, when the swap fails.
        """
        start = time.time()
        atomic = self._atomic if atomic is None else atomic
        report = IngestionReport(contract_type=contract_type, issues=IngestionIssues(source), atomic=atomic)

        normalized = self._normalizer.normalize(paragraphs)
        report.ignored_paragraphs = normalized.ignored_count
        report.repaired_paragraphs = normalized.repaired_count
        for marker in normalized.malformed:
            report.issues.add_warning(marker)

        built = self.build(contract_type, normalized.paragraphs, report)
        if report.quality is not None and not report.quality.passed:
            for issue in report.quality.errors:
                logger.error(f"Clause tree for {contract_type} failed validation: {issue.message}")
            report.issues.add_error(IngestionPartialFailure(
                message="Clause tree failed structural validation; nothing stored",
                location=f"contract type {contract_type}",
                details={"issues": [i.code for i in report.quality.errors]},
            ))
            report.processing_time = time.time() - start
            return report

        if atomic:
            inserted = self._store.replace_atomically(contract_type, built.clauses, built.exhibits)
            report.stored_count = inserted.inserted
            report.exhibit_count = len(built.exhibits)
        else:
            report.deleted_count = self._store.delete_by_contract_type(contract_type)
            inserted = self._store.insert_clauses(built.clauses)
            report.stored_count = inserted.inserted
            for failure in inserted.failures:
                report.issues.add_error(failure)
            report.exhibit_count = self._store.replace_exhibits(contract_type, built.exhibits)

        for clause in built.clauses:
            if clause.temp_id in inserted.id_map:
                clause.id = inserted.id_map[clause.temp_id]
                if clause.parent_temp_id is not None:
                    clause.parent_id = inserted.id_map.get(clause.parent_temp_id)

        report.processing_time = time.time() - start
        logger.info(
            f"Ingested {contract_type}: {report.stored_count}/{report.clause_count} clauses, "
            f"{report.exhibit_count} exhibits, {len(report.issues.errors)} errors, "
            f"{len(report.issues.warnings)} warnings in {report.processing_time:.2f}s"
        )
        return report

    def build(self, contract_type: str, paragraphs, report: Optional[IngestionReport] = None):
        """Run the tree builder and structural validation without storing."""
        built = self._builder.build(contract_type, paragraphs)
        quality = validate_tree(contract_type, built.clauses)
        if report is not None:
            report.clause_count = len(built.clauses)
            report.section_count = built.section_count
            report.clauses = built.clauses
            report.exhibits = built.exhibits
            report.quality = quality
            for warning in built.warnings:
                report.issues.add_warning(warning)
        return built
