"""Unit tests for the ingestion pipeline."""

from unittest.mock import Mock

import pytest
from docx import Document

from contract_assembly.exceptions import IngestionPartialFailure, MalformedMarker
from contract_assembly.ingestion import IngestionPipeline
from contract_assembly.ingestion.tree_builder import BuildResult
from contract_assembly.models.clause import Clause
from contract_assembly.models.enums import BlockType, ServiceModel
from contract_assembly.storage import DatabaseManager, SqlClauseStore


PARAGRAPHS = [
    ("Normal", "!!!! drafting note: confirm with legal"),
    ("Heading 1", "General Terms"),
    ("Heading 3", "Parties: This agreement is between {{ COMPANY_NAME }} and {{CLIENT_NAME}}."),
    ("Heading 3", "Payment"),
    ("Normal", "Payments are due within thirty days."),
    ("Normal", ""),
    ("Normal", "EXHIBIT A: Scope of Work"),
    ("Normal", "The Company will prepare plans."),
]


@pytest.fixture
def db_manager(tmp_path):
    manager = DatabaseManager(f"sqlite:///{tmp_path / 'ingest.db'}")
    manager.init_database()
    yield manager
    manager.close()


@pytest.fixture
def store(db_manager):
    return SqlClauseStore(db_manager)


@pytest.fixture
def pipeline(store):
    return IngestionPipeline(store)


class TestIngest:
    """Tests for ingesting paragraph streams."""

    def test_best_effort_ingest(self, pipeline, store):
        report = pipeline.ingest("ONE", PARAGRAPHS)

        assert report.success
        assert report.clause_count == 3
        assert report.section_count == 1
        assert report.stored_count == 3
        assert report.exhibit_count == 1
        assert report.ignored_paragraphs == 2
        assert report.repaired_paragraphs == 1
        assert [c.name for c in store.get_clauses_by_contract_type("ONE")] == [
            "General Terms", "Parties", "Payment",
        ]
        assert store.get_exhibits("ONE")[0].title == "Scope of Work"

    def test_report_clauses_carry_persisted_ids(self, pipeline):
        report = pipeline.ingest("ONE", PARAGRAPHS)
        section, parties, _ = report.clauses

        assert section.id is not None
        assert parties.parent_id == section.id

    def test_repaired_markers_are_stored(self, pipeline, store):
        pipeline.ingest("ONE", PARAGRAPHS)
        parties = next(c for c in store.get_clauses_by_contract_type("ONE") if c.name == "Parties")

        assert "{{COMPANY_NAME}}" in parties.content
        assert parties.variables_used == ["COMPANY_NAME", "CLIENT_NAME"]

    def test_reingest_replaces_previous_tree(self, pipeline, store):
        pipeline.ingest("ONE", PARAGRAPHS)

        report = pipeline.ingest("ONE", [("Heading 1", "Definitions")])

        assert report.deleted_count == 3
        assert [c.name for c in store.get_clauses_by_contract_type("ONE")] == ["Definitions"]
        assert store.get_exhibits("ONE") == []

    def test_reingesting_the_same_source_is_idempotent(self, pipeline, store):
        """Test that a second run leaves the stored clauses and exhibits unchanged."""
        paragraphs = PARAGRAPHS[:6] + [
            ("Heading 1", "CRC Obligations"),
            ("Heading 3", "Site Work: The Client retains its own contractor."),
            ("Heading 1", "California Provisions"),
            ("Heading 3", "Mechanics Liens: California lien law notices apply."),
        ] + PARAGRAPHS[6:] + [
            ("Normal", "EXHIBIT G: California Disclosures"),
            ("Normal", "Buyer acknowledges the California disclosures."),
        ]

        def snapshot():
            clauses = [
                (c.code, c.content, c.sort_order, c.conditions, c.service_model_condition)
                for c in store.get_clauses_by_contract_type("ONE")
            ]
            exhibits = [
                (e.letter, e.title, e.content, e.conditions, e.is_dynamic)
                for e in store.get_exhibits("ONE")
            ]
            return clauses, exhibits

        first_report = pipeline.ingest("ONE", paragraphs)
        first = snapshot()
        second_report = pipeline.ingest("ONE", paragraphs)

        assert snapshot() == first
        assert second_report.deleted_count == first_report.stored_count == 7
        assert any(c[3] == {"jurisdiction": "CA"} for c in first[0])
        assert any(c[4] == ServiceModel.CRC for c in first[0])
        assert [e[0] for e in first[1]] == ["A", "G"]

    def test_atomic_ingest(self, store):
        pipeline = IngestionPipeline(store, atomic=True)

        report = pipeline.ingest("ONE", PARAGRAPHS)

        assert report.atomic
        assert report.stored_count == 3
        assert report.exhibit_count == 1
        assert len(store.get_clauses_by_contract_type("ONE")) == 3

    def test_atomic_override_per_run(self, pipeline):
        report = pipeline.ingest("ONE", PARAGRAPHS, atomic=True)

        assert report.atomic

    def test_malformed_markers_are_warnings(self, pipeline):
        report = pipeline.ingest("ONE", [
            ("Heading 1", "General Terms"),
            ("Heading 3", "Parties: Between {{client name}} and the Company."),
        ])

        assert report.success
        assert len(report.issues.of_type(MalformedMarker)) == 1
        assert report.stored_count == 2


class TestValidationRefusal:
    """Tests for trees that fail structural validation."""

    @pytest.fixture
    def broken_builder(self):
        builder = Mock()
        builder.build.return_value = BuildResult(
            contract_type="ONE",
            clauses=[Clause(
                code="ONE-orphan-10", contract_type="ONE", name="Orphan", content="",
                block_type=BlockType.CLAUSE, hierarchy_level=3, sort_order=10,
                temp_id="tmp-1", parent_temp_id="tmp-99",
            )],
        )
        return builder

    def test_nothing_is_stored(self, store, broken_builder):
        IngestionPipeline(store).ingest("ONE", [("Heading 1", "General Terms")])
        pipeline = IngestionPipeline(store, builder=broken_builder)

        report = pipeline.ingest("ONE", [("Normal", "anything")])

        assert not report.success
        assert report.stored_count == 0
        assert not report.quality.passed
        assert isinstance(report.issues.errors[0], IngestionPartialFailure)
        assert report.issues.errors[0].details == {"issues": ["PARENT_MISSING"]}
        assert [c.name for c in store.get_clauses_by_contract_type("ONE")] == ["General Terms"]

    def test_to_dict_lists_quality_issues(self, store, broken_builder):
        report = IngestionPipeline(store, builder=broken_builder).ingest("ONE", [])

        data = report.to_dict()

        assert data["success"] is False
        assert data["quality_issues"][0]["code"] == "PARENT_MISSING"
        assert data["issues"]["error_count"] == 1


class TestIngestFile:
    """Tests for ingesting Word documents."""

    def test_ingest_docx(self, pipeline, store, tmp_path):
        path = tmp_path / "one.docx"
        doc = Document()
        doc.add_paragraph("General Terms", style="Heading 1")
        doc.add_paragraph("Payment", style="Heading 3")
        doc.add_paragraph("Payments are due within thirty days.")
        doc.save(str(path))

        report = pipeline.ingest_file(path, "ONE")

        assert report.stored_count == 2
        assert report.issues.source == str(path)
        payment = store.get_clauses_by_contract_type("ONE")[1]
        assert payment.content == "Payments are due within thirty days."
