"""Integration tests for the end-to-end contract pipeline."""

import json

import pytest

from contract_assembly.pipeline import ContractPipeline, PipelineConfig
from contract_assembly.storage import HomeDesignModel, ProjectModel, ProjectUnitModel


ONE_PARAGRAPHS = [
    ("Normal", "!!!! reviewer: keep recitals short"),
    ("Heading 1", "Recitals"),
    ("Normal", "This agreement is made between {{COMPANY_NAME}} and {{CLIENT_NAME}}."),
    ("Heading 1", "Price and Payment"),
    ("Heading 3", "Contract Price"),
    ("Normal", "{{PRICING_BREAKDOWN_TABLE}}"),
    ("Heading 3", "Payment Schedule"),
    ("Normal", "{{PAYMENT_SCHEDULE_TABLE}}"),
    ("Heading 1", "CRC Obligations"),
    ("Heading 3", "Site Work: The Client retains its own contractor."),
    ("Heading 1", "Signatures"),
    ("Normal", "{{SIGNATURE_BLOCK}}"),
    ("Heading 1", "California Provisions"),
    ("Heading 3", "Mechanics Liens: California lien law notices apply."),
    ("Normal", "EXHIBIT A: Scope of Work"),
    ("Normal", "Design and manufacture of {{UNIT_MODEL_SUMMARY}}."),
    ("Normal", "EXHIBIT G: California Disclosures"),
    ("Normal", "Buyer acknowledges the California disclosures."),
]

MANUFACTURING_PARAGRAPHS = [
    ("Heading 1", "Manufacturing Terms"),
    ("Heading 3", "Production: The Company manufactures the units in its factory."),
    ("Heading 3", "Payments"),
    ("Normal", "{{PAYMENT_SCHEDULE_TABLE}}"),
]


@pytest.fixture
def pipeline(tmp_path):
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "jurisdictions.json").write_text(json.dumps([
        {"code": "CA", "names": ["California"]},
        {"code": "TX", "names": ["Texas"]},
    ]))
    pipeline = ContractPipeline(config=PipelineConfig(
        database_url=f"sqlite:///{tmp_path / 'pipeline.db'}",
        config_dir=str(config_dir),
    ))
    pipeline.init_database()
    yield pipeline
    pipeline.close()


def add_project(pipeline, service_model="CRC", jurisdiction="CA"):
    with pipeline.db_manager.get_session() as session:
        carmel = HomeDesignModel(
            name="Carmel", bedrooms=3, bathrooms=2.0, sq_ft=1500,
            design_fee=4_500_000, offsite_base_price=42_500_000, onsite_est_price=38_000_000,
        )
        project = ProjectModel(
            name="Lot 7", project_number="P-100", service_model=service_model, jurisdiction=jurisdiction,
        )
        project.units.append(ProjectUnitModel(unit_label="Unit 1", home_model=carmel))
        session.add(project)
        session.flush()
        return project.id


class TestEndToEnd:
    """Ingest source documents, price a project and generate its contracts."""

    @pytest.fixture
    def ingested(self, pipeline):
        one = pipeline.ingest("ONE", ONE_PARAGRAPHS)
        manufacturing = pipeline.ingest("MANUFACTURING", MANUFACTURING_PARAGRAPHS)
        assert one.success
        assert manufacturing.success
        return pipeline

    def test_ingestion_builds_conditional_template(self, ingested):
        template = ingested.clause_store.get_active_template("ONE")
        clauses = {c.name: c for c in ingested.clause_store.get_clauses_by_contract_type("ONE")}

        assert clauses["Mechanics Liens"].id in template.conditional_rules["jurisdiction"]["CA"]
        assert clauses["Site Work"].id in template.conditional_rules["serviceModel"]["CRC"]
        assert clauses["Recitals"].id in template.base_clause_ids
        exhibits = ingested.clause_store.get_exhibits("ONE")
        assert [e.letter for e in exhibits] == ["A", "G"]
        assert exhibits[1].conditions == {"jurisdiction": "CA"}

    def test_generate_package_for_crc_project_in_california(self, ingested, tmp_path):
        project_id = add_project(ingested)

        package = ingested.generate_package(
            ["ONE", "MANUFACTURING", "ONSITE"],
            project_id=project_id,
            values={"COMPANY_NAME": "Acme Homes", "CLIENT_NAME": "Jane Doe"},
        )

        assert list(package.contracts) == ["ONE", "MANUFACTURING"]
        assert list(package.errors) == ["ONSITE"]
        assert package.pricing.contract_value == 47_000_000

        one = package.contracts["ONE"].content
        assert "This agreement is made between Acme Homes and Jane Doe." in one
        assert "MECHANICS LIENS" not in one
        assert "<h3>Mechanics Liens</h3>" in one
        assert "<h3>Site Work</h3>" in one
        assert "pricing-table" in one
        assert "$470,000" in one
        assert "signature-section" in one
        assert "Design and manufacture of 1x Carmel." in one
        assert 'id="exhibit-G"' in one
        assert package.contracts["ONE"].unresolved == []

        manufacturing = package.contracts["MANUFACTURING"].content
        assert "Green Light" in manufacturing
        assert "Retainage" not in manufacturing

        written = ingested.write_package(package, tmp_path / "out")
        assert sorted(p.name.split("_")[1] for p in written) == ["MANUFACTURING", "ONE"]
        assert all(p.name.startswith("P-100_") for p in written)
        assert all(p.read_text(encoding="utf-8") for p in written)

    def test_cmos_project_outside_california(self, ingested):
        project_id = add_project(ingested, service_model="CMOS", jurisdiction="TX")

        contract = ingested.preview("ONE", project_id=project_id)

        assert "Mechanics Liens" not in contract.content
        assert "Site Work" not in contract.content
        assert contract.exhibit_letters == ["A"]
        assert "$850,000" in contract.content
        assert "CLIENT_NAME" in contract.unresolved_names

    def test_reingest_refreshes_template(self, ingested):
        first = ingested.clause_store.get_active_template("ONE")

        ingested.ingest("ONE", [("Heading 1", "Recitals"), ("Normal", "Short form agreement.")])

        second = ingested.clause_store.get_active_template("ONE")
        assert second.version == first.version + 1
        assert len(second.base_clause_ids) == 1
        assert second.conditional_rules == {}
