"""Unit tests for the command line interface."""

import json

import pytest
from docx import Document

from contract_assembly.cli import main
from contract_assembly.storage import DatabaseManager, HomeDesignModel, ProjectModel, ProjectUnitModel


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'cli.db'}"


@pytest.fixture
def source_docx(tmp_path):
    path = tmp_path / "one.docx"
    doc = Document()
    doc.add_paragraph("General Terms", style="Heading 1")
    doc.add_paragraph("Parties: This agreement is between {{COMPANY_NAME}} and {{CLIENT_NAME}}.", style="Heading 3")
    doc.add_paragraph("Contract Price", style="Heading 3")
    doc.add_paragraph("The contract value is {{CONTRACT_VALUE}}.")
    doc.save(str(path))
    return path


@pytest.fixture
def project_id(database_url):
    manager = DatabaseManager(database_url)
    manager.init_database()
    try:
        with manager.get_session() as session:
            home = HomeDesignModel(
                name="Carmel", design_fee=4_500_000, offsite_base_price=42_500_000, onsite_est_price=38_000_000,
            )
            project = ProjectModel(name="Lot 7", project_number="P-100", service_model="CMOS")
            project.units.append(ProjectUnitModel(unit_label="Unit 1", home_model=home))
            session.add(project)
            session.flush()
            return project.id
    finally:
        manager.close()


class TestCli:
    """Tests for the contract-assembly command."""

    def test_init_db(self, database_url, capsys):
        assert main(["--database-url", database_url, "init-db"]) == 0

        assert "Database tables created." in capsys.readouterr().out

    def test_ingest(self, database_url, source_docx, project_id, capsys):
        exit_code = main(["--database-url", database_url, "ingest", str(source_docx), "--contract-type", "one"])

        assert exit_code == 0
        report = json.loads(capsys.readouterr().out)
        assert report["contract_type"] == "ONE"
        assert report["stored_count"] == 3

    def test_ingest_missing_file(self, database_url, tmp_path, capsys):
        main(["--database-url", database_url, "init-db"])

        exit_code = main([
            "--database-url", database_url, "ingest", str(tmp_path / "nope.docx"), "--contract-type", "ONE",
        ])

        assert exit_code == 1
        assert "File not found" in capsys.readouterr().err

    def test_generate_writes_files(self, database_url, source_docx, project_id, tmp_path, capsys):
        """Test generating a package with one missing template."""
        main(["--database-url", database_url, "ingest", str(source_docx), "--contract-type", "ONE"])
        values_path = tmp_path / "values.json"
        values_path.write_text(json.dumps({"COMPANY_NAME": "Acme Homes", "CLIENT_NAME": "Jane Doe"}))
        output_dir = tmp_path / "out"
        capsys.readouterr()

        exit_code = main([
            "--database-url", database_url, "generate",
            "--project-id", str(project_id),
            "--contract-type", "ONE", "ONSITE",
            "--output-dir", str(output_dir),
            "--values", str(values_path),
        ])

        assert exit_code == 1
        captured = capsys.readouterr()
        assert "ONSITE" in captured.err
        written = list(output_dir.glob("P-100_ONE_*.html"))
        assert len(written) == 1
        content = written[0].read_text(encoding="utf-8")
        assert "Acme Homes" in content
        assert "The contract value is $850,000." in content

    def test_generate_unknown_project(self, database_url, capsys):
        main(["--database-url", database_url, "init-db"])

        exit_code = main([
            "--database-url", database_url, "generate", "--project-id", "999", "--contract-type", "ONE",
        ])

        assert exit_code == 1
        assert "999" in capsys.readouterr().err

    def test_values_must_be_an_object(self, database_url, project_id, tmp_path, capsys):
        values_path = tmp_path / "values.json"
        values_path.write_text("[1, 2]")

        exit_code = main([
            "--database-url", database_url, "generate",
            "--project-id", str(project_id), "--contract-type", "ONE",
            "--values", str(values_path),
        ])

        assert exit_code == 1
        assert "JSON object" in capsys.readouterr().err
