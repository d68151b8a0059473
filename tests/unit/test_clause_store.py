"""Unit tests for the SQLAlchemy clause store."""

import pytest

from contract_assembly.config import TemplateDefinition
from contract_assembly.exceptions import IngestionPartialFailure
from contract_assembly.models.clause import Clause, ContractTemplate, Exhibit, StateDisclosure
from contract_assembly.models.enums import BlockType, ServiceModel
from contract_assembly.storage import ClauseModel, DatabaseManager, SqlClauseStore, get_database_url


def node(temp_id, name, sort_order, parent=None, level=3, contract_type="ONE", code=None, **kwargs):
    return Clause(
        code=code or f"{contract_type}-{name.lower().replace(' ', '-')}-{sort_order}",
        contract_type=contract_type,
        name=name,
        content=f"{name} text.",
        block_type=kwargs.pop("block_type", BlockType.CLAUSE),
        hierarchy_level=level,
        sort_order=sort_order,
        temp_id=temp_id,
        parent_temp_id=parent,
        **kwargs,
    )


@pytest.fixture
def db_manager(tmp_path):
    """File-backed SQLite database with all tables created."""
    manager = DatabaseManager(f"sqlite:///{tmp_path / 'clauses.db'}")
    manager.init_database()
    yield manager
    manager.close()


@pytest.fixture
def store(db_manager):
    return SqlClauseStore(db_manager)


@pytest.fixture
def tree():
    return [
        node("tmp-1", "General Terms", 10, level=1, block_type=BlockType.SECTION),
        node("tmp-2", "Payment", 20, parent="tmp-1"),
        node("tmp-3", "Late Fees", 30, parent="tmp-2", level=4),
        node(
            "tmp-4", "Mechanics Liens", 40, parent="tmp-1",
            conditions={"jurisdiction": "CA"},
        ),
        node(
            "tmp-5", "Onsite Services", 50, parent="tmp-1",
            service_model_condition=ServiceModel.CMOS,
        ),
    ]


class TestClauseInsert:
    """Tests for inserting clause trees."""

    def test_insert_maps_temp_ids(self, store, tree):
        """Test that parent temp ids become persisted parent ids."""
        report = store.insert_clauses(tree)

        assert report.inserted == 5
        assert report.failures == []
        stored = store.get_clauses_by_contract_type("ONE")
        ids = {c.code: c.id for c in stored}
        payment = next(c for c in stored if c.name == "Payment")
        late_fees = next(c for c in stored if c.name == "Late Fees")
        assert payment.parent_id == ids["ONE-general-terms-10"]
        assert late_fees.parent_id == payment.id
        assert report.id_map["tmp-2"] == payment.id

    def test_round_trip_of_fields(self, store, tree):
        store.insert_clauses(tree)
        stored = {c.name: c for c in store.get_clauses_by_contract_type("ONE")}

        assert stored["General Terms"].block_type == BlockType.SECTION
        assert stored["Mechanics Liens"].conditions == {"jurisdiction": "CA"}
        assert stored["Onsite Services"].service_model_condition == ServiceModel.CMOS
        assert stored["Payment"].content == "Payment text."
        assert [c.sort_order for c in store.get_clauses_by_contract_type("ONE")] == [10, 20, 30, 40, 50]

    def test_child_of_unstored_parent_is_skipped(self, store):
        report = store.insert_clauses([
            node("tmp-1", "Orphan", 10, parent="tmp-99"),
            node("tmp-2", "Standalone", 20),
        ])

        assert report.inserted == 1
        assert len(report.failures) == 1
        assert report.failures[0].message == "Parent clause was not stored"
        assert report.failures[0].code == "ONE-orphan-10"

    def test_failing_insert_does_not_undo_earlier_ones(self, store):
        """Test best-effort inserts: a duplicate code fails alone, with its children."""
        report = store.insert_clauses([
            node("tmp-1", "Payment", 10, code="ONE-dup"),
            node("tmp-2", "Payment Again", 20, code="ONE-dup"),
            node("tmp-3", "Child", 30, parent="tmp-2", level=4),
            node("tmp-4", "Later", 40),
        ])

        assert report.inserted == 2
        assert len(report.failures) == 2
        assert isinstance(report.failures[0], IngestionPartialFailure)
        assert [c.name for c in store.get_clauses_by_contract_type("ONE")] == ["Payment", "Later"]

    def test_get_clauses_by_ids(self, store, tree):
        report = store.insert_clauses(tree)
        wanted = [report.id_map["tmp-3"], report.id_map["tmp-1"]]

        clauses = store.get_clauses_by_ids(wanted)

        assert [c.name for c in clauses] == ["General Terms", "Late Fees"]
        assert store.get_clauses_by_ids([]) == []


class TestClauseReplace:
    """Tests for deleting and replacing a contract type."""

    def test_delete_by_contract_type(self, store, tree):
        store.insert_clauses(tree)
        store.insert_clauses([node("tmp-1", "Scope", 10, contract_type="ONSITE")])

        deleted = store.delete_by_contract_type("ONE")

        assert deleted == 5
        assert store.get_clauses_by_contract_type("ONE") == []
        assert len(store.get_clauses_by_contract_type("ONSITE")) == 1
        assert store.delete_by_contract_type("ONE") == 0

    def test_replace_atomically(self, store, tree):
        store.insert_clauses(tree)

        report = store.replace_atomically(
            "ONE",
            [node("tmp-1", "Scope", 10, level=1, block_type=BlockType.SECTION)],
            [Exhibit(letter="A", title="Scope", content="<p>x</p>", contract_type="ONE")],
        )

        assert report.inserted == 1
        assert [c.name for c in store.get_clauses_by_contract_type("ONE")] == ["Scope"]
        assert [e.letter for e in store.get_exhibits("ONE")] == ["A"]

    def test_failed_atomic_replace_keeps_previous_set(self, store, tree):
        """Test that a failing atomic swap is rolled back completely."""
        store.insert_clauses(tree)

        with pytest.raises(IngestionPartialFailure) as exc_info:
            store.replace_atomically("ONE", [
                node("tmp-1", "Scope", 10, code="ONE-dup"),
                node("tmp-2", "Scope Again", 20, code="ONE-dup"),
            ], [])

        assert exc_info.value.code == "ONE-dup"
        assert len(store.get_clauses_by_contract_type("ONE")) == 5


class TestExhibitsAndTemplates:
    """Tests for exhibit, template and disclosure storage."""

    def test_exhibits_are_replaced_and_ordered_by_letter(self, store):
        store.replace_exhibits("ONE", [
            Exhibit(letter="C", title="Insurance", content="<p>c</p>", contract_type="ONE"),
            Exhibit(
                letter="A", title="California", content="<p>a</p>", contract_type="ONE",
                is_dynamic=True, conditions={"jurisdiction": "CA"},
                service_model_condition=ServiceModel.CRC,
            ),
        ])
        store.replace_exhibits("ONE", [
            Exhibit(letter="B", title="Warranty", content="<p>b</p>", contract_type="ONE"),
            Exhibit(
                letter="A", title="California", content="<p>a</p>", contract_type="ONE",
                is_dynamic=True, conditions={"jurisdiction": "CA"},
                service_model_condition=ServiceModel.CRC,
            ),
        ])

        exhibits = store.get_exhibits("ONE")
        assert [e.letter for e in exhibits] == ["A", "B"]
        assert exhibits[0].conditions == {"jurisdiction": "CA"}
        assert exhibits[0].service_model_condition == ServiceModel.CRC
        assert exhibits[0].is_dynamic

    def test_rebuild_template_groups_conditional_clauses(self, store, tree):
        report = store.insert_clauses(tree)
        ids = report.id_map

        template = store.rebuild_template("ONE")

        assert template.base_clause_ids == [ids["tmp-1"], ids["tmp-2"], ids["tmp-3"]]
        assert template.conditional_rules == {
            "jurisdiction": {"CA": [ids["tmp-4"]]},
            "serviceModel": {"CMOS": [ids["tmp-5"]]},
        }
        assert template.name == "ONE Contract"

    def test_saving_a_template_bumps_the_active_version(self, store):
        store.save_template(ContractTemplate(contract_type="ONE", name="First", base_clause_ids=[1]))
        store.save_template(ContractTemplate(contract_type="ONE", name="Second", base_clause_ids=[2]))

        active = store.get_active_template("ONE")

        assert active.name == "Second"
        assert active.version == 2
        assert store.get_active_template("ONSITE") is None

    def test_apply_template_definition_resolves_codes(self, store, tree):
        report = store.insert_clauses(tree)

        template = store.apply_template_definition(TemplateDefinition(
            contract_type="ONE",
            name="Configured",
            base_clause_codes=["ONE-general-terms-10", "ONE-unknown-99"],
            conditional_rules={"serviceModel": {"CMOS": ["ONE-onsite-services-50"]}},
        ))

        assert template.base_clause_ids == [report.id_map["tmp-1"]]
        assert template.conditional_rules == {"serviceModel": {"CMOS": [report.id_map["tmp-5"]]}}

    def test_disclosures(self, store):
        store.upsert_disclosure(StateDisclosure(state="ca", code="CA_WARRANTY", content="Old text"))
        store.upsert_disclosure(StateDisclosure(
            state="CA", code="CA_WARRANTY", content="New text", title="Warranty"
        ))

        disclosure = store.get_disclosure("ca", "CA_WARRANTY")

        assert disclosure.state == "CA"
        assert disclosure.content == "New text"
        assert disclosure.title == "Warranty"
        assert store.get_disclosure("TX", "CA_WARRANTY") is None


class TestDatabaseManager:
    """Tests for connection handling."""

    def test_health_check(self, db_manager):
        assert db_manager.health_check()
        assert db_manager.is_sqlite

    def test_drop_and_recreate(self, db_manager, store, tree):
        store.insert_clauses(tree)

        db_manager.drop_all_tables()
        db_manager.init_database()

        assert store.get_clauses_by_contract_type("ONE") == []

    def test_close_recreates_engine_on_next_use(self, db_manager, store, tree):
        store.insert_clauses(tree)

        db_manager.close()

        assert len(store.get_clauses_by_contract_type("ONE")) == 5

    def test_session_rolls_back_on_error(self, db_manager, store):
        with pytest.raises(RuntimeError):
            with db_manager.get_session() as session:
                session.add(ClauseModel(
                    code="ONE-x-10", contract_type="ONE", name="x", content="",
                    block_type="clause", hierarchy_level=3, sort_order=10,
                ))
                session.flush()
                raise RuntimeError("boom")

        assert store.get_clauses_by_contract_type("ONE") == []


class TestDatabaseUrl:
    """Tests for connection URL resolution."""

    def test_explicit_url_from_environment(self, monkeypatch):
        monkeypatch.setenv("CONTRACT_ASSEMBLY_DATABASE_URL", "sqlite:///library.db")

        assert get_database_url() == "sqlite:///library.db"

    def test_postgres_url_from_parts(self, monkeypatch):
        monkeypatch.delenv("CONTRACT_ASSEMBLY_DATABASE_URL", raising=False)
        monkeypatch.setenv("POSTGRES_PASSWORD", "secret")

        url = get_database_url(host="db", port=6543, database="contracts", user="app")

        assert url == "postgresql://app:secret@db:6543/contracts"
