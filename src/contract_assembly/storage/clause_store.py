"""SQLAlchemy-backed clause store."""

import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config.models import TemplateDefinition
from ..exceptions import IngestionPartialFailure
from ..interfaces.store import IClauseStore, InsertReport
from ..models.clause import Clause, ContractTemplate, Exhibit, StateDisclosure
from ..models.enums import BlockType, ServiceModel
from .database import DatabaseManager
from .models import ClauseModel, ContractTemplateModel, ExhibitModel, StateDisclosureModel


logger = logging.getLogger(__name__)


def _service_model(value: Optional[str]) -> Optional[ServiceModel]:
    return ServiceModel(value) if value else None


def _clause_from_model(model: ClauseModel) -> Clause:
    return Clause(
        id=model.id,
        code=model.code,
        contract_type=model.contract_type,
        name=model.name or "",
        content=model.content or "",
        block_type=BlockType(model.block_type),
        hierarchy_level=model.hierarchy_level,
        sort_order=model.sort_order,
        parent_id=model.parent_id,
        variables_used=list(model.variables_used or []),
        conditions=dict(model.conditions or {}),
        disclosure_code=model.disclosure_code,
        service_model_condition=_service_model(model.service_model_condition),
        category=model.category or "general",
    )


def _clause_to_model(clause: Clause, parent_id: Optional[int]) -> ClauseModel:
    return ClauseModel(
        code=clause.code,
        contract_type=clause.contract_type,
        name=clause.name[:255],
        content=clause.content,
        block_type=clause.block_type.value,
        hierarchy_level=clause.hierarchy_level,
        sort_order=clause.sort_order,
        parent_id=parent_id,
        variables_used=list(clause.variables_used),
        conditions=dict(clause.conditions),
        disclosure_code=clause.disclosure_code,
        service_model_condition=(
            clause.service_model_condition.value if clause.service_model_condition else None
        ),
        category=clause.category,
    )


def _exhibit_from_model(model: ExhibitModel) -> Exhibit:
    return Exhibit(
        id=model.id,
        letter=model.letter,
        title=model.title or "",
        content=model.content or "",
        contract_type=model.contract_type,
        sort_order=model.sort_order,
        is_dynamic=bool(model.is_dynamic),
        disclosure_code=model.disclosure_code,
        conditions=dict(model.conditions or {}),
        service_model_condition=_service_model(model.service_model_condition),
        variables_used=list(model.variables_used or []),
    )


def _exhibit_to_model(exhibit: Exhibit) -> ExhibitModel:
    return ExhibitModel(
        contract_type=exhibit.contract_type,
        letter=exhibit.letter,
        title=exhibit.title[:255],
        content=exhibit.content,
        is_dynamic=exhibit.is_dynamic,
        disclosure_code=exhibit.disclosure_code,
        conditions=dict(exhibit.conditions),
        service_model_condition=(
            exhibit.service_model_condition.value if exhibit.service_model_condition else None
        ),
        variables_used=list(exhibit.variables_used),
        sort_order=exhibit.sort_order,
    )


def _template_from_model(model: ContractTemplateModel) -> ContractTemplate:
    return ContractTemplate(
        id=model.id,
        contract_type=model.contract_type,
        name=model.name,
        base_clause_ids=list(model.base_clause_ids or []),
        conditional_rules={
            key: {value: list(ids) for value, ids in rule_set.items()}
            for key, rule_set in (model.conditional_rules or {}).items()
        },
        is_active=bool(model.is_active),
        version=model.version,
    )


class SqlClauseStore(IClauseStore):
    """
    Clause store backed by a relational database.

    Writes use one transaction per clause by default so that a failing
    clause does not undo earlier inserts; ``replace_atomically`` stages a
    complete replacement in a single transaction instead.
    """

    def __init__(self, db_manager: DatabaseManager):
        self._db = db_manager

    # =========================================================================
    # Clauses
    # =========================================================================

    def delete_by_contract_type(self, contract_type: str) -> int:
        with self._db.get_session() as session:
            return self._delete_clauses(session, contract_type)

    @staticmethod
    def _delete_clauses(session: Session, contract_type: str) -> int:
        # Children first so self-referencing foreign keys never dangle.
        count = session.execute(
            select(func.count())
            .select_from(ClauseModel)
            .where(ClauseModel.contract_type == contract_type)
        ).scalar()
        if not count:
            return 0
        session.execute(
            update(ClauseModel)
            .where(ClauseModel.contract_type == contract_type)
            .values(parent_id=None)
        )
        session.execute(delete(ClauseModel).where(ClauseModel.contract_type == contract_type))
        return count

    def insert_clauses(self, clauses: Sequence[Clause]) -> InsertReport:
        report = InsertReport()
        for clause in clauses:
            parent_id = None
            if clause.parent_temp_id is not None:
                parent_id = report.id_map.get(clause.parent_temp_id)
                if parent_id is None:
                    self._record_failure(report, clause, "Parent clause was not stored")
                    continue
            try:
                with self._db.get_session() as session:
                    model = _clause_to_model(clause, parent_id)
                    session.add(model)
                    session.flush()
                    new_id = model.id
            except SQLAlchemyError as e:
                self._record_failure(report, clause, f"Insert failed: {e}")
                continue
            if clause.temp_id is not None:
                report.id_map[clause.temp_id] = new_id
            report.inserted += 1
        return report

    @staticmethod
    def _record_failure(report: InsertReport, clause: Clause, reason: str) -> None:
        logger.error(f"Failed to store clause {clause.code}: {reason} | source: {clause.source_text[:200]!r}")
        report.failures.append(IngestionPartialFailure(
            message=reason,
            location=f"sort order {clause.sort_order}",
            details={"contract_type": clause.contract_type},
            source_text=clause.source_text,
            code=clause.code,
        ))

    def replace_atomically(
        self, contract_type: str, clauses: Sequence[Clause], exhibits: Sequence[Exhibit]
    ) -> InsertReport:
        """
        Swap the full clause and exhibit set of a contract type in one
        transaction.

        Raises:
            IngestionPartialFailure: If anything fails; nothing is changed.
        """
        report = InsertReport()
        current: Optional[Clause] = None
        try:
            with self._db.get_session() as session:
                self._delete_clauses(session, contract_type)
                for current in clauses:
                    parent_id = None
                    if current.parent_temp_id is not None:
                        parent_id = report.id_map[current.parent_temp_id]
                    model = _clause_to_model(current, parent_id)
                    session.add(model)
                    session.flush()
                    if current.temp_id is not None:
                        report.id_map[current.temp_id] = model.id
                    report.inserted += 1
                current = None
                self._replace_exhibits(session, contract_type, exhibits)
        except (SQLAlchemyError, KeyError) as e:
            source = current.source_text if current is not None else ""
            logger.error(f"Atomic replace of {contract_type} rolled back: {e}")
            raise IngestionPartialFailure(
                message=f"Atomic replace rolled back: {e}",
                location=f"contract type {contract_type}",
                source_text=source,
                code=current.code if current is not None else None,
            ) from e
        return report

    def get_clauses_by_ids(self, clause_ids: Sequence[int]) -> List[Clause]:
        if not clause_ids:
            return []
        with self._db.get_session() as session:
            models = session.execute(
                select(ClauseModel)
                .where(ClauseModel.id.in_(list(clause_ids)))
                .order_by(ClauseModel.sort_order, ClauseModel.id)
            ).scalars().all()
            return [_clause_from_model(m) for m in models]

    def get_clauses_by_contract_type(self, contract_type: str) -> List[Clause]:
        with self._db.get_session() as session:
            models = session.execute(
                select(ClauseModel)
                .where(ClauseModel.contract_type == contract_type)
                .order_by(ClauseModel.sort_order, ClauseModel.id)
            ).scalars().all()
            return [_clause_from_model(m) for m in models]

    # =========================================================================
    # Exhibits
    # =========================================================================

    def replace_exhibits(self, contract_type: str, exhibits: Sequence[Exhibit]) -> int:
        with self._db.get_session() as session:
            return self._replace_exhibits(session, contract_type, exhibits)

    @staticmethod
    def _replace_exhibits(session: Session, contract_type: str, exhibits: Sequence[Exhibit]) -> int:
        session.execute(delete(ExhibitModel).where(ExhibitModel.contract_type == contract_type))
        for exhibit in exhibits:
            session.add(_exhibit_to_model(exhibit))
        session.flush()
        return len(exhibits)

    def get_exhibits(self, contract_type: str) -> List[Exhibit]:
        with self._db.get_session() as session:
            models = session.execute(
                select(ExhibitModel)
                .where(ExhibitModel.contract_type == contract_type)
                .order_by(ExhibitModel.letter)
            ).scalars().all()
            return [_exhibit_from_model(m) for m in models]

    # =========================================================================
    # Templates
    # =========================================================================

    def get_active_template(self, contract_type: str) -> Optional[ContractTemplate]:
        with self._db.get_session() as session:
            model = session.execute(
                select(ContractTemplateModel)
                .where(
                    ContractTemplateModel.contract_type == contract_type,
                    ContractTemplateModel.is_active.is_(True),
                )
                .order_by(ContractTemplateModel.version.desc())
                .limit(1)
            ).scalar_one_or_none()
            return _template_from_model(model) if model is not None else None

    def save_template(self, template: ContractTemplate) -> ContractTemplate:
        with self._db.get_session() as session:
            latest = session.execute(
                select(func.max(ContractTemplateModel.version))
                .where(ContractTemplateModel.contract_type == template.contract_type)
            ).scalar()
            session.execute(
                update(ContractTemplateModel)
                .where(ContractTemplateModel.contract_type == template.contract_type)
                .values(is_active=False)
            )
            model = ContractTemplateModel(
                contract_type=template.contract_type,
                name=template.name,
                version=(latest or 0) + 1,
                base_clause_ids=list(template.base_clause_ids),
                conditional_rules=template.conditional_rules,
                is_active=template.is_active,
            )
            session.add(model)
            session.flush()
            return _template_from_model(model)

    def rebuild_template(self, contract_type: str, name: Optional[str] = None) -> ContractTemplate:
        """
        Derive a template from the stored clauses of a contract type.

        Unconditional clauses form the base list. Conditional clauses are
        grouped under a ``jurisdiction`` rule when they carry one, else
        under ``serviceModel``.
        """
        base: List[int] = []
        rules: Dict[str, Dict[str, List[int]]] = {}
        for clause in self.get_clauses_by_contract_type(contract_type):
            jurisdiction = clause.conditions.get("jurisdiction")
            if jurisdiction:
                rules.setdefault("jurisdiction", {}).setdefault(str(jurisdiction), []).append(clause.id)
            elif clause.service_model_condition is not None:
                rules.setdefault("serviceModel", {}).setdefault(
                    clause.service_model_condition.value, []
                ).append(clause.id)
            else:
                base.append(clause.id)

        logger.info(
            f"Rebuilt template for {contract_type}: {len(base)} base clauses, "
            f"{sum(len(ids) for r in rules.values() for ids in r.values())} conditional"
        )
        return self.save_template(ContractTemplate(
            contract_type=contract_type,
            name=name or f"{contract_type} Contract",
            base_clause_ids=base,
            conditional_rules=rules,
        ))

    def apply_template_definition(self, definition: TemplateDefinition) -> ContractTemplate:
        """Store a configured template, resolving clause codes to ids."""
        by_code = {c.code: c.id for c in self.get_clauses_by_contract_type(definition.contract_type)}

        def resolve(codes: List[str]) -> List[int]:
            ids = []
            for code in codes:
                if code in by_code:
                    ids.append(by_code[code])
                else:
                    logger.warning(f"Template {definition.name}: unknown clause code {code}")
            return ids

        return self.save_template(ContractTemplate(
            contract_type=definition.contract_type,
            name=definition.name,
            base_clause_ids=resolve(definition.base_clause_codes),
            conditional_rules={
                key: {value: resolve(codes) for value, codes in rule_set.items()}
                for key, rule_set in definition.conditional_rules.items()
            },
            is_active=definition.is_active,
        ))

    # =========================================================================
    # Disclosures
    # =========================================================================

    def get_disclosure(self, state: str, code: str) -> Optional[StateDisclosure]:
        with self._db.get_session() as session:
            model = session.execute(
                select(StateDisclosureModel).where(
                    StateDisclosureModel.state == state.upper(),
                    StateDisclosureModel.code == code,
                )
            ).scalar_one_or_none()
            if model is None:
                return None
            return StateDisclosure(
                id=model.id, state=model.state, code=model.code,
                title=model.title or "", content=model.content,
            )

    def upsert_disclosure(self, disclosure: StateDisclosure) -> None:
        with self._db.get_session() as session:
            model = session.execute(
                select(StateDisclosureModel).where(
                    StateDisclosureModel.state == disclosure.state.upper(),
                    StateDisclosureModel.code == disclosure.code,
                )
            ).scalar_one_or_none()
            if model is None:
                model = StateDisclosureModel(state=disclosure.state.upper(), code=disclosure.code)
                session.add(model)
            model.title = disclosure.title
            model.content = disclosure.content
