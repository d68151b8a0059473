"""SQLAlchemy models for clause, template and project storage."""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, relationship
from sqlalchemy.types import TypeDecorator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JSONType(TypeDecorator):
    """Platform-independent JSON type.

    Uses JSONB for PostgreSQL and JSON for other databases (like SQLite).
    """
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(JSONB())
        else:
            return dialect.type_descriptor(JSON())


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class ClauseModel(Base):
    """Clause tree node table model."""
    __tablename__ = "clauses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(160), nullable=False)
    contract_type = Column(String(40), nullable=False)
    name = Column(String(255), nullable=False, default="")
    content = Column(Text, nullable=False, default="")
    block_type = Column(String(30), nullable=False)
    hierarchy_level = Column(Integer, nullable=False)
    sort_order = Column(Integer, nullable=False)
    parent_id = Column(Integer, ForeignKey("clauses.id", ondelete="CASCADE"))
    variables_used = Column(JSONType)
    conditions = Column(JSONType)
    disclosure_code = Column(String(80))
    service_model_condition = Column(String(10))
    category = Column(String(40), default="general")
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        UniqueConstraint("contract_type", "code", name="uq_clauses_contract_type_code"),
        CheckConstraint("hierarchy_level BETWEEN 1 AND 7", name="check_clause_level"),
        CheckConstraint(
            "block_type IN ('section', 'clause', 'paragraph', 'table', 'list_item', "
            "'conspicuous', 'dynamic_disclosure')",
            name="check_clause_block_type",
        ),
        Index("idx_clauses_contract_type_sort", "contract_type", "sort_order"),
        Index("idx_clauses_parent_id", "parent_id"),
    )


class ExhibitModel(Base):
    """Exhibit table model."""
    __tablename__ = "exhibits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    contract_type = Column(String(40), nullable=False)
    letter = Column(String(2), nullable=False)
    title = Column(String(255), nullable=False, default="")
    content = Column(Text, nullable=False, default="")
    is_dynamic = Column(Boolean, nullable=False, default=False)
    disclosure_code = Column(String(80))
    conditions = Column(JSONType)
    service_model_condition = Column(String(10))
    variables_used = Column(JSONType)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        UniqueConstraint("contract_type", "letter", name="uq_exhibits_contract_type_letter"),
    )


class ContractTemplateModel(Base):
    """Contract template table model."""
    __tablename__ = "contract_templates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    contract_type = Column(String(40), nullable=False)
    name = Column(String(255), nullable=False)
    version = Column(Integer, nullable=False, default=1)
    base_clause_ids = Column(JSONType, nullable=False)
    conditional_rules = Column(JSONType, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("idx_contract_templates_type_active", "contract_type", "is_active"),
    )


class StateDisclosureModel(Base):
    """Jurisdiction-specific disclosure text table model."""
    __tablename__ = "state_disclosures"

    id = Column(Integer, primary_key=True, autoincrement=True)
    state = Column(String(2), nullable=False)
    code = Column(String(80), nullable=False)
    title = Column(String(255), nullable=False, default="")
    content = Column(Text, nullable=False)

    __table_args__ = (
        UniqueConstraint("state", "code", name="uq_state_disclosures_state_code"),
    )


class HomeDesignModel(Base):
    """Home model catalogue table model. Prices are in cents."""
    __tablename__ = "home_models"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    model_code = Column(String(40))
    bedrooms = Column(Integer)
    bathrooms = Column(Float)
    sq_ft = Column(Integer)
    design_fee = Column(BigInteger, nullable=False, default=0)
    offsite_base_price = Column(BigInteger, nullable=False, default=0)
    onsite_est_price = Column(BigInteger, nullable=False, default=0)


class ProjectModel(Base):
    """Project table model."""
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    project_number = Column(String(40))
    service_model = Column(String(10), nullable=False, default="CRC")
    jurisdiction = Column(String(2))
    site_costs = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    units = relationship("ProjectUnitModel", back_populates="project", cascade="all, delete-orphan")
    milestones = relationship("MilestoneModel", back_populates="project", cascade="all, delete-orphan")


class ProjectUnitModel(Base):
    """Project unit table model."""
    __tablename__ = "project_units"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    home_model_id = Column(Integer, ForeignKey("home_models.id"), nullable=False)
    unit_label = Column(String(40), nullable=False)
    customization_total = Column(BigInteger, nullable=False, default=0)

    project = relationship("ProjectModel", back_populates="units")
    home_model = relationship("HomeDesignModel")

    __table_args__ = (
        Index("idx_project_units_project_id", "project_id"),
    )


class MilestoneModel(Base):
    """Project payment milestone table model."""
    __tablename__ = "milestones"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    milestone_number = Column(Integer, nullable=False, default=0)
    name = Column(String(120), nullable=False)
    percentage = Column(Float, nullable=False)
    phase = Column(String(40), default="")

    project = relationship("ProjectModel", back_populates="milestones")

    __table_args__ = (
        CheckConstraint("percentage >= 0 AND percentage <= 100", name="check_milestone_percentage"),
        Index("idx_milestones_project_id", "project_id"),
    )
