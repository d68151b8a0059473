"""SQLAlchemy-backed project repository."""

from typing import List, Optional

from sqlalchemy import select

from ..interfaces.repository import IProjectRepository
from ..models.enums import ServiceModel
from ..models.pricing import MilestoneRecord, ProjectRecord, UnitRecord
from .database import DatabaseManager
from .models import HomeDesignModel, MilestoneModel, ProjectModel, ProjectUnitModel


class SqlProjectRepository(IProjectRepository):
    """Reads projects, units and milestones straight from the database."""

    def __init__(self, db_manager: DatabaseManager):
        self._db = db_manager

    def get_project(self, project_id: int) -> Optional[ProjectRecord]:
        with self._db.get_session() as session:
            model = session.get(ProjectModel, project_id)
            if model is None:
                return None
            return ProjectRecord(
                id=model.id,
                name=model.name,
                service_model=ServiceModel.from_value(model.service_model),
                project_number=model.project_number,
                jurisdiction=model.jurisdiction,
                site_costs=model.site_costs or 0,
            )

    def get_units(self, project_id: int) -> List[UnitRecord]:
        with self._db.get_session() as session:
            rows = session.execute(
                select(ProjectUnitModel, HomeDesignModel)
                .join(HomeDesignModel, ProjectUnitModel.home_model_id == HomeDesignModel.id)
                .where(ProjectUnitModel.project_id == project_id)
                .order_by(ProjectUnitModel.id)
            ).all()
            return [
                UnitRecord(
                    id=unit.id,
                    unit_label=unit.unit_label,
                    model_name=home.name,
                    design_fee=home.design_fee or 0,
                    offsite_base_price=home.offsite_base_price or 0,
                    onsite_est_price=home.onsite_est_price or 0,
                    customization_total=unit.customization_total or 0,
                    bedrooms=home.bedrooms,
                    bathrooms=home.bathrooms,
                    sq_ft=home.sq_ft,
                )
                for unit, home in rows
            ]

    def get_milestones(self, project_id: int) -> List[MilestoneRecord]:
        with self._db.get_session() as session:
            models = session.execute(
                select(MilestoneModel)
                .where(MilestoneModel.project_id == project_id)
                .order_by(MilestoneModel.milestone_number, MilestoneModel.id)
            ).scalars().all()
            return [
                MilestoneRecord(
                    name=m.name,
                    percentage=m.percentage,
                    phase=m.phase or "",
                    milestone_number=m.milestone_number,
                )
                for m in models
            ]
