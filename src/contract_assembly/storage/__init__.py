"""Persistence layer for clauses, templates and project records."""

from .clause_store import SqlClauseStore
from .database import DatabaseManager, get_database_url
from .models import (
    Base,
    ClauseModel,
    ContractTemplateModel,
    ExhibitModel,
    HomeDesignModel,
    MilestoneModel,
    ProjectModel,
    ProjectUnitModel,
    StateDisclosureModel,
)
from .project_repository import SqlProjectRepository

__all__ = [
    "SqlClauseStore",
    "SqlProjectRepository",
    "DatabaseManager",
    "get_database_url",
    "Base",
    "ClauseModel",
    "ContractTemplateModel",
    "ExhibitModel",
    "HomeDesignModel",
    "MilestoneModel",
    "ProjectModel",
    "ProjectUnitModel",
    "StateDisclosureModel",
]
