"""Project repository interface for the contract assembly system."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..models.pricing import MilestoneRecord, ProjectRecord, UnitRecord


class IProjectRepository(ABC):
    """
    Abstract interface for reading project pricing inputs.

    Implementations return fresh data on every call; nothing is cached.
    """

    @abstractmethod
    def get_project(self, project_id: int) -> Optional[ProjectRecord]:
        """Return the project, or None if it does not exist."""
        pass

    @abstractmethod
    def get_units(self, project_id: int) -> List[UnitRecord]:
        """Return the project's units joined to their home models."""
        pass

    @abstractmethod
    def get_milestones(self, project_id: int) -> List[MilestoneRecord]:
        """Return explicit payment milestones in milestone order."""
        pass
