"""Clause store interface for the contract assembly system."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..exceptions import IngestionPartialFailure
from ..models.clause import Clause, ContractTemplate, Exhibit, StateDisclosure


@dataclass
class InsertReport:
    """
    Outcome of a bulk clause insert.

    ``id_map`` maps builder temp ids to persisted ids. ``inserted`` is a
    best-effort count: failed clauses (and children of failed clauses)
    are listed in ``failures`` instead.
    """
    inserted: int = 0
    id_map: Dict[str, int] = field(default_factory=dict)
    failures: List[IngestionPartialFailure] = field(default_factory=list)

    def __post_init__(self):
        if self.id_map is None:
            self.id_map = {}
        if self.failures is None:
            self.failures = []


class IClauseStore(ABC):
    """
    Abstract interface for clause tree persistence.

    Clauses, exhibits and templates are grouped by contract type. Ingestion
    replaces the whole set of a contract type; assembly only reads.
    """

    @abstractmethod
    def delete_by_contract_type(self, contract_type: str) -> int:
        """
        Delete every clause of a contract type.

        Returns:
            Number of clauses deleted.
        """
        pass

    @abstractmethod
    def insert_clauses(self, clauses: Sequence[Clause]) -> InsertReport:
        """
        Insert clauses in order, resolving ``parent_temp_id`` references.

        A clause whose parent was not stored is not inserted.

        Args:
            clauses: Clauses in creation order (parents before children).

        Returns:
            InsertReport with the temp-id map and any failures.
        """
        pass

    @abstractmethod
    def replace_atomically(
        self, contract_type: str, clauses: Sequence[Clause], exhibits: Sequence[Exhibit]
    ) -> InsertReport:
        """
        Replace the clauses and exhibits of a contract type in one step.

        Raises:
            IngestionPartialFailure: If the replacement fails; the previous
                set is left in place.
        """
        pass

    @abstractmethod
    def get_clauses_by_ids(self, clause_ids: Sequence[int]) -> List[Clause]:
        """Fetch clauses by id, ordered by sort order."""
        pass

    @abstractmethod
    def get_clauses_by_contract_type(self, contract_type: str) -> List[Clause]:
        """Fetch all clauses of a contract type, ordered by sort order."""
        pass

    @abstractmethod
    def replace_exhibits(self, contract_type: str, exhibits: Sequence[Exhibit]) -> int:
        """Replace all exhibits of a contract type; returns the stored count."""
        pass

    @abstractmethod
    def get_exhibits(self, contract_type: str) -> List[Exhibit]:
        """Fetch exhibits of a contract type ordered by letter."""
        pass

    @abstractmethod
    def get_active_template(self, contract_type: str) -> Optional[ContractTemplate]:
        """Return the active template for a contract type, if any."""
        pass

    @abstractmethod
    def save_template(self, template: ContractTemplate) -> ContractTemplate:
        """Store a template as the new active version for its contract type."""
        pass

    @abstractmethod
    def get_disclosure(self, state: str, code: str) -> Optional[StateDisclosure]:
        """Look up jurisdiction-specific disclosure text."""
        pass
