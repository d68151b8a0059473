"""Assembly output data models for the contract assembly system."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .pricing import PricingSummary


@dataclass
class UnresolvedPlaceholder:
    """
    Placeholder with no value at render time.

    Not an error: the placeholder is rendered as ``[NAME]`` and recorded
    here so callers can surface it.
    """
    name: str
    clause_code: Optional[str] = None

    @property
    def rendered(self) -> str:
        return f"[{self.name}]"


@dataclass
class AssembledContract:
    """Rendered contract for one contract type."""
    contract_type: str
    content: str
    clause_ids: List[int] = field(default_factory=list)
    exhibit_letters: List[str] = field(default_factory=list)
    unresolved: List[UnresolvedPlaceholder] = field(default_factory=list)
    filename: str = ""
    generated_at: str = ""

    def __post_init__(self):
        if self.clause_ids is None:
            self.clause_ids = []
        if self.exhibit_letters is None:
            self.exhibit_letters = []
        if self.unresolved is None:
            self.unresolved = []

    @property
    def clause_count(self) -> int:
        return len(self.clause_ids)

    @property
    def unresolved_names(self) -> List[str]:
        names: List[str] = []
        for item in self.unresolved:
            if item.name not in names:
                names.append(item.name)
        return names


@dataclass
class ContractPackage:
    """Result of generating several contract types for one project."""
    contracts: Dict[str, AssembledContract] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    pricing: Optional[PricingSummary] = None

    @property
    def success(self) -> bool:
        return not self.errors
