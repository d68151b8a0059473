"""Clause tree data models for the contract assembly system."""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .enums import BlockType, ServiceModel


VARIABLE_PATTERN = re.compile(r"\{\{([A-Z0-9_]+)\}\}")


def find_variables(*texts: str) -> List[str]:
    """Return placeholder names in order of first appearance."""
    seen: List[str] = []
    for text in texts:
        for name in VARIABLE_PATTERN.findall(text or ""):
            if name not in seen:
                seen.append(name)
    return seen


@dataclass
class Clause:
    """
    Node in the decomposed clause hierarchy.

    During tree construction nodes reference each other through
    ``temp_id``/``parent_temp_id``; the clause store maps those onto
    persisted ``id``/``parent_id`` values at insert time.
    """
    code: str
    contract_type: str
    name: str
    content: str
    block_type: BlockType
    hierarchy_level: int
    sort_order: int
    id: Optional[int] = None
    parent_id: Optional[int] = None
    temp_id: Optional[str] = None
    parent_temp_id: Optional[str] = None
    variables_used: List[str] = field(default_factory=list)
    conditions: Dict[str, Any] = field(default_factory=dict)
    disclosure_code: Optional[str] = None
    service_model_condition: Optional[ServiceModel] = None
    category: str = "general"
    source_text: str = ""

    def __post_init__(self):
        if self.variables_used is None:
            self.variables_used = []
        if self.conditions is None:
            self.conditions = {}

    @property
    def is_conditional(self) -> bool:
        """Check if inclusion of this clause depends on project configuration."""
        return bool(self.conditions) or self.service_model_condition is not None


@dataclass
class Exhibit:
    """
    Lettered attachment to a contract.

    Exhibits are ordered by letter and sit outside the clause parent/child
    graph. ``content`` holds an HTML fragment.
    """
    letter: str
    title: str
    content: str
    contract_type: str
    sort_order: int = 0
    id: Optional[int] = None
    is_dynamic: bool = False
    disclosure_code: Optional[str] = None
    conditions: Dict[str, Any] = field(default_factory=dict)
    service_model_condition: Optional[ServiceModel] = None
    variables_used: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.conditions is None:
            self.conditions = {}
        if self.variables_used is None:
            self.variables_used = []

    @property
    def heading(self) -> str:
        if self.title:
            return f"EXHIBIT {self.letter}: {self.title}"
        return f"EXHIBIT {self.letter}"


@dataclass
class ContractTemplate:
    """
    Clause selection recipe for one contract type.

    ``conditional_rules`` maps a condition key (``serviceModel``) to a map
    from condition value (``CMOS``) to extra clause ids to splice in.
    """
    contract_type: str
    name: str
    base_clause_ids: List[int] = field(default_factory=list)
    conditional_rules: Dict[str, Dict[str, List[int]]] = field(default_factory=dict)
    is_active: bool = True
    version: int = 1
    id: Optional[int] = None

    def __post_init__(self):
        if self.base_clause_ids is None:
            self.base_clause_ids = []
        if self.conditional_rules is None:
            self.conditional_rules = {}


@dataclass
class StateDisclosure:
    """Jurisdiction-specific legal text referenced by a disclosure code."""
    state: str
    code: str
    content: str
    title: str = ""
    id: Optional[int] = None
